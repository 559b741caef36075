"""Percentile engine and dataset readers shared by the API and CLI."""

from __future__ import annotations

from outlier_core.dataset import (
    MAX_VALUES,
    DatasetFormat,
    parse_value_list,
    read_values,
    read_values_from_bytes,
    read_values_from_file,
)
from outlier_core.percentile import compute_percentile

__version__ = "0.1.0"

__all__ = [
    "MAX_VALUES",
    "DatasetFormat",
    "__version__",
    "compute_percentile",
    "parse_value_list",
    "read_values",
    "read_values_from_bytes",
    "read_values_from_file",
]
