from __future__ import annotations

import csv
import io
import json
import math
from enum import Enum
from pathlib import Path
from typing import IO, Any

from outlier_core.errors import (
    DatasetParseError,
    DatasetTooLargeError,
    UnsupportedFormatError,
)

MAX_VALUES = 10_000_000
CSV_VALUE_COLUMN = "value"


class DatasetFormat(str, Enum):
    JSON = "json"
    CSV = "csv"

    @classmethod
    def from_filename(cls, filename: str | Path) -> DatasetFormat:
        suffix = Path(str(filename)).suffix.lower().lstrip(".")
        try:
            return cls(suffix)
        except ValueError as exc:
            raise UnsupportedFormatError(str(filename)) from exc


def _reject_constant(token: str) -> Any:
    raise ValueError(f"non-standard JSON constant {token!r}")


def _as_number(item: Any, position: int) -> float:
    if isinstance(item, bool) or not isinstance(item, (int, float)):
        raise ValueError(f"element {position} is not a number: {item!r}")
    number = float(item)
    if not math.isfinite(number):
        raise ValueError(f"element {position} is out of range: {item!r}")
    return number


def _read_json(stream: IO[bytes], max_values: int) -> list[float]:
    try:
        payload = json.loads(stream.read(), parse_constant=_reject_constant)
        if not isinstance(payload, list):
            raise ValueError(f"top-level value is {type(payload).__name__}, not an array")
        if len(payload) > max_values:
            raise DatasetTooLargeError(max_values)
        return [_as_number(item, position) for position, item in enumerate(payload)]
    except (ValueError, OverflowError, RecursionError) as exc:
        raise DatasetParseError(
            f"Failed to parse JSON. Expected array of numbers. ({exc})"
        ) from exc


def _read_csv(stream: IO[bytes], max_values: int) -> list[float]:
    text = io.TextIOWrapper(stream, encoding="utf-8-sig", newline="")
    try:
        reader = csv.DictReader(text)
        if reader.fieldnames is None:
            return []
        if CSV_VALUE_COLUMN not in [name.strip() for name in reader.fieldnames]:
            raise DatasetParseError(
                f"Failed to parse CSV record: missing '{CSV_VALUE_COLUMN}' column in header"
            )
        reader.fieldnames = [name.strip() for name in reader.fieldnames]
        values: list[float] = []
        for row in reader:
            if len(values) >= max_values:
                raise DatasetTooLargeError(max_values)
            cell = row.get(CSV_VALUE_COLUMN)
            try:
                if cell is None:
                    raise ValueError("row has no value field")
                values.append(float(cell))
            except ValueError as exc:
                raise DatasetParseError(
                    f"Failed to parse CSV record at line {reader.line_num}: {exc}"
                ) from exc
        return values
    except UnicodeDecodeError as exc:
        raise DatasetParseError(f"Failed to parse CSV record: {exc}") from exc
    except csv.Error as exc:
        raise DatasetParseError(f"Failed to parse CSV record: {exc}") from exc
    finally:
        text.detach()


def read_values(
    stream: IO[bytes],
    fmt: DatasetFormat,
    *,
    max_values: int = MAX_VALUES,
) -> list[float]:
    if fmt is DatasetFormat.JSON:
        return _read_json(stream, max_values)
    return _read_csv(stream, max_values)


def read_values_from_bytes(
    data: bytes,
    filename: str,
    *,
    max_values: int = MAX_VALUES,
) -> list[float]:
    fmt = DatasetFormat.from_filename(filename)
    return read_values(io.BytesIO(data), fmt, max_values=max_values)


def read_values_from_file(path: Path, *, max_values: int = MAX_VALUES) -> list[float]:
    fmt = DatasetFormat.from_filename(path)
    try:
        with path.open("rb") as handle:
            return read_values(handle, fmt, max_values=max_values)
    except OSError as exc:
        raise DatasetParseError(f"Failed to open file '{path}': {exc}") from exc


def parse_value_list(text: str, *, max_values: int = MAX_VALUES) -> list[float]:
    """Parse a comma-separated list such as ``"1, 2.5,3"``."""
    if not text.strip():
        return []
    items = text.split(",")
    if len(items) > max_values:
        raise DatasetTooLargeError(max_values)
    values: list[float] = []
    for position, item in enumerate(items):
        token = item.strip()
        try:
            values.append(float(token))
        except ValueError as exc:
            raise DatasetParseError(
                f"Invalid value at position {position}: {token!r} is not a number"
            ) from exc
    return values
