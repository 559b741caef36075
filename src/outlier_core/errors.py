from __future__ import annotations


class OutlierError(Exception):
    """Base class for request-scoped failures surfaced to API and CLI callers."""

    code = "OUTLIER_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class PercentileValidationError(OutlierError):
    code = "VALIDATION_ERROR"


class EmptyDatasetError(PercentileValidationError):
    code = "EMPTY_DATASET"

    def __init__(self) -> None:
        super().__init__("Cannot calculate percentile of empty dataset")


class PercentileOutOfRangeError(PercentileValidationError):
    code = "PERCENTILE_OUT_OF_RANGE"

    def __init__(self, percentile: float) -> None:
        super().__init__("Percentile must be between 0 and 100")
        self.percentile = percentile


class NonFiniteValueError(PercentileValidationError):
    code = "NON_FINITE_VALUE"

    def __init__(self, value: float, position: int) -> None:
        super().__init__(
            f"Dataset contains a non-finite value ({value}) at position {position}"
        )
        self.value = value
        self.position = position


class DatasetReadError(OutlierError):
    code = "DATASET_READ_ERROR"


class UnsupportedFormatError(DatasetReadError):
    code = "UNSUPPORTED_FORMAT"

    def __init__(self, filename: str | None = None) -> None:
        super().__init__("Unsupported file format. Use .json or .csv")
        self.filename = filename


class DatasetParseError(DatasetReadError):
    code = "PARSE_ERROR"


class DatasetTooLargeError(DatasetReadError):
    code = "DATASET_TOO_LARGE"

    def __init__(self, max_values: int) -> None:
        super().__init__(
            f"Input dataset exceeds the limit of {max_values} values. Aborting."
        )
        self.max_values = max_values
