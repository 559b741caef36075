from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictFloat

DEFAULT_PERCENTILE = 95.0


class CalculateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    values: list[StrictFloat] = Field(description="Array of numerical values")
    percentile: StrictFloat = Field(
        default=DEFAULT_PERCENTILE,
        description="Percentile to calculate (0-100)",
    )


class CalculateResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    count: int = Field(ge=0, description="Number of values in the dataset")
    percentile: float = Field(description="The requested percentile value")
    result: float = Field(description="The calculated result")


class ErrorResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    error: str
    error_code: str
    request_id: str | None = None


class HealthResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: Literal["healthy"]
    service: str
    version: str


class MetricsResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    calculation_counts: dict[str, int]
    http_status_counts: dict[str, int]
    latency_ms_buckets: dict[str, int]
    error_counts: dict[str, int]
    values_processed: int = Field(ge=0)
