from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from outlier_api.config import LoggingConfig
from outlier_api.logging import configure_logging, get_logger, teardown_logging
from outlier_api.metrics import ServiceMetrics

SERVICE_NAME = "outlier"


@dataclass
class Telemetry:
    """Logging and metrics owned by one process entry point.

    Built explicitly and passed to the API factory; ``shutdown`` flushes and
    releases the log handler.
    """

    logging_config: LoggingConfig = field(default_factory=LoggingConfig)
    service_name: str = SERVICE_NAME
    metrics: ServiceMetrics = field(default_factory=ServiceMetrics)
    _handler: logging.Handler | None = field(default=None, init=False, repr=False)

    @property
    def started(self) -> bool:
        return self._handler is not None

    def start(self) -> Telemetry:
        if self._handler is None:
            self._handler = configure_logging(self.logging_config)
            self.logger().debug(
                "telemetry_started",
                service=self.service_name,
                level=str(self.logging_config.level),
                format=self.logging_config.format.value,
            )
        return self

    def logger(self, name: str = "outlier.api"):
        return get_logger(name).bind(service=self.service_name)

    def shutdown(self) -> None:
        if self._handler is None:
            return
        handler, self._handler = self._handler, None
        teardown_logging(handler)


@contextmanager
def telemetry_session(
    logging_config: LoggingConfig | None = None,
    *,
    service_name: str = SERVICE_NAME,
) -> Iterator[Telemetry]:
    telemetry = Telemetry(
        logging_config=logging_config or LoggingConfig(),
        service_name=service_name,
    )
    telemetry.start()
    try:
        yield telemetry
    finally:
        telemetry.shutdown()
