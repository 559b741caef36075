from __future__ import annotations

import logging
import os
import tomllib
from enum import Enum
from ipaddress import IPv4Address
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, IPvAnyAddress, ValidationError

from outlier_core.dataset import MAX_VALUES

CONFIG_FILE_ENV = "OUTLIER_CONFIG_FILE"


class ConfigError(Exception):
    pass


class LogLevel(str, Enum):
    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    def as_logging_level(self) -> int:
        return {
            LogLevel.TRACE: logging.DEBUG,
            LogLevel.DEBUG: logging.DEBUG,
            LogLevel.INFO: logging.INFO,
            LogLevel.WARN: logging.WARNING,
            LogLevel.ERROR: logging.ERROR,
        }[self]

    def __str__(self) -> str:
        return self.value


class LogFormat(str, Enum):
    COMPACT = "compact"
    PRETTY = "pretty"
    JSON = "json"


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: LogLevel = LogLevel.INFO
    output: Literal["stdout", "stderr"] | Path = "stdout"
    format: LogFormat = LogFormat.COMPACT

    @property
    def output_path(self) -> Path | None:
        if isinstance(self.output, Path):
            return self.output
        return None


class ServerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    port: int = Field(default=3000, ge=0, le=65535)
    bind_ip: IPvAnyAddress = IPv4Address("0.0.0.0")


class LimitsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_values: int = Field(default=MAX_VALUES, ge=1)


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    limits: LimitsConfig = Field(default_factory=LimitsConfig)


def parse_config(text: str) -> AppConfig:
    payload = tomllib.loads(text)
    return AppConfig.model_validate(payload)


def load_config_file(path: Path) -> AppConfig:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read config file '{path}': {exc}") from exc
    try:
        return parse_config(text)
    except (tomllib.TOMLDecodeError, ValidationError) as exc:
        raise ConfigError(f"Failed to parse config file '{path}': {exc}") from exc


def load_config(cli_path: Path | None = None) -> AppConfig:
    """Resolve config from the CLI path, then ``OUTLIER_CONFIG_FILE``, then defaults."""
    if cli_path is not None:
        return load_config_file(cli_path)
    env_path = os.getenv(CONFIG_FILE_ENV, "").strip()
    if env_path:
        return load_config_file(Path(env_path))
    return AppConfig()
