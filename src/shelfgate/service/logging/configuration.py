from __future__ import annotations

import logging
from enum import StrEnum

from pydantic_settings import SettingsConfigDict

from shelfgate.service.configuration.service_configuration import (
    ServiceConfiguration,
)


class LogLevel(StrEnum):
    """Log levels, valued by the names the logging module accepts."""

    debug = "DEBUG"
    info = "INFO"
    warning = "WARNING"
    error = "ERROR"

    @property
    def levelno(self) -> int:
        return logging.getLevelNamesMapping()[self.value]

    @classmethod
    def from_level(cls, level: int | str) -> LogLevel:
        name = logging.getLevelName(level) if isinstance(level, int) else str(level)
        try:
            return cls(name.upper())
        except ValueError:
            raise ValueError(f"'{level}' is not a valid LogLevel") from None


class LoggingConfiguration(ServiceConfiguration):
    level: LogLevel = LogLevel.info
    # Level of the chatty transport libraries drivers use.
    verbose_level: LogLevel = LogLevel.warning

    # Emit one JSON document per record. Turn this off for human readable
    # output when running the command line tools interactively.
    json_format: bool = True

    model_config = SettingsConfigDict(env_prefix="SHELFGATE_LOG_")
