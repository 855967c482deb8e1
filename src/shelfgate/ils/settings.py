from __future__ import annotations

from pydantic import Field, field_validator, model_validator

from shelfgate.ils.namespace import DEFAULT_ID_FIELDS, DEFAULT_SEPARATOR
from shelfgate.integration.settings import BaseSettings


class MultiBackendSettings(BaseSettings):
    """The router's own configuration document.

    Example:

    {
        "drivers": {"libA": "Demo", "libB": "Demo"},
        "default_driver": "libA",
        "login_drivers": ["libA", "libB"],
        "drivers_config_path": "backends"
    }
    """

    # Source token -> driver type name (a protocol in the driver registry).
    drivers: dict[str, str] = Field(default_factory=dict)

    # Backend used for identifiers that carry no source, and for the
    # operations that have no source specific parameters.
    default_driver: str | None = None

    # Backends patrons can log in to, and the one used for usernames that
    # carry no source.
    login_drivers: list[str] = Field(default_factory=list)
    login_default_driver: str | None = None

    # Per-source configuration is loaded from "<drivers_config_path>/<source>",
    # or from "<source>" when no path is set.
    drivers_config_path: str | None = None

    id_separator: str = DEFAULT_SEPARATOR
    id_fields: list[str] = Field(default_factory=lambda: list(DEFAULT_ID_FIELDS))

    @field_validator("id_separator", mode="before")
    @classmethod
    def validate_id_separator(cls, v: object) -> object:
        if not v:
            return DEFAULT_SEPARATOR
        return v

    @model_validator(mode="after")
    def validate_sources(self) -> MultiBackendSettings:
        for source in self.drivers:
            if not source:
                raise ValueError("Source names must not be empty")
            if self.id_separator in source:
                raise ValueError(
                    f"Source '{source}' must not contain the id separator '{self.id_separator}'"
                )
        return self

    def get_default_login_driver(self) -> str:
        if self.login_default_driver:
            return self.login_default_driver
        if self.login_drivers:
            return self.login_drivers[0]
        return ""
