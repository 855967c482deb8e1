from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from shelfgate.core.config import CannotLoadConfiguration


class ServiceConfiguration(BaseSettings):
    """
    Settings of one service, read from the environment (or a `.env` file in
    the working directory) once, when the container is created.

    Subclasses declare their settings as pydantic fields and set their own
    `env_prefix`, e.g. `SHELFGATE_ILS_`.
    """

    model_config = SettingsConfigDict(
        env_prefix="SHELFGATE_",
        env_file=".env",
        env_nested_delimiter="__",
        str_strip_whitespace=True,
        frozen=True,
        extra="ignore",
    )

    @classmethod
    def env_var_name(cls, location: Sequence[int | str]) -> str:
        """The environment variable that sets the field at `location`."""
        delimiter = cls.model_config.get("env_nested_delimiter") or "__"
        field, *nested = (str(part) for part in location)
        if field in cls.model_fields:
            field = f"{cls.model_config.get('env_prefix', '')}{field}"
        return delimiter.join(part.upper() for part in (field, *nested))

    def __init__(self, *args: Any, **kwargs: Any):
        try:
            super().__init__(*args, **kwargs)
        except ValidationError as e:
            lines = ["Error loading settings from environment:"]
            for error in e.errors():
                if error["loc"]:
                    lines.append(f"  {self.env_var_name(error['loc'])}:  {error['msg']}")
                else:
                    lines.append(f"  {error['msg']}")
            raise CannotLoadConfiguration("\n".join(lines)) from e
