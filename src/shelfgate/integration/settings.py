from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator
from pydantic_core import ErrorDetails

from shelfgate.core.config import CannotLoadConfiguration
from shelfgate.util.log import LoggerMixin


class SettingsValidationError(CannotLoadConfiguration):
    """A settings document for a backend failed validation."""


class BaseSettings(BaseModel, LoggerMixin):
    """
    Base class for the settings documents that configure the router and
    each of its backend drivers.

    Subclasses declare their fields as ordinary pydantic fields:

    class MySettings(BaseSettings):
        base_url: str
        timeout: int = 20
    """

    @model_validator(mode="before")
    @classmethod
    def extra_args(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values

        # We log any extra arguments that are passed to the model, but
        # we don't raise an error, since configuration documents are
        # often shared between deployments with different driver versions.
        model_names_and_aliases = set()
        for field_name, field_info in cls.model_fields.items():
            model_names_and_aliases.add(field_name)
            if field_info.alias is not None:
                model_names_and_aliases.add(field_info.alias)

        for field in values.keys() - model_names_and_aliases:
            msg = f"Unexpected extra argument '{field}' for model {cls.__name__}"
            cls.logger().info(msg)

        # Hand edited configuration often leaves keys with empty values,
        # treat those as not set so defaults and required checks apply.
        return {
            key: None if isinstance(value, str) and value == "" else value
            for key, value in values.items()
        }

    model_config = ConfigDict(
        # Strip whitespace from all strings
        str_strip_whitespace=True,
        # Make the settings model immutable, a driver's configuration
        # is fixed for the lifetime of the driver.
        frozen=True,
        # Allow extra arguments to be passed to the model.
        extra="allow",
        # Allow population by field name as well as by alias.
        populate_by_name=True,
    )

    def model_dump(self, **kwargs: Any) -> dict[str, Any]:
        """Override the model_dump method to remove the default values"""
        kwargs.setdefault("exclude_defaults", True)
        return super().model_dump(**kwargs)

    @staticmethod
    def _get_error_label(er: ErrorDetails) -> str:
        return ".".join(str(loc) for loc in er["loc"])

    def __init__(self, **data: Any):
        """
        Override the init method to raise SettingsValidationError, with a
        readable message, instead of pydantic's ValidationError.
        """
        try:
            super().__init__(**data)
        except ValidationError as e:
            messages = []
            for error in e.errors():
                error_type = error.get("type", "")
                if error_type == "missing" or (
                    error_type.endswith("_type") and error.get("input") is None
                ):
                    messages.append(
                        f"Required field '{self._get_error_label(error)}' is missing."
                    )
                    continue

                error_msg = str.replace(error["msg"], "Value error, ", "")
                if error_msg and error_msg[-1] not in [".", "!", "?"]:
                    error_msg += "."
                if error.get("loc"):
                    messages.append(
                        f"'{self._get_error_label(error)}' validation error: {error_msg}"
                    )
                else:
                    messages.append(f"Validation error: {error_msg}")

            raise SettingsValidationError(
                f"Invalid configuration for {self.__class__.__name__}",
                debug_message=" ".join(messages),
            ) from e
