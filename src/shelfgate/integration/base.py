from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Generic, TypeVar

from shelfgate.integration.settings import BaseSettings

T = TypeVar("T", bound=BaseSettings)


def integration_settings_load(
    settings_cls: type[T],
    settings_dict: Mapping[str, Any],
) -> T:
    """
    Load the settings object for an integration from its configuration document.

    The settings are validated when loaded, so a document with missing
    required fields or values of the wrong type fails here, before any
    connection to the backend is attempted.

    :param settings_cls: The settings class that the settings should be loaded into.
    :param settings_dict: The configuration document.

    :return: An instance of the settings class.
    """
    return settings_cls(**dict(settings_dict))


SettingsType = TypeVar("SettingsType", bound=BaseSettings, covariant=True)


class HasIntegrationConfiguration(Generic[SettingsType], ABC):
    @classmethod
    @abstractmethod
    def label(cls) -> str:
        """Get the label of this integration"""
        ...

    @classmethod
    @abstractmethod
    def description(cls) -> str:
        """Get the description of this integration"""
        ...

    @classmethod
    @abstractmethod
    def settings_class(cls) -> type[SettingsType]:
        """Get the settings for this integration"""
        ...

    @classmethod
    def settings_load(cls, settings_dict: Mapping[str, Any]) -> SettingsType:
        """
        Load the settings object for this integration from a configuration document.

        See the documentation for `integration_settings_load` for more details.
        """
        return integration_settings_load(cls.settings_class(), settings_dict)
