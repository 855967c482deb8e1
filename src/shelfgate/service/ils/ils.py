from __future__ import annotations

from shelfgate.ils.config_loader import ConfigLoader
from shelfgate.ils.driver.base import Patron
from shelfgate.ils.settings import MultiBackendSettings


def load_multibackend_settings(
    config_loader: ConfigLoader, name: str
) -> MultiBackendSettings:
    """Load and validate the router's own configuration document."""
    return MultiBackendSettings(**config_loader.load(name))


def create_login_cache(enabled: bool) -> dict[str, Patron] | None:
    return {} if enabled else None
