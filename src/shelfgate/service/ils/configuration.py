from __future__ import annotations

from pathlib import Path

from pydantic_settings import SettingsConfigDict

from shelfgate.ils.connection import HoldsMode
from shelfgate.service.configuration.service_configuration import (
    ServiceConfiguration,
)


class IlsConfiguration(ServiceConfiguration):
    # Directory holding the router's configuration document and the
    # configuration documents of its backends, as JSON files.
    config_dir: Path = Path("config")
    # Name of the router's own document in `config_dir`.
    multibackend_config: str = "MultiBackend"

    # Cache successful patron logins for the lifetime of the process.
    login_cache: bool = False

    holds_mode: HoldsMode = HoldsMode.all
    cancel_holds_enabled: bool = False
    renewals_enabled: bool = False
    cancel_storage_retrieval_requests_enabled: bool = False
    cancel_ill_requests_enabled: bool = False

    model_config = SettingsConfigDict(env_prefix="SHELFGATE_ILS_")
