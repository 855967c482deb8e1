from __future__ import annotations

from typing import Any

from dependency_injector import providers
from dependency_injector.containers import DeclarativeContainer
from dependency_injector.providers import Provider

from shelfgate.ils.config_loader import ConfigLoader, JsonFileConfigLoader
from shelfgate.ils.connection import HoldsMode, IlsConnection
from shelfgate.ils.multibackend import MultiBackend
from shelfgate.ils.settings import MultiBackendSettings
from shelfgate.service.ils.ils import create_login_cache, load_multibackend_settings


class Ils(DeclarativeContainer):
    config = providers.Configuration()
    integration_registry = providers.DependenciesContainer()

    config_loader: Provider[ConfigLoader] = providers.Singleton(
        JsonFileConfigLoader,
        directory=config.config_dir,
    )

    settings: Provider[MultiBackendSettings] = providers.Singleton(
        load_multibackend_settings,
        config_loader=config_loader,
        name=config.multibackend_config,
    )

    # Logins belong to the caller's session. Each router gets a cache of its
    # own unless the host passes the session's mapping as `login_cache`.
    login_cache: Provider[dict[str, Any] | None] = providers.Factory(
        create_login_cache,
        enabled=config.login_cache,
    )

    # A new router, with its own driver cache, every time one is requested.
    router: Provider[MultiBackend] = providers.Factory(
        MultiBackend.from_settings,
        settings=settings,
        registry=integration_registry.ils_drivers,
        config_loader=config_loader,
        login_cache=login_cache,
    )

    connection: Provider[IlsConnection] = providers.Factory(
        IlsConnection,
        router=router,
        holds_mode=config.holds_mode.as_(HoldsMode),
        cancel_holds_enabled=config.cancel_holds_enabled,
        renewals_enabled=config.renewals_enabled,
        cancel_storage_retrieval_requests_enabled=config.cancel_storage_retrieval_requests_enabled,
        cancel_ill_requests_enabled=config.cancel_ill_requests_enabled,
    )
