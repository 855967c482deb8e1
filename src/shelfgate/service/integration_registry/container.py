from __future__ import annotations

from dependency_injector.containers import DeclarativeContainer
from dependency_injector.providers import Provider, Singleton

from shelfgate.service.integration_registry.ils_drivers import IlsDriverRegistry


class IntegrationRegistryContainer(DeclarativeContainer):
    ils_drivers: Provider[IlsDriverRegistry] = Singleton(IlsDriverRegistry)
