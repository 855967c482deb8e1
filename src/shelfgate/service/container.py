from __future__ import annotations

from dependency_injector import providers
from dependency_injector.containers import DeclarativeContainer
from dependency_injector.providers import Container

from shelfgate.service.ils.configuration import IlsConfiguration
from shelfgate.service.ils.container import Ils
from shelfgate.service.integration_registry.container import (
    IntegrationRegistryContainer,
)
from shelfgate.service.logging.configuration import LoggingConfiguration
from shelfgate.service.logging.container import Logging


class Services(DeclarativeContainer):
    config = providers.Configuration()

    logging = Container(
        Logging,
        config=config.logging,
    )

    integration_registry = Container(
        IntegrationRegistryContainer,
    )

    ils = Container(
        Ils,
        config=config.ils,
        integration_registry=integration_registry,
    )


def create_container() -> Services:
    container = Services()
    container.config.from_dict(
        {
            "logging": LoggingConfiguration().model_dump(),
            "ils": IlsConfiguration().model_dump(),
        }
    )
    return container


_container_instance: Services | None = None


def container_instance() -> Services:
    # A process wide container for entry points that have no other way to
    # get one. Prefer passing the container in.
    global _container_instance
    if _container_instance is None:
        _container_instance = create_container()
    return _container_instance
