from __future__ import annotations

from dependency_injector import providers
from dependency_injector.containers import DeclarativeContainer

from shelfgate.service.logging.configuration import LogLevel
from shelfgate.service.logging.log import (
    create_formatter,
    create_stream_handler,
    setup_logging,
)


class Logging(DeclarativeContainer):
    config = providers.Configuration()

    formatter = providers.Factory(
        create_formatter,
        json_format=config.json_format,
    )

    stream_handler = providers.Singleton(
        create_stream_handler,
        formatter=formatter,
    )

    logging = providers.Resource(
        setup_logging,
        level=config.level.as_(LogLevel),
        verbose_level=config.verbose_level.as_(LogLevel),
        stream=stream_handler,
    )
