from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from shelfgate.core.config import CannotLoadConfiguration
from shelfgate.ils.config_loader import ConfigLoader
from shelfgate.ils.driver.base import IlsDriver
from shelfgate.ils.exceptions import UnavailableReason
from shelfgate.service.integration_registry.ils_drivers import IlsDriverRegistry
from shelfgate.service.logging.configuration import LogLevel
from shelfgate.util.log import LoggerMixin, log_elapsed_time, source_extra


@dataclass(frozen=True)
class DriverUnavailable:
    """Cached in place of a driver that could not be created."""

    source: str
    reason: UnavailableReason


class IlsDriverFactory(LoggerMixin):
    """Creates, configures and caches one driver per source.

    The cache lives as long as the factory does. A source that has no
    registered driver type, or no loadable configuration, is remembered as
    unavailable and is not retried until `reset` is called. An exception
    raised while initializing a driver is not cached: it propagates to the
    caller, and the next request for that source tries again.
    """

    def __init__(
        self,
        registry: IlsDriverRegistry,
        config_loader: ConfigLoader,
        drivers: Mapping[str, str],
        default_driver: str | None = None,
        drivers_config_path: str | None = None,
    ):
        self.registry = registry
        self.config_loader = config_loader
        self.drivers = dict(drivers)
        self.default_driver = default_driver or None
        self.drivers_config_path = drivers_config_path
        self._cache: dict[str, IlsDriver[Any] | DriverUnavailable] = {}

    def resolve_source(self, source: str | None) -> str:
        if not source and self.default_driver:
            self.log.debug(f"Using default driver {self.default_driver}")
            return self.default_driver
        return source or ""

    def get_driver(self, source: str | None) -> IlsDriver[Any] | None:
        """Return the ready driver for `source`, or None if there isn't one.

        An empty source means the default driver.
        """
        source = self.resolve_source(source)
        if source not in self._cache:
            self._cache[source] = self.create_driver(source)

        cached = self._cache[source]
        if isinstance(cached, DriverUnavailable):
            return None
        return cached

    def unavailable_reason(self, source: str | None) -> UnavailableReason | None:
        """Why `source` has no driver, if it has already been found to have none."""
        cached = self._cache.get(self.resolve_source(source))
        if isinstance(cached, DriverUnavailable):
            return cached.reason
        return None

    def is_cached(self, source: str | None) -> bool:
        return self.resolve_source(source) in self._cache

    def reset(self, source: str | None = None) -> None:
        """Forget cached drivers, and cached failures, for one or all sources."""
        if source is None:
            self._cache.clear()
        else:
            self._cache.pop(self.resolve_source(source), None)

    def config_name(self, source: str) -> str:
        if self.drivers_config_path:
            return f"{self.drivers_config_path.rstrip('/')}/{source}"
        return source

    def get_driver_config(self, source: str) -> Mapping[str, Any] | None:
        name = self.config_name(source)
        try:
            return self.config_loader.load(name)
        except CannotLoadConfiguration as e:
            self.log.error(
                f"Could not load config for source '{source}' ({name}): {e}",
                extra=source_extra(source),
            )
            return None

    def driver_class(self, source: str | None) -> type[IlsDriver[Any]] | None:
        """The driver type configured for `source`, without creating a driver.

        Useful for looking at class level capabilities without paying for
        initialization.
        """
        protocol = self.drivers.get(self.resolve_source(source))
        if not protocol:
            return None
        return self.registry.get(protocol, None)

    @log_elapsed_time(log_level=LogLevel.debug, message_prefix="Create driver")
    def create_driver(self, source: str) -> IlsDriver[Any] | DriverUnavailable:
        protocol = self.drivers.get(source)
        if not protocol:
            self.log.error(
                f"No driver configured for source '{source}'",
                extra=source_extra(source),
            )
            return DriverUnavailable(source, UnavailableReason.not_registered)
        if protocol not in self.registry:
            self.log.error(
                f"Unknown driver type '{protocol}' configured for source '{source}'",
                extra=source_extra(source),
            )
            return DriverUnavailable(source, UnavailableReason.not_registered)

        config = self.get_driver_config(source)
        if config is None:
            return DriverUnavailable(source, UnavailableReason.no_configuration)

        driver = self.registry.from_protocol(protocol)
        driver.set_config(config)
        try:
            driver.init()
        except Exception:
            self.log.exception(
                f"Driver '{protocol}' for source '{source}' failed to initialize",
                extra=source_extra(source),
            )
            raise
        return driver
