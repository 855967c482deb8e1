from __future__ import annotations

from typing import TYPE_CHECKING, Any

from shelfgate.service.integration_registry.base import IntegrationRegistry

if TYPE_CHECKING:
    from shelfgate.ils.driver.base import IlsDriver


class IlsDriverRegistry(IntegrationRegistry["IlsDriver[Any]"]):
    """Driver classes by the driver type names used in router configuration."""

    def __init__(self) -> None:
        super().__init__()

        from shelfgate.ils.driver.demo import DemoDriver

        self.register(DemoDriver, canonical=DemoDriver.label())

    def from_protocol(self, protocol: str) -> IlsDriver[Any]:
        """Create a new, unconfigured driver of the given type."""
        impl_cls = self[protocol]
        return impl_cls()
