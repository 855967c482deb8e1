from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from shelfgate.util.log import LoggerMixin


@runtime_checkable
class SupportsMethod(Protocol):
    """A driver that reports for itself which operations it can perform."""

    def supports_method(self, method: str, params: Sequence[Any]) -> bool: ...


class CapabilityNegotiator(LoggerMixin):
    """Decides whether a driver can perform an operation.

    A driver with a `supports_method` predicate is asked and trusted. For
    any other driver an operation is supported when the driver has a public
    callable of the same name.
    """

    def driver_supports_method(
        self,
        driver: object | None,
        method: str,
        params: Sequence[Any] | None = None,
    ) -> bool:
        if driver is None or method.startswith("_"):
            return False
        if isinstance(driver, SupportsMethod):
            return bool(driver.supports_method(method, list(params or [])))
        return self.has_method(driver, method)

    @staticmethod
    def has_method(driver: object, method: str) -> bool:
        return not method.startswith("_") and callable(getattr(driver, method, None))
