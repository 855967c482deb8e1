from __future__ import annotations

from enum import StrEnum, auto

from shelfgate.core.config import CannotLoadConfiguration
from shelfgate.core.exceptions import IntegrationException


class ConfigurationNotFound(CannotLoadConfiguration):
    """The configuration loader has no document by the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"No configuration found for '{name}'")
        self.name = name


class IlsException(IntegrationException):
    """A backend driver could not complete an operation.

    Drivers raise this (or a subclass) for transport failures and
    responses they cannot make sense of.
    """


class UnavailableReason(StrEnum):
    not_registered = auto()
    no_configuration = auto()
    unsupported = auto()
    login_disabled = auto()


class NoSuitableBackend(IlsException):
    """No backend can serve the request.

    Raised by mutating operations, where degrading to an empty result would
    hide a failed write from the caller.
    """

    def __init__(
        self,
        source: str | None = None,
        reason: UnavailableReason | None = None,
        method: str | None = None,
    ) -> None:
        debug_parts = []
        if source is not None:
            debug_parts.append(f"source='{source}'")
        if method is not None:
            debug_parts.append(f"method='{method}'")
        if reason is not None:
            debug_parts.append(f"reason={reason}")
        super().__init__(
            "No suitable backend driver found",
            debug_message=", ".join(debug_parts) or None,
        )
        self.source = source
        self.reason = reason
        self.method = method
