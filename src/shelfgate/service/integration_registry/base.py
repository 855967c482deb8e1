from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Generic, Literal, TypeVar, overload

from shelfgate.core.exceptions import BaseShelfgateException
from shelfgate.util.sentinel import SentinelType

T = TypeVar("T", covariant=True)
V = TypeVar("V")


class RegistrationException(BaseShelfgateException, ValueError):
    """A protocol name is already taken by another integration."""


class LookupException(BaseShelfgateException, LookupError):
    """No integration is registered under the protocol name."""


class IntegrationRegistry(Generic[T]):
    """Integration classes by protocol name.

    Every class is reachable by its canonical protocol, by any aliases, and
    by its class name. Configuration documents refer to integrations by
    protocol, e.g. `{"drivers": {"libA": "Demo"}}`.
    """

    def __init__(self, integrations: dict[str, type[T]] | None = None):
        self._lookup: dict[str, type[T]] = {}
        # Canonical protocol first.
        self._protocols: dict[type[T], list[str]] = {}
        for protocol, integration in (integrations or {}).items():
            self.register(integration, canonical=protocol)

    def register(
        self,
        integration: type[T],
        *,
        canonical: str | None = None,
        aliases: Iterable[str] = (),
    ) -> type[T]:
        """Register `integration`, returning it so this can be a decorator.

        :raises RegistrationException: If one of the names already belongs to
            another integration.
        """
        names = list(
            dict.fromkeys([canonical or integration.__name__, *aliases, integration.__name__])
        )
        taken = [
            name
            for name in names
            if self._lookup.get(name, integration) is not integration
        ]
        if taken:
            raise RegistrationException(f"Integration {taken[0]} already registered")

        self._lookup.update(dict.fromkeys(names, integration))
        self._protocols[integration] = names
        return integration

    @overload
    def get(self, protocol: str) -> type[T]: ...

    @overload
    def get(self, protocol: str, default: V) -> type[T] | V: ...

    def get(
        self,
        protocol: str,
        default: V | Literal[SentinelType.NotGiven] = SentinelType.NotGiven,
    ) -> type[T] | V:
        if protocol in self._lookup or default is SentinelType.NotGiven:
            return self[protocol]
        return default

    def get_protocols(self, integration: type[T]) -> list[str]:
        try:
            return list(self._protocols[integration])
        except KeyError as e:
            raise LookupException(f"Integration {integration} not found") from e

    def get_protocol(self, integration: type[T]) -> str:
        return self.get_protocols(integration)[0]

    @property
    def integrations(self) -> set[type[T]]:
        return set(self._protocols)

    def __iter__(self) -> Iterator[tuple[str, type[T]]]:
        for integration, names in self._protocols.items():
            yield names[0], integration

    def __getitem__(self, protocol: str) -> type[T]:
        try:
            return self._lookup[protocol]
        except KeyError as e:
            raise LookupException(f"Integration {protocol} not found") from e

    def __len__(self) -> int:
        return len(self._protocols)

    def __contains__(self, protocol: str) -> bool:
        return protocol in self._lookup

    def __repr__(self) -> str:
        return f"<{type(self).__name__}: {sorted(self._lookup)}>"
