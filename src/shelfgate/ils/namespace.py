"""
Conversion between composite identifiers ("source.localId") and the local
identifiers each backend understands.

Every function here is pure: the input structure is never modified, a new
structure is returned instead.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from shelfgate.util.log import LoggerMixin

DEFAULT_SEPARATOR = "."

# Fields holding identifiers, when a caller doesn't say otherwise.
DEFAULT_ID_FIELDS: tuple[str, ...] = ("id", "cat_username")

# Fields holding identifiers in hold and ILL request records.
HOLD_ID_FIELDS: tuple[str, ...] = ("id", "item_id", "cat_username")


def _is_index_key(key: Any) -> bool:
    """Integer-like keys are list positions, never field names."""
    if isinstance(key, bool):
        return False
    if isinstance(key, int):
        return True
    return isinstance(key, str) and key.isdigit()


def is_container(value: Any) -> bool:
    return isinstance(value, Mapping) or (
        isinstance(value, Sequence) and not isinstance(value, (str, bytes))
    )


@dataclass(frozen=True)
class CompositeId:
    source: str
    local_id: str
    separator: str = DEFAULT_SEPARATOR

    def __str__(self) -> str:
        if not self.source:
            return self.local_id
        return f"{self.source}{self.separator}{self.local_id}"


@dataclass(frozen=True)
class IdNamespace(LoggerMixin):
    """Splits, prefixes and strips composite identifiers.

    The first occurrence of `separator` divides the source from the local
    identifier, so a local identifier may itself contain the separator but a
    source never does.
    """

    separator: str = DEFAULT_SEPARATOR

    def split(self, identifier: str) -> CompositeId:
        return CompositeId(
            self.get_source(identifier),
            self.get_local_id(identifier),
            self.separator,
        )

    def get_source(self, identifier: Any) -> str:
        """Return the source of a composite identifier, or "" if it has none."""
        if not isinstance(identifier, str):
            return ""
        pos = identifier.find(self.separator)
        if pos > 0:
            return identifier[:pos]
        return ""

    def get_local_id(self, identifier: Any) -> Any:
        """Return the local part of a composite identifier.

        An identifier without a source is assumed to be local already and is
        returned unchanged.
        """
        if not isinstance(identifier, str):
            return identifier
        pos = identifier.find(self.separator)
        if pos > 0:
            return identifier[pos + len(self.separator) :]
        self.log.debug(f"Could not find local id in '{identifier}'")
        return identifier

    def add_prefix(self, value: Any, source: str) -> str:
        return f"{source}{self.separator}{value}"

    def has_prefix(self, value: Any, source: str) -> bool:
        return isinstance(value, str) and value.startswith(
            f"{source}{self.separator}"
        )

    def strip_prefix(self, value: Any, source: str) -> Any:
        """Remove `source` from a single value.

        A value carrying any other source is returned unchanged.
        """
        if not source or not self.has_prefix(value, source):
            return value
        return value[len(source) + len(self.separator) :]

    def add_id_prefixes(
        self,
        data: Any,
        source: str | None,
        modify_fields: Collection[str] = DEFAULT_ID_FIELDS,
    ) -> Any:
        """Change local identifiers into composite identifiers.

        Mappings and sequences are processed recursively, and only mapping
        fields named in `modify_fields` are changed at any depth. Sequence
        positions are never treated as field names. A scalar passed in on its
        own is treated as a single identifier.

        Empty input, or an empty source, is returned unchanged.
        """
        if not source or data is None or data == "" or isinstance(data, bool):
            return data

        if isinstance(data, Mapping):
            result = {}
            for key, value in data.items():
                if value is None:
                    result[key] = value
                elif is_container(value):
                    result[key] = self.add_id_prefixes(value, source, modify_fields)
                elif (
                    not _is_index_key(key)
                    and key in modify_fields
                    and value != ""
                    and not isinstance(value, bool)
                ):
                    result[key] = self.add_prefix(value, source)
                else:
                    result[key] = value
            return result

        if is_container(data):
            return [
                (
                    self.add_id_prefixes(value, source, modify_fields)
                    if is_container(value)
                    else value
                )
                for value in data
            ]

        return self.add_prefix(data, source)

    def strip_id_prefixes(
        self,
        data: Any,
        source: str | None,
        modify_fields: Collection[str] = DEFAULT_ID_FIELDS,
        ignore_fields: Collection[str] = (),
    ) -> Any:
        """Change composite identifiers of `source` into local identifiers.

        Works like `add_id_prefixes` in reverse. Only prefixes that match
        `source` are removed; identifiers of other sources pass through
        untouched. Top level fields named in `ignore_fields` are copied as is,
        without recursing into them.
        """
        if not source or not data or isinstance(data, bool):
            return data

        if isinstance(data, Mapping):
            result = {}
            for key, value in data.items():
                if value is None:
                    result[key] = value
                elif is_container(value):
                    result[key] = (
                        value
                        if key in ignore_fields
                        else self.strip_id_prefixes(value, source, modify_fields)
                    )
                elif not _is_index_key(key) and key in modify_fields:
                    result[key] = self.strip_prefix(value, source)
                else:
                    result[key] = value
            return result

        if is_container(data):
            return [
                (
                    self.strip_id_prefixes(value, source, modify_fields)
                    if is_container(value)
                    else value
                )
                for value in data
            ]

        return self.strip_prefix(data, source)


default_namespace = IdNamespace()


def get_source(identifier: Any) -> str:
    return default_namespace.get_source(identifier)


def get_local_id(identifier: Any) -> Any:
    return default_namespace.get_local_id(identifier)


def add_id_prefixes(
    data: Any,
    source: str | None,
    modify_fields: Collection[str] = DEFAULT_ID_FIELDS,
) -> Any:
    return default_namespace.add_id_prefixes(data, source, modify_fields)


def strip_id_prefixes(
    data: Any,
    source: str | None,
    modify_fields: Collection[str] = DEFAULT_ID_FIELDS,
    ignore_fields: Collection[str] = (),
) -> Any:
    return default_namespace.strip_id_prefixes(
        data, source, modify_fields, ignore_fields
    )
