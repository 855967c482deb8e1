from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from shelfgate.core.config import CannotLoadConfiguration
from shelfgate.ils.exceptions import ConfigurationNotFound
from shelfgate.util.log import LoggerMixin


class ConfigLoader(LoggerMixin, ABC):
    """Loads named configuration documents.

    Names may contain "/" to address a document below a sub-path, e.g.
    "backends/libA".
    """

    @abstractmethod
    def load(self, name: str) -> Mapping[str, Any]:
        """Return the configuration document called `name`.

        :raises ConfigurationNotFound: If there is no such document.
        :raises CannotLoadConfiguration: If the document exists but is unreadable.
        """
        ...


class DictConfigLoader(ConfigLoader):
    """Serves configuration documents held in memory."""

    def __init__(self, documents: Mapping[str, Mapping[str, Any]] | None = None):
        self._documents = dict(documents or {})

    def load(self, name: str) -> Mapping[str, Any]:
        try:
            return self._documents[name]
        except KeyError:
            raise ConfigurationNotFound(name) from None


class JsonFileConfigLoader(ConfigLoader):
    """Reads configuration documents from `<directory>/<name>.json`."""

    SUFFIX = ".json"

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)

    def path_for(self, name: str) -> Path:
        path = (self.directory / f"{name}{self.SUFFIX}").resolve()
        if not path.is_relative_to(self.directory.resolve()):
            raise CannotLoadConfiguration(
                f"Configuration name '{name}' points outside of {self.directory}"
            )
        return path

    def load(self, name: str) -> Mapping[str, Any]:
        path = self.path_for(name)
        if not path.is_file():
            raise ConfigurationNotFound(name)

        try:
            with path.open("r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, ValueError) as e:
            raise CannotLoadConfiguration(
                f"Could not read configuration '{name}'", debug_message=str(e)
            ) from e

        if not isinstance(document, dict):
            raise CannotLoadConfiguration(
                f"Configuration '{name}' is not a JSON object",
                debug_message=str(path),
            )
        self.log.debug(f"Loaded configuration '{name}' from {path}")
        return document
