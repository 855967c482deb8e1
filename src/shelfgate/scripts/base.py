from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence
from typing import Any

from shelfgate.service.container import Services, container_instance


class Script:
    """A command line entry point with access to the service container."""

    @property
    def services(self) -> Services:
        return self._services

    @property
    def script_name(self) -> str:
        """Find or guess the name of the script.

        This is either the .name of the Script object or the name of
        the class.
        """
        return getattr(self, "name", self.__class__.__name__)

    @property
    def log(self) -> logging.Logger:
        if not hasattr(self, "_log"):
            self._log = logging.getLogger(self.script_name)
        return self._log

    @classmethod
    def parse_command_line(
        cls, cmd_args: Sequence[str] | None = None
    ) -> argparse.Namespace:
        parser = cls.arg_parser()
        return parser.parse_args(cmd_args)

    @classmethod
    def arg_parser(cls) -> argparse.ArgumentParser:
        raise NotImplementedError()

    def __init__(self, services: Services | None = None) -> None:
        self._services = container_instance() if services is None else services

        # Call init_resources() to initialize the logging configuration.
        self._services.init_resources()

    def run(self, *args: Any, **kwargs: Any) -> Any:
        try:
            return self.do_run(*args, **kwargs)
        except Exception as e:
            logging.error("Fatal exception while running script: %s", e, exc_info=e)
            raise

    def do_run(self, *args: Any, **kwargs: Any) -> Any:
        raise NotImplementedError()
