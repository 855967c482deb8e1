from __future__ import annotations

import logging
import socket
import threading
from collections.abc import Mapping, Sequence
from logging import Handler
from typing import Any

from shelfgate.service.logging.configuration import LogLevel
from shelfgate.util.datetime_helpers import from_timestamp
from shelfgate.util.json import json_serializer
from shelfgate.util.log import EXTRA_PREFIX

# Loggers of the HTTP libraries backend drivers use for transport.
TRANSPORT_LOGGERS = (
    "requests.packages.urllib3.connectionpool",
    "urllib3.connectionpool",
    "httpx",
)


def _text(value: Any) -> Any:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return value


class JSONFormatter(logging.Formatter):
    """One JSON document per log record.

    Record attributes named `shelfgate_<field>` (usually passed as `extra`,
    see `shelfgate.util.log.source_extra`) are added to the document as
    `<field>`, when they are serializable and don't clash with a standard
    field.
    """

    def __init__(self) -> None:
        super().__init__()
        self.hostname = socket.getfqdn()
        self.main_thread_id = threading.main_thread().ident

    def render_message(self, record: logging.LogRecord) -> str:
        message = _text(record.msg)
        args: tuple[Any, ...] | dict[str, Any] | None = None
        if isinstance(record.args, Mapping):
            args = {_text(k): _text(v) for k, v in record.args.items()}
        elif isinstance(record.args, Sequence):
            args = tuple(_text(arg) for arg in record.args)
        if not args:
            return message

        try:
            return message % args
        except Exception as e:
            return (
                "Log message could not be formatted. Exception: %r. Original message: message=%r args=%r"
                % (e, message, args)
            )

    @staticmethod
    def _serializable(value: Any) -> bool:
        try:
            json_serializer(value)
        except (TypeError, ValueError):
            return False
        return True

    def extra_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        return {
            key.removeprefix(EXTRA_PREFIX): value
            for key, value in record.__dict__.items()
            if key.startswith(EXTRA_PREFIX)
            and value is not None
            and self._serializable(value)
        }

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "host": self.hostname,
            "name": record.name,
            "level": record.levelname,
            "filename": record.filename,
            "message": self.render_message(record),
            "timestamp": from_timestamp(record.created).isoformat(),
        }
        if record.exc_info:
            data["traceback"] = self.formatException(record.exc_info)
        if record.stack_info:
            data["stack"] = self.formatStack(record.stack_info)
        if record.process:
            data["process"] = record.process
        if record.thread and record.thread != self.main_thread_id:
            data["thread"] = record.thread

        for key, value in self.extra_fields(record).items():
            data.setdefault(key, value)
        return json_serializer(data)


def create_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return JSONFormatter()
    return logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")


def create_stream_handler(formatter: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    level: LogLevel,
    verbose_level: LogLevel,
    stream: Handler,
) -> None:
    logging.basicConfig(force=True, level=level.value, handlers=[stream])
    for name in TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(verbose_level.value)
