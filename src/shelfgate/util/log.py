import functools
import logging
import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import Any, TypeVar

from typing_extensions import ParamSpec

from shelfgate.service.logging.configuration import LogLevel

P = ParamSpec("P")
T = TypeVar("T")

# Prefix for the record attributes that JSONFormatter includes in its output.
EXTRA_PREFIX = "shelfgate_"


def source_extra(source: str) -> dict[str, str]:
    """`extra` for a log record about one backend."""
    return {f"{EXTRA_PREFIX}source": source}


def logger_for_cls(cls: type[object]) -> logging.Logger:
    return logging.getLogger(f"{cls.__module__}.{cls.__name__}")


class LoggerMixin:
    """Gives a class a logger named `<module>.<ClassName>`."""

    @classmethod
    @functools.cache
    def logger(cls) -> logging.Logger:
        return logger_for_cls(cls)

    @property
    def log(self) -> logging.Logger:
        return self.logger()


def _logger_of(obj: Any) -> logging.Logger:
    # `obj` is the instance, or the class of a classmethod.
    log = getattr(obj, "log", None)
    if isinstance(log, logging.Logger):
        return log
    if isinstance(obj, type) and issubclass(obj, LoggerMixin):
        return obj.logger()
    raise RuntimeError(
        "Decorator must be applied to a method of a LoggerMixin or a subclass of LoggerMixin."
    )


@contextmanager
def elapsed_time_logging(
    *,
    log_method: Callable[[str], None],
    message_prefix: str | None = None,
    skip_start: bool = False,
) -> Generator[None, None, None]:
    """Log how long the body of the `with` block takes.

    The closing message says whether the block completed or which exception
    it raised. The exception is not swallowed.
    """
    prefix = f"{message_prefix}: " if message_prefix else ""
    if not skip_start:
        log_method(f"{prefix}Starting...")
    tic = time.perf_counter()
    outcome = "Completed"
    try:
        yield
    except Exception as e:
        outcome = f"Failed (raised {e.__class__.__name__})"
        raise
    finally:
        elapsed = time.perf_counter() - tic
        log_method(f"{prefix}{outcome}. (elapsed time: {elapsed:0.4f} seconds)")


def log_elapsed_time(
    *,
    log_level: LogLevel,
    message_prefix: str | None = None,
    skip_start: bool = False,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """`elapsed_time_logging` as a decorator for LoggerMixin methods."""

    def outer(fn: Callable[P, T]) -> Callable[P, T]:
        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            if not args:
                raise RuntimeError(
                    "Decorator must be applied to a method of a LoggerMixin or a subclass of LoggerMixin."
                )
            log_method = getattr(_logger_of(args[0]), log_level.name)
            with elapsed_time_logging(
                log_method=log_method,
                message_prefix=message_prefix,
                skip_start=skip_start,
            ):
                return fn(*args, **kwargs)

        return wrapper

    return outer


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    if plural is None:
        plural = singular + "s"
    return f"{count} {singular if count == 1 else plural}"
