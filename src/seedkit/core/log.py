# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
seedkit.core.log
================

Structured logging for the bootstrap coordinator and its collaborators.

- Library loggers live under the ``seedkit`` root and are silent by default
  (NullHandler) until an application or test enables a stream handler.
- ``get_logger()`` returns an adapter that accepts arbitrary keyword fields:
      log.info("lock acquired", event="lock.acquired", database="orders")
- Context fields (database, context, lock owner...) propagate via contextvars.
- ``swallow()`` replaces ``try/except: pass`` with a logged suppression.
"""

import contextvars
import json
import logging
import os
import sys
from collections.abc import Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, ClassVar, Final

__all__ = [
    "HumanFormatter",
    "JsonFormatter",
    "adapt_logger",
    "bind_context",
    "configure_from_env",
    "disable_stdout_logging",
    "enable_stdout_logging",
    "get_logger",
    "log_context",
    "set_level",
    "swallow",
]

# ---------- Context ----------

_log_context: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar("seedkit_log_ctx", default=None)


def _ctx_copy() -> dict[str, Any]:
    ctx = _log_context.get()
    return dict(ctx) if ctx else {}


def bind_context(**fields: Any) -> None:
    """Merge fields into the current structured log context (None values are dropped)."""
    ctx = _ctx_copy()
    ctx.update({k: v for k, v in fields.items() if v is not None})
    _log_context.set(ctx)


@contextmanager
def log_context(**fields: Any):
    """
    Temporarily add fields to the structured log context.
    The previous context is restored on exit, including on exceptions.
    """
    token = _log_context.set({**_ctx_copy(), **{k: v for k, v in fields.items() if v is not None}})
    try:
        yield
    finally:
        _log_context.reset(token)


# ---------- Formatters ----------

_STD_ATTRS: Final[frozenset[str]] = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "message",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "asctime",
    }
)

# Context keys shown inline by the human formatter.
_HUMAN_KEYS: Final[tuple[str, ...]] = ("database", "context", "lock", "owner")


def _iso_utc_ms(ts: float) -> str:
    dt = datetime.fromtimestamp(ts, tz=UTC)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line: ts, level, logger, message, context fields,
    extra fields and, when present, an ``error`` object.
    """

    def __init__(self, *, include_stack: bool = False) -> None:
        super().__init__()
        self.include_stack = include_stack

    def format(self, record: logging.LogRecord) -> str:
        out: dict[str, Any] = {
            "ts": _iso_utc_ms(record.created),
            "level": record.levelname,
            "logger": record.name,
        }
        msg = record.getMessage()
        if msg:
            out["message"] = msg

        ctx = _log_context.get()
        if ctx:
            out.update(ctx)

        for k, v in record.__dict__.items():
            if k in _STD_ATTRS or k in out:
                continue
            out[k] = v

        if record.exc_info:
            exc_type, exc, _tb = record.exc_info
            err = out.setdefault("error", {})
            err["type"] = exc_type.__name__ if exc_type else "Exception"
            err["message"] = str(exc) if exc else None
            if self.include_stack:
                err["stack"] = self.formatException(record.exc_info)
        elif record.exc_text:
            out.setdefault("error", {})["stack"] = record.exc_text

        return json.dumps(out, ensure_ascii=False, separators=(",", ":"), default=str)


class HumanFormatter(logging.Formatter):
    """Compact formatter for local runs and pytest output."""

    default_time_format = "%Y-%m-%d %H:%M:%S"
    default_msec_format = "%s.%03d"

    def format(self, record: logging.LogRecord) -> str:
        s = f"{self.formatTime(record)} {record.levelname:<5} {record.name}: {record.getMessage()}"
        fields = {**_ctx_copy(), **{k: record.__dict__[k] for k in _HUMAN_KEYS if k in record.__dict__}}
        compact = {k: fields[k] for k in _HUMAN_KEYS if fields.get(k) is not None}
        if compact:
            s += "  [" + ", ".join(f"{k}={v}" for k, v in compact.items()) + "]"
        if record.exc_info:
            s += "\n" + self.formatException(record.exc_info)
        return s


# ---------- Filters / adapter ----------


class ContextFilter(logging.Filter):
    """Copy current context fields onto the record without overwriting explicit extras."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = _log_context.get()
        if ctx:
            for k, v in ctx.items():
                record.__dict__.setdefault(k, v)
        return True


class _LevelRangeFilter(logging.Filter):
    def __init__(self, *, min_level: int = logging.NOTSET, max_level: int = logging.CRITICAL) -> None:
        super().__init__()
        self.min_level = min_level
        self.max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return self.min_level <= record.levelno <= self.max_level


class _KwExtraAdapter(logging.LoggerAdapter):
    """
    Moves unknown keyword arguments into ``extra`` so structured fields can be
    passed directly. Keys clashing with LogRecord attributes get a ``field_`` prefix.
    """

    _passthrough: ClassVar[frozenset[str]] = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})

    def process(self, msg, kwargs):
        extra = kwargs.get("extra")
        if not isinstance(extra, dict):
            extra = {}
        for k in [k for k in kwargs if k not in self._passthrough]:
            v = kwargs.pop(k)
            key = f"field_{k}" if k in _STD_ATTRS else k
            extra.setdefault(key, v)
        kwargs["extra"] = extra
        return msg, kwargs


def adapt_logger(logger: logging.Logger | logging.LoggerAdapter) -> logging.LoggerAdapter:
    """Wrap any logger so it accepts keyword fields."""
    if isinstance(logger, _KwExtraAdapter):
        return logger
    if isinstance(logger, logging.LoggerAdapter):
        return _KwExtraAdapter(logger.logger, {})
    return _KwExtraAdapter(logger, {})


# ---------- Public configuration API ----------

_ROOT_LOGGER_NAME = "seedkit"
_STDOUT_HANDLER = "_seedkit_stdout_handler"
_STDERR_HANDLER = "_seedkit_stderr_handler"
_configured = False


def _truthy_env(name: str) -> bool:
    return os.getenv(name, "").lower() in ("1", "true", "yes", "on")


def _bootstrap_minimal() -> None:
    """Install a NullHandler and the context filter once so imports stay silent."""
    global _configured
    if _configured:
        return
    lg = logging.getLogger(_ROOT_LOGGER_NAME)
    lg.setLevel(logging.DEBUG)
    if not any(isinstance(h, logging.NullHandler) for h in lg.handlers):
        lg.addHandler(logging.NullHandler())
    if not any(isinstance(f, ContextFilter) for f in lg.filters):
        lg.addFilter(ContextFilter())
    _configured = True


def get_logger(name: str | None = None) -> logging.LoggerAdapter:
    """Return a ``seedkit``-namespaced adapter that accepts keyword fields."""
    _bootstrap_minimal()
    base = logging.getLogger(_ROOT_LOGGER_NAME)
    return _KwExtraAdapter(base.getChild(name) if name else base, {})


def _level_value(level: int | str) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Invalid level name: {level!r}")
    return value


def set_level(level: int | str) -> None:
    """Change the library logger level at runtime."""
    logging.getLogger(_ROOT_LOGGER_NAME).setLevel(_level_value(level))


def enable_stdout_logging(
    *,
    level: int | str = logging.INFO,
    json_output: bool = True,
    include_stack: bool = False,
    pretty: bool = False,
    route_errors_to_stderr: bool = False,
) -> None:
    """
    Attach stream handlers (containers, local runs, tests).
    ``pretty`` wins over ``json_output``; ``route_errors_to_stderr`` splits ERROR+ to stderr.
    """
    lvl = _level_value(level)
    _bootstrap_minimal()
    lg = logging.getLogger(_ROOT_LOGGER_NAME)
    disable_stdout_logging()

    fmt: logging.Formatter
    if pretty:
        fmt = HumanFormatter()
    elif json_output:
        fmt = JsonFormatter(include_stack=include_stack)
    else:
        fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    h_out = logging.StreamHandler(sys.stdout)
    h_out.set_name(_STDOUT_HANDLER)
    h_out.setLevel(lvl)
    h_out.setFormatter(fmt)
    h_out.addFilter(ContextFilter())
    if route_errors_to_stderr:
        h_out.addFilter(_LevelRangeFilter(max_level=logging.WARNING))
        h_err = logging.StreamHandler(sys.stderr)
        h_err.set_name(_STDERR_HANDLER)
        h_err.setLevel(max(lvl, logging.ERROR))
        h_err.setFormatter(fmt)
        h_err.addFilter(ContextFilter())
        lg.addHandler(h_err)
    lg.addHandler(h_out)


def disable_stdout_logging() -> None:
    """Detach stream handlers previously installed by ``enable_stdout_logging``."""
    lg = logging.getLogger(_ROOT_LOGGER_NAME)
    for h in list(lg.handlers):
        if h.get_name() in (_STDOUT_HANDLER, _STDERR_HANDLER):
            lg.removeHandler(h)


def configure_from_env() -> None:
    """
    Configure logging from the environment; call once from the host entrypoint.

      - SEEDKIT_LOG_STDOUT=1    -> attach a stdout handler
      - SEEDKIT_LOG_LEVEL=INFO  -> library level (default DEBUG)
      - SEEDKIT_LOG_PRETTY=1    -> human formatter instead of JSON
      - SEEDKIT_LOG_STACK=1     -> include stack traces in JSON output
    """
    level = os.getenv("SEEDKIT_LOG_LEVEL", "DEBUG")
    _bootstrap_minimal()
    set_level(level)
    if _truthy_env("SEEDKIT_LOG_STDOUT"):
        pretty = _truthy_env("SEEDKIT_LOG_PRETTY")
        enable_stdout_logging(
            level=level,
            json_output=not pretty,
            include_stack=_truthy_env("SEEDKIT_LOG_STACK"),
            pretty=pretty,
        )
    else:
        disable_stdout_logging()


# ---------- Exception swallowing with trace ----------


@contextmanager
def swallow(
    *,
    logger: logging.Logger | logging.LoggerAdapter | None = None,
    level: int = logging.DEBUG,
    code: str,
    msg: str | None = None,
    reraise: bool = False,
    extra: Mapping[str, Any] | None = None,
    expected: bool = True,
):
    """
    Log and suppress ``Exception`` raised by the body.

        with swallow(logger=log, code="client.close", msg="client close failed"):
            client.close()

    ``BaseException`` subclasses (cancellation, interrupts) are never swallowed.
    """
    adapter = adapt_logger(logger or get_logger("swallow"))
    try:
        yield
    except Exception as e:
        payload: dict[str, Any] = {"code": code, "expected": expected}
        if extra:
            payload.update(extra)
        adapter.log(level, msg or "Suppressed exception", exc_info=e, **payload)
        if reraise:
            raise


_bootstrap_minimal()
