from __future__ import annotations

"""
Outer error sink for startup work that must never fail the host process.
"""

import logging
from typing import Any, Awaitable, Callable, Mapping, TypeVar

from ..core.log import adapt_logger, get_logger

T = TypeVar("T")


class BestEffortRunner:
    """
    Runs an async callable and converts any ``Exception`` into a logged error.

    ``run()`` returns ``(value, None)`` on success and ``(None, exc)`` on
    failure. Cancellation and other ``BaseException`` subclasses propagate.
    """

    def __init__(
        self,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
        *,
        code: str = "best_effort.failed",
        msg: str = "best-effort operation failed",
    ) -> None:
        self.log = adapt_logger(logger) if logger is not None else get_logger("best_effort")
        self.code = code
        self.msg = msg

    async def run(
        self,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        extra: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> tuple[T | None, Exception | None]:
        try:
            return await fn(*args, **kwargs), None
        except Exception as e:
            fields = {"event": self.code, "code": self.code, "expected": False, "error_type": type(e).__name__}
            if extra:
                fields.update(extra)
            self.log.error(self.msg, exc_info=e, **fields)
            return None, e
