# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Unit scopes: explicit brackets around side-effectful work against the document store.

A ``UnitScope`` is non-transactional. It

- runs completion handlers, in registration order, when ``complete()`` is called,
- closes registered resources and runs dispose handlers, in reverse order,
  when the ``async with`` block exits (normally or by an exception).

Scopes are created by a ``UnitScopeManager``. ``begin(requires_new=True)``
always opens an independent scope; ``requires_new=False`` joins the manager's
current scope when there is one, in which case handlers and resources belong
to the outer scope and the inner ``complete()`` only marks the child.
"""

import contextvars
import inspect
import itertools
import logging
from enum import Enum
from typing import Any, Awaitable, Callable

from ..api.errors import UnitScopeError
from ..core.log import get_logger, swallow

__all__ = ["UnitScope", "UnitScopeManager", "UnitState"]

Callback = Callable[[], Awaitable[Any] | Any]

_ids = itertools.count(1)


class UnitState(str, Enum):
    open = "open"
    completed = "completed"
    disposed = "disposed"


async def _call(cb: Callback) -> None:
    res = cb()
    if inspect.isawaitable(res):
        await res


def _closer(resource: Any) -> Callback:
    def _close():
        return resource.close()

    return _close


class UnitScope:
    def __init__(
        self,
        manager: UnitScopeManager,
        *,
        parent: UnitScope | None = None,
        name: str | None = None,
    ) -> None:
        self.manager = manager
        self.parent = parent
        self.id = next(_ids)
        self.name = name or f"unit-{self.id}"
        self.state = UnitState.open
        self.failed = False
        self._completed_handlers: list[Callback] = []
        self._disposed_handlers: list[Callback] = []
        self._token: contextvars.Token | None = None

    @property
    def is_child(self) -> bool:
        return self.parent is not None

    @property
    def root(self) -> UnitScope:
        return self.parent.root if self.parent is not None else self

    def _check_open(self, action: str) -> None:
        if self.state is not UnitState.open:
            raise UnitScopeError(f"cannot {action} unit scope {self.name!r} in state {self.state.value}")

    # ---- registration

    def on_completed(self, cb: Callback) -> None:
        self._check_open("register a completion handler on")
        if self.parent is not None:
            self.parent.on_completed(cb)
            return
        self._completed_handlers.append(cb)

    def on_disposed(self, cb: Callback) -> None:
        self._check_open("register a dispose handler on")
        if self.parent is not None:
            self.parent.on_disposed(cb)
            return
        self._disposed_handlers.append(cb)

    def add_resource(self, resource: Any) -> Any:
        """Close ``resource`` (sync or async ``close()``) when the scope is disposed."""
        self.on_disposed(_closer(resource))
        return resource

    # ---- lifecycle

    async def complete(self) -> None:
        self._check_open("complete")
        if self.parent is None:
            for cb in list(self._completed_handlers):
                await _call(cb)
        self.state = UnitState.completed
        self.manager.log.debug("unit completed", event="unit.completed", unit=self.name)

    async def _dispose(self) -> None:
        handlers = list(reversed(self._disposed_handlers))
        self._disposed_handlers.clear()
        self._completed_handlers.clear()
        for cb in handlers:
            with swallow(
                logger=self.manager.log,
                code="unit.dispose",
                msg="unit dispose handler failed",
                level=logging.ERROR,
                expected=False,
                extra={"unit": self.name},
            ):
                await _call(cb)
        self.state = UnitState.disposed

    async def __aenter__(self) -> UnitScope:
        self._check_open("enter")
        self._token = self.manager._current.set(self)
        self.manager.log.debug("unit begin", event="unit.begin", unit=self.name, child=self.is_child)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.failed = exc_type is not None
        try:
            await self._dispose()
        finally:
            if self._token is not None:
                self.manager._current.reset(self._token)
                self._token = None
        self.manager.log.debug("unit end", event="unit.end", unit=self.name, failed=self.failed)

    def __repr__(self) -> str:
        return f"UnitScope(name={self.name!r}, state={self.state.value}, child={self.is_child})"


class UnitScopeManager:
    """Creates unit scopes and tracks the current one per asyncio task."""

    def __init__(self) -> None:
        self._current: contextvars.ContextVar[UnitScope | None] = contextvars.ContextVar(
            f"seedkit_unit_{id(self)}", default=None
        )
        self.log = get_logger("unit")

    @property
    def current(self) -> UnitScope | None:
        return self._current.get()

    def begin(self, *, requires_new: bool = True, transactional: bool = False, name: str | None = None) -> UnitScope:
        if transactional:
            raise ValueError("transactional unit scopes are not supported")
        outer = self.current
        if not requires_new and outer is not None and outer.state is UnitState.open:
            return UnitScope(self, parent=outer, name=name)
        return UnitScope(self, name=name)
