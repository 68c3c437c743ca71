from __future__ import annotations

"""
Current-tenant holder with scoped changes.

The value lives in a ContextVar owned by the instance, so concurrent asyncio
tasks keep their own tenant and ``change()`` restores the previous value on
every exit path.
"""

import contextvars
import itertools
from contextlib import contextmanager
from typing import Iterator

_ids = itertools.count()


class CurrentTenant:
    """Tenant id for the running task; ``None`` means the host (untenanted) scope."""

    def __init__(self, tenant_id: str | None = None) -> None:
        self._var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
            f"seedkit_tenant_{next(_ids)}", default=tenant_id
        )

    @property
    def id(self) -> str | None:
        return self._var.get()

    @property
    def is_available(self) -> bool:
        return self._var.get() is not None

    @contextmanager
    def change(self, tenant_id: str | None) -> Iterator[str | None]:
        """Switch to ``tenant_id`` for the block; yields the tenant that was active before."""
        previous = self._var.get()
        token = self._var.set(tenant_id)
        try:
            yield previous
        finally:
            self._var.reset(token)
