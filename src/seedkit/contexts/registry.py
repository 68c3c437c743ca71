from __future__ import annotations

from typing import Iterator

from .base import ContextHandle, connection_string_name


class ContextRegistry:
    """
    Ordered set of the document contexts this service owns.
    Iteration yields a snapshot in registration order, so it can be restarted.
    """

    def __init__(self, contexts: list[ContextHandle] | None = None) -> None:
        self._contexts: list[ContextHandle] = []
        for ctx in contexts or []:
            self.register(ctx)

    def register(self, ctx: ContextHandle) -> ContextHandle:
        if not isinstance(ctx, ContextHandle):
            raise TypeError(f"{type(ctx).__qualname__} does not implement initialize_collections()")
        if not any(c is ctx for c in self._contexts):
            self._contexts.append(ctx)
        return ctx

    def contexts(self) -> list[ContextHandle]:
        return list(self._contexts)

    def names(self) -> list[str]:
        return [connection_string_name(c) for c in self._contexts]

    def __iter__(self) -> Iterator[ContextHandle]:
        return iter(self.contexts())

    def __len__(self) -> int:
        return len(self._contexts)
