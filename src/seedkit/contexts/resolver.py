# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Connection-string resolution by context name.

Resolvers never raise for an unknown name; they return ``""``, which the
coordinator treats as "context not configured for this instance".
"""

from typing import Mapping, Protocol, runtime_checkable

from ..core.config import CONNSTR_ENV_PREFIX, BootstrapConfig, connection_strings_from_env

__all__ = ["ConnectionResolver", "StaticConnectionResolver", "is_blank"]


def is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


@runtime_checkable
class ConnectionResolver(Protocol):
    async def resolve(self, name: str) -> str: ...


class StaticConnectionResolver:
    """
    Resolves from a fixed mapping. When ``fallback_to_default`` is set, names
    without their own entry use the ``default_name`` connection string.
    """

    def __init__(
        self,
        strings: Mapping[str, str] | None = None,
        *,
        default_name: str = "Default",
        fallback_to_default: bool = True,
    ) -> None:
        self.strings = dict(strings or {})
        self.default_name = default_name
        self.fallback_to_default = fallback_to_default

    async def resolve(self, name: str) -> str:
        value = self.strings.get(name)
        if not is_blank(value):
            return value  # type: ignore[return-value]
        if self.fallback_to_default and name != self.default_name:
            default = self.strings.get(self.default_name)
            if not is_blank(default):
                return default  # type: ignore[return-value]
        return ""

    @classmethod
    def from_config(cls, cfg: BootstrapConfig) -> StaticConnectionResolver:
        return cls(
            cfg.connection_strings,
            default_name=cfg.default_connection_name,
            fallback_to_default=cfg.fallback_to_default,
        )

    @classmethod
    def from_env(cls, prefix: str = CONNSTR_ENV_PREFIX, **kwargs) -> StaticConnectionResolver:
        return cls(connection_strings_from_env(prefix), **kwargs)
