from __future__ import annotations

"""
seedkit.core.config
===================

Typed configuration for the bootstrap coordinator.
- Optional JSON file loading, then env overrides, then explicit overrides.
- Derives millisecond fields from seconds.
- Connection strings may be supplied per context name via
  ``SEEDKIT_CONNSTR__<NAME>`` environment variables.

If a config file path is not provided or not found, defaults are used;
``database_identity`` has no default and must come from one of the sources.
"""

import json
import os
import socket
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

CONNSTR_ENV_PREFIX = "SEEDKIT_CONNSTR__"
DEFAULT_LOCK_NAME_FMT = "Migration_Mongo_{database}"


def _try_load_json(path: Path | None) -> dict[str, Any]:
    if not path or not path.exists():
        return {}
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"config file {path} must contain a JSON object")
    return data


def _default_owner() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:6]}"


def connection_strings_from_env(prefix: str = CONNSTR_ENV_PREFIX) -> dict[str, str]:
    """Collect ``<prefix><NAME>=<uri>`` variables; NAME keeps its case."""
    return {k[len(prefix) :]: v for k, v in os.environ.items() if k.startswith(prefix) and len(k) > len(prefix)}


@dataclass
class BootstrapConfig:
    """Bootstrap configuration with a derived lock TTL in milliseconds."""

    # ---- Identity
    database_identity: str = ""

    # ---- Lock
    lock_name_fmt: str = DEFAULT_LOCK_NAME_FMT
    lock_ttl_sec: float = 300.0
    lock_owner: str = field(default_factory=_default_owner)

    # ---- Connection strings
    connection_strings: dict[str, str] = field(default_factory=dict)
    default_connection_name: str = "Default"
    fallback_to_default: bool = True

    # ---- Derived (ms)
    lock_ttl_ms: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.database_identity, str) or not self.database_identity.strip():
            raise ValueError("database_identity must be a non-empty string")
        if "{database}" not in self.lock_name_fmt:
            raise ValueError("lock_name_fmt must contain the '{database}' placeholder")
        if self.lock_ttl_sec <= 0:
            raise ValueError("lock_ttl_sec must be positive")
        if not self.lock_owner:
            raise ValueError("lock_owner must be a non-empty string")
        self.lock_ttl_ms = int(self.lock_ttl_sec * 1000)

    def lock_name(self) -> str:
        return self.lock_name_fmt.format(database=self.database_identity)

    @classmethod
    def load(cls, path: Path | str | None = None, *, overrides: dict[str, Any] | None = None) -> BootstrapConfig:
        """
        Load config from a JSON file (if provided), then apply env and overrides.

        Env overrides:
          - SEEDKIT_DATABASE
          - SEEDKIT_LOCK_TTL_SEC
          - SEEDKIT_LOCK_OWNER
          - SEEDKIT_CONNSTR__<NAME> (merged into connection_strings)
        """
        data: dict[str, Any] = {}
        data.update(_try_load_json(Path(path) if path else None))

        if os.getenv("SEEDKIT_DATABASE"):
            data["database_identity"] = os.environ["SEEDKIT_DATABASE"]
        if os.getenv("SEEDKIT_LOCK_TTL_SEC"):
            data["lock_ttl_sec"] = float(os.environ["SEEDKIT_LOCK_TTL_SEC"])
        if os.getenv("SEEDKIT_LOCK_OWNER"):
            data["lock_owner"] = os.environ["SEEDKIT_LOCK_OWNER"]
        env_strings = connection_strings_from_env()
        if env_strings:
            data["connection_strings"] = {**(data.get("connection_strings") or {}), **env_strings}

        if overrides:
            data.update(overrides)

        data.pop("lock_ttl_ms", None)
        return cls(**data)
