# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
seedkit public extension API: the error taxonomy raised by collaborators and the runtime.
"""

from .errors import (
    BindFailure,
    BootstrapError,
    ContextNotBound,
    LockError,
    SeedFailure,
    SeedkitError,
    UnitScopeError,
)

__all__ = [
    "BindFailure",
    "BootstrapError",
    "ContextNotBound",
    "LockError",
    "SeedFailure",
    "SeedkitError",
    "UnitScopeError",
]
