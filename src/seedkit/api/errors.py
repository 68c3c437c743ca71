# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Error taxonomy for seedkit.

Bootstrap failures are raised inside the lock scope so that every scope
unwinds and the lock is released; the coordinator's outer boundary then logs
and suppresses them. "Lock held by a peer" and "connection string not
configured" are outcomes, not errors, and have no exception type here.
"""


class SeedkitError(Exception):
    """Base class for all seedkit errors."""


class BootstrapError(SeedkitError):
    """A bootstrap step failed while the cluster lock was held."""


class BindFailure(BootstrapError):
    """Client construction or collection binding failed for one document context."""

    def __init__(self, context_name: str, message: str | None = None) -> None:
        self.context_name = context_name
        super().__init__(message or f"failed to bind document context {context_name!r}")


class SeedFailure(BootstrapError):
    """The seeder raised after all contexts were bound."""


class LockError(SeedkitError):
    """A lock store could not complete an acquire/renew/release call."""


class UnitScopeError(SeedkitError):
    """A unit scope was used out of order (double complete, use after dispose)."""


class ContextNotBound(SeedkitError):
    """A document context was used before ``initialize_collections`` bound it."""
