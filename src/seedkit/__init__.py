from __future__ import annotations

# Installed distribution version; source checkouts without metadata report 0.0.0.
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _pkg_version

try:
    __version__ = _pkg_version("seedkit")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

from .bootstrap.coordinator import BootstrapCoordinator, BootstrapDeps, BootstrapOutcome, BootstrapResult
from .core.config import BootstrapConfig

__all__ = [
    "BootstrapConfig",
    "BootstrapCoordinator",
    "BootstrapDeps",
    "BootstrapOutcome",
    "BootstrapResult",
    "__version__",
]
