# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Bootstrap coordination: the coordinator, its best-effort boundary, unit scopes and tenancy scope.
"""

from .best_effort import BestEffortRunner
from .coordinator import (
    BootstrapCoordinator,
    BootstrapDeps,
    BootstrapOutcome,
    BootstrapResult,
    motor_client_factory,
)
from .tenancy import CurrentTenant
from .unit import UnitScope, UnitScopeManager, UnitState

__all__ = [
    "BestEffortRunner",
    "BootstrapCoordinator",
    "BootstrapDeps",
    "BootstrapOutcome",
    "BootstrapResult",
    "CurrentTenant",
    "UnitScope",
    "UnitScopeManager",
    "UnitState",
    "motor_client_factory",
]
