"""Capacity sizing and hourly dispatch simulation."""

from .dispatch import BatteryParameters, DispatchResult, simulate_dispatch
from .capacity_optimizer import (
    CapacityOptimizer,
    CapacityPlan,
    SolverDiagnostics,
    STATUS_OPTIMAL,
    STATUS_FEASIBLE,
    STATUS_INFEASIBLE_RELAXED,
)

__all__ = [
    "BatteryParameters",
    "DispatchResult",
    "simulate_dispatch",
    "CapacityOptimizer",
    "CapacityPlan",
    "SolverDiagnostics",
    "STATUS_OPTIMAL",
    "STATUS_FEASIBLE",
    "STATUS_INFEASIBLE_RELAXED",
]
