"""Monte Carlo sensitivity analysis."""

from .monte_carlo import (
    BaseCase,
    SensitivityEngine,
    SensitivityResult,
    TornadoEntry,
    TrialOutcome,
    recommendations_for,
    run_trial,
    sample_multipliers,
)

__all__ = [
    "BaseCase",
    "SensitivityEngine",
    "SensitivityResult",
    "TornadoEntry",
    "TrialOutcome",
    "recommendations_for",
    "run_trial",
    "sample_multipliers",
]
