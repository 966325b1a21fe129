"""Exception hierarchy for the transition planner.

Stage code raises these; the orchestrator decides whether a failure
is recoverable from the stage that raised it.
"""

from typing import Any, List, Optional


class TransitionPlannerError(Exception):
    """Base class for all planner errors."""


class InputValidationError(TransitionPlannerError):
    """Pipeline input failed validation before any stage ran.

    Attributes:
        details: Field-level error records (location, message)
    """

    def __init__(self, message: str, details: Optional[List[Any]] = None):
        super().__init__(message)
        self.details = details or []


class ResourceFetchError(TransitionPlannerError):
    """External resource-data request failed, timed out or was empty."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class OptimizationError(TransitionPlannerError):
    """Capacity optimizer received data it cannot size against."""


class InvalidTransitionError(TransitionPlannerError):
    """Pipeline state machine was asked for a transition it does not allow."""


class StageError(TransitionPlannerError):
    """A pipeline stage failed.

    Attributes:
        stage: Stage name ('planner', 'optimizer', ...)
        recoverable: True if the pipeline may continue past this failure
    """

    def __init__(self, stage: str, message: str, recoverable: bool = False):
        super().__init__(message)
        self.stage = stage
        self.recoverable = recoverable
