"""Pipeline orchestration: stage sequencing, failure policy and results."""

from .state_machine import (
    STAGE_STATES,
    TRANSITIONS,
    PipelineState,
    PipelineStateMachine,
)
from .stages import Failed, Skipped, StageOutcome, StageStatus, Succeeded
from .pipeline import (
    RECOVERABLE_STAGES,
    STAGE_ORDER,
    ErrorRecord,
    PipelineResult,
    TransitionPipeline,
)

__all__ = [
    "STAGE_STATES",
    "TRANSITIONS",
    "PipelineState",
    "PipelineStateMachine",
    "Failed",
    "Skipped",
    "StageOutcome",
    "StageStatus",
    "Succeeded",
    "RECOVERABLE_STAGES",
    "STAGE_ORDER",
    "ErrorRecord",
    "PipelineResult",
    "TransitionPipeline",
]
