"""Pipeline lifecycle state machine.

    PENDING -> PLANNING -> OPTIMIZING -> PREDICTING_PUE -> FINANCING
            -> (SENSITIVITY | SKIPPED) -> COMPLETED

FAILED is absorbing and reachable from every non-terminal state.
"""

import logging
from enum import Enum
from typing import Dict, FrozenSet, List, Tuple

from dc_transition_planner.errors import InvalidTransitionError

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    PENDING = "pending"
    PLANNING = "planning"
    OPTIMIZING = "optimizing"
    PREDICTING_PUE = "predicting_pue"
    FINANCING = "financing"
    SENSITIVITY = "sensitivity"
    SKIPPED = "skipped"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES: FrozenSet[PipelineState] = frozenset(
    {PipelineState.COMPLETED, PipelineState.FAILED}
)

_FORWARD: Dict[PipelineState, FrozenSet[PipelineState]] = {
    PipelineState.PENDING: frozenset({PipelineState.PLANNING}),
    PipelineState.PLANNING: frozenset({PipelineState.OPTIMIZING}),
    PipelineState.OPTIMIZING: frozenset({PipelineState.PREDICTING_PUE}),
    PipelineState.PREDICTING_PUE: frozenset({PipelineState.FINANCING}),
    PipelineState.FINANCING: frozenset({PipelineState.SENSITIVITY, PipelineState.SKIPPED}),
    PipelineState.SENSITIVITY: frozenset({PipelineState.COMPLETED}),
    PipelineState.SKIPPED: frozenset({PipelineState.COMPLETED}),
    PipelineState.COMPLETED: frozenset(),
    PipelineState.FAILED: frozenset(),
}

# Every non-terminal state may fail
TRANSITIONS: Dict[PipelineState, FrozenSet[PipelineState]] = {
    state: targets if state in TERMINAL_STATES else targets | {PipelineState.FAILED}
    for state, targets in _FORWARD.items()
}

STAGE_STATES: Dict[str, PipelineState] = {
    'planner': PipelineState.PLANNING,
    'optimizer': PipelineState.OPTIMIZING,
    'pue': PipelineState.PREDICTING_PUE,
    'financial': PipelineState.FINANCING,
    'sensitivity': PipelineState.SENSITIVITY,
}


class PipelineStateMachine:
    """Tracks one pipeline run and rejects out-of-order transitions."""

    def __init__(self):
        self.state = PipelineState.PENDING
        self.history: List[Tuple[PipelineState, PipelineState]] = []

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def can_advance(self, target: PipelineState) -> bool:
        return target in TRANSITIONS[self.state]

    def advance(self, target: PipelineState) -> PipelineState:
        """Move to target.

        Raises:
            InvalidTransitionError: If target is not reachable from the
                current state
        """
        if not self.can_advance(target):
            raise InvalidTransitionError(
                f"Cannot move pipeline from {self.state.value} to {target.value}"
            )
        logger.debug(f"Pipeline {self.state.value} -> {target.value}")
        self.history.append((self.state, target))
        self.state = target
        return target

    def enter_stage(self, stage: str) -> PipelineState:
        return self.advance(STAGE_STATES[stage])

    def fail(self) -> PipelineState:
        return self.advance(PipelineState.FAILED)
