"""Tagged per-stage outcomes.

A stage ends in exactly one of three shapes. Only ``Succeeded`` carries
a payload; a recoverable ``Failed`` may carry the degraded fallback the
pipeline continued with.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Optional

from dc_transition_planner.errors import StageError

Serializer = Callable[[Any], Any]


class StageStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class StageOutcome:
    """Common fields of every stage outcome."""
    stage: str
    duration_ms: float

    status: ClassVar[StageStatus]

    @property
    def output(self) -> Optional[Any]:
        """The value downstream stages read, if any."""
        return None

    def to_dict(self, serializer: Optional[Serializer] = None) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'durationMs': self.duration_ms,
            'payload': None,
            'error': None,
        }


@dataclass(frozen=True)
class Succeeded(StageOutcome):
    payload: Any

    status: ClassVar[StageStatus] = StageStatus.SUCCESS

    @property
    def output(self) -> Any:
        return self.payload

    def to_dict(self, serializer: Optional[Serializer] = None) -> Dict[str, Any]:
        data = super().to_dict()
        data['payload'] = serializer(self.payload) if serializer else self.payload
        return data


@dataclass(frozen=True)
class Failed(StageOutcome):
    error: StageError
    fallback: Optional[Any] = None

    status: ClassVar[StageStatus] = StageStatus.FAILED

    @property
    def recoverable(self) -> bool:
        return self.error.recoverable

    @property
    def output(self) -> Optional[Any]:
        return self.fallback

    def to_dict(self, serializer: Optional[Serializer] = None) -> Dict[str, Any]:
        data = super().to_dict()
        if self.fallback is not None:
            data['payload'] = serializer(self.fallback) if serializer else self.fallback
        data['error'] = {'message': str(self.error), 'recoverable': self.recoverable}
        return data


@dataclass(frozen=True)
class Skipped(StageOutcome):
    reason: str = ""

    status: ClassVar[StageStatus] = StageStatus.SKIPPED

    def to_dict(self, serializer: Optional[Serializer] = None) -> Dict[str, Any]:
        data = super().to_dict()
        data['reason'] = self.reason
        return data
