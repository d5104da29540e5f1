"""
Progress events returned by every workflow invocation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .context import ContinuationState
from .faults import Outcome
from .models import ResourceModel


class OperationStatus(Enum):
    """Status of a workflow after one invocation."""
    SUCCESS = "SUCCESS"
    IN_PROGRESS = "IN_PROGRESS"
    FAILED = "FAILED"


@dataclass
class ProgressEvent:
    """Result of one converge invocation."""
    status: OperationStatus
    model: Optional[ResourceModel] = None
    state: ContinuationState = field(default_factory=ContinuationState)
    outcome: Optional[Outcome] = None
    message: Optional[str] = None
    callback_delay: float = 0.0

    @classmethod
    def success(cls, model: Optional[ResourceModel], state: ContinuationState) -> "ProgressEvent":
        return cls(status=OperationStatus.SUCCESS, model=model, state=state)

    @classmethod
    def in_progress(cls, model: Optional[ResourceModel], state: ContinuationState,
                    callback_delay: float = 0.0) -> "ProgressEvent":
        return cls(status=OperationStatus.IN_PROGRESS, model=model, state=state,
                   callback_delay=callback_delay)

    @classmethod
    def failed(cls, model: Optional[ResourceModel], state: ContinuationState,
               outcome: Outcome, message: str) -> "ProgressEvent":
        return cls(status=OperationStatus.FAILED, model=model, state=state,
                   outcome=outcome, message=message)

    @property
    def is_success(self) -> bool:
        return self.status is OperationStatus.SUCCESS

    @property
    def is_in_progress(self) -> bool:
        return self.status is OperationStatus.IN_PROGRESS

    @property
    def is_failed(self) -> bool:
        return self.status is OperationStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "status": self.status.value,
            "state": self.state.to_dict(),
        }
        if self.model is not None:
            data["model"] = self.model.to_dict()
        if self.outcome is not None:
            data["error_code"] = self.outcome.value
        if self.message:
            data["message"] = self.message
        if self.is_in_progress:
            data["callback_delay"] = self.callback_delay
        return data
