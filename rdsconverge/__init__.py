"""
rdsconverge - converge a managed RDS DB instance onto a declared model.

Create, update and delete run as ordered workflows that can be invoked
repeatedly; each invocation resumes from the continuation state returned by
the previous one.
"""

from .context import ContinuationState
from .converge import Converger, OperationKind, converge, drive
from .faults import Outcome, ProviderFault, StabilizationTimeout, classify
from .models import DBInstanceRole, RequestInfo, ResourceModel
from .progress import OperationStatus, ProgressEvent

__version__ = "0.1.0"

__all__ = [
    "ContinuationState",
    "Converger",
    "DBInstanceRole",
    "OperationKind",
    "OperationStatus",
    "Outcome",
    "ProgressEvent",
    "ProviderFault",
    "RequestInfo",
    "ResourceModel",
    "StabilizationTimeout",
    "classify",
    "converge",
    "drive",
]
