"""
Convergence controller: run one invocation of a create, update or delete workflow.
"""

import logging
import time
from enum import Enum
from typing import Callable, Dict, Optional, Type, Union

from .config import HandlerConfig
from .context import ContinuationState
from .create import CreateWorkflow
from .delete import DeleteWorkflow
from .faults import FaultClassifier, is_retryable
from .gateway import Gateway
from .models import RequestInfo, ResourceModel
from .progress import ProgressEvent
from .stabilize import Poller
from .steps import StillInProgress, Workflow
from .update import UpdateWorkflow

logger = logging.getLogger(__name__)

DEFAULT_MAX_INVOCATIONS = 1000


class OperationKind(Enum):
    """Workflow selected for an invocation."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


WORKFLOWS: Dict[OperationKind, Type[Workflow]] = {
    OperationKind.CREATE: CreateWorkflow,
    OperationKind.UPDATE: UpdateWorkflow,
    OperationKind.DELETE: DeleteWorkflow,
}


class Converger:
    """
    Entry point of the convergence engine.

    Each `converge` call is one invocation. The caller persists the returned
    state and passes it back while the event is IN_PROGRESS.
    """

    def __init__(self, gateway: Gateway, config: Optional[HandlerConfig] = None,
                 poller: Optional[Poller] = None, classifier: Optional[FaultClassifier] = None):
        self.gateway = gateway
        self.config = config or HandlerConfig()
        self.poller = poller or Poller(self.config)
        self.classifier = classifier or FaultClassifier()

    def converge(
        self,
        kind: Union[OperationKind, str],
        desired: Optional[ResourceModel],
        previous: Optional[ResourceModel] = None,
        state: Optional[ContinuationState] = None,
        request: Optional[RequestInfo] = None,
    ) -> ProgressEvent:
        """
        Run one invocation of a workflow.

        Args:
            kind: create, update or delete
            desired: Declared model (None on delete falls back to previous)
            previous: Last declared model, used by update and delete
            state: Continuation state from the previous invocation
            request: Stack and request context

        Returns:
            SUCCESS with the observed model, IN_PROGRESS with the state to
            hand back, or FAILED with a classified outcome
        """
        kind = OperationKind(kind)
        state = state if state is not None else ContinuationState()
        request = request or RequestInfo()
        workflow = WORKFLOWS[kind](self.gateway, self.config, self.poller, self.classifier)

        self.poller.start_invocation()
        try:
            model = workflow.run(desired, previous, state, request)
        except StillInProgress as e:
            logger.info(f"{kind.value}: {e}, handing back state")
            return ProgressEvent.in_progress(desired, state, self.config.callback_delay)
        except Exception as e:
            outcome = self.classifier.classify(e)
            logger.error(f"{kind.value} failed with {outcome.value}: {e}")
            return ProgressEvent.failed(desired, state, outcome, str(e))

        logger.info(f"{kind.value} succeeded")
        return ProgressEvent.success(model, state)


def converge(
    kind: Union[OperationKind, str],
    desired: Optional[ResourceModel],
    previous: Optional[ResourceModel],
    state: Optional[ContinuationState],
    gateway: Gateway,
    config: Optional[HandlerConfig] = None,
    request: Optional[RequestInfo] = None,
) -> ProgressEvent:
    """Run one invocation with a fresh controller."""
    return Converger(gateway, config).converge(kind, desired, previous, state, request)


def drive(
    converger: Converger,
    kind: Union[OperationKind, str],
    desired: Optional[ResourceModel],
    previous: Optional[ResourceModel] = None,
    state: Optional[ContinuationState] = None,
    request: Optional[RequestInfo] = None,
    max_invocations: int = DEFAULT_MAX_INVOCATIONS,
    sleep: Callable[[float], None] = time.sleep,
    on_event: Optional[Callable[[ProgressEvent], None]] = None,
) -> ProgressEvent:
    """
    Re-invoke `converge` until the workflow leaves IN_PROGRESS.

    A retryable failure is re-invoked too, with the state it left behind.
    Returns the last event, which is still IN_PROGRESS or a retryable
    failure if `max_invocations` ran out first.
    """
    event = None
    for invocation in range(1, max_invocations + 1):
        event = converger.converge(kind, desired, previous, state, request)
        if on_event:
            on_event(event)
        if event.is_in_progress:
            delay = event.callback_delay
            logger.debug(f"Invocation {invocation} in progress, calling back in {delay}s")
        elif event.is_failed and is_retryable(event.outcome):
            delay = converger.config.callback_delay
            logger.warning(f"Invocation {invocation} failed with {event.outcome.value}, retrying in {delay}s")
        else:
            return event
        state = event.state
        sleep(delay)
    return event
