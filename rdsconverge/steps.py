"""
Steps shared by the create, update and delete workflows.
"""

import logging
from typing import Any, Callable, Dict, Iterable, Optional

from . import translator
from .config import HandlerConfig
from .context import ContinuationState
from .diff import diff, diff_tags
from .faults import FaultClassifier, Outcome, ProviderFault, is_not_found
from .gateway import Gateway
from .models import DBInstanceRole, RequestInfo, ResourceModel
from .stabilize import Poller, with_probing

logger = logging.getLogger(__name__)

AVAILABLE_PROBE = "db-instance-available"


class StillInProgress(Exception):
    """A stabilization did not finish within this invocation."""

    def __init__(self, name: str):
        super().__init__(f"{name} still in progress")
        self.name = name


def _role_key(role: DBInstanceRole):
    return role.role_arn, role.feature_name or ""


def _role_call(action: str, role: DBInstanceRole) -> str:
    return f"{action}:{role.role_arn}:{role.feature_name or ''}"


class Workflow:
    """Base class for a fixed, ordered sequence of convergence steps."""

    def __init__(self, gateway: Gateway, config: HandlerConfig, poller: Poller,
                 classifier: Optional[FaultClassifier] = None):
        self.gateway = gateway
        self.config = config
        self.poller = poller
        self.classifier = classifier or FaultClassifier()

    def run(self, desired: Optional[ResourceModel], previous: Optional[ResourceModel],
            state: ContinuationState, request: RequestInfo) -> Optional[ResourceModel]:
        raise NotImplementedError

    # Step gating

    def exec_once(self, state: ContinuationState, flag: str, step: Callable[[], Any]) -> None:
        """Run `step` unless `flag` is already set; set it once the step completes."""
        if getattr(state, flag):
            logger.debug(f"Skipping completed step {flag}")
            return
        step()
        setattr(state, flag, True)
        logger.info(f"Step {flag} complete")

    def issue_once(self, state: ContinuationState, call: str, invoke: Callable[[], Any]) -> Any:
        """Issue a side-effecting call at most once per workflow."""
        if state.was_issued(call):
            logger.debug(f"{call} already issued, not repeating")
            return None
        response = invoke()
        state.mark_issued(call)
        return response

    def swallow(self, fault: ProviderFault) -> None:
        """Absorb faults meaning the desired state is already reached; re-raise anything else."""
        if self.classifier.classify(fault) is not Outcome.SWALLOWED:
            raise fault
        logger.warning(f"Ignoring {fault.code}: {fault.message}")

    # Live state

    def fetch(self, model: ResourceModel) -> Dict[str, Any]:
        return self.gateway.describe_db_instance(model.db_instance_identifier)

    def read(self, model: ResourceModel) -> ResourceModel:
        return translator.translate_db_instance(self.fetch(model), model)

    def is_available(self, model: ResourceModel) -> bool:
        # a not-found fault propagates: the instance vanished while we waited on it
        return self.fetch(model).get("DBInstanceStatus") == translator.AVAILABLE_STATUS

    def is_deleted(self, model: ResourceModel) -> bool:
        try:
            self.fetch(model)
        except ProviderFault as fault:
            if is_not_found(fault):
                return True
            raise
        return False

    def is_role_present(self, model: ResourceModel, role: DBInstanceRole) -> bool:
        return any(role.matches(r.role_arn, r.feature_name) for r in translator.live_roles(self.fetch(model)))

    def is_role_absent(self, model: ResourceModel, role: DBInstanceRole) -> bool:
        return not self.is_role_present(model, role)

    # Stabilization

    def wait_for(self, check: Callable[[], bool], name: str, model: ResourceModel,
                 state: ContinuationState) -> None:
        if not self.poller.stabilize(check, name, model.db_instance_identifier, state):
            raise StillInProgress(name)

    def wait_available(self, model: ResourceModel, state: ContinuationState) -> None:
        def check() -> bool:
            return with_probing(
                state,
                AVAILABLE_PROBE,
                self.config.probe_count,
                lambda: self.is_available(model),
                self.config.probing_enabled,
            )

        self.wait_for(check, "available", model, state)

    # Mutations

    def reboot(self, model: ResourceModel, state: ContinuationState) -> None:
        logger.info(f"Rebooting {model.db_instance_identifier}")
        self.issue_once(
            state, "reboot",
            lambda: self.gateway.reboot_db_instance(translator.reboot_db_instance_request(model)),
        )
        self.wait_available(model, state)

    def ensure_engine_set(self, model: ResourceModel) -> None:
        """Back-fill the engine of an instance restored from a snapshot."""
        if model.engine or translator.create_strategy(model) is not translator.CreateStrategy.RESTORE:
            return
        model.engine = self.fetch(model).get("Engine")
        logger.info(f"Engine of restored instance {model.db_instance_identifier} is {model.engine}")

    def update_tags(self, model: ResourceModel, previous_tags: Optional[Dict[str, str]],
                    desired_tags: Optional[Dict[str, str]]) -> None:
        to_add, to_remove = diff_tags(previous_tags, desired_tags)
        if not to_add and not to_remove:
            return
        arn = self.fetch(model)["DBInstanceArn"]
        if to_remove:
            logger.info(f"Removing tags {sorted(to_remove)} from {arn}")
            self.gateway.remove_tags_from_resource(translator.remove_tags_request(arn, to_remove))
        if to_add:
            logger.info(f"Adding tags {sorted(to_add)} to {arn}")
            self.gateway.add_tags_to_resource(translator.add_tags_request(arn, to_add))

    def update_associated_roles(self, model: ResourceModel, state: ContinuationState,
                                previous_roles: Optional[Iterable[DBInstanceRole]],
                                desired_roles: Optional[Iterable[DBInstanceRole]]) -> None:
        """Remove stale roles, then add new ones, one at a time."""
        changes = diff(previous_roles, desired_roles)
        if changes.empty:
            return
        logger.info(f"Reconciling roles of {model.db_instance_identifier}: "
                    f"{len(changes.to_remove)} to remove, {len(changes.to_add)} to add")
        for role in sorted(changes.to_remove, key=_role_key):
            self.remove_role(model, state, role)
        for role in sorted(changes.to_add, key=_role_key):
            self.add_role(model, state, role)

    def add_role(self, model: ResourceModel, state: ContinuationState, role: DBInstanceRole) -> None:
        call = _role_call("add-role", role)
        try:
            self.issue_once(
                state, call,
                lambda: self.gateway.add_role_to_db_instance(translator.role_request(model, role)),
            )
        except ProviderFault as fault:
            self.swallow(fault)
            state.mark_issued(call)
            return
        self.wait_for(lambda: self.is_role_present(model, role), call, model, state)

    def remove_role(self, model: ResourceModel, state: ContinuationState, role: DBInstanceRole) -> None:
        call = _role_call("remove-role", role)
        try:
            self.issue_once(
                state, call,
                lambda: self.gateway.remove_role_from_db_instance(translator.role_request(model, role)),
            )
        except ProviderFault as fault:
            self.swallow(fault)
            state.mark_issued(call)
            return
        self.wait_for(lambda: self.is_role_absent(model, role), call, model, state)

