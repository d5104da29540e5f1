"""
Create workflow: bring a new DB instance into existence and finish configuring it.
"""

import logging
from typing import Any, Callable, Dict, Optional

from . import ids, translator
from .context import ContinuationState
from .models import RequestInfo, ResourceModel
from .steps import Workflow
from .tags import merge_tags
from .translator import CreateStrategy

logger = logging.getLogger(__name__)


class CreateWorkflow(Workflow):
    """Create (or restore, or replicate), then modify, reboot and attach roles."""

    def _create_calls(self) -> Dict[CreateStrategy, Callable[[Dict[str, Any]], Dict[str, Any]]]:
        return {
            CreateStrategy.PLAIN: self.gateway.create_db_instance,
            CreateStrategy.RESTORE: self.gateway.restore_db_instance_from_db_snapshot,
            CreateStrategy.READ_REPLICA: self.gateway.create_db_instance_read_replica,
        }

    def run(self, desired: Optional[ResourceModel], previous: Optional[ResourceModel],
            state: ContinuationState, request: RequestInfo) -> ResourceModel:
        model = (desired or ResourceModel()).copy()
        if not model.db_instance_identifier:
            model.db_instance_identifier = ids.db_instance_identifier(
                request.stack_id, request.logical_resource_id, request.client_request_token
            )
            logger.info(f"Generated instance identifier {model.db_instance_identifier}")

        self.exec_once(state, "created", lambda: self.create_instance(model, state, request))
        self.ensure_engine_set(model)

        if translator.should_update_after_create(model):
            self.exec_once(state, "updated", lambda: self.update_after_create(model, state))
        if translator.should_reboot_after_create(model):
            self.exec_once(state, "rebooted", lambda: self.reboot(model, state))

        self.exec_once(
            state, "updated_roles",
            lambda: self.update_associated_roles(model, state, None, model.associated_roles),
        )
        return self.read(model)

    def create_instance(self, model: ResourceModel, state: ContinuationState, request: RequestInfo) -> None:
        strategy = translator.create_strategy(model)
        tags = merge_tags(request.desired_resource_tags, model.tags)
        create_request = translator.CREATE_REQUESTS[strategy](model, tags)
        invoke = self._create_calls()[strategy]

        logger.info(f"Creating {model.db_instance_identifier} ({strategy.value})")
        self.issue_once(state, strategy.value, lambda: invoke(create_request))
        self.wait_available(model, state)

    def update_after_create(self, model: ResourceModel, state: ContinuationState) -> None:
        """Apply the attributes the create call could not carry."""
        modify = translator.modify_after_create_request(model)
        self.issue_once(state, "modify", lambda: self.gateway.modify_db_instance(modify))
        self.wait_available(model, state)
