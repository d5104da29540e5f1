"""
Update workflow: converge an existing DB instance onto a new declaration.
"""

import logging
from typing import Optional

from . import translator
from .context import ContinuationState
from .faults import Outcome, ProviderFault
from .models import RequestInfo, ResourceModel
from .steps import Workflow
from .tags import merge_tags

logger = logging.getLogger(__name__)

DEFAULT_SECURITY_GROUP = "default"


class UpdateWorkflow(Workflow):
    """Modify, retag, reconcile roles, reboot if needed, then read back."""

    def run(self, desired: Optional[ResourceModel], previous: Optional[ResourceModel],
            state: ContinuationState, request: RequestInfo) -> ResourceModel:
        model = (desired or ResourceModel()).copy()
        previous = previous or ResourceModel(db_instance_identifier=model.db_instance_identifier)
        if not model.db_instance_identifier:
            model.db_instance_identifier = previous.db_instance_identifier

        self.exec_once(state, "updated", lambda: self.update_instance(model, previous, state, request))
        self.exec_once(
            state, "updated_tags",
            lambda: self.update_tags(
                model,
                merge_tags(request.previous_resource_tags, previous.tags),
                merge_tags(request.desired_resource_tags, model.tags),
            ),
        )
        self.exec_once(
            state, "updated_roles",
            lambda: self.update_associated_roles(
                model, state, previous.associated_roles, model.associated_roles
            ),
        )
        self.exec_once(state, "rebooted", lambda: self.reboot_if_pending(model, state))
        return self.read(model)

    def update_instance(self, model: ResourceModel, previous: ResourceModel,
                        state: ContinuationState, request: RequestInfo) -> None:
        if model.vpc_security_groups == []:
            self.set_default_security_group(model)
        if model.db_parameter_group_name != previous.db_parameter_group_name:
            self.set_parameter_group_engine_version(model)

        modify = translator.modify_db_instance_request(previous, model, request.rollback)
        if translator.has_modifications(modify):
            logger.info(f"Modifying {model.db_instance_identifier}")
            self.issue_once(state, "modify", lambda: self.gateway.modify_db_instance(modify))
        else:
            logger.info(f"No attribute changes for {model.db_instance_identifier}")
        self.wait_available(model, state)

    def set_default_security_group(self, model: ResourceModel) -> None:
        """Replace an explicitly empty security group list with the VPC's default group."""
        vpc = translator.vpc_id(self.fetch(model))
        if not vpc:
            return
        groups = self.gateway.describe_security_groups(
            translator.describe_security_groups_request(vpc, DEFAULT_SECURITY_GROUP)
        )
        if groups:
            model.vpc_security_groups = [groups[0]["GroupId"]]
            logger.info(f"Using default security group {groups[0]['GroupId']} of {vpc}")

    def set_parameter_group_engine_version(self, model: ResourceModel) -> None:
        """
        Check the new parameter group and back-fill a matching engine version.

        When the group exists and the model pins no engine version, the
        default engine version of the group's family is used. An unknown
        group or family leaves the model untouched; the modify call then
        reports the problem.
        """
        name = model.db_parameter_group_name
        if not name:
            return
        try:
            groups = self.gateway.describe_db_parameter_groups(
                translator.describe_db_parameter_groups_request(name)
            )
        except ProviderFault as fault:
            if self.classifier.classify(fault) is not Outcome.NOT_FOUND:
                raise
            groups = []
        if not groups:
            logger.info(f"Parameter group {name} not found")
            return

        family = groups[0].get("DBParameterGroupFamily")
        versions = self.gateway.describe_db_engine_versions(
            translator.describe_db_engine_versions_request(family, model.engine)
        )
        if not versions:
            logger.info(f"No engine version found for family {family}")
            return
        if not model.engine_version:
            model.engine_version = versions[0].get("EngineVersion")
            logger.info(f"Engine version for parameter group {name} is {model.engine_version}")

    def reboot_if_pending(self, model: ResourceModel, state: ContinuationState) -> None:
        # a reboot issued by an earlier invocation still needs its wait
        if not state.was_issued("reboot") and \
                translator.parameter_apply_status(self.fetch(model)) != translator.PENDING_REBOOT_STATUS:
            return
        self.reboot(model, state)
