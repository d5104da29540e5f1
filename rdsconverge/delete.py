"""
Delete workflow.
"""

import logging
from typing import Optional

from . import ids, translator
from .context import ContinuationState
from .models import RequestInfo, ResourceModel
from .steps import Workflow

logger = logging.getLogger(__name__)


def final_snapshot_identifier(model: ResourceModel, request: RequestInfo) -> Optional[str]:
    """
    Decide the final snapshot taken on delete.

    Returns:
        The snapshot identifier, or None when no final snapshot is taken
    """
    if request.snapshot_requested is False:
        return None
    # cluster members are snapshotted with their cluster
    if model.db_cluster_identifier:
        return None
    if model.db_snapshot_identifier:
        return model.db_snapshot_identifier
    return ids.final_snapshot_identifier(
        request.stack_id, request.logical_resource_id, request.client_request_token
    )


class DeleteWorkflow(Workflow):
    """Issue the delete once and wait until the instance is gone."""

    def run(self, desired: Optional[ResourceModel], previous: Optional[ResourceModel],
            state: ContinuationState, request: RequestInfo) -> None:
        model = (desired or previous or ResourceModel()).copy()

        if not state.was_issued("delete"):
            snapshot = final_snapshot_identifier(model, request)
            logger.info(
                f"Deleting {model.db_instance_identifier}"
                + (f" with final snapshot {snapshot}" if snapshot else " without final snapshot")
            )
            self.gateway.delete_db_instance(translator.delete_db_instance_request(model, snapshot))
            state.mark_issued("delete")

        self.exec_once(
            state, "deleted",
            lambda: self.wait_for(lambda: self.is_deleted(model), "deleted", model, state),
        )
        return None
