"""
Tests for the convergence controller and progress events.
"""

import pytest

from rdsconverge.config import Backoff, HandlerConfig
from rdsconverge.context import ContinuationState
from rdsconverge.converge import Converger, OperationKind, converge, drive
from rdsconverge.faults import Outcome, ProviderFault
from rdsconverge.models import DBInstanceRole, ResourceModel
from rdsconverge.progress import OperationStatus, ProgressEvent
from rdsconverge.stabilize import Poller

from conftest import FakeRds, live_instance


class TestConverger:
    """Test invocation handling."""

    def test_accepts_enum_or_string(self, rds, converger):
        """The workflow kind may be an enum member or its value."""
        desired = ResourceModel(db_instance_identifier="db1")

        assert converger.converge(OperationKind.CREATE, desired).is_success
        assert converger.converge("update", desired, desired).is_success

    def test_unknown_kind(self, converger):
        """An unknown kind raises before any step runs."""
        with pytest.raises(ValueError):
            converger.converge("upsert", ResourceModel())

    def test_unexpected_error_is_internal_failure(self, converger):
        """Unexpected exceptions become InternalFailure events."""
        def broken(identifier):
            raise KeyError("DBInstanceStatus")

        converger.gateway.describe_db_instance = broken

        event = converger.converge("create", ResourceModel(db_instance_identifier="db1"))

        assert event.is_failed
        assert event.outcome is Outcome.INTERNAL_FAILURE
        assert "DBInstanceStatus" in event.message

    def test_transport_fault_is_transient(self, rds, converger):
        """Transport faults are classified as transient."""
        rds.faults["create_db_instance"] = ProviderFault("TransportError", "connection reset")

        event = converger.converge("create", ResourceModel(db_instance_identifier="db1"))

        assert event.outcome is Outcome.TRANSIENT_INTERNAL
        assert event.message == "connection reset"

    def test_failed_event_keeps_state(self, rds, converger):
        """A failed event carries the steps completed so far."""
        rds.faults["add_role_to_db_instance"] = ProviderFault("InvalidDBInstanceState")
        state = ContinuationState()
        desired = ResourceModel(db_instance_identifier="db1", associated_roles=[DBInstanceRole("arn:role")])

        event = converger.converge("create", desired, state=state)

        assert event.state is state
        assert state.created and not state.updated_roles

    def test_module_level_converge(self, config):
        """The module-level converge runs one invocation."""
        rds = FakeRds(live_instance("db1"))
        model = ResourceModel(db_instance_identifier="db1")

        event = converge("update", model, model, None, rds, config)

        assert event.is_success
        assert event.model.db_instance_arn.endswith(":db:db1")


class TestDrive:
    """Test driving a workflow across invocations."""

    def test_stops_at_max_invocations(self, clock):
        """Driving stops after max_invocations."""
        config = HandlerConfig(probing_enabled=False, backoff=Backoff(delay=5, timeout=10000),
                               invocation_budget=7, callback_delay=1)
        rds = FakeRds()
        rds.statuses = ["creating"] * 100
        converger = Converger(rds, config, poller=Poller(config, sleep=clock.sleep, clock=clock))
        sleeps = []

        event = drive(converger, "create", ResourceModel(db_instance_identifier="db1"),
                      max_invocations=3, sleep=sleeps.append)

        assert event.is_in_progress
        assert sleeps == [1, 1, 1]
        assert len(rds.calls_to("create_db_instance")) == 1

    def test_retries_retryable_failure(self, rds, converger):
        """A throttled invocation is re-invoked after the callback delay."""
        rds.faults["create_db_instance"] = ProviderFault("Throttling")
        sleeps = []

        event = drive(converger, "create", ResourceModel(db_instance_identifier="db1"),
                      sleep=sleeps.append, on_event=lambda e: rds.faults.clear())

        assert event.is_success
        assert sleeps == [10]
        assert len(rds.calls_to("create_db_instance")) == 2

    def test_retryable_failure_bounded_by_max_invocations(self, rds, converger):
        """Persistent throttling stops after max_invocations."""
        rds.faults["create_db_instance"] = ProviderFault("Throttling")
        sleeps = []

        event = drive(converger, "create", ResourceModel(db_instance_identifier="db1"),
                      max_invocations=3, sleep=sleeps.append)

        assert event.outcome is Outcome.TRANSIENT_INTERNAL
        assert sleeps == [10, 10, 10]
        assert len(rds.calls_to("create_db_instance")) == 3

    def test_timeout_when_budget_below_delay(self, clock):
        """Callback delays count toward the stabilization timeout."""
        config = HandlerConfig(probing_enabled=False, backoff=Backoff(delay=5, timeout=12),
                               invocation_budget=3, callback_delay=10)
        rds = FakeRds()
        rds.statuses = ["creating"] * 100
        converger = Converger(rds, config, poller=Poller(config, sleep=clock.sleep, clock=clock))
        events = []

        event = drive(converger, "create", ResourceModel(db_instance_identifier="db1"),
                      max_invocations=500, sleep=lambda _: None, on_event=events.append)

        assert event.outcome is Outcome.STABILIZATION_TIMEOUT
        assert len(events) == 2
        assert len(rds.calls_to("create_db_instance")) == 1

    def test_returns_failure_immediately(self, rds, converger):
        """Non-retryable failures are returned without retrying."""
        rds.faults["create_db_instance"] = ProviderFault("StorageQuotaExceeded")
        sleeps = []

        event = drive(converger, "create", ResourceModel(db_instance_identifier="db1"), sleep=sleeps.append)

        assert event.outcome is Outcome.SERVICE_LIMIT_EXCEEDED
        assert sleeps == []


class TestProgressEvent:
    """Test progress event serialization."""

    def test_success_to_dict(self):
        """Success events serialize model and state."""
        model = ResourceModel(db_instance_identifier="db1", master_user_password="pw")
        event = ProgressEvent.success(model, ContinuationState(created=True))

        data = event.to_dict()

        assert data["status"] == "SUCCESS"
        assert data["model"]["DBInstanceIdentifier"] == "db1"
        assert data["state"]["created"] is True
        assert "error_code" not in data

    def test_failed_to_dict(self):
        """Failed events serialize the error code and message."""
        event = ProgressEvent.failed(None, ContinuationState(), Outcome.NOT_FOUND, "gone")

        data = event.to_dict()

        assert data["error_code"] == "NotFound"
        assert data["message"] == "gone"
        assert "model" not in data

    def test_in_progress_to_dict(self):
        """In-progress events serialize the callback delay."""
        event = ProgressEvent.in_progress(None, ContinuationState(), 30)

        assert event.status is OperationStatus.IN_PROGRESS
        assert event.to_dict()["callback_delay"] == 30
