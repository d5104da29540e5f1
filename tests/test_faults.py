"""
Tests for provider fault classification.
"""

import pytest

from rdsconverge.faults import (
    FaultClassifier, FaultRule, Outcome, ProviderFault, StabilizationTimeout,
    TRANSPORT_FAULT, classify, hint_for, is_not_found, is_retryable,
)


class TestClassify:
    """Test the default lookup table."""

    @pytest.mark.parametrize("code,outcome", [
        ("DBInstanceNotFound", Outcome.NOT_FOUND),
        ("DBParameterGroupNotFound", Outcome.NOT_FOUND),
        ("DBSubnetGroupNotFoundFault", Outcome.NOT_FOUND),
        ("InsufficientDBInstanceCapacity", Outcome.SERVICE_LIMIT_EXCEEDED),
        ("StorageQuotaExceeded", Outcome.SERVICE_LIMIT_EXCEEDED),
        ("InvalidDBInstanceState", Outcome.RESOURCE_CONFLICT),
        ("DBSnapshotAlreadyExists", Outcome.RESOURCE_CONFLICT),
        ("ProvisionedIopsNotAvailableInAZFault", Outcome.INVALID_REQUEST),
        ("DBInstanceAlreadyExists", Outcome.ALREADY_EXISTS),
        ("DBInstanceRoleAlreadyExists", Outcome.SWALLOWED),
        ("DBInstanceRoleNotFound", Outcome.SWALLOWED),
        (TRANSPORT_FAULT, Outcome.TRANSIENT_INTERNAL),
        ("Throttling", Outcome.TRANSIENT_INTERNAL),
    ])
    def test_known_codes(self, code, outcome):
        """Each known fault code maps onto its outcome."""
        assert classify(ProviderFault(code, "boom")) is outcome

    def test_unknown_code_is_internal_failure(self):
        """Unknown codes are internal failures."""
        assert classify(ProviderFault("SomethingNew")) is Outcome.INTERNAL_FAILURE

    def test_non_provider_exception_is_internal_failure(self):
        """Plain exceptions are internal failures."""
        assert classify(KeyError("x")) is Outcome.INTERNAL_FAILURE

    def test_stabilization_timeout(self):
        """Timeouts carry their own outcome and message."""
        error = StabilizationTimeout("db1", "available")

        assert classify(error) is Outcome.STABILIZATION_TIMEOUT
        assert str(error) == "DBInstance db1 failed to stabilize."


class TestFaultClassifier:
    """Test custom rules and hints."""

    def test_custom_rules_replace_defaults(self):
        """A classifier built from its own rules ignores the default table."""
        classifier = FaultClassifier([FaultRule(
            id="custom",
            codes=["InvalidDBInstanceState"],
            outcome=Outcome.TRANSIENT_INTERNAL,
            hint="retry",
        )])

        assert classifier.classify(ProviderFault("InvalidDBInstanceState")) is Outcome.TRANSIENT_INTERNAL
        assert classifier.classify(ProviderFault("DBInstanceNotFound")) is Outcome.INTERNAL_FAILURE
        assert classifier.hint_for(Outcome.TRANSIENT_INTERNAL) == "retry"

    def test_default_hint(self):
        """Failures covered by the table carry a remediation hint."""
        assert hint_for(Outcome.RESOURCE_CONFLICT) == "The instance is busy with another operation"

    def test_no_hint_without_rule(self):
        """Outcomes no rule produces have no hint."""
        assert hint_for(Outcome.INTERNAL_FAILURE) is None
        assert hint_for(None) is None


class TestHelpers:
    """Test fault helpers."""

    def test_is_not_found_only_for_the_instance(self):
        """Only the instance's own not-found fault counts."""
        assert is_not_found(ProviderFault("DBInstanceNotFound"))
        assert not is_not_found(ProviderFault("DBParameterGroupNotFound"))
        assert not is_not_found(ValueError("DBInstanceNotFound"))

    def test_only_transient_is_retryable(self):
        """Only transient failures are retryable."""
        assert is_retryable(Outcome.TRANSIENT_INTERNAL)
        assert not is_retryable(Outcome.NOT_FOUND)

    def test_fault_message_defaults_to_code(self):
        """A fault without a message uses its code."""
        fault = ProviderFault("Throttling")

        assert fault.message == "Throttling"
        assert str(fault) == "Throttling"
