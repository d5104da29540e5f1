"""
Provider fault classification.

Faults coming back from the provider are flat values (a code and a message).
They are mapped onto a small set of canonical outcomes with a lookup table;
there is no exception hierarchy per fault.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class Outcome(Enum):
    """Canonical outcome of a failed provider interaction."""
    NOT_FOUND = "NotFound"
    SERVICE_LIMIT_EXCEEDED = "ServiceLimitExceeded"
    RESOURCE_CONFLICT = "ResourceConflict"
    INVALID_REQUEST = "InvalidRequest"
    ALREADY_EXISTS = "AlreadyExists"
    TRANSIENT_INTERNAL = "TransientInternal"
    SWALLOWED = "Swallowed"
    INTERNAL_FAILURE = "InternalFailure"
    STABILIZATION_TIMEOUT = "StabilizationTimeout"


# Outcomes a caller may retry by re-invoking the whole workflow later.
RETRYABLE_OUTCOMES = frozenset({Outcome.TRANSIENT_INTERNAL})

TRANSPORT_FAULT = "TransportError"
NOT_FOUND_FAULT = "DBInstanceNotFound"


class ConvergeError(Exception):
    """Base class for errors raised by the convergence engine."""

    outcome = Outcome.INTERNAL_FAILURE


class ProviderFault(ConvergeError):
    """A fault returned by the provider: a code plus a message."""

    def __init__(self, code: str, message: str = "", operation: Optional[str] = None):
        super().__init__(message or code)
        self.code = code
        self.message = message or code
        self.operation = operation

    def __repr__(self) -> str:
        return f"ProviderFault(code={self.code!r}, message={self.message!r})"


class StabilizationTimeout(ConvergeError):
    """Raised when a resource does not reach its terminal condition in time."""

    outcome = Outcome.STABILIZATION_TIMEOUT

    def __init__(self, resource_id: Optional[str], check: str):
        super().__init__(f"DBInstance {resource_id} failed to stabilize.")
        self.resource_id = resource_id
        self.check = check


@dataclass
class FaultRule:
    """Maps a group of provider fault codes onto one outcome."""
    id: str
    codes: List[str]
    outcome: Outcome
    hint: str


DEFAULT_RULES: List[FaultRule] = [
    FaultRule(
        id="not_found",
        codes=[
            "DBInstanceNotFound",
            "DBParameterGroupNotFound",
            "DBSecurityGroupNotFound",
            "DBSubnetGroupNotFoundFault",
            "DBSnapshotNotFound",
        ],
        outcome=Outcome.NOT_FOUND,
        hint="The instance or a resource it references does not exist",
    ),
    FaultRule(
        id="service_limit",
        codes=[
            "DBInstanceAutomatedBackupQuotaExceeded",
            "InsufficientDBInstanceCapacity",
            "InstanceQuotaExceeded",
            "SnapshotQuotaExceeded",
            "StorageQuotaExceeded",
        ],
        outcome=Outcome.SERVICE_LIMIT_EXCEEDED,
        hint="Request a quota increase or pick another instance class / zone",
    ),
    FaultRule(
        id="resource_conflict",
        codes=[
            "InvalidDBInstanceState",
            "InvalidDBClusterStateFault",
            "DBSnapshotAlreadyExists",
            "DBUpgradeDependencyFailure",
            "InvalidDBSecurityGroupState",
        ],
        outcome=Outcome.RESOURCE_CONFLICT,
        hint="The instance is busy with another operation",
    ),
    FaultRule(
        id="invalid_request",
        codes=["ProvisionedIopsNotAvailableInAZFault"],
        outcome=Outcome.INVALID_REQUEST,
        hint="Provisioned IOPS are not offered in the requested availability zone",
    ),
    FaultRule(
        id="already_exists",
        codes=["DBInstanceAlreadyExists"],
        outcome=Outcome.ALREADY_EXISTS,
        hint="An instance with this identifier already exists",
    ),
    FaultRule(
        id="role_association",
        codes=["DBInstanceRoleAlreadyExists", "DBInstanceRoleNotFound"],
        outcome=Outcome.SWALLOWED,
        hint="The role association is already in the desired state",
    ),
    FaultRule(
        id="transient",
        codes=[TRANSPORT_FAULT, "Throttling", "ThrottlingException", "RequestLimitExceeded"],
        outcome=Outcome.TRANSIENT_INTERNAL,
        hint="Transport or throttling problem; re-invoke later",
    ),
]


class FaultClassifier:
    """Classifies provider faults using a code lookup table."""

    def __init__(self, rules: Optional[List[FaultRule]] = None):
        self.rules = list(rules if rules is not None else DEFAULT_RULES)
        self._table = self._build_table(self.rules)

    @staticmethod
    def _build_table(rules: List[FaultRule]) -> Dict[str, FaultRule]:
        table: Dict[str, FaultRule] = {}
        for rule in rules:
            for code in rule.codes:
                table[code] = rule
        return table

    def classify(self, fault: BaseException) -> Outcome:
        """Return the canonical outcome for an exception raised by a step."""
        if isinstance(fault, ProviderFault):
            rule = self._table.get(fault.code)
            return rule.outcome if rule else Outcome.INTERNAL_FAILURE
        if isinstance(fault, ConvergeError):
            return fault.outcome
        return Outcome.INTERNAL_FAILURE

    def hint_for(self, outcome: Optional[Outcome]) -> Optional[str]:
        """Get the remediation hint of the first rule producing an outcome."""
        for rule in self.rules:
            if rule.outcome is outcome:
                return rule.hint
        return None


_default_classifier = FaultClassifier()


def classify(fault: BaseException) -> Outcome:
    """Classify a fault with the default rule table."""
    return _default_classifier.classify(fault)


def hint_for(outcome: Optional[Outcome]) -> Optional[str]:
    return _default_classifier.hint_for(outcome)


def is_not_found(fault: BaseException) -> bool:
    """True when the fault says the DB instance itself is gone."""
    return isinstance(fault, ProviderFault) and fault.code == NOT_FOUND_FAULT


def is_retryable(outcome: Outcome) -> bool:
    return outcome in RETRYABLE_OUTCOMES
