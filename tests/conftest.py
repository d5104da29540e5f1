"""
Shared fixtures: an in-memory RDS gateway and a poller that never sleeps.
"""

import copy
from typing import Any, Dict, List, Optional

import pytest

from rdsconverge.config import Backoff, HandlerConfig
from rdsconverge.converge import Converger
from rdsconverge.faults import NOT_FOUND_FAULT, ProviderFault
from rdsconverge.gateway import Gateway
from rdsconverge.models import RequestInfo
from rdsconverge.stabilize import Poller

ARN_PREFIX = "arn:aws:rds:us-east-1:123456789012:db:"

MUTATING = {
    "create_db_instance",
    "restore_db_instance_from_db_snapshot",
    "create_db_instance_read_replica",
    "modify_db_instance",
    "reboot_db_instance",
    "delete_db_instance",
    "add_role_to_db_instance",
    "remove_role_from_db_instance",
    "add_tags_to_resource",
    "remove_tags_from_resource",
}


def live_instance(identifier: str = "db1", **overrides: Any) -> Dict[str, Any]:
    """A DescribeDBInstances entry for an available MySQL instance."""
    instance = {
        "DBInstanceIdentifier": identifier,
        "DBInstanceArn": ARN_PREFIX + identifier,
        "DBInstanceStatus": "available",
        "DBInstanceClass": "db.t3.micro",
        "Engine": "mysql",
        "EngineVersion": "8.0.35",
        "AllocatedStorage": 20,
        "Endpoint": {"Address": f"{identifier}.abc.us-east-1.rds.amazonaws.com", "Port": 3306},
        "DBParameterGroups": [{"DBParameterGroupName": "default.mysql8.0", "ParameterApplyStatus": "in-sync"}],
        "DBSubnetGroup": {"DBSubnetGroupName": "default", "VpcId": "vpc-1"},
        "VpcSecurityGroups": [{"VpcSecurityGroupId": "sg-1", "Status": "active"}],
        "AssociatedRoles": [],
        "TagList": [],
    }
    instance.update(overrides)
    return instance


class FakeRds(Gateway):
    """
    In-memory gateway recording every call.

    `statuses` scripts DBInstanceStatus for successive describes; `faults`
    maps an operation name to the fault it raises; `deleting_polls` is how
    many describes still see the instance after a delete.
    """

    def __init__(self, instance: Optional[Dict[str, Any]] = None):
        self.instance = instance
        self.calls: List[tuple] = []
        self.statuses: List[str] = []
        self.faults: Dict[str, ProviderFault] = {}
        self.parameter_groups: List[Dict[str, Any]] = []
        self.engine_versions: List[Dict[str, Any]] = []
        self.security_groups: List[Dict[str, Any]] = []
        self.deleting_polls = 0
        self._deleting = False

    def _record(self, operation: str, request: Any) -> None:
        self.calls.append((operation, request))
        if operation in self.faults:
            raise self.faults[operation]

    def calls_to(self, operation: str) -> List[Any]:
        return [request for op, request in self.calls if op == operation]

    def mutating_calls(self) -> List[tuple]:
        return [call for call in self.calls if call[0] in MUTATING]

    def _not_found(self, identifier: str) -> ProviderFault:
        return ProviderFault(NOT_FOUND_FAULT, f"DBInstance {identifier} not found.")

    def _new_instance(self, request: Dict[str, Any], **extra: Any) -> Dict[str, Any]:
        instance = live_instance(request["DBInstanceIdentifier"], **extra)
        if "Engine" in request:
            instance["Engine"] = request["Engine"]
        if "DBParameterGroupName" in request:
            instance["DBParameterGroups"] = [
                {"DBParameterGroupName": request["DBParameterGroupName"], "ParameterApplyStatus": "in-sync"}
            ]
        instance["TagList"] = list(request.get("Tags", []))
        return instance

    def describe_db_instance(self, identifier: str) -> Dict[str, Any]:
        self._record("describe_db_instances", identifier)
        if self.instance is None:
            raise self._not_found(identifier)
        if self._deleting:
            if self.deleting_polls <= 0:
                self.instance = None
                raise self._not_found(identifier)
            self.deleting_polls -= 1
            return dict(copy.deepcopy(self.instance), DBInstanceStatus="deleting")
        if self.statuses:
            self.instance["DBInstanceStatus"] = self.statuses.pop(0)
        return copy.deepcopy(self.instance)

    def create_db_instance(self, request):
        self._record("create_db_instance", request)
        self.instance = self._new_instance(request)
        return {"DBInstance": copy.deepcopy(self.instance)}

    def restore_db_instance_from_db_snapshot(self, request):
        self._record("restore_db_instance_from_db_snapshot", request)
        self.instance = self._new_instance(request, Engine="postgres", EngineVersion="15.4")
        return {"DBInstance": copy.deepcopy(self.instance)}

    def create_db_instance_read_replica(self, request):
        self._record("create_db_instance_read_replica", request)
        self.instance = self._new_instance(request)
        return {"DBInstance": copy.deepcopy(self.instance)}

    def modify_db_instance(self, request):
        self._record("modify_db_instance", request)
        if "DBParameterGroupName" in request:
            self.instance["DBParameterGroups"] = [
                {"DBParameterGroupName": request["DBParameterGroupName"], "ParameterApplyStatus": "pending-reboot"}
            ]
        if "DBInstanceClass" in request:
            self.instance["DBInstanceClass"] = request["DBInstanceClass"]
        return {"DBInstance": copy.deepcopy(self.instance)}

    def reboot_db_instance(self, request):
        self._record("reboot_db_instance", request)
        for group in self.instance.get("DBParameterGroups", []):
            group["ParameterApplyStatus"] = "in-sync"
        return {"DBInstance": copy.deepcopy(self.instance)}

    def delete_db_instance(self, request):
        self._record("delete_db_instance", request)
        if self.instance is None:
            raise self._not_found(request["DBInstanceIdentifier"])
        self._deleting = True
        return {"DBInstance": copy.deepcopy(self.instance)}

    def add_role_to_db_instance(self, request):
        self._record("add_role_to_db_instance", request)
        role = {"RoleArn": request["RoleArn"], "Status": "ACTIVE"}
        if "FeatureName" in request:
            role["FeatureName"] = request["FeatureName"]
        self.instance["AssociatedRoles"].append(role)
        return {}

    def remove_role_from_db_instance(self, request):
        self._record("remove_role_from_db_instance", request)
        self.instance["AssociatedRoles"] = [
            r for r in self.instance["AssociatedRoles"] if r["RoleArn"] != request["RoleArn"]
        ]
        return {}

    def add_tags_to_resource(self, request):
        self._record("add_tags_to_resource", request)
        tags = {t["Key"]: t["Value"] for t in self.instance["TagList"]}
        tags.update({t["Key"]: t["Value"] for t in request["Tags"]})
        self.instance["TagList"] = [{"Key": k, "Value": v} for k, v in tags.items()]
        return {}

    def remove_tags_from_resource(self, request):
        self._record("remove_tags_from_resource", request)
        self.instance["TagList"] = [t for t in self.instance["TagList"] if t["Key"] not in request["TagKeys"]]
        return {}

    def describe_db_parameter_groups(self, request):
        self._record("describe_db_parameter_groups", request)
        return list(self.parameter_groups)

    def describe_db_engine_versions(self, request):
        self._record("describe_db_engine_versions", request)
        return list(self.engine_versions)

    def describe_security_groups(self, request):
        self._record("describe_security_groups", request)
        return list(self.security_groups)


class FakeClock:
    """Monotonic clock advanced only by the fake sleep."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return HandlerConfig(probing_enabled=False, backoff=Backoff(delay=5, timeout=600), callback_delay=10)


@pytest.fixture
def rds():
    return FakeRds()


@pytest.fixture
def poller(config, clock):
    return Poller(config, sleep=clock.sleep, clock=clock)


@pytest.fixture
def converger(rds, config, poller):
    return Converger(rds, config, poller=poller)


@pytest.fixture
def request_info():
    return RequestInfo(
        stack_id="arn:aws:cloudformation:us-east-1:123456789012:stack/app/0a1b2c3d",
        logical_resource_id="Database",
        client_request_token="token-1",
    )
