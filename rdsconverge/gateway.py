"""
Provider gateway: the RDS and EC2 calls the workflows depend on.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .faults import NOT_FOUND_FAULT, TRANSPORT_FAULT, ProviderFault

logger = logging.getLogger(__name__)

Request = Dict[str, Any]
Response = Dict[str, Any]


class Gateway(ABC):
    """
    Calls issued against the provider.

    Every method takes the keyword arguments of the provider API call and
    raises ProviderFault on failure.
    """

    @abstractmethod
    def describe_db_instance(self, identifier: str) -> Dict[str, Any]:
        """Return the live snapshot, or raise a DBInstanceNotFound fault."""

    @abstractmethod
    def create_db_instance(self, request: Request) -> Response: ...

    @abstractmethod
    def restore_db_instance_from_db_snapshot(self, request: Request) -> Response: ...

    @abstractmethod
    def create_db_instance_read_replica(self, request: Request) -> Response: ...

    @abstractmethod
    def modify_db_instance(self, request: Request) -> Response: ...

    @abstractmethod
    def reboot_db_instance(self, request: Request) -> Response: ...

    @abstractmethod
    def delete_db_instance(self, request: Request) -> Response: ...

    @abstractmethod
    def add_role_to_db_instance(self, request: Request) -> Response: ...

    @abstractmethod
    def remove_role_from_db_instance(self, request: Request) -> Response: ...

    @abstractmethod
    def add_tags_to_resource(self, request: Request) -> Response: ...

    @abstractmethod
    def remove_tags_from_resource(self, request: Request) -> Response: ...

    @abstractmethod
    def describe_db_parameter_groups(self, request: Request) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def describe_db_engine_versions(self, request: Request) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def describe_security_groups(self, request: Request) -> List[Dict[str, Any]]: ...


def translate_error(error: Exception, operation: str) -> ProviderFault:
    """Turn a botocore exception into a flat provider fault."""
    if isinstance(error, ClientError):
        details = error.response.get("Error", {})
        return ProviderFault(
            details.get("Code", "Unknown"),
            details.get("Message") or str(error),
            operation,
        )
    return ProviderFault(TRANSPORT_FAULT, str(error), operation)


class RdsGateway(Gateway):
    """Gateway backed by boto3 RDS and EC2 clients."""

    def __init__(self, region: Optional[str] = None, session: Optional[boto3.Session] = None,
                 rds_client: Any = None, ec2_client: Any = None):
        if rds_client is None or ec2_client is None:
            session = session or boto3.Session(region_name=region)
        self.rds = rds_client or session.client("rds")
        self.ec2 = ec2_client or session.client("ec2")

    def _call(self, client: Any, operation: str, request: Request) -> Response:
        logger.debug(f"Calling {operation} for {request.get('DBInstanceIdentifier', '-')}")
        try:
            return getattr(client, operation)(**request)
        except (ClientError, BotoCoreError) as e:
            raise translate_error(e, operation) from e

    def describe_db_instance(self, identifier: str) -> Dict[str, Any]:
        response = self._call(self.rds, "describe_db_instances", {"DBInstanceIdentifier": identifier})
        instances = response.get("DBInstances", [])
        if not instances:
            raise ProviderFault(NOT_FOUND_FAULT, f"DBInstance {identifier} not found.", "describe_db_instances")
        return instances[0]

    def create_db_instance(self, request: Request) -> Response:
        return self._call(self.rds, "create_db_instance", request)

    def restore_db_instance_from_db_snapshot(self, request: Request) -> Response:
        return self._call(self.rds, "restore_db_instance_from_db_snapshot", request)

    def create_db_instance_read_replica(self, request: Request) -> Response:
        return self._call(self.rds, "create_db_instance_read_replica", request)

    def modify_db_instance(self, request: Request) -> Response:
        return self._call(self.rds, "modify_db_instance", request)

    def reboot_db_instance(self, request: Request) -> Response:
        return self._call(self.rds, "reboot_db_instance", request)

    def delete_db_instance(self, request: Request) -> Response:
        return self._call(self.rds, "delete_db_instance", request)

    def add_role_to_db_instance(self, request: Request) -> Response:
        return self._call(self.rds, "add_role_to_db_instance", request)

    def remove_role_from_db_instance(self, request: Request) -> Response:
        return self._call(self.rds, "remove_role_from_db_instance", request)

    def add_tags_to_resource(self, request: Request) -> Response:
        return self._call(self.rds, "add_tags_to_resource", request)

    def remove_tags_from_resource(self, request: Request) -> Response:
        return self._call(self.rds, "remove_tags_from_resource", request)

    def describe_db_parameter_groups(self, request: Request) -> List[Dict[str, Any]]:
        return self._call(self.rds, "describe_db_parameter_groups", request).get("DBParameterGroups", [])

    def describe_db_engine_versions(self, request: Request) -> List[Dict[str, Any]]:
        return self._call(self.rds, "describe_db_engine_versions", request).get("DBEngineVersions", [])

    def describe_security_groups(self, request: Request) -> List[Dict[str, Any]]:
        return self._call(self.ec2, "describe_security_groups", request).get("SecurityGroups", [])
