"""
Declarative resource model for an RDS DB instance.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class DBInstanceRole:
    """An IAM role associated with the instance for a feature."""
    role_arn: str
    feature_name: Optional[str] = None

    def matches(self, role_arn: str, feature_name: Optional[str]) -> bool:
        """Match a live association; a missing feature name on either side matches any."""
        if role_arn != self.role_arn:
            return False
        return self.feature_name is None or feature_name is None or feature_name == self.feature_name

    def to_dict(self) -> Dict[str, str]:
        data = {"RoleArn": self.role_arn}
        if self.feature_name is not None:
            data["FeatureName"] = self.feature_name
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DBInstanceRole":
        return cls(role_arn=data["RoleArn"], feature_name=data.get("FeatureName"))


# Model attribute -> property name in serialized models.
PROPERTY_NAMES: Dict[str, str] = {
    "db_instance_identifier": "DBInstanceIdentifier",
    "db_instance_class": "DBInstanceClass",
    "engine": "Engine",
    "engine_version": "EngineVersion",
    "allocated_storage": "AllocatedStorage",
    "max_allocated_storage": "MaxAllocatedStorage",
    "iops": "Iops",
    "storage_type": "StorageType",
    "master_username": "MasterUsername",
    "master_user_password": "MasterUserPassword",
    "db_name": "DBName",
    "db_parameter_group_name": "DBParameterGroupName",
    "db_subnet_group_name": "DBSubnetGroupName",
    "db_cluster_identifier": "DBClusterIdentifier",
    "ca_certificate_identifier": "CACertificateIdentifier",
    "backup_retention_period": "BackupRetentionPeriod",
    "preferred_backup_window": "PreferredBackupWindow",
    "preferred_maintenance_window": "PreferredMaintenanceWindow",
    "multi_az": "MultiAZ",
    "publicly_accessible": "PubliclyAccessible",
    "availability_zone": "AvailabilityZone",
    "port": "Port",
    "deletion_protection": "DeletionProtection",
    "allow_major_version_upgrade": "AllowMajorVersionUpgrade",
    "db_snapshot_identifier": "DBSnapshotIdentifier",
    "source_db_instance_identifier": "SourceDBInstanceIdentifier",
    "vpc_security_groups": "VPCSecurityGroups",
    "db_security_groups": "DBSecurityGroups",
    "db_instance_arn": "DBInstanceArn",
    "endpoint_address": "EndpointAddress",
    "endpoint_port": "EndpointPort",
}

# Attributes the provider never returns; carried over from the declared model.
WRITE_ONLY = (
    "master_user_password",
    "db_snapshot_identifier",
    "source_db_instance_identifier",
    "allow_major_version_upgrade",
)


@dataclass
class ResourceModel:
    """Desired or previous declaration of the DB instance."""
    db_instance_identifier: Optional[str] = None
    db_instance_class: Optional[str] = None
    engine: Optional[str] = None
    engine_version: Optional[str] = None
    allocated_storage: Optional[int] = None
    max_allocated_storage: Optional[int] = None
    iops: Optional[int] = None
    storage_type: Optional[str] = None
    master_username: Optional[str] = None
    master_user_password: Optional[str] = None
    db_name: Optional[str] = None
    db_parameter_group_name: Optional[str] = None
    db_subnet_group_name: Optional[str] = None
    db_cluster_identifier: Optional[str] = None
    ca_certificate_identifier: Optional[str] = None
    backup_retention_period: Optional[int] = None
    preferred_backup_window: Optional[str] = None
    preferred_maintenance_window: Optional[str] = None
    multi_az: Optional[bool] = None
    publicly_accessible: Optional[bool] = None
    availability_zone: Optional[str] = None
    port: Optional[int] = None
    deletion_protection: Optional[bool] = None
    allow_major_version_upgrade: Optional[bool] = None
    db_snapshot_identifier: Optional[str] = None
    source_db_instance_identifier: Optional[str] = None
    vpc_security_groups: Optional[List[str]] = None
    db_security_groups: Optional[List[str]] = None
    tags: Optional[Dict[str, str]] = None
    associated_roles: Optional[List[DBInstanceRole]] = None
    db_instance_arn: Optional[str] = None
    endpoint_address: Optional[str] = None
    endpoint_port: Optional[int] = None

    def copy(self, **changes: Any) -> "ResourceModel":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using property names, omitting unset attributes."""
        data: Dict[str, Any] = {}
        for attr, prop in PROPERTY_NAMES.items():
            value = getattr(self, attr)
            if value is not None:
                data[prop] = list(value) if isinstance(value, list) else value
        if self.tags is not None:
            data["Tags"] = [{"Key": k, "Value": v} for k, v in self.tags.items()]
        if self.associated_roles is not None:
            data["AssociatedRoles"] = [role.to_dict() for role in self.associated_roles]
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ResourceModel":
        """Parse a model from property names; unknown properties are rejected."""
        data = dict(data or {})
        kwargs: Dict[str, Any] = {}
        by_property = {prop: attr for attr, prop in PROPERTY_NAMES.items()}

        tags = data.pop("Tags", None)
        if tags is not None:
            if isinstance(tags, dict):
                kwargs["tags"] = {str(k): str(v) for k, v in tags.items()}
            else:
                kwargs["tags"] = {t["Key"]: t["Value"] for t in tags}

        roles = data.pop("AssociatedRoles", None)
        if roles is not None:
            kwargs["associated_roles"] = [DBInstanceRole.from_dict(r) for r in roles]

        for prop, value in data.items():
            if prop not in by_property:
                raise ValueError(f"Unknown DB instance property: {prop}")
            kwargs[by_property[prop]] = value
        return cls(**kwargs)


@dataclass
class RequestInfo:
    """Request-level details supplied by the caller alongside the models."""
    stack_id: Optional[str] = None
    logical_resource_id: Optional[str] = None
    client_request_token: Optional[str] = None
    snapshot_requested: Optional[bool] = None
    rollback: bool = False
    desired_resource_tags: Dict[str, str] = field(default_factory=dict)
    previous_resource_tags: Dict[str, str] = field(default_factory=dict)
