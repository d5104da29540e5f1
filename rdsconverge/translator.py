"""
Translation between the resource model and RDS / EC2 API shapes.

Request builders return keyword arguments for the boto3 client methods of the
same name. Unset model attributes are left out of every request.
"""

from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .models import WRITE_ONLY, DBInstanceRole, ResourceModel
from .tags import from_tag_list, to_tag_list

PENDING_REBOOT_STATUS = "pending-reboot"
AVAILABLE_STATUS = "available"


class CreateStrategy(Enum):
    """How a new instance comes into existence."""
    PLAIN = "create"
    RESTORE = "restore-from-snapshot"
    READ_REPLICA = "create-read-replica"


def create_strategy(model: ResourceModel) -> CreateStrategy:
    """Pick the create call from which identifying fields are populated."""
    if model.db_snapshot_identifier:
        return CreateStrategy.RESTORE
    if model.source_db_instance_identifier:
        return CreateStrategy.READ_REPLICA
    return CreateStrategy.PLAIN


# (model attribute, request key) pairs understood by ModifyDBInstance.
MODIFIABLE: List[Tuple[str, str]] = [
    ("db_instance_class", "DBInstanceClass"),
    ("engine_version", "EngineVersion"),
    ("allocated_storage", "AllocatedStorage"),
    ("max_allocated_storage", "MaxAllocatedStorage"),
    ("iops", "Iops"),
    ("storage_type", "StorageType"),
    ("master_user_password", "MasterUserPassword"),
    ("db_parameter_group_name", "DBParameterGroupName"),
    ("db_subnet_group_name", "DBSubnetGroupName"),
    ("ca_certificate_identifier", "CACertificateIdentifier"),
    ("backup_retention_period", "BackupRetentionPeriod"),
    ("preferred_backup_window", "PreferredBackupWindow"),
    ("preferred_maintenance_window", "PreferredMaintenanceWindow"),
    ("multi_az", "MultiAZ"),
    ("publicly_accessible", "PubliclyAccessible"),
    ("port", "DBPortNumber"),
    ("deletion_protection", "DeletionProtection"),
    ("vpc_security_groups", "VpcSecurityGroupIds"),
    ("db_security_groups", "DBSecurityGroups"),
]

# Attributes each create call cannot carry; they are applied by a modify
# right after the instance becomes available.
UPDATE_AFTER_CREATE: Dict[CreateStrategy, List[str]] = {
    CreateStrategy.PLAIN: ["ca_certificate_identifier"],
    CreateStrategy.RESTORE: [
        "allocated_storage",
        "backup_retention_period",
        "ca_certificate_identifier",
        "db_security_groups",
        "engine_version",
        "master_user_password",
        "max_allocated_storage",
        "preferred_backup_window",
        "preferred_maintenance_window",
    ],
    CreateStrategy.READ_REPLICA: [
        "allocated_storage",
        "backup_retention_period",
        "ca_certificate_identifier",
        "db_parameter_group_name",
        "db_security_groups",
        "engine_version",
        "iops",
        "master_user_password",
        "max_allocated_storage",
        "preferred_backup_window",
        "preferred_maintenance_window",
    ],
}

_REQUEST_KEYS = dict(MODIFIABLE)


def _put(request: Dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        request[key] = list(value) if isinstance(value, (list, tuple, set)) else value


def _base(model: ResourceModel) -> Dict[str, Any]:
    return {"DBInstanceIdentifier": model.db_instance_identifier}


def create_db_instance_request(model: ResourceModel, tags: Dict[str, str]) -> Dict[str, Any]:
    request = _base(model)
    _put(request, "DBInstanceClass", model.db_instance_class)
    _put(request, "Engine", model.engine)
    _put(request, "EngineVersion", model.engine_version)
    _put(request, "AllocatedStorage", model.allocated_storage)
    _put(request, "MaxAllocatedStorage", model.max_allocated_storage)
    _put(request, "Iops", model.iops)
    _put(request, "StorageType", model.storage_type)
    _put(request, "MasterUsername", model.master_username)
    _put(request, "MasterUserPassword", model.master_user_password)
    _put(request, "DBName", model.db_name)
    _put(request, "DBParameterGroupName", model.db_parameter_group_name)
    _put(request, "DBSubnetGroupName", model.db_subnet_group_name)
    _put(request, "DBClusterIdentifier", model.db_cluster_identifier)
    _put(request, "BackupRetentionPeriod", model.backup_retention_period)
    _put(request, "PreferredBackupWindow", model.preferred_backup_window)
    _put(request, "PreferredMaintenanceWindow", model.preferred_maintenance_window)
    _put(request, "MultiAZ", model.multi_az)
    _put(request, "PubliclyAccessible", model.publicly_accessible)
    _put(request, "AvailabilityZone", model.availability_zone)
    _put(request, "Port", model.port)
    _put(request, "DeletionProtection", model.deletion_protection)
    _put(request, "VpcSecurityGroupIds", model.vpc_security_groups)
    _put(request, "DBSecurityGroups", model.db_security_groups)
    if tags:
        request["Tags"] = to_tag_list(tags)
    return request


def restore_db_instance_request(model: ResourceModel, tags: Dict[str, str]) -> Dict[str, Any]:
    request = _base(model)
    request["DBSnapshotIdentifier"] = model.db_snapshot_identifier
    _put(request, "DBInstanceClass", model.db_instance_class)
    _put(request, "Engine", model.engine)
    _put(request, "Iops", model.iops)
    _put(request, "StorageType", model.storage_type)
    _put(request, "DBName", model.db_name)
    _put(request, "DBParameterGroupName", model.db_parameter_group_name)
    _put(request, "DBSubnetGroupName", model.db_subnet_group_name)
    _put(request, "MultiAZ", model.multi_az)
    _put(request, "PubliclyAccessible", model.publicly_accessible)
    _put(request, "AvailabilityZone", model.availability_zone)
    _put(request, "Port", model.port)
    _put(request, "DeletionProtection", model.deletion_protection)
    _put(request, "VpcSecurityGroupIds", model.vpc_security_groups)
    if tags:
        request["Tags"] = to_tag_list(tags)
    return request


def read_replica_request(model: ResourceModel, tags: Dict[str, str]) -> Dict[str, Any]:
    request = _base(model)
    request["SourceDBInstanceIdentifier"] = model.source_db_instance_identifier
    _put(request, "DBInstanceClass", model.db_instance_class)
    _put(request, "StorageType", model.storage_type)
    _put(request, "DBSubnetGroupName", model.db_subnet_group_name)
    _put(request, "MultiAZ", model.multi_az)
    _put(request, "PubliclyAccessible", model.publicly_accessible)
    _put(request, "AvailabilityZone", model.availability_zone)
    _put(request, "Port", model.port)
    _put(request, "DeletionProtection", model.deletion_protection)
    _put(request, "VpcSecurityGroupIds", model.vpc_security_groups)
    if tags:
        request["Tags"] = to_tag_list(tags)
    return request


CREATE_REQUESTS: Dict[CreateStrategy, Callable[[ResourceModel, Dict[str, str]], Dict[str, Any]]] = {
    CreateStrategy.PLAIN: create_db_instance_request,
    CreateStrategy.RESTORE: restore_db_instance_request,
    CreateStrategy.READ_REPLICA: read_replica_request,
}


def should_update_after_create(model: ResourceModel) -> bool:
    strategy = create_strategy(model)
    return any(getattr(model, attr) is not None for attr in UPDATE_AFTER_CREATE[strategy])


def should_reboot_after_create(model: ResourceModel) -> bool:
    """A parameter group applied by the post-create modify needs a reboot."""
    strategy = create_strategy(model)
    return (
        "db_parameter_group_name" in UPDATE_AFTER_CREATE[strategy]
        and bool(model.db_parameter_group_name)
    )


def modify_after_create_request(model: ResourceModel) -> Dict[str, Any]:
    request = _base(model)
    request["ApplyImmediately"] = True
    for attr in UPDATE_AFTER_CREATE[create_strategy(model)]:
        _put(request, _REQUEST_KEYS[attr], getattr(model, attr))
    if "EngineVersion" in request and model.allow_major_version_upgrade is not None:
        request["AllowMajorVersionUpgrade"] = model.allow_major_version_upgrade
    return request


def _changed(previous: Any, desired: Any) -> bool:
    if desired is None:
        return False
    if isinstance(desired, list):
        return set(desired) != set(previous or [])
    return previous != desired


def modify_db_instance_request(
    previous: ResourceModel, desired: ResourceModel, rollback: bool = False
) -> Dict[str, Any]:
    """
    Build a modify request carrying only the attributes that changed.

    On rollback an engine version is never sent (downgrades are rejected) and
    allocated storage is only sent when it grows.
    """
    request = _base(desired)
    request["ApplyImmediately"] = True
    for attr, key in MODIFIABLE:
        old, new = getattr(previous, attr), getattr(desired, attr)
        if not _changed(old, new):
            continue
        if rollback and attr == "engine_version":
            continue
        if rollback and attr == "allocated_storage" and old is not None and int(new) < int(old):
            continue
        _put(request, key, new)
    if "EngineVersion" in request and desired.allow_major_version_upgrade is not None:
        request["AllowMajorVersionUpgrade"] = desired.allow_major_version_upgrade
    return request


def has_modifications(request: Dict[str, Any]) -> bool:
    return any(k not in ("DBInstanceIdentifier", "ApplyImmediately") for k in request)


def reboot_db_instance_request(model: ResourceModel) -> Dict[str, Any]:
    return _base(model)


def delete_db_instance_request(model: ResourceModel, final_snapshot_identifier: Optional[str]) -> Dict[str, Any]:
    request = _base(model)
    if final_snapshot_identifier:
        request["SkipFinalSnapshot"] = False
        request["FinalDBSnapshotIdentifier"] = final_snapshot_identifier
    else:
        request["SkipFinalSnapshot"] = True
    return request


def role_request(model: ResourceModel, role: DBInstanceRole) -> Dict[str, Any]:
    request = _base(model)
    request["RoleArn"] = role.role_arn
    _put(request, "FeatureName", role.feature_name)
    return request


def add_tags_request(arn: str, tags: Dict[str, str]) -> Dict[str, Any]:
    return {"ResourceName": arn, "Tags": to_tag_list(tags)}


def remove_tags_request(arn: str, tags: Dict[str, str]) -> Dict[str, Any]:
    return {"ResourceName": arn, "TagKeys": list(tags.keys())}


def describe_db_parameter_groups_request(name: str) -> Dict[str, Any]:
    return {"DBParameterGroupName": name}


def describe_db_engine_versions_request(family: str, engine: Optional[str]) -> Dict[str, Any]:
    request: Dict[str, Any] = {"DBParameterGroupFamily": family, "DefaultOnly": True}
    _put(request, "Engine", engine)
    return request


def describe_security_groups_request(vpc_id: str, group_name: str) -> Dict[str, Any]:
    return {
        "Filters": [
            {"Name": "vpc-id", "Values": [vpc_id]},
            {"Name": "group-name", "Values": [group_name]},
        ]
    }


# Live snapshot helpers. `instance` is one entry of DescribeDBInstances' DBInstances.

def live_roles(instance: Dict[str, Any]) -> List[DBInstanceRole]:
    return [
        DBInstanceRole(role_arn=r["RoleArn"], feature_name=r.get("FeatureName"))
        for r in instance.get("AssociatedRoles") or []
    ]


def parameter_apply_status(instance: Dict[str, Any]) -> Optional[str]:
    groups = instance.get("DBParameterGroups") or []
    return groups[0].get("ParameterApplyStatus") if groups else None


def vpc_id(instance: Dict[str, Any]) -> Optional[str]:
    return (instance.get("DBSubnetGroup") or {}).get("VpcId")


def translate_db_instance(instance: Dict[str, Any], declared: Optional[ResourceModel] = None) -> ResourceModel:
    """
    Translate a live snapshot into the resource model.

    Write-only attributes, and tags when the snapshot carries none, are
    copied from the declared model.
    """
    endpoint = instance.get("Endpoint") or {}
    parameter_groups = instance.get("DBParameterGroups") or []
    subnet_group = instance.get("DBSubnetGroup") or {}

    model = ResourceModel(
        db_instance_identifier=instance.get("DBInstanceIdentifier"),
        db_instance_class=instance.get("DBInstanceClass"),
        engine=instance.get("Engine"),
        engine_version=instance.get("EngineVersion"),
        allocated_storage=instance.get("AllocatedStorage"),
        max_allocated_storage=instance.get("MaxAllocatedStorage"),
        iops=instance.get("Iops"),
        storage_type=instance.get("StorageType"),
        master_username=instance.get("MasterUsername"),
        db_name=instance.get("DBName"),
        db_parameter_group_name=parameter_groups[0].get("DBParameterGroupName") if parameter_groups else None,
        db_subnet_group_name=subnet_group.get("DBSubnetGroupName"),
        db_cluster_identifier=instance.get("DBClusterIdentifier"),
        ca_certificate_identifier=instance.get("CACertificateIdentifier"),
        backup_retention_period=instance.get("BackupRetentionPeriod"),
        preferred_backup_window=instance.get("PreferredBackupWindow"),
        preferred_maintenance_window=instance.get("PreferredMaintenanceWindow"),
        multi_az=instance.get("MultiAZ"),
        publicly_accessible=instance.get("PubliclyAccessible"),
        availability_zone=instance.get("AvailabilityZone"),
        port=endpoint.get("Port") or instance.get("DbInstancePort") or None,
        deletion_protection=instance.get("DeletionProtection"),
        vpc_security_groups=[g["VpcSecurityGroupId"] for g in instance.get("VpcSecurityGroups") or []] or None,
        db_security_groups=[g["DBSecurityGroupName"] for g in instance.get("DBSecurityGroups") or []] or None,
        tags=from_tag_list(instance["TagList"]) if "TagList" in instance else None,
        associated_roles=live_roles(instance) or None,
        db_instance_arn=instance.get("DBInstanceArn"),
        endpoint_address=endpoint.get("Address"),
        endpoint_port=endpoint.get("Port"),
    )

    if declared is not None:
        for attr in WRITE_ONLY:
            setattr(model, attr, getattr(declared, attr))
        if model.tags is None:
            model.tags = declared.tags
    return model
