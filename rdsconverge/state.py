"""
On-disk persistence for continuation state and declared models.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .context import ContinuationState
from .ids import is_valid_db_instance_identifier
from .models import ResourceModel

PathLike = Union[str, Path]


def get_rdsconverge_home() -> Path:
    """
    Get the directory holding per-instance state files.

    Returns:
        Path: `$RDSCONVERGE_HOME`, or `.rdsconverge` in the working directory
    """
    home = os.environ.get("RDSCONVERGE_HOME", ".rdsconverge")
    return Path(home).resolve()


def default_state_path(db_instance_identifier: str, kind: str) -> Path:
    """
    Get the state file of one workflow on one instance.

    Raises:
        ValueError: If the instance identifier is invalid
    """
    if not is_valid_db_instance_identifier(db_instance_identifier):
        raise ValueError(f"Invalid DB instance identifier: {db_instance_identifier}")
    return get_rdsconverge_home() / db_instance_identifier / f"{kind}.json"


def load_state(path: PathLike) -> ContinuationState:
    """
    Read continuation state written by `save_state`.

    A missing file means the workflow has not started yet.
    """
    path = Path(path)
    if not path.exists():
        return ContinuationState()
    with open(path, "r") as f:
        return ContinuationState.from_dict(json.load(f))


def save_state(path: PathLike, state: ContinuationState) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(state.to_dict(), f, indent=2)


def clear_state(path: PathLike) -> None:
    """Forget the state of a workflow that reached a terminal status."""
    path = Path(path)
    if path.exists():
        path.unlink()


def load_document(path: PathLike) -> Dict[str, Any]:
    """Read a JSON or YAML document into a dict."""
    path = Path(path)
    with open(path, "r") as f:
        if path.suffix == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping, got {type(data).__name__}")
    return data


def load_model(path: Optional[PathLike]) -> Optional[ResourceModel]:
    """
    Load a declared resource model.

    The document is either the property mapping itself or a CloudFormation
    style resource with the mapping under `Properties`.
    """
    if path is None:
        return None
    data = load_document(path)
    if "Properties" in data:
        data = data["Properties"] or {}
    return ResourceModel.from_dict(data)
