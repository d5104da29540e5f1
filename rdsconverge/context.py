"""
Continuation state carried between invocations of a workflow.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set


STEP_FLAGS = ("created", "updated", "updated_tags", "rebooted", "updated_roles", "deleted")


@dataclass
class ContinuationState:
    """
    Record of completed steps for one logical workflow.

    The caller persists it between invocations and hands it back unchanged;
    steps mutate it in place as they complete.
    """
    created: bool = False
    updated: bool = False
    updated_tags: bool = False
    rebooted: bool = False
    updated_roles: bool = False
    deleted: bool = False
    probes: Dict[str, int] = field(default_factory=dict)
    issued: Set[str] = field(default_factory=set)
    waited: Dict[str, float] = field(default_factory=dict)

    def get_probes(self, name: str) -> int:
        return self.probes.get(name, 0)

    def inc_probes(self, name: str) -> int:
        self.probes[name] = self.probes.get(name, 0) + 1
        return self.probes[name]

    def flush_probes(self, name: str) -> None:
        self.probes.pop(name, None)

    def was_issued(self, call: str) -> bool:
        """Check whether a side-effecting call already went out."""
        return call in self.issued

    def mark_issued(self, call: str) -> None:
        self.issued.add(call)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to plain JSON-compatible types."""
        data: Dict[str, Any] = {flag: getattr(self, flag) for flag in STEP_FLAGS}
        data["probes"] = dict(self.probes)
        data["issued"] = sorted(self.issued)
        data["waited"] = dict(self.waited)
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ContinuationState":
        """Rebuild a state from `to_dict` output; None gives a fresh state."""
        if not data:
            return cls()
        return cls(
            **{flag: bool(data.get(flag, False)) for flag in STEP_FLAGS},
            probes={k: int(v) for k, v in (data.get("probes") or {}).items()},
            issued=set(data.get("issued") or []),
            waited={k: float(v) for k, v in (data.get("waited") or {}).items()},
        )
