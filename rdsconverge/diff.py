"""
Add/remove set calculation for collection-valued attributes.

Callers must apply every removal before any addition.
"""

from dataclasses import dataclass, field
from typing import Dict, Generic, Iterable, Optional, Set, Tuple, TypeVar

T = TypeVar("T")


@dataclass
class Diff(Generic[T]):
    """Items to add and remove to turn a previous collection into a desired one."""
    to_add: Set[T] = field(default_factory=set)
    to_remove: Set[T] = field(default_factory=set)

    @property
    def empty(self) -> bool:
        return not self.to_add and not self.to_remove


def diff(previous: Optional[Iterable[T]], desired: Optional[Iterable[T]]) -> Diff[T]:
    """
    Compute the symmetric difference between two collections.

    Args:
        previous: Previously declared items; None means empty
        desired: Desired items; None means empty

    Returns:
        Diff with to_add = desired - previous and to_remove = previous - desired
    """
    previous_set = set(previous or ())
    desired_set = set(desired or ())
    return Diff(to_add=desired_set - previous_set, to_remove=previous_set - desired_set)


def diff_tags(
    previous: Optional[Dict[str, str]], desired: Optional[Dict[str, str]]
) -> Tuple[Dict[str, str], Dict[str, str]]:
    """
    Compute tag changes against the previous declared tag set.

    A key whose value changed is only re-added; adding overwrites the value,
    so removing it first is not needed.

    Returns:
        Tuple of (tags_to_add, tags_to_remove)
    """
    previous = previous or {}
    desired = desired or {}
    to_remove = {k: v for k, v in previous.items() if k not in desired}
    to_add = {k: v for k, v in desired.items() if k not in previous or previous[k] != v}
    return to_add, to_remove
