"""
Tagging utilities: merging tag sources and parsing user input.
"""

from typing import Dict, Iterable, List, Optional


def merge_tags(*tag_sets: Optional[Dict[str, str]]) -> Dict[str, str]:
    """
    Merge tag dictionaries; later sets win on duplicate keys.

    Args:
        tag_sets: Tag dictionaries, None entries are skipped

    Returns:
        Merged dictionary of tags
    """
    merged: Dict[str, str] = {}
    for tags in tag_sets:
        if tags:
            merged.update(tags)
    return merged


def parse_user_tags(tag_strings: Iterable[str]) -> Dict[str, str]:
    """
    Parse user-provided tag strings in format "key=value".

    Args:
        tag_strings: Tag strings in "key=value" format

    Returns:
        Dictionary of parsed tags

    Raises:
        ValueError: If tag string format is invalid
    """
    tags = {}

    for tag_str in tag_strings:
        if "=" not in tag_str:
            raise ValueError(f"Invalid tag format: {tag_str}. Expected 'key=value'")

        key, value = tag_str.split("=", 1)
        if not key.strip():
            raise ValueError(f"Invalid tag format: {tag_str}. Key must not be empty")

        tags[key.strip()] = value.strip()

    return tags


def to_tag_list(tags: Dict[str, str]) -> List[Dict[str, str]]:
    """Convert a tag dictionary to the provider's Key/Value list."""
    return [{"Key": k, "Value": v} for k, v in tags.items()]


def from_tag_list(tag_list: Optional[List[Dict[str, str]]]) -> Dict[str, str]:
    """Convert the provider's Key/Value list to a dictionary."""
    return {tag["Key"]: tag["Value"] for tag in tag_list or []}
