"""
Deterministic identifier generation for instances and final snapshots.
"""

import hashlib
import random
import string
from typing import Optional

STACK_NAME = "rds"
RESOURCE_IDENTIFIER = "dbinstance"
SNAPSHOT_PREFIX = "Snapshot-"

RESOURCE_ID_MAX_LENGTH = 63
SNAPSHOT_MAX_LENGTH = 255
SUFFIX_LENGTH = 12


def _stack_name(stack_id: Optional[str]) -> str:
    """Extract the stack name from a stack ARN, or use the value as-is."""
    if not stack_id:
        return STACK_NAME
    # arn:aws:cloudformation:region:account:stack/<name>/<guid>
    if stack_id.startswith("arn:") and "/" in stack_id:
        parts = stack_id.split("/")
        if len(parts) >= 2 and parts[1]:
            return parts[1]
    return stack_id


def _seed(token: Optional[str]) -> int:
    digest = hashlib.sha256((token or "").encode("utf-8")).hexdigest()
    return int(digest[:16], 16)


def generate_resource_identifier(
    stack_id: Optional[str],
    logical_id: str,
    request_token: Optional[str],
    max_length: int,
) -> str:
    """
    Generate an identifier in format: <stack>-<logical id>-XXXXXXXXXXXX

    The random suffix is seeded from the request token, so re-invocations of
    the same request always produce the same identifier.

    Args:
        stack_id: Stack ARN or name
        logical_id: Logical resource identifier
        request_token: Client request token
        max_length: Maximum identifier length

    Returns:
        str: Identifier no longer than max_length
    """
    rng = random.Random(_seed(request_token))
    suffix = ''.join(rng.choices(string.ascii_lowercase + string.digits, k=SUFFIX_LENGTH))

    prefix = f"{_stack_name(stack_id)}-{logical_id}"
    prefix = prefix[:max(max_length - SUFFIX_LENGTH - 1, 0)]
    return f"{prefix}-{suffix}"[:max_length]


def db_instance_identifier(stack_id: Optional[str], logical_id: Optional[str],
                           request_token: Optional[str]) -> str:
    """Instance identifiers are lowercase and at most 63 characters."""
    return generate_resource_identifier(
        stack_id, logical_id or RESOURCE_IDENTIFIER, request_token, RESOURCE_ID_MAX_LENGTH
    ).lower()


def final_snapshot_identifier(stack_id: Optional[str], logical_id: Optional[str],
                              request_token: Optional[str]) -> str:
    return generate_resource_identifier(
        stack_id,
        SNAPSHOT_PREFIX + (logical_id or RESOURCE_IDENTIFIER),
        request_token,
        SNAPSHOT_MAX_LENGTH,
    )


def is_valid_db_instance_identifier(identifier: str) -> bool:
    """
    Validate an instance identifier.

    Args:
        identifier: Identifier to validate

    Returns:
        bool: True if it starts with a letter, has no double or trailing hyphen
        and fits in 63 characters
    """
    if not identifier or len(identifier) > RESOURCE_ID_MAX_LENGTH:
        return False
    if not identifier[0].isalpha():
        return False
    if "--" in identifier or identifier.endswith("-"):
        return False
    return all(c.isalnum() or c == "-" for c in identifier)
