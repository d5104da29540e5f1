from __future__ import annotations

import re
from typing import Any, Dict

TOKENISH = re.compile(r"(?i)(secret|token|password|apikey|api_key)")


def redact_dict(d: Dict[str, Any]) -> Dict[str, Any]:
    """Mask values whose key looks like a secret, recursing into nested dicts."""
    redacted: Dict[str, Any] = {}
    for k, v in d.items():
        if TOKENISH.search(k) and v is not None:
            redacted[k] = "[REDACTED]"
        elif isinstance(v, dict):
            redacted[k] = redact_dict(v)
        else:
            redacted[k] = v
    return redacted
