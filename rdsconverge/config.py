"""
Handler configuration: backoff, probing and invocation budget.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


ENV_PREFIX = "RDSCONVERGE_"


@dataclass
class Backoff:
    """Delay policy for stabilization polling."""
    delay: float = 30.0           # base delay between checks, seconds
    timeout: float = 3 * 60 * 60  # maximum total wait for one stabilization
    multiplier: float = 1.0       # 1.0 gives a constant delay
    max_delay: Optional[float] = None

    def delay_for(self, attempt: int) -> float:
        """Delay before the check following `attempt` failed checks."""
        delay = self.delay * (self.multiplier ** attempt)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay


@dataclass
class HandlerConfig:
    """Configuration shared by all workflows."""
    probing_enabled: bool = True
    probe_count: int = 3
    backoff: Backoff = field(default_factory=Backoff)
    invocation_budget: Optional[float] = None  # seconds per invocation; None blocks until stable
    callback_delay: float = 30.0
    region: Optional[str] = None


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def _optional_float(value: Any) -> Optional[float]:
    if value is None or str(value).strip().lower() in ("", "none"):
        return None
    return float(value)


def config_from_dict(data: Dict[str, Any]) -> HandlerConfig:
    """Build a HandlerConfig from a parsed mapping (YAML file contents)."""
    backoff_data = data.get("backoff") or {}
    backoff = Backoff(
        delay=float(backoff_data.get("delay", Backoff.delay)),
        timeout=float(backoff_data.get("timeout", Backoff.timeout)),
        multiplier=float(backoff_data.get("multiplier", Backoff.multiplier)),
        max_delay=_optional_float(backoff_data.get("max_delay")),
    )
    return HandlerConfig(
        probing_enabled=_as_bool(data.get("probing_enabled", True)),
        probe_count=int(data.get("probe_count", 3)),
        backoff=backoff,
        invocation_budget=_optional_float(data.get("invocation_budget")),
        callback_delay=float(data.get("callback_delay", 30.0)),
        region=data.get("region"),
    )


def _env_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    backoff: Dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        name = key[len(ENV_PREFIX):].lower()
        if name.startswith("backoff_"):
            backoff[name[len("backoff_"):]] = value
        else:
            overrides[name] = value
    if backoff:
        overrides["backoff"] = backoff
    return overrides


def load_config(path: Optional[str] = None) -> HandlerConfig:
    """
    Load configuration from a YAML file and the environment.

    Environment variables prefixed with RDSCONVERGE_ override file values,
    e.g. RDSCONVERGE_PROBING_ENABLED=false or RDSCONVERGE_BACKOFF_DELAY=5.

    Args:
        path: Optional YAML file; defaults to $RDSCONVERGE_CONFIG if set

    Returns:
        HandlerConfig
    """
    path = path or os.environ.get(f"{ENV_PREFIX}CONFIG")
    data: Dict[str, Any] = {}
    if path:
        config_file = Path(path)
        if not config_file.exists():
            raise FileNotFoundError(f"Config file {path} not found")
        with open(config_file, "r") as f:
            data = yaml.safe_load(f) or {}

    overrides = _env_overrides()
    overrides.pop("config", None)
    backoff = {**(data.get("backoff") or {}), **overrides.pop("backoff", {})}
    data.update(overrides)
    data["backoff"] = backoff
    return config_from_dict(data)
