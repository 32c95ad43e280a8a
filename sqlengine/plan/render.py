"""Render a ProvisioningPlan as plain data (for `sqlengine plan` and debugging)."""

from dataclasses import asdict
from enum import Enum
from typing import Any

from sqlengine.plan.models import ProvisioningPlan

REDACTED = "<redacted>"


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def _redact(entry: dict[str, Any], key: str) -> None:
    if entry.get(key) is not None:
        entry[key] = REDACTED


def plan_to_dict(plan: ProvisioningPlan) -> dict[str, Any]:
    """Return the plan as nested dicts/lists with the root and user passwords redacted."""
    data = _plain(asdict(plan))
    _redact(data["instance"], "root_password")
    for user in data["users"].values():
        _redact(user, "password")
    data["instance"]["network_mode"] = plan.instance.network.kind
    for key, replica in plan.replicas.items():
        data["replicas"][key]["network_mode"] = replica.network.kind
    return data
