"""Deployment-posture defaults for the normalizer.

One normalizer serves every posture; the presets below differ only in the
defaults they supply for omitted fields and in how strictly they treat
fields an engine family does not support.
"""

from dataclasses import dataclass, fields, replace
from typing import Any, get_args

REPLICA_TIER_REQUIRED = "required"
REPLICA_TIER_INHERIT = "inherit"

UNSUPPORTED_DROP = "drop"
UNSUPPORTED_REJECT = "reject"


@dataclass(frozen=True)
class PolicyDefaults:
    tier: str = "db-f1-micro"
    disk_size: int = 10
    disk_type: str = "PD_SSD"
    disk_autoresize: bool = True
    disk_autoresize_limit: int = 0
    availability_type: str = "ZONAL"
    ipv4_enabled: bool = True
    ssl_mode: str | None = None
    backup_enabled: bool = False
    backup_start_time: str | None = None
    point_in_time_recovery_enabled: bool = False
    retained_backups: int | None = None
    transaction_log_retention_days: int | None = None
    replica_name_suffix: str = "-"
    replica_tier: str = REPLICA_TIER_REQUIRED
    unsupported_fields: str = UNSUPPORTED_DROP
    deletion_protection: bool = True
    password_length: int = 32

    def __post_init__(self) -> None:
        if self.replica_tier not in (REPLICA_TIER_REQUIRED, REPLICA_TIER_INHERIT):
            raise ValueError(f"replica_tier must be 'required' or 'inherit', got {self.replica_tier!r}")
        if self.unsupported_fields not in (UNSUPPORTED_DROP, UNSUPPORTED_REJECT):
            raise ValueError(
                f"unsupported_fields must be 'drop' or 'reject', got {self.unsupported_fields!r}"
            )
        if self.password_length < 8:
            raise ValueError("password_length must be at least 8")

    @property
    def strict(self) -> bool:
        return self.unsupported_fields == UNSUPPORTED_REJECT


PRESETS: dict[str, PolicyDefaults] = {
    "public": PolicyDefaults(),
    "private": PolicyDefaults(ipv4_enabled=False),
    "hardened": PolicyDefaults(
        tier="db-custom-2-7680",
        disk_size=20,
        availability_type="REGIONAL",
        ipv4_enabled=False,
        ssl_mode="ENCRYPTED_ONLY",
        backup_enabled=True,
        backup_start_time="03:00",
        point_in_time_recovery_enabled=True,
        retained_backups=7,
        transaction_log_retention_days=7,
        unsupported_fields=UNSUPPORTED_REJECT,
    ),
}

DEFAULT_PRESET = "public"

# platform document keys (camelCase) -> PolicyDefaults field
_OVERRIDE_KEYS = {
    "tier": "tier",
    "diskSize": "disk_size",
    "diskType": "disk_type",
    "diskAutoresize": "disk_autoresize",
    "diskAutoresizeLimit": "disk_autoresize_limit",
    "availabilityType": "availability_type",
    "ipv4Enabled": "ipv4_enabled",
    "sslMode": "ssl_mode",
    "backupEnabled": "backup_enabled",
    "backupStartTime": "backup_start_time",
    "pointInTimeRecoveryEnabled": "point_in_time_recovery_enabled",
    "retainedBackups": "retained_backups",
    "transactionLogRetentionDays": "transaction_log_retention_days",
    "replicaNameSuffix": "replica_name_suffix",
    "replicaTier": "replica_tier",
    "unsupportedFields": "unsupported_fields",
    "deletionProtection": "deletion_protection",
    "passwordLength": "password_length",
}


_FIELD_TYPES = {f.name: f.type for f in fields(PolicyDefaults)}


def _check_override_type(key: str, attr: str, value: Any) -> None:
    hint = _FIELD_TYPES[attr]
    allowed = get_args(hint) or (hint,)
    # bool is an int subclass; only boolean fields accept it
    if (isinstance(value, bool) and bool not in allowed) or not isinstance(value, allowed):
        names = " or ".join("null" if t is type(None) else t.__name__ for t in allowed)
        raise ValueError(f"Policy override {key!r} must be {names}, got {value!r}")


def resolve_policy(name: str | None = None, overrides: dict[str, Any] | None = None) -> PolicyDefaults:
    """Return the named preset with document overrides applied.

    Raises:
        ValueError: unknown preset name, override key, or wrongly typed override value.
    """
    preset_name = name or DEFAULT_PRESET
    if preset_name not in PRESETS:
        known = ", ".join(sorted(PRESETS))
        raise ValueError(f"Unknown policy preset: {preset_name!r}. Known presets: {known}")
    policy = PRESETS[preset_name]
    if not overrides:
        return policy

    changes: dict[str, Any] = {}
    for key, value in overrides.items():
        attr = _OVERRIDE_KEYS.get(key, key)
        if attr not in _FIELD_TYPES:
            raise ValueError(f"Unknown policy override: {key!r}")
        _check_override_type(key, attr, value)
        changes[attr] = value
    return replace(policy, **changes)
