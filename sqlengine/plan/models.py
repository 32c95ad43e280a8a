"""Resolved plan types produced by the normalizer and consumed by the Pulumi program."""

from dataclasses import dataclass, field
from enum import Enum


class EngineFamily(str, Enum):
    """Coarse engine category inferred from a Cloud SQL database_version."""

    MYSQL = "MYSQL"
    POSTGRES = "POSTGRES"
    SQLSERVER = "SQLSERVER"
    UNKNOWN = "UNKNOWN"


class PasswordPolicy(str, Enum):
    """How a password-bearing resource gets its password."""

    USE_PROVIDED = "useProvided"
    USE_GENERATED = "useGenerated"
    NONE = "none"


BUILT_IN = "BUILT_IN"
IAM_USER_TYPES = ("CLOUD_IAM_USER", "CLOUD_IAM_SERVICE_ACCOUNT")
USER_TYPES = (BUILT_IN, *IAM_USER_TYPES)


@dataclass(frozen=True)
class Flag:
    name: str
    value: str


@dataclass(frozen=True)
class AuthorizedNetwork:
    value: str
    name: str | None = None
    expiration_time: str | None = None


@dataclass(frozen=True)
class NetworkMode:
    """Resolved IP configuration; at least one of public IP or private network is set."""

    ipv4_enabled: bool
    private_network: str | None = None
    authorized_networks: tuple[AuthorizedNetwork, ...] = ()
    ssl_mode: str | None = None

    @property
    def kind(self) -> str:
        """'public', 'private' or 'public+private'."""
        if self.ipv4_enabled and self.private_network:
            return "public+private"
        if self.ipv4_enabled:
            return "public"
        return "private"


@dataclass(frozen=True)
class BackupPolicy:
    """Resolved backup settings. When disabled, every dependent field is unset."""

    enabled: bool
    start_time: str | None = None
    location: str | None = None
    point_in_time_recovery_enabled: bool = False
    retained_backups: int | None = None
    transaction_log_retention_days: int | None = None


@dataclass(frozen=True)
class MaintenanceWindow:
    day: int
    hour: int
    update_track: str | None = None


@dataclass(frozen=True)
class ResolvedInstance:
    project: str
    name: str
    region: str
    database_version: str
    family: EngineFamily
    tier: str
    disk_size: int
    disk_type: str
    disk_autoresize: bool
    disk_autoresize_limit: int
    availability_type: str
    network: NetworkMode
    backup: BackupPolicy
    zone: str | None = None
    encryption_key_name: str | None = None
    user_labels: dict[str, str] = field(default_factory=dict)
    deletion_protection: bool = True
    maintenance_window: MaintenanceWindow | None = None
    root_password_policy: PasswordPolicy = PasswordPolicy.NONE
    root_password: str | None = None


@dataclass(frozen=True)
class ResolvedDatabase:
    name: str
    charset: str | None = None
    collation: str | None = None


@dataclass(frozen=True)
class ResolvedUser:
    name: str
    type: str
    password_policy: PasswordPolicy
    password: str | None = None
    host: str | None = None


@dataclass(frozen=True)
class ResolvedReplica:
    key: str
    name: str
    tier: str
    disk_size: int
    disk_type: str
    disk_autoresize: bool
    disk_autoresize_limit: int
    network: NetworkMode
    zone: str | None = None
    encryption_key_name: str | None = None
    user_labels: dict[str, str] = field(default_factory=dict)
    database_flags: tuple[Flag, ...] = ()


@dataclass(frozen=True)
class ProvisioningPlan:
    """Fully resolved, conflict-free set of resources for one Cloud SQL instance."""

    instance: ResolvedInstance
    databases: dict[str, ResolvedDatabase]
    users: dict[str, ResolvedUser]
    replicas: dict[str, ResolvedReplica]
    database_flags: tuple[Flag, ...]
    notices: tuple[str, ...] = ()
    password_length: int = 32

    @property
    def generated_password_users(self) -> list[str]:
        """Names of users whose password must come from the secret generator."""
        return [
            name
            for name, user in self.users.items()
            if user.password_policy is PasswordPolicy.USE_GENERATED
        ]
