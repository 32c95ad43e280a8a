"""Configuration normalizer: raw instance config -> ProvisioningPlan.

Every derivation here is a pure function. Validation problems are raised as
PlanValidationError; assemble_plan collects them across all derivations and
raises once, so a plan is either complete and consistent or not returned.
"""

from collections.abc import Callable
import ipaddress
import re
from typing import TypeVar

from sqlengine.config import (
    BackupSpec,
    DatabaseSpec,
    InstanceSpec,
    ReplicaSpec,
    SqlInstanceConfig,
    UserSpec,
)
from sqlengine.plan.engine import (
    derive_iam_auth_flag,
    find_flag_conflicts,
    merge_flags,
    resolve_engine_family,
    supports_iam_authentication,
)
from sqlengine.plan.errors import ErrorCollector, ErrorKind, PlanValidationError
from sqlengine.plan.models import (
    IAM_USER_TYPES,
    USER_TYPES,
    AuthorizedNetwork,
    BackupPolicy,
    EngineFamily,
    Flag,
    MaintenanceWindow,
    NetworkMode,
    PasswordPolicy,
    ProvisioningPlan,
    ResolvedDatabase,
    ResolvedInstance,
    ResolvedReplica,
    ResolvedUser,
)
from sqlengine.plan.policy import REPLICA_TIER_INHERIT, PolicyDefaults

T = TypeVar("T")

AVAILABILITY_TYPES = ("ZONAL", "REGIONAL")
DISK_TYPES = ("PD_SSD", "PD_HDD")
SSL_MODES = (
    "ALLOW_UNENCRYPTED_AND_ENCRYPTED",
    "ENCRYPTED_ONLY",
    "TRUSTED_CLIENT_CERTIFICATE_REQUIRED",
)
MIN_DISK_SIZE_GB = 10
RETAINED_BACKUPS_RANGE = (1, 365)
TRANSACTION_LOG_RETENTION_RANGE = (1, 35)

_START_TIME = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def derive_network_mode(
    ipv4_enabled: bool | None,
    private_network: str | None,
    authorized_networks: list[AuthorizedNetwork] | tuple[AuthorizedNetwork, ...] | None = None,
    ssl_mode: str | None = None,
    path: str = "network",
) -> NetworkMode:
    """Resolve the IP configuration; at least one reachable path is required.

    Authorized networks only apply to the public IP and are kept only when it
    is enabled.
    """
    errors = ErrorCollector()
    public = bool(ipv4_enabled)
    if not public and not private_network:
        errors.add(
            path,
            ErrorKind.MISSING_NETWORK_PATH,
            "neither public IP (ipv4Enabled) nor a private network reference is set",
        )
    if ssl_mode is not None and ssl_mode not in SSL_MODES:
        errors.add(
            f"{path}.sslMode",
            ErrorKind.INVALID_FIELD_RANGE,
            f"must be one of {', '.join(SSL_MODES)}",
        )
    for i, network in enumerate(authorized_networks or ()):
        try:
            ipaddress.ip_network(network.value, strict=False)
        except ValueError:
            errors.add(
                f"{path}.authorizedNetworks.{i}.value",
                ErrorKind.INVALID_FIELD_RANGE,
                f"{network.value!r} is not a valid CIDR range",
            )
    errors.raise_if_any()

    return NetworkMode(
        ipv4_enabled=public,
        private_network=private_network or None,
        authorized_networks=tuple(authorized_networks or ()) if public else (),
        ssl_mode=ssl_mode,
    )


def derive_backup_policy(
    enabled: bool,
    start_time: str | None,
    location: str | None,
    pitr_enabled: bool | None,
    retained_backups: int | None,
    transaction_log_retention_days: int | None = None,
    path: str = "backup",
) -> BackupPolicy:
    """Resolve backups; disabling them unsets every dependent field."""
    if not enabled:
        return BackupPolicy(enabled=False)

    errors = ErrorCollector()
    if start_time is not None and not _START_TIME.match(start_time):
        errors.add(f"{path}.startTime", ErrorKind.INVALID_FIELD_RANGE, "must be HH:MM (24-hour)")
    _check_range(errors, f"{path}.retainedBackups", retained_backups, *RETAINED_BACKUPS_RANGE)
    _check_range(
        errors,
        f"{path}.transactionLogRetentionDays",
        transaction_log_retention_days,
        *TRANSACTION_LOG_RETENTION_RANGE,
    )
    errors.raise_if_any()

    return BackupPolicy(
        enabled=True,
        start_time=start_time,
        location=location,
        point_in_time_recovery_enabled=bool(pitr_enabled),
        retained_backups=retained_backups,
        transaction_log_retention_days=transaction_log_retention_days,
    )


def derive_password_policy(user: UserSpec) -> PasswordPolicy:
    if user.type in IAM_USER_TYPES:
        return PasswordPolicy.NONE
    if user.password:
        return PasswordPolicy.USE_PROVIDED
    return PasswordPolicy.USE_GENERATED


def derive_root_password_policy(family: EngineFamily, root_password: str | None) -> PasswordPolicy:
    """SQL Server instances always need a root password; elsewhere it is optional."""
    if root_password:
        return PasswordPolicy.USE_PROVIDED
    if family is EngineFamily.SQLSERVER:
        return PasswordPolicy.USE_GENERATED
    return PasswordPolicy.NONE


def derive_replica_defaults(
    primary: ResolvedInstance,
    replica: ReplicaSpec,
    policy: PolicyDefaults | None = None,
    primary_flags: tuple[Flag, ...] = (),
    derived_flags: tuple[Flag, ...] = (),
    path: str | None = None,
) -> ResolvedReplica:
    """Fill omitted replica fields from the resolved primary.

    Tier is not inherited unless the policy says so. A zone preference is
    kept only when the primary is ZONAL. Replica flags replace the
    primary's flags; derived flags (IAM authentication) are merged back in.
    """
    policy = policy or PolicyDefaults()
    path = path or f"replicas.{replica.name}"
    errors = ErrorCollector()

    tier = replica.tier
    if not tier:
        if policy.replica_tier == REPLICA_TIER_INHERIT:
            tier = primary.tier
        else:
            errors.add(
                f"{path}.tier",
                ErrorKind.MISSING_REQUIRED_FIELD,
                "replica tier must be set explicitly",
            )

    disk_size = _pick(replica.disk_size, primary.disk_size)
    disk_type = _pick(replica.disk_type, primary.disk_type)
    autoresize_limit = _pick(replica.disk_autoresize_limit, primary.disk_autoresize_limit)
    _check_disk(errors, path, disk_size, disk_type, autoresize_limit)

    net = replica.network
    try:
        network = derive_network_mode(
            _pick(net.ipv4_enabled, primary.network.ipv4_enabled),
            _pick(net.private_network, primary.network.private_network),
            _pick(net.authorized_networks, primary.network.authorized_networks),
            _pick(net.ssl_mode, primary.network.ssl_mode),
            path=f"{path}.network",
        )
    except PlanValidationError as e:
        errors.extend(e.errors)
        network = primary.network

    flags = primary_flags
    if replica.database_flags is not None:
        errors.extend(find_flag_conflicts(replica.database_flags, f"{path}.databaseFlags"))
        flags = merge_flags(replica.database_flags, derived_flags)

    errors.raise_if_any()

    zone = replica.zone if primary.availability_type == "ZONAL" else None
    return ResolvedReplica(
        key=replica.name,
        name=replica.name_override or f"{primary.name}-replica{policy.replica_name_suffix}{replica.name}",
        tier=tier or "",
        disk_size=disk_size,
        disk_type=disk_type,
        disk_autoresize=_pick(replica.disk_autoresize, primary.disk_autoresize),
        disk_autoresize_limit=autoresize_limit,
        network=network,
        zone=zone,
        encryption_key_name=_pick(replica.encryption_key_name, primary.encryption_key_name),
        user_labels=dict(_pick(replica.user_labels, primary.user_labels)),
        database_flags=flags,
    )


def assemble_plan(
    instance: InstanceSpec,
    databases: list[DatabaseSpec] | None = None,
    users: list[UserSpec] | None = None,
    replicas: list[ReplicaSpec] | None = None,
    policy: PolicyDefaults | None = None,
) -> ProvisioningPlan:
    """Run every derivation and return the aggregate plan.

    Collections are keyed by name; a later entry with the same name replaces
    an earlier one.

    Raises:
        PlanValidationError: with every field error found.
    """
    policy = policy or PolicyDefaults()
    errors = ErrorCollector()
    notices: list[str] = []
    family = resolve_engine_family(instance.database_version)

    def unsupported(path: str, message: str) -> None:
        if policy.strict:
            errors.add(path, ErrorKind.UNSUPPORTED_FEATURE_FOR_FAMILY, message)
        else:
            notices.append(f"{path}: {message}; ignored")

    for attr, label in (("name", "metadata.name"), ("project", "metadata.project"), ("region", "metadata.region")):
        if not getattr(instance, attr):
            errors.add(label, ErrorKind.MISSING_REQUIRED_FIELD, "is required")
    if not instance.database_version:
        errors.add("instance.databaseVersion", ErrorKind.MISSING_REQUIRED_FIELD, "is required")

    primary = _resolve_instance(instance, family, policy, errors, notices)

    # flags
    errors.extend(find_flag_conflicts(instance.database_flags))
    iam_flag = derive_iam_auth_flag(family, instance.iam_authentication)
    if instance.iam_authentication and iam_flag is None:
        unsupported(
            "instance.iamAuthentication",
            f"IAM database authentication is not supported for engine family {family.value}",
        )
    flags = merge_flags(instance.database_flags, [iam_flag])

    resolved_databases: dict[str, ResolvedDatabase] = {}
    for i, db in enumerate(databases or []):
        path = f"databases.{i}"
        if not db.name:
            errors.add(f"{path}.name", ErrorKind.MISSING_REQUIRED_FIELD, "is required")
            continue
        charset, collation = db.charset, db.collation
        if family is EngineFamily.SQLSERVER and (charset or collation):
            unsupported(path, "charset and collation are not supported for SQLSERVER databases")
            charset = collation = None
        resolved_databases[db.name] = ResolvedDatabase(name=db.name, charset=charset, collation=collation)

    resolved_users: dict[str, ResolvedUser] = {}
    for i, user in enumerate(users or []):
        path = f"users.{i}"
        resolved = _resolve_user(user, family, path, errors, unsupported)
        if resolved is not None:
            resolved_users[user.name] = resolved

    resolved_replicas: dict[str, ResolvedReplica] = {}
    if primary is not None:
        for replica in replicas or []:
            try:
                resolved_replicas[replica.name] = derive_replica_defaults(
                    primary,
                    replica,
                    policy,
                    primary_flags=flags,
                    derived_flags=(iam_flag,) if iam_flag else (),
                )
            except PlanValidationError as e:
                errors.extend(e.errors)
            if replica.zone and primary.availability_type != "ZONAL":
                notices.append(
                    f"replicas.{replica.name}.zone: ignored because the primary is {primary.availability_type}"
                )

    errors.raise_if_any()
    if primary is None:
        raise PlanValidationError(errors.errors)

    return ProvisioningPlan(
        instance=primary,
        databases=resolved_databases,
        users=resolved_users,
        replicas=resolved_replicas,
        database_flags=flags,
        notices=tuple(notices),
        password_length=policy.password_length,
    )


def plan_from_config(config: SqlInstanceConfig) -> ProvisioningPlan:
    """Assemble the plan for a loaded sql-instance.yaml."""
    return assemble_plan(
        config.instance,
        config.databases,
        config.users,
        config.replicas,
        config.policy,
    )


def _resolve_instance(
    instance: InstanceSpec,
    family: EngineFamily,
    policy: PolicyDefaults,
    errors: ErrorCollector,
    notices: list[str],
) -> ResolvedInstance | None:
    disk_size = _pick(instance.disk_size, policy.disk_size)
    disk_type = _pick(instance.disk_type, policy.disk_type)
    autoresize_limit = _pick(instance.disk_autoresize_limit, policy.disk_autoresize_limit)
    _check_disk(errors, "instance", disk_size, disk_type, autoresize_limit)

    availability = _pick(instance.availability_type, policy.availability_type)
    if availability not in AVAILABILITY_TYPES:
        errors.add(
            "instance.availabilityType",
            ErrorKind.INVALID_FIELD_RANGE,
            f"must be one of {', '.join(AVAILABILITY_TYPES)}",
        )

    net = instance.network
    network = None
    try:
        network = derive_network_mode(
            _pick(net.ipv4_enabled, policy.ipv4_enabled),
            net.private_network,
            net.authorized_networks,
            _pick(net.ssl_mode, policy.ssl_mode),
        )
    except PlanValidationError as e:
        errors.extend(e.errors)

    backup = None
    try:
        backup = _resolve_backup(instance.backup, policy)
    except PlanValidationError as e:
        errors.extend(e.errors)

    maintenance = None
    if instance.maintenance is not None:
        m = instance.maintenance
        _check_range(errors, "maintenance.day", m.day, 1, 7)
        _check_range(errors, "maintenance.hour", m.hour, 0, 23)
        maintenance = MaintenanceWindow(day=m.day, hour=m.hour, update_track=m.update_track)

    if family is EngineFamily.UNKNOWN and instance.database_version:
        notices.append(
            f"instance.databaseVersion: {instance.database_version!r} is not a recognised engine family; "
            "family-specific settings are disabled"
        )

    if network is None or backup is None:
        return None

    return ResolvedInstance(
        project=instance.project or "",
        name=instance.name,
        region=instance.region or "",
        database_version=instance.database_version,
        family=family,
        tier=_pick(instance.tier, policy.tier),
        disk_size=disk_size,
        disk_type=disk_type,
        disk_autoresize=_pick(instance.disk_autoresize, policy.disk_autoresize),
        disk_autoresize_limit=autoresize_limit,
        availability_type=availability,
        network=network,
        backup=backup,
        zone=instance.zone,
        encryption_key_name=instance.encryption_key_name,
        user_labels=dict(instance.user_labels),
        deletion_protection=_pick(instance.deletion_protection, policy.deletion_protection),
        maintenance_window=maintenance,
        root_password_policy=derive_root_password_policy(family, instance.root_password),
        root_password=instance.root_password or None,
    )


def _resolve_backup(backup: BackupSpec, policy: PolicyDefaults) -> BackupPolicy:
    enabled = _pick(backup.enabled, policy.backup_enabled)
    return derive_backup_policy(
        enabled,
        _pick(backup.start_time, policy.backup_start_time),
        backup.location,
        _pick(backup.point_in_time_recovery_enabled, policy.point_in_time_recovery_enabled),
        _pick(backup.retained_backups, policy.retained_backups),
        _pick(backup.transaction_log_retention_days, policy.transaction_log_retention_days),
    )


def _resolve_user(
    user: UserSpec,
    family: EngineFamily,
    path: str,
    errors: ErrorCollector,
    unsupported: Callable[[str, str], None],
) -> ResolvedUser | None:
    if not user.name:
        errors.add(f"{path}.name", ErrorKind.MISSING_REQUIRED_FIELD, "is required")
        return None
    if user.type not in USER_TYPES:
        errors.add(f"{path}.type", ErrorKind.INVALID_FIELD_RANGE, f"must be one of {', '.join(USER_TYPES)}")
        return None

    password, host = user.password, user.host
    if user.type in IAM_USER_TYPES:
        if password or host:
            unsupported(path, f"password and host do not apply to {user.type} users")
        password = host = None
    elif host and family in (EngineFamily.POSTGRES, EngineFamily.SQLSERVER):
        unsupported(f"{path}.host", f"host restriction is not supported for engine family {family.value}")
        host = None

    if user.type in IAM_USER_TYPES and not supports_iam_authentication(family):
        unsupported(path, f"IAM users are not supported for engine family {family.value}")

    return ResolvedUser(
        name=user.name,
        type=user.type,
        password_policy=derive_password_policy(user),
        password=password or None,
        host=host,
    )


def _check_disk(
    errors: ErrorCollector,
    path: str,
    disk_size: int,
    disk_type: str,
    autoresize_limit: int,
) -> None:
    if disk_size < MIN_DISK_SIZE_GB:
        errors.add(f"{path}.diskSize", ErrorKind.INVALID_FIELD_RANGE, f"must be at least {MIN_DISK_SIZE_GB} GB")
    if disk_type not in DISK_TYPES:
        errors.add(f"{path}.diskType", ErrorKind.INVALID_FIELD_RANGE, f"must be one of {', '.join(DISK_TYPES)}")
    if autoresize_limit < 0:
        errors.add(f"{path}.diskAutoresizeLimit", ErrorKind.INVALID_FIELD_RANGE, "must be 0 (unlimited) or positive")


def _check_range(errors: ErrorCollector, path: str, value: int | None, low: int, high: int) -> None:
    if value is not None and not low <= value <= high:
        errors.add(path, ErrorKind.INVALID_FIELD_RANGE, f"must be between {low} and {high}, got {value}")


def _pick(value: T | None, default: T) -> T:
    """value unless it was omitted (None)."""
    return default if value is None else value
