"""sql-instance.yaml configuration loading and validation."""

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any

import jsonschema
import pulumi
import pulumi_gcp
import yaml

from sqlengine.plan.models import AuthorizedNetwork, Flag
from sqlengine.plan.policy import PolicyDefaults, resolve_policy
from sqlengine.spec.validator import validate_instance_spec

MANAGED_BY_LABEL = "sql-engine"


@dataclass
class NetworkSpec:
    ipv4_enabled: bool | None = None
    private_network: str | None = None
    authorized_networks: list[AuthorizedNetwork] | None = None
    ssl_mode: str | None = None


@dataclass
class BackupSpec:
    enabled: bool | None = None
    start_time: str | None = None
    location: str | None = None
    point_in_time_recovery_enabled: bool | None = None
    retained_backups: int | None = None
    transaction_log_retention_days: int | None = None


@dataclass
class MaintenanceSpec:
    day: int = 7
    hour: int = 0
    update_track: str | None = None


@dataclass
class InstanceSpec:
    """Primary instance as written by the user; None means 'use the policy default'."""

    name: str
    database_version: str
    project: str | None = None
    region: str | None = None
    tier: str | None = None
    disk_size: int | None = None
    disk_type: str | None = None
    disk_autoresize: bool | None = None
    disk_autoresize_limit: int | None = None
    availability_type: str | None = None
    zone: str | None = None
    encryption_key_name: str | None = None
    network: NetworkSpec = field(default_factory=NetworkSpec)
    backup: BackupSpec = field(default_factory=BackupSpec)
    maintenance: MaintenanceSpec | None = None
    user_labels: dict[str, str] = field(default_factory=dict)
    database_flags: list[Flag] = field(default_factory=list)
    iam_authentication: bool = False
    deletion_protection: bool | None = None
    root_password: str | None = None


@dataclass
class DatabaseSpec:
    name: str
    charset: str | None = None
    collation: str | None = None


@dataclass
class UserSpec:
    name: str
    type: str = "BUILT_IN"
    password: str | None = None
    host: str | None = None


@dataclass
class ReplicaSpec:
    """Read replica overrides; omitted fields inherit from the primary (tier per policy)."""

    name: str
    name_override: str | None = None
    tier: str | None = None
    disk_size: int | None = None
    disk_type: str | None = None
    disk_autoresize: bool | None = None
    disk_autoresize_limit: int | None = None
    zone: str | None = None
    encryption_key_name: str | None = None
    network: NetworkSpec = field(default_factory=NetworkSpec)
    user_labels: dict[str, str] | None = None
    database_flags: list[Flag] | None = None


@dataclass
class SqlInstanceConfig:
    """Parsed and validated sql-instance.yaml configuration."""

    instance: InstanceSpec
    raw_spec: dict[str, Any]
    policy: PolicyDefaults = field(default_factory=PolicyDefaults)
    databases: list[DatabaseSpec] = field(default_factory=list)
    users: list[UserSpec] = field(default_factory=list)
    replicas: list[ReplicaSpec] = field(default_factory=list)

    @property
    def instance_name(self) -> str:
        return self.instance.name

    @classmethod
    def from_file(
        cls,
        path: str,
        project: str | None = None,
        region: str | None = None,
        default_project: str | None = None,
        default_region: str | None = None,
    ) -> "SqlInstanceConfig":
        """Load and validate sql-instance.yaml from file path.

        Project and region resolve in one order everywhere: explicit
        project/region, then metadata, then default_project/default_region,
        then the gcp:project / gcp:region stack config.
        """
        if not Path(path).exists():
            raise SystemExit(f"sql-instance.yaml not found: {path}")

        with open(path, encoding="utf-8") as f:
            document: dict[str, Any] = yaml.safe_load(f)

        return cls.from_dict(
            document,
            project=project,
            region=region,
            default_project=default_project,
            default_region=default_region,
        )

    @classmethod
    def from_dict(
        cls,
        document: dict[str, Any],
        project: str | None = None,
        region: str | None = None,
        default_project: str | None = None,
        default_region: str | None = None,
    ) -> "SqlInstanceConfig":
        try:
            validate_instance_spec(document)
        except jsonschema.ValidationError as e:
            raise SystemExit(str(e)) from e

        metadata = document["metadata"]
        spec = document["spec"]

        project = project or metadata.get("project") or default_project
        region = region or metadata.get("region") or default_region
        if not project or not region:
            gcp_config = pulumi.Config("gcp")
            project = project or gcp_config.require("project")
            region = region or gcp_config.require("region")

        try:
            policy = resolve_policy(metadata.get("policy"), spec.get("policyOverrides"))
        except ValueError as e:
            raise SystemExit(str(e)) from e

        inst = spec["instance"]
        maintenance = None
        if spec.get("maintenance") is not None:
            m = spec["maintenance"]
            maintenance = MaintenanceSpec(
                day=m.get("day", 7),
                hour=m.get("hour", 0),
                update_track=m.get("updateTrack"),
            )

        b = spec.get("backup") or {}
        instance = InstanceSpec(
            name=metadata["name"],
            database_version=inst["databaseVersion"],
            project=project,
            region=region,
            tier=inst.get("tier"),
            disk_size=inst.get("diskSize"),
            disk_type=inst.get("diskType"),
            disk_autoresize=inst.get("diskAutoresize"),
            disk_autoresize_limit=inst.get("diskAutoresizeLimit"),
            availability_type=inst.get("availabilityType"),
            zone=inst.get("zone"),
            encryption_key_name=inst.get("encryptionKeyName"),
            network=_parse_network(spec.get("network")),
            backup=BackupSpec(
                enabled=b.get("enabled"),
                start_time=b.get("startTime"),
                location=b.get("location"),
                point_in_time_recovery_enabled=b.get("pointInTimeRecoveryEnabled"),
                retained_backups=b.get("retainedBackups"),
                transaction_log_retention_days=b.get("transactionLogRetentionDays"),
            ),
            maintenance=maintenance,
            user_labels=inst.get("userLabels") or {},
            database_flags=_parse_flags(inst.get("databaseFlags")) or [],
            iam_authentication=inst.get("iamAuthentication", False),
            deletion_protection=inst.get("deletionProtection"),
            root_password=inst.get("rootPassword"),
        )

        databases = [
            DatabaseSpec(
                name=d["name"],
                charset=d.get("charset"),
                collation=d.get("collation"),
            )
            for d in spec.get("databases") or []
        ]

        users = [
            UserSpec(
                name=u["name"],
                type=u.get("type", "BUILT_IN"),
                password=u.get("password"),
                host=u.get("host"),
            )
            for u in spec.get("users") or []
        ]

        replicas = []
        for r in spec.get("replicas") or []:
            replicas.append(ReplicaSpec(
                name=str(r["name"]),
                name_override=r.get("nameOverride"),
                tier=r.get("tier"),
                disk_size=r.get("diskSize"),
                disk_type=r.get("diskType"),
                disk_autoresize=r.get("diskAutoresize"),
                disk_autoresize_limit=r.get("diskAutoresizeLimit"),
                zone=r.get("zone"),
                encryption_key_name=r.get("encryptionKeyName"),
                network=_parse_network(r.get("network")),
                user_labels=r.get("userLabels"),
                database_flags=_parse_flags(r.get("databaseFlags")),
            ))

        return cls(
            instance=instance,
            raw_spec=spec,
            policy=policy,
            databases=databases,
            users=users,
            replicas=replicas,
        )


def _flag_value(value: Any) -> str:
    if isinstance(value, bool):
        return "on" if value else "off"
    return str(value)


def _parse_flags(raw: list[dict[str, Any]] | None) -> list[Flag] | None:
    if raw is None:
        return None
    return [Flag(name=f["name"], value=_flag_value(f["value"])) for f in raw]


def _parse_network(raw: dict[str, Any] | None) -> NetworkSpec:
    if not raw:
        return NetworkSpec()
    authorized = None
    if raw.get("authorizedNetworks") is not None:
        authorized = [
            AuthorizedNetwork(
                value=n["value"],
                name=n.get("name"),
                expiration_time=n.get("expirationTime"),
            )
            for n in raw["authorizedNetworks"]
        ]
    return NetworkSpec(
        ipv4_enabled=raw.get("ipv4Enabled"),
        private_network=raw.get("privateNetwork"),
        authorized_networks=authorized,
        ssl_mode=raw.get("sslMode"),
    )


def load_instance_config() -> SqlInstanceConfig:
    """Load sql-instance.yaml from SQL_INSTANCE_PATH environment variable.

    SQL_ENGINE_PROJECT / SQL_ENGINE_REGION, when set, override metadata the
    same way they do for `sqlengine plan`.
    """
    path = os.environ.get("SQL_INSTANCE_PATH")
    if not path:
        raise SystemExit("SQL_INSTANCE_PATH environment variable required")
    if not Path(path).exists():
        raise SystemExit("SQL_INSTANCE_PATH must point to sql-instance.yaml")
    return SqlInstanceConfig.from_file(
        path,
        project=os.environ.get("SQL_ENGINE_PROJECT") or None,
        region=os.environ.get("SQL_ENGINE_REGION") or None,
    )


def create_gcp_provider(instance_name: str, project: str, region: str) -> pulumi_gcp.Provider:
    """Create GCP provider with default resource labels."""
    return pulumi_gcp.Provider(
        "gcp-labeled",
        project=project,
        region=region,
        default_labels={
            "instance": instance_name,
            "managed-by": MANAGED_BY_LABEL,
        },
    )
