"""Cloud SQL primary instance and read replicas."""

import pulumi
import pulumi_gcp

from sqlengine.plan.models import (
    BackupPolicy,
    EngineFamily,
    Flag,
    MaintenanceWindow,
    NetworkMode,
    ResolvedInstance,
    ResolvedReplica,
)


def _flag_args(flags: tuple[Flag, ...]) -> list[pulumi_gcp.sql.DatabaseInstanceSettingsDatabaseFlagArgs]:
    return [
        pulumi_gcp.sql.DatabaseInstanceSettingsDatabaseFlagArgs(name=f.name, value=f.value)
        for f in flags
    ]


def _ip_configuration_args(network: NetworkMode) -> pulumi_gcp.sql.DatabaseInstanceSettingsIpConfigurationArgs:
    return pulumi_gcp.sql.DatabaseInstanceSettingsIpConfigurationArgs(
        ipv4_enabled=network.ipv4_enabled,
        private_network=network.private_network,
        ssl_mode=network.ssl_mode,
        authorized_networks=[
            pulumi_gcp.sql.DatabaseInstanceSettingsIpConfigurationAuthorizedNetworkArgs(
                value=n.value,
                name=n.name,
                expiration_time=n.expiration_time,
            )
            for n in network.authorized_networks
        ],
    )


def _backup_configuration_args(
    backup: BackupPolicy,
    family: EngineFamily,
) -> pulumi_gcp.sql.DatabaseInstanceSettingsBackupConfigurationArgs:
    """MySQL expresses point-in-time recovery as binary logging; other engines use the PITR flag."""
    if not backup.enabled:
        return pulumi_gcp.sql.DatabaseInstanceSettingsBackupConfigurationArgs(enabled=False)

    retention = None
    if backup.retained_backups is not None:
        retention = pulumi_gcp.sql.DatabaseInstanceSettingsBackupConfigurationBackupRetentionSettingsArgs(
            retained_backups=backup.retained_backups,
            retention_unit="COUNT",
        )
    pitr = backup.point_in_time_recovery_enabled
    return pulumi_gcp.sql.DatabaseInstanceSettingsBackupConfigurationArgs(
        enabled=True,
        start_time=backup.start_time,
        location=backup.location,
        binary_log_enabled=pitr if family is EngineFamily.MYSQL else None,
        point_in_time_recovery_enabled=(
            pitr if family in (EngineFamily.POSTGRES, EngineFamily.SQLSERVER) else None
        ),
        transaction_log_retention_days=backup.transaction_log_retention_days,
        backup_retention_settings=retention,
    )


def _maintenance_window_args(
    window: MaintenanceWindow | None,
) -> pulumi_gcp.sql.DatabaseInstanceSettingsMaintenanceWindowArgs | None:
    if window is None:
        return None
    return pulumi_gcp.sql.DatabaseInstanceSettingsMaintenanceWindowArgs(
        day=window.day,
        hour=window.hour,
        update_track=window.update_track,
    )


def _location_preference_args(
    zone: str | None,
) -> pulumi_gcp.sql.DatabaseInstanceSettingsLocationPreferenceArgs | None:
    if not zone:
        return None
    return pulumi_gcp.sql.DatabaseInstanceSettingsLocationPreferenceArgs(zone=zone)


def create_sql_instance(
    instance: ResolvedInstance,
    database_flags: tuple[Flag, ...],
    gcp_provider: pulumi_gcp.Provider,
    root_password: pulumi.Input[str] | None = None,
) -> pulumi_gcp.sql.DatabaseInstance:
    """Create the primary Cloud SQL instance from a resolved plan instance."""
    return pulumi_gcp.sql.DatabaseInstance(
        f"{instance.name}_instance",
        name=instance.name,
        project=instance.project,
        region=instance.region,
        database_version=instance.database_version,
        encryption_key_name=instance.encryption_key_name,
        deletion_protection=instance.deletion_protection,
        root_password=root_password,
        settings=pulumi_gcp.sql.DatabaseInstanceSettingsArgs(
            tier=instance.tier,
            availability_type=instance.availability_type,
            disk_size=instance.disk_size,
            disk_type=instance.disk_type,
            disk_autoresize=instance.disk_autoresize,
            disk_autoresize_limit=instance.disk_autoresize_limit,
            user_labels=instance.user_labels,
            database_flags=_flag_args(database_flags),
            ip_configuration=_ip_configuration_args(instance.network),
            backup_configuration=_backup_configuration_args(instance.backup, instance.family),
            location_preference=_location_preference_args(instance.zone),
            maintenance_window=_maintenance_window_args(instance.maintenance_window),
        ),
        opts=pulumi.ResourceOptions(provider=gcp_provider),
    )


def create_read_replica(
    replica: ResolvedReplica,
    primary: ResolvedInstance,
    master_instance_name: pulumi.Input[str],
    gcp_provider: pulumi_gcp.Provider,
) -> pulumi_gcp.sql.DatabaseInstance:
    """Create a read replica of the primary; replicas never carry their own backups."""
    return pulumi_gcp.sql.DatabaseInstance(
        f"{primary.name}_replica_{replica.key}",
        name=replica.name,
        project=primary.project,
        region=primary.region,
        database_version=primary.database_version,
        master_instance_name=master_instance_name,
        encryption_key_name=replica.encryption_key_name,
        deletion_protection=primary.deletion_protection,
        replica_configuration=pulumi_gcp.sql.DatabaseInstanceReplicaConfigurationArgs(
            failover_target=False,
        ),
        settings=pulumi_gcp.sql.DatabaseInstanceSettingsArgs(
            tier=replica.tier,
            availability_type="ZONAL",
            disk_size=replica.disk_size,
            disk_type=replica.disk_type,
            disk_autoresize=replica.disk_autoresize,
            disk_autoresize_limit=replica.disk_autoresize_limit,
            user_labels=replica.user_labels,
            database_flags=_flag_args(replica.database_flags),
            ip_configuration=_ip_configuration_args(replica.network),
            location_preference=_location_preference_args(replica.zone),
        ),
        opts=pulumi.ResourceOptions(provider=gcp_provider),
    )
