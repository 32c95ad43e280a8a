"""Unit tests for the Cloud SQL resource builders (instance, replica, database, user, password)."""

from unittest.mock import MagicMock, patch

import pytest

from sqlengine.cloudsql.database import create_database, create_user, user_resource_key
from sqlengine.cloudsql.instance import create_read_replica, create_sql_instance
from sqlengine.cloudsql.password import create_random_password
from sqlengine.config import BackupSpec, InstanceSpec, MaintenanceSpec, NetworkSpec, ReplicaSpec, UserSpec
from sqlengine.plan.models import AuthorizedNetwork, Flag, ResolvedDatabase
from sqlengine.plan.normalizer import assemble_plan


def _plan(database_version: str = "POSTGRES_15", **overrides):
    fields = {
        "name": "orders-db",
        "database_version": database_version,
        "project": "acme-dev",
        "region": "us-central1",
        "tier": "db-custom-2-7680",
        "zone": "us-central1-a",
        "iam_authentication": True,
        "network": NetworkSpec(
            ipv4_enabled=True,
            authorized_networks=[AuthorizedNetwork(value="203.0.113.0/24", name="office")],
        ),
        "backup": BackupSpec(enabled=True, start_time="03:00", point_in_time_recovery_enabled=True, retained_backups=7),
        "maintenance": MaintenanceSpec(day=7, hour=3),
        "database_flags": [Flag("max_connections", "100")],
    }
    fields.update(overrides)
    return assemble_plan(
        InstanceSpec(**fields),
        replicas=[ReplicaSpec(name="0", tier="db-custom-1-3840", zone="us-central1-b")],
    )


@patch("sqlengine.cloudsql.instance.pulumi_gcp.sql.DatabaseInstance")
def test_create_sql_instance_maps_plan(mock_instance: MagicMock) -> None:
    """Primary instance args come straight from the resolved plan."""
    plan = _plan()
    provider = MagicMock()

    create_sql_instance(plan.instance, plan.database_flags, provider, root_password=None)

    args, kw = mock_instance.call_args
    assert args == ("orders-db_instance",)
    assert kw["name"] == "orders-db"
    assert kw["project"] == "acme-dev"
    assert kw["region"] == "us-central1"
    assert kw["database_version"] == "POSTGRES_15"
    assert kw["deletion_protection"] is True
    assert kw["root_password"] is None

    settings = kw["settings"]
    assert settings.tier == "db-custom-2-7680"
    assert settings.availability_type == "ZONAL"
    assert settings.disk_size == 10
    assert settings.disk_type == "PD_SSD"
    assert [(f.name, f.value) for f in settings.database_flags] == [
        ("max_connections", "100"),
        ("cloudsql.iam_authentication", "On"),
    ]
    assert settings.ip_configuration.ipv4_enabled is True
    assert settings.ip_configuration.authorized_networks[0].value == "203.0.113.0/24"
    assert settings.backup_configuration.enabled is True
    assert settings.backup_configuration.start_time == "03:00"
    assert settings.backup_configuration.point_in_time_recovery_enabled is True
    assert settings.backup_configuration.binary_log_enabled is None
    assert settings.backup_configuration.backup_retention_settings.retained_backups == 7
    assert settings.location_preference.zone == "us-central1-a"
    assert settings.maintenance_window.day == 7


@patch("sqlengine.cloudsql.instance.pulumi_gcp.sql.DatabaseInstance")
def test_create_sql_instance_mysql_uses_binary_log(mock_instance: MagicMock) -> None:
    """MySQL point-in-time recovery is expressed as binary logging."""
    plan = _plan("MYSQL_8_0")

    create_sql_instance(plan.instance, plan.database_flags, MagicMock())

    backup = mock_instance.call_args[1]["settings"].backup_configuration
    assert backup.binary_log_enabled is True
    assert backup.point_in_time_recovery_enabled is None


@patch("sqlengine.cloudsql.instance.pulumi_gcp.sql.DatabaseInstance")
def test_create_sql_instance_backups_disabled(mock_instance: MagicMock) -> None:
    plan = _plan(backup=BackupSpec(enabled=False, start_time="03:00"))

    create_sql_instance(plan.instance, plan.database_flags, MagicMock())

    backup = mock_instance.call_args[1]["settings"].backup_configuration
    assert backup.enabled is False
    assert backup.start_time is None


@patch("sqlengine.cloudsql.instance.pulumi_gcp.sql.DatabaseInstance")
def test_create_read_replica(mock_instance: MagicMock) -> None:
    """Replica points at the primary and carries its own tier and zone."""
    plan = _plan()
    replica = plan.replicas["0"]
    master_name = MagicMock()

    create_read_replica(replica, plan.instance, master_name, MagicMock())

    args, kw = mock_instance.call_args
    assert args == ("orders-db_replica_0",)
    assert kw["name"] == "orders-db-replica-0"
    assert kw["master_instance_name"] is master_name
    assert kw["database_version"] == "POSTGRES_15"
    assert kw["replica_configuration"].failover_target is False
    settings = kw["settings"]
    assert settings.tier == "db-custom-1-3840"
    assert settings.location_preference.zone == "us-central1-b"
    assert settings.ip_configuration.ipv4_enabled is True
    assert settings.backup_configuration is None


@patch("sqlengine.cloudsql.database.pulumi_gcp.sql.Database")
def test_create_database(mock_database: MagicMock) -> None:
    sql_instance = MagicMock()
    create_database(
        instance_name="orders-db",
        project="acme-dev",
        database=ResolvedDatabase(name="orders", charset="UTF8", collation="en_US.UTF8"),
        sql_instance=sql_instance,
        gcp_provider=MagicMock(),
    )
    args, kw = mock_database.call_args
    assert args == ("orders-db_db_orders",)
    assert kw["name"] == "orders"
    assert kw["instance"] is sql_instance.name
    assert kw["charset"] == "UTF8"
    assert kw["collation"] == "en_US.UTF8"


@patch("sqlengine.cloudsql.database.pulumi_gcp.sql.User")
def test_create_user_built_in_and_iam(mock_user: MagicMock) -> None:
    """Built-in users get the password; IAM users get neither password nor explicit type default."""
    plan = assemble_plan(
        InstanceSpec(name="orders-db", database_version="MYSQL_8_0", project="p", region="r"),
        users=[UserSpec(name="app", host="10.%"), UserSpec(name="ops@acme.example", type="CLOUD_IAM_USER")],
    )
    password = MagicMock()

    create_user("orders-db", "p", plan.users["app"], MagicMock(), MagicMock(), password=password)
    args, kw = mock_user.call_args
    assert args == ("orders-db_user_app",)
    assert kw["type"] is None
    assert kw["password"] is password
    assert kw["host"] == "10.%"

    create_user("orders-db", "p", plan.users["ops@acme.example"], MagicMock(), MagicMock(), password=password)
    args, kw = mock_user.call_args
    assert args == (f"orders-db_user_{user_resource_key('ops@acme.example')}",)
    assert args[0].startswith("orders-db_user_ops_at_acme_example_")
    assert kw["type"] == "CLOUD_IAM_USER"
    assert kw["password"] is None
    assert kw["host"] is None


@pytest.mark.parametrize("name", ["app", "reporting-ro", "app2"])
def test_user_resource_key_keeps_plain_names(name: str) -> None:
    assert user_resource_key(name) == name


def test_user_resource_key_distinguishes_rewritten_names() -> None:
    """Names that rewrite to the same text still get distinct keys."""
    names = ["a.b", "a_b", "a@b", "a_at_b", "a_b_x"]
    keys = [user_resource_key(n) for n in names]
    assert len(set(keys)) == len(names)
    assert user_resource_key("a.b").startswith("a_b_")


@patch("sqlengine.cloudsql.database.pulumi_gcp.sql.User")
def test_create_user_resource_names_do_not_collide(mock_user: MagicMock) -> None:
    plan = assemble_plan(
        InstanceSpec(name="orders-db", database_version="POSTGRES_15", project="p", region="r"),
        users=[UserSpec(name="a.b", password="x"), UserSpec(name="a_b", password="y")],
    )
    for user in plan.users.values():
        create_user("orders-db", "p", user, MagicMock(), MagicMock())
    names = [c.args[0] for c in mock_user.call_args_list]
    assert len(set(names)) == 2

@patch("sqlengine.cloudsql.password.pulumi_random.RandomPassword")
def test_create_random_password(mock_password: MagicMock) -> None:
    create_random_password("orders-db_password_app", length=24)
    args, kw = mock_password.call_args
    assert args == ("orders-db_password_app",)
    assert kw["length"] == 24
    assert kw["special"] is False
