"""Tests for the resource handlers (plan -> builder calls, ctx.set/export)."""

from unittest.mock import MagicMock, patch

import sqlengine.provision  # noqa: F401 - register handlers
from sqlengine.config import DatabaseSpec, InstanceSpec, ReplicaSpec, UserSpec
from sqlengine.plan.normalizer import assemble_plan
from sqlengine.provision.context import ProvisionContext
from sqlengine.provision.registry import HANDLERS, run_handlers


def _make_ctx(database_version: str = "POSTGRES_15", **instance) -> ProvisionContext:
    plan = assemble_plan(
        InstanceSpec(
            name="orders-db",
            database_version=database_version,
            project="acme-dev",
            region="us-central1",
            **instance,
        ),
        databases=[DatabaseSpec(name="orders"), DatabaseSpec(name="audit")],
        users=[
            UserSpec(name="app"),
            UserSpec(name="batch", password="given"),
            UserSpec(name="ops@acme.example", type="CLOUD_IAM_USER"),
        ],
        replicas=[ReplicaSpec(name="0", tier="db-f1-micro")],
    )
    return ProvisionContext(plan=plan, gcp_provider=MagicMock())


@patch("sqlengine.provision.secrets.pulumi.Output.secret", side_effect=lambda v: f"secret({v})")
@patch("sqlengine.cloudsql.password.create_random_password")
def test_secrets_handler_generates_only_missing_passwords(
    mock_random: MagicMock,
    mock_secret: MagicMock,
) -> None:
    """Generated passwords for useGenerated users; provided ones wrapped as secrets; IAM users skipped."""
    mock_random.return_value.result = "generated"
    ctx = _make_ctx()

    HANDLERS["secrets"].handler(ctx)

    mock_random.assert_called_once_with("orders-db_password_app", length=32)
    assert ctx.password("app") == "generated"
    assert ctx.password("batch") == "secret(given)"
    assert ctx.password("ops@acme.example") is None
    assert ctx.password() is None
    assert ctx.exports["password_app"] == "generated"


@patch("sqlengine.provision.secrets.pulumi.Output.secret", side_effect=lambda v: v)
@patch("sqlengine.provision.secrets.pulumi.log.info")
@patch("sqlengine.cloudsql.password.create_random_password")
def test_secrets_handler_generates_sqlserver_root_password(
    mock_random: MagicMock,
    mock_log: MagicMock,
    mock_secret: MagicMock,
) -> None:
    mock_random.return_value.result = "generated"
    ctx = _make_ctx("SQLSERVER_2019_STANDARD")

    HANDLERS["secrets"].handler(ctx)

    names = [c.args[0] for c in mock_random.call_args_list]
    assert names[0] == "orders-db_root_password"
    assert ctx.password() == "generated"
    mock_log.assert_called_once()


@patch("sqlengine.cloudsql.instance.create_sql_instance")
def test_instance_handler_creates_and_exports(mock_create: MagicMock) -> None:
    mock_instance = MagicMock()
    mock_create.return_value = mock_instance
    ctx = _make_ctx(iam_authentication=True)

    HANDLERS["instance"].handler(ctx)

    kw = mock_create.call_args[1]
    assert kw["instance"] is ctx.plan.instance
    assert kw["database_flags"] == ctx.plan.database_flags
    assert kw["gcp_provider"] is ctx.gcp_provider
    assert ctx.get("instance.resource") is mock_instance
    assert ctx.get("instance.name") is mock_instance.name
    assert ctx.exports["connection_name"] is mock_instance.connection_name


@patch("sqlengine.cloudsql.database.create_database")
def test_databases_handler_creates_each_database(mock_create: MagicMock) -> None:
    ctx = _make_ctx()
    sql_instance = MagicMock()
    ctx.set("instance.resource", sql_instance)

    HANDLERS["databases"].handler(ctx)

    created = [c.kwargs["database"].name for c in mock_create.call_args_list]
    assert created == ["orders", "audit"]
    assert all(c.kwargs["sql_instance"] is sql_instance for c in mock_create.call_args_list)
    assert len(ctx.get("databases.resources")) == 2
    assert ctx.exports["databases"] == ["orders", "audit"]


@patch("sqlengine.cloudsql.database.create_user")
def test_users_handler_passes_passwords_and_depends_on_databases(mock_create: MagicMock) -> None:
    ctx = _make_ctx()
    databases = [MagicMock(), MagicMock()]
    ctx.set("instance.resource", MagicMock())
    ctx.set("databases.resources", databases)
    ctx.set_password("gen", "app")
    ctx.set_password("given", "batch")

    HANDLERS["users"].handler(ctx)

    by_name = {c.kwargs["user"].name: c.kwargs for c in mock_create.call_args_list}
    assert by_name["app"]["password"] == "gen"
    assert by_name["batch"]["password"] == "given"
    assert by_name["ops@acme.example"]["password"] is None
    assert all(kw["depends_on"] is databases for kw in by_name.values())


@patch("sqlengine.cloudsql.instance.create_read_replica")
def test_replicas_handler_uses_primary_name(mock_create: MagicMock) -> None:
    ctx = _make_ctx()
    master_name = MagicMock()
    ctx.set("instance.name", master_name)

    HANDLERS["replicas"].handler(ctx)

    kw = mock_create.call_args[1]
    assert kw["replica"] is ctx.plan.replicas["0"]
    assert kw["primary"] is ctx.plan.instance
    assert kw["master_instance_name"] is master_name
    assert "0" in ctx.exports["replica_connection_names"]


@patch("sqlengine.provision.secrets.pulumi.Output.secret", side_effect=lambda v: v)
@patch("sqlengine.cloudsql.password.create_random_password")
@patch("sqlengine.cloudsql.instance.create_read_replica")
@patch("sqlengine.cloudsql.instance.create_sql_instance")
@patch("sqlengine.cloudsql.database.create_user")
@patch("sqlengine.cloudsql.database.create_database")
def test_run_handlers_provisions_whole_plan(
    mock_database: MagicMock,
    mock_user: MagicMock,
    mock_instance: MagicMock,
    mock_replica: MagicMock,
    mock_random: MagicMock,
    mock_secret: MagicMock,
) -> None:
    """All handlers run once, in order, for a full plan."""
    ctx = _make_ctx()

    ran = run_handlers(ctx)

    assert ran == ["secrets", "instance", "databases", "users", "replicas"]
    mock_instance.assert_called_once()
    assert mock_database.call_count == 2
    assert mock_user.call_count == 3
    mock_replica.assert_called_once()


@patch("sqlengine.cloudsql.password.create_random_password")
def test_secrets_handler_names_are_distinct_for_similar_users(mock_random: MagicMock) -> None:
    """Users whose names only differ in `.` vs `_` get separate password resources and exports."""
    plan = assemble_plan(
        InstanceSpec(name="db", database_version="POSTGRES_15", project="p", region="r"),
        users=[UserSpec(name="a.b"), UserSpec(name="a_b")],
    )
    ctx = ProvisionContext(plan=plan, gcp_provider=MagicMock())

    HANDLERS["secrets"].handler(ctx)

    names = [c.args[0] for c in mock_random.call_args_list]
    assert len(names) == 2
    assert len(set(names)) == 2
    assert len(ctx.exports) == 2
