"""Cloud SQL databases and users."""

import hashlib

import pulumi
import pulumi_gcp

from sqlengine.plan.models import BUILT_IN, ResolvedDatabase, ResolvedUser


def user_resource_key(name: str) -> str:
    """Pulumi-name-safe form of a user name; distinct user names never share a key.

    Names containing `@`, `.` or `_` get a digest of the original appended,
    so "a.b" and "a_b" map to different keys.
    """
    if not any(c in name for c in "@._"):
        return name
    safe_name = name.replace("@", "_at_").replace(".", "_")
    digest = hashlib.sha256(name.encode("utf-8")).hexdigest()[:10]
    return f"{safe_name}_{digest}"


def create_database(
    instance_name: str,
    project: str,
    database: ResolvedDatabase,
    sql_instance: pulumi_gcp.sql.DatabaseInstance,
    gcp_provider: pulumi_gcp.Provider,
) -> pulumi_gcp.sql.Database:
    return pulumi_gcp.sql.Database(
        f"{instance_name}_db_{database.name}",
        name=database.name,
        instance=sql_instance.name,
        project=project,
        charset=database.charset,
        collation=database.collation,
        opts=pulumi.ResourceOptions(provider=gcp_provider),
    )


def create_user(
    instance_name: str,
    project: str,
    user: ResolvedUser,
    sql_instance: pulumi_gcp.sql.DatabaseInstance,
    gcp_provider: pulumi_gcp.Provider,
    password: pulumi.Input[str] | None = None,
    depends_on: list[pulumi.Resource] | None = None,
) -> pulumi_gcp.sql.User:
    """Create a database user.

    IAM users are created without password or host; built-in users use the
    type default so the provider does not see a diff on import.
    """
    return pulumi_gcp.sql.User(
        f"{instance_name}_user_{user_resource_key(user.name)}",
        name=user.name,
        instance=sql_instance.name,
        project=project,
        type=None if user.type == BUILT_IN else user.type,
        password=password if user.type == BUILT_IN else None,
        host=user.host,
        opts=pulumi.ResourceOptions(provider=gcp_provider, depends_on=depends_on or []),
    )
