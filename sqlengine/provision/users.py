"""Users handler: built-in and IAM users, created after databases."""

from sqlengine.provision.context import ProvisionContext
from sqlengine.provision.registry import Phase, register


@register("users", phase=Phase.USERS, requires=["secrets", "instance", "databases"])
def users_handler(ctx: ProvisionContext) -> None:
    """Create users; built-in users get the password stored by the secrets handler.

    Users depend on the databases so that destroy removes them first
    (PostgreSQL refuses to drop a role that still owns objects).
    """
    from sqlengine.cloudsql.database import create_user

    sql_instance = ctx.require("instance.resource")
    databases = ctx.get("databases.resources", [])
    created = []
    for user_name, user in ctx.plan.users.items():
        created.append(
            create_user(
                instance_name=ctx.instance_name,
                project=ctx.plan.instance.project,
                user=user,
                sql_instance=sql_instance,
                gcp_provider=ctx.gcp_provider,
                password=ctx.password(user_name),
                depends_on=databases,
            )
        )
    ctx.set("users.resources", created)
    ctx.export("users", list(ctx.plan.users))
