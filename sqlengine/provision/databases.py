"""Databases handler: one Cloud SQL database per plan entry."""

from sqlengine.provision.context import ProvisionContext
from sqlengine.provision.registry import Phase, register


@register("databases", phase=Phase.DATABASES, requires=["instance"])
def databases_handler(ctx: ProvisionContext) -> None:
    from sqlengine.cloudsql.database import create_database

    sql_instance = ctx.require("instance.resource")
    created = []
    for database in ctx.plan.databases.values():
        created.append(
            create_database(
                instance_name=ctx.instance_name,
                project=ctx.plan.instance.project,
                database=database,
                sql_instance=sql_instance,
                gcp_provider=ctx.gcp_provider,
            )
        )
    ctx.set("databases.resources", created)
    ctx.export("databases", list(ctx.plan.databases))
