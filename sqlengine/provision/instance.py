"""Instance handler: primary Cloud SQL instance."""

from sqlengine.provision.context import ProvisionContext
from sqlengine.provision.registry import Phase, register


@register("instance", phase=Phase.INSTANCE, requires=["secrets"])
def instance_handler(ctx: ProvisionContext) -> None:
    """Create the primary instance from plan.instance and the merged flag list."""
    from sqlengine.cloudsql.instance import create_sql_instance

    sql_instance = create_sql_instance(
        instance=ctx.plan.instance,
        database_flags=ctx.plan.database_flags,
        gcp_provider=ctx.gcp_provider,
        root_password=ctx.password(),
    )

    ctx.set("instance.resource", sql_instance)
    ctx.set("instance.name", sql_instance.name)
    ctx.export("instance_name", sql_instance.name)
    ctx.export("connection_name", sql_instance.connection_name)
    ctx.export("public_ip_address", sql_instance.public_ip_address)
    ctx.export("private_ip_address", sql_instance.private_ip_address)
