"""Replicas handler: read replicas of the primary instance."""

from sqlengine.provision.context import ProvisionContext
from sqlengine.provision.registry import Phase, register


@register("replicas", phase=Phase.REPLICAS, requires=["instance"])
def replicas_handler(ctx: ProvisionContext) -> None:
    from sqlengine.cloudsql.instance import create_read_replica

    if not ctx.plan.replicas:
        return

    master_name = ctx.require("instance.name")
    connection_names = {}
    for key, replica in ctx.plan.replicas.items():
        resource = create_read_replica(
            replica=replica,
            primary=ctx.plan.instance,
            master_instance_name=master_name,
            gcp_provider=ctx.gcp_provider,
        )
        ctx.set(f"replicas.{key}.resource", resource)
        connection_names[key] = resource.connection_name
    ctx.export("replica_connection_names", connection_names)
