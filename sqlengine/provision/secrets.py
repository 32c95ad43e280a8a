"""Secrets handler: random passwords for the root account and built-in users without one."""

import pulumi

from sqlengine.plan.models import PasswordPolicy
from sqlengine.provision.context import ProvisionContext
from sqlengine.provision.registry import Phase, register


@register("secrets", phase=Phase.SECRETS)
def secrets_handler(ctx: ProvisionContext) -> None:
    """Generate passwords for every useGenerated policy in the plan; wrap provided ones as secrets."""
    from sqlengine.cloudsql.database import user_resource_key
    from sqlengine.cloudsql.password import create_random_password

    plan = ctx.plan
    name = ctx.instance_name
    length = plan.password_length

    instance = plan.instance
    if instance.root_password_policy is PasswordPolicy.USE_GENERATED:
        root = create_random_password(f"{name}_root_password", length=length)
        ctx.set_password(root.result)
        pulumi.log.info(f"Root password for '{name}' will be generated")
    elif instance.root_password_policy is PasswordPolicy.USE_PROVIDED:
        ctx.set_password(pulumi.Output.secret(instance.root_password))

    for user_name, user in plan.users.items():
        if user.password_policy is PasswordPolicy.USE_GENERATED:
            key = user_resource_key(user_name)
            password = create_random_password(f"{name}_password_{key}", length=length)
            ctx.set_password(password.result, user_name)
            ctx.export(f"password_{key}", password.result)
        elif user.password_policy is PasswordPolicy.USE_PROVIDED:
            ctx.set_password(pulumi.Output.secret(user.password), user_name)
