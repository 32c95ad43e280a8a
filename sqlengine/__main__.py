"""
SQL engine: provisions one Cloud SQL instance from sql-instance.yaml.
Loads and validates the document, assembles the provisioning plan, then creates
the instance, its databases, users and read replicas. Pulumi owns diffing,
ordering and retries; this program only describes the desired state.
"""
import pulumi

from sqlengine.config import create_gcp_provider, load_instance_config
from sqlengine.plan.errors import PlanValidationError
from sqlengine.plan.normalizer import plan_from_config
from sqlengine.provision import ProvisionContext, run_handlers

config = load_instance_config()

try:
    plan = plan_from_config(config)
except PlanValidationError as e:
    raise SystemExit(str(e)) from e

for notice in plan.notices:
    pulumi.log.warn(notice)

gcp_provider = create_gcp_provider(
    plan.instance.name,
    plan.instance.project,
    plan.instance.region,
)

ctx = ProvisionContext(plan=plan, gcp_provider=gcp_provider)
ran = run_handlers(ctx)
pulumi.log.info(f"Provisioned {', '.join(ran)} for instance '{plan.instance.name}'")

for key, value in ctx.exports.items():
    pulumi.export(key, value)
pulumi.export("network_mode", plan.instance.network.kind)
