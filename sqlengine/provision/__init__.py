"""Resource handlers: each maps one slice of the provisioning plan onto Cloud SQL resources."""

import sqlengine.provision.databases  # noqa: F401
import sqlengine.provision.instance  # noqa: F401
import sqlengine.provision.replicas  # noqa: F401
import sqlengine.provision.secrets  # noqa: F401
import sqlengine.provision.users  # noqa: F401
from sqlengine.provision.context import ProvisionContext
from sqlengine.provision.registry import run_handlers

__all__ = ["ProvisionContext", "run_handlers"]
