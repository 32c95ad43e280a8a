"""Provisioning context: plan, provider, inter-handler outputs, and Pulumi exports."""

from dataclasses import dataclass, field
from typing import Any

import pulumi
import pulumi_gcp

from sqlengine.plan.models import PasswordPolicy, ProvisioningPlan


@dataclass
class ProvisionContext:
    """Context passed to resource handlers: the resolved plan plus key-value outputs/exports."""

    plan: ProvisioningPlan
    gcp_provider: pulumi_gcp.Provider
    _outputs: dict[str, Any] = field(default_factory=dict)
    _exports: dict[str, Any] = field(default_factory=dict)
    _passwords: dict[str | None, pulumi.Input[str]] = field(default_factory=dict)

    @property
    def instance_name(self) -> str:
        return self.plan.instance.name

    def set(self, key: str, value: Any) -> None:
        """Store a value for later use by other handlers."""
        self._outputs[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieve a value; return default if key is missing."""
        return self._outputs.get(key, default)

    def require(self, key: str) -> Any:
        """Retrieve a value; raise RuntimeError with available keys if missing."""
        if key not in self._outputs:
            available = ", ".join(sorted(self._outputs.keys())) or "(none)"
            raise RuntimeError(
                f"missing required key: {key!r}. Available keys: {available}"
            )
        return self._outputs[key]

    def set_password(self, value: pulumi.Input[str], user: str | None = None) -> None:
        """Store the password for a plan user, or for the root account when user is None."""
        self._passwords[user] = value

    def password(self, user: str | None = None) -> pulumi.Input[str] | None:
        """Password for a plan user (or root), or None when its policy needs none.

        Raises:
            RuntimeError: the policy needs a password but none was stored yet.
        """
        if user is None:
            policy = self.plan.instance.root_password_policy
            label = "root account"
        else:
            policy = self.plan.users[user].password_policy
            label = f"user {user!r}"
        if policy is PasswordPolicy.NONE:
            return None
        if user not in self._passwords:
            raise RuntimeError(f"no password stored for {label} ({policy.value}); run the secrets handler first")
        return self._passwords[user]

    def export(self, key: str, value: Any) -> None:
        """Register a Pulumi stack export."""
        self._exports[key] = value

    @property
    def exports(self) -> dict[str, Any]:
        """Return all registered Pulumi exports."""
        return dict(self._exports)
