"""Random passwords for users and the root account (the secret generator)."""

import pulumi
import pulumi_random


def create_random_password(
    resource_name: str,
    length: int = 32,
    special: bool = False,
) -> pulumi_random.RandomPassword:
    """Create a random password; the result is stored as a secret in stack state."""
    return pulumi_random.RandomPassword(
        resource_name,
        length=length,
        special=special,
        min_lower=1,
        min_upper=1,
        min_numeric=1,
        opts=pulumi.ResourceOptions(additional_secret_outputs=["result"]),
    )
