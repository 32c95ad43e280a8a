"""Plan normalizer: turns a sql-instance.yaml into a resolved provisioning plan."""
