"""
SQL engine CLI: setup, validate, plan, create, destroy. Hides infrastructure tooling from the user.
Run `sqlengine setup` once; then use `sqlengine validate`, `sqlengine plan`, `sqlengine create`,
`sqlengine destroy`.
"""

import os
from pathlib import Path
import subprocess
import sys
from typing import Any

import yaml

CONFIG_DIR = ".sql-engine"
CONFIG_FILENAME = "config.yaml"
DEFAULT_STACK_PREFIX = "dev"
PROGRAM_DIR = "sqlengine"


def _project_root() -> Path:
    """Directory containing sqlengine/ (and pyproject.toml). Use cwd as default."""
    return Path.cwd()


def _config_path() -> Path:
    return _project_root() / CONFIG_DIR / CONFIG_FILENAME


def _load_config() -> dict[str, Any] | None:
    path = _config_path()
    if not path.exists():
        return None
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else None


def _save_config(
    backend_url: str,
    project: str,
    region: str,
    stack_prefix: str = DEFAULT_STACK_PREFIX,
) -> None:
    path = _config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(
            {
                "backend_url": backend_url,
                "project": project,
                "region": region,
                "stack_prefix": stack_prefix,
            },
            f,
            default_flow_style=False,
        )
    print(f"Configuration saved to {path}")


def _require_config() -> dict[str, Any]:
    config = _load_config()
    if not config or not config.get("backend_url") or not config.get("project") or not config.get("region"):
        print("Configuration missing or incomplete. Run: sqlengine setup", file=sys.stderr)
        sys.exit(1)
    return config


def _check_gcp_credentials() -> bool:
    try:
        subprocess.run(
            ["gcloud", "auth", "print-access-token"],
            capture_output=True,
            check=True,
            timeout=10,
        )
        return True
    except (subprocess.CalledProcessError, FileNotFoundError, subprocess.TimeoutExpired):
        return False


def _run(cmd: list[str], env: dict[str, str] | None = None, check: bool = True) -> subprocess.CompletedProcess:
    full_env = os.environ.copy()
    if env:
        full_env.update(env)
    return subprocess.run(
        cmd,
        cwd=_project_root(),
        env=full_env,
        check=check,
    )


def _pulumi(*args: str) -> list[str]:
    return ["pulumi", *args, "-C", PROGRAM_DIR]


def _stack_name(instance_name: str, region: str, config: dict[str, Any]) -> str:
    prefix = config.get("stack_prefix", DEFAULT_STACK_PREFIX)
    return f"{prefix}.{instance_name}.{region}"


def _resolve_path(raw: str) -> Path:
    path = Path(raw)
    if not path.is_absolute():
        path = _project_root() / path
    if not path.exists():
        print(f"File not found: {path}", file=sys.stderr)
        sys.exit(1)
    return path


def _load_plan(path: Path):
    """Load the document and assemble its plan; exit 1 with the error report on failure."""
    from sqlengine.config import SqlInstanceConfig
    from sqlengine.plan.errors import PlanValidationError
    from sqlengine.plan.normalizer import plan_from_config

    config = _load_config() or {}
    instance_config = SqlInstanceConfig.from_file(
        str(path),
        project=os.environ.get("SQL_ENGINE_PROJECT") or None,
        region=os.environ.get("SQL_ENGINE_REGION") or None,
        default_project=config.get("project"),
        default_region=config.get("region"),
    )
    try:
        return plan_from_config(instance_config)
    except PlanValidationError as e:
        print(str(e), file=sys.stderr)
        sys.exit(1)


# --- setup ---


def _cmd_setup() -> None:
    print("First-time setup. You will need:")
    print("  1) GCP credentials (e.g. run: gcloud auth application-default login)")
    print("  2) GCS URI for infrastructure state (e.g. gs://your-project-pulumi-state)")
    print("  3) Default GCP project and region (e.g. us-central1)")
    print()

    if not _check_gcp_credentials():
        print("GCP credentials not found. Log in (e.g. gcloud auth login) and try again.", file=sys.stderr)
        sys.exit(1)
    print("GCP credentials OK.")

    backend_url = os.environ.get("SQL_ENGINE_BACKEND_URL", "").strip()
    if not backend_url:
        backend_url = input("GCS URI for infrastructure state: ").strip()
    if not backend_url:
        print("Backend URL is required.", file=sys.stderr)
        sys.exit(1)

    project = os.environ.get("SQL_ENGINE_PROJECT", "").strip()
    if not project:
        project = input("Default GCP project: ").strip()
    if not project:
        print("Project is required.", file=sys.stderr)
        sys.exit(1)

    region = os.environ.get("SQL_ENGINE_REGION", "").strip()
    if not region:
        region = input("Default GCP region (e.g. us-central1): ").strip()
    if not region:
        print("Region is required.", file=sys.stderr)
        sys.exit(1)

    stack_prefix = os.environ.get("SQL_ENGINE_STACK_PREFIX", DEFAULT_STACK_PREFIX).strip() or DEFAULT_STACK_PREFIX
    _save_config(backend_url, project, region, stack_prefix)
    print("Setup complete. You can now use: sqlengine plan <path>, sqlengine create <path>, sqlengine destroy <name>")


# --- validate / plan ---


def _cmd_validate(instance_yaml_path: str) -> None:
    plan = _load_plan(_resolve_path(instance_yaml_path))
    for notice in plan.notices:
        print(f"warning: {notice}", file=sys.stderr)
    print(
        f"OK: instance '{plan.instance.name}' ({plan.instance.family.value}), "
        f"{len(plan.databases)} database(s), {len(plan.users)} user(s), {len(plan.replicas)} replica(s)"
    )


def _cmd_plan(instance_yaml_path: str) -> None:
    from sqlengine.plan.render import plan_to_dict

    plan = _load_plan(_resolve_path(instance_yaml_path))
    for notice in plan.notices:
        print(f"warning: {notice}", file=sys.stderr)
    yaml.safe_dump(plan_to_dict(plan), sys.stdout, default_flow_style=False, sort_keys=False)


# --- create ---


def _cmd_create(instance_yaml_path: str) -> None:
    config = _require_config()
    path = _resolve_path(instance_yaml_path)
    # fails before touching any stack
    instance = _load_plan(path).instance
    instance_name = instance.name
    stack = _stack_name(instance_name, instance.region, config)
    if not (_project_root() / PROGRAM_DIR / "Pulumi.yaml").exists():
        print(f"{PROGRAM_DIR}/Pulumi.yaml not found. Run this from the repository root.", file=sys.stderr)
        sys.exit(1)

    # the program must resolve the same project and region as the reviewed plan
    env = {
        "SQL_INSTANCE_PATH": str(path.resolve()),
        "SQL_ENGINE_PROJECT": instance.project,
        "SQL_ENGINE_REGION": instance.region,
        "PULUMI_BACKEND_URL": config["backend_url"],
    }
    select = _run(_pulumi("stack", "select", stack), env=env, check=False)
    if select.returncode != 0:
        _run(_pulumi("stack", "init", stack), env=env)
    _run(_pulumi("config", "set", "gcp:project", instance.project), env=env)
    _run(_pulumi("config", "set", "gcp:region", instance.region), env=env)
    print(f"Provisioning Cloud SQL instance '{instance_name}'...")
    _run(_pulumi("up", "-y"), env=env)
    print(f"Instance '{instance_name}' provisioned. Connection details: pulumi stack output -s {stack}")


# --- destroy ---


def _cmd_destroy(instance_name: str, region: str | None = None) -> None:
    config = _require_config()
    stack = _stack_name(instance_name, region or config["region"], config)
    if not (_project_root() / PROGRAM_DIR / "Pulumi.yaml").exists():
        print(f"{PROGRAM_DIR}/Pulumi.yaml not found. Run this from the repository root.", file=sys.stderr)
        sys.exit(1)

    env = {"PULUMI_BACKEND_URL": config["backend_url"]}
    select = _run(_pulumi("stack", "select", stack), env=env, check=False)
    if select.returncode != 0:
        print(f"No infrastructure found for instance '{instance_name}' (stack {stack}).", file=sys.stderr)
        sys.exit(1)
    confirm = input(f"This will delete instance '{instance_name}' and all of its data. Continue? [y/N]: ")
    if confirm.strip().lower() != "y":
        print("Cancelled.")
        sys.exit(0)
    _run(_pulumi("destroy", "-y"), env=env)
    rm = _run(_pulumi("stack", "rm", stack, "--yes"), env=env, check=False)
    if rm.returncode != 0:
        print(f"Stack {stack} could not be removed; it may already be gone.", file=sys.stderr)
    print(f"Instance '{instance_name}' removed.")


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(
        description="Manage Cloud SQL instances from sql-instance.yaml. Run 'sqlengine setup' first."
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("setup", help="One-time setup: GCP credentials, state storage, project, region")
    validate_p = sub.add_parser("validate", help="Validate a sql-instance.yaml without provisioning")
    validate_p.add_argument("instance_yaml", help="Path to sql-instance.yaml")
    plan_p = sub.add_parser("plan", help="Print the normalized provisioning plan")
    plan_p.add_argument("instance_yaml", help="Path to sql-instance.yaml")
    create_p = sub.add_parser("create", help="Provision an instance from a sql-instance.yaml")
    create_p.add_argument("instance_yaml", help="Path to sql-instance.yaml (file or fixture)")
    destroy_p = sub.add_parser("destroy", help="Remove all infrastructure for an instance")
    destroy_p.add_argument("instance_name", help="Instance name (from sql-instance.yaml metadata.name)")
    destroy_p.add_argument("--region", help="Instance region when it differs from the setup default")
    args = parser.parse_args()

    if args.command == "setup":
        _cmd_setup()
    elif args.command == "validate":
        _cmd_validate(args.instance_yaml)
    elif args.command == "plan":
        _cmd_plan(args.instance_yaml)
    elif args.command == "create":
        _cmd_create(args.instance_yaml)
    elif args.command == "destroy":
        _cmd_destroy(args.instance_name, args.region)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
