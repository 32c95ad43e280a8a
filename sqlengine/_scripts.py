"""Dev task entry points (see [project.scripts] in pyproject.toml)."""

from pathlib import Path
import subprocess
import sys

SOURCES = ["sqlengine", "tests"]
FIXTURES_DIR = Path(__file__).resolve().parent.parent / "fixtures"


def _tool(*args: str) -> None:
    """Run `python -m <args>` and exit with its return code."""
    sys.exit(subprocess.run([sys.executable, "-m", *args]).returncode)


def lint() -> None:
    _tool("ruff", "check", *SOURCES)


def lint_fix() -> None:
    _tool("ruff", "check", "--fix", *SOURCES)


def format() -> None:
    _tool("ruff", "format", *SOURCES)


def type_check() -> None:
    _tool("pyright", "sqlengine")


def test() -> None:
    _tool("pytest", "tests/", "-v")


def test_cov() -> None:
    _tool("pytest", "tests/", "--cov=sqlengine", "--cov-report=term-missing", "-v")


def check_fixtures() -> None:
    """Assemble a plan for every fixtures/*.yaml; exit 1 if any is rejected."""
    from sqlengine.config import SqlInstanceConfig
    from sqlengine.plan.errors import PlanValidationError
    from sqlengine.plan.normalizer import plan_from_config

    failed = 0
    for path in sorted(FIXTURES_DIR.glob("*.yaml")):
        try:
            plan = plan_from_config(SqlInstanceConfig.from_file(str(path)))
        except (SystemExit, PlanValidationError) as e:
            failed += 1
            print(f"FAIL {path.name}\n{e}", file=sys.stderr)
            continue
        print(f"ok   {path.name}: {plan.instance.name} ({plan.instance.family.value}, {plan.instance.network.kind})")
    sys.exit(1 if failed else 0)
