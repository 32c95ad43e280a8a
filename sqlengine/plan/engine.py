"""Engine-family classification and family-specific flag naming."""

from collections.abc import Iterable

from sqlengine.plan.errors import ErrorKind, FieldError
from sqlengine.plan.models import EngineFamily, Flag

IAM_AUTH_FLAG_VALUE = "On"

IAM_AUTH_FLAG_NAMES: dict[EngineFamily, str] = {
    EngineFamily.MYSQL: "cloudsql_iam_authentication",
    EngineFamily.POSTGRES: "cloudsql.iam_authentication",
}

_FAMILY_PREFIXES = (
    EngineFamily.MYSQL,
    EngineFamily.POSTGRES,
    EngineFamily.SQLSERVER,
)


def resolve_engine_family(version: str | None) -> EngineFamily:
    """Classify a database_version (e.g. POSTGRES_15) by prefix.

    Unrecognised versions return UNKNOWN rather than failing.
    """
    if not version:
        return EngineFamily.UNKNOWN
    for family in _FAMILY_PREFIXES:
        if version.startswith(family.value):
            return family
    return EngineFamily.UNKNOWN


def supports_iam_authentication(family: EngineFamily) -> bool:
    return family in IAM_AUTH_FLAG_NAMES


def derive_iam_auth_flag(family: EngineFamily | str, enabled: bool) -> Flag | None:
    """Flag that turns on IAM database authentication for the family, or None."""
    if not enabled:
        return None
    try:
        family = EngineFamily(family)
    except ValueError:
        return None
    name = IAM_AUTH_FLAG_NAMES.get(family)
    if name is None:
        return None
    return Flag(name=name, value=IAM_AUTH_FLAG_VALUE)


def find_flag_conflicts(flags: Iterable[Flag], path: str = "instance.databaseFlags") -> list[FieldError]:
    """Report user-supplied flags that repeat a name with a different value."""
    seen: dict[str, str] = {}
    errors: list[FieldError] = []
    for i, flag in enumerate(flags):
        if flag.name in seen and seen[flag.name] != flag.value:
            errors.append(
                FieldError(
                    path=f"{path}.{i}",
                    kind=ErrorKind.DUPLICATE_FLAG,
                    message=(
                        f"flag {flag.name!r} supplied twice with conflicting values "
                        f"{seen[flag.name]!r} and {flag.value!r}"
                    ),
                )
            )
        seen.setdefault(flag.name, flag.value)
    return errors


def merge_flags(user_flags: Iterable[Flag], derived_flags: Iterable[Flag | None]) -> tuple[Flag, ...]:
    """Merge derived flags into user flags; derived flags only fill gaps.

    User flags keep their order (identical repeats collapse to the first);
    derived flags are appended when no flag of the same name exists.
    """
    merged: dict[str, Flag] = {}
    for flag in user_flags:
        merged.setdefault(flag.name, flag)
    for flag in derived_flags:
        if flag is not None:
            merged.setdefault(flag.name, flag)
    return tuple(merged.values())
