"""Tests for engine-family classification and IAM flag derivation/merging."""

import pytest

from sqlengine.plan.engine import (
    derive_iam_auth_flag,
    find_flag_conflicts,
    merge_flags,
    resolve_engine_family,
)
from sqlengine.plan.errors import ErrorKind
from sqlengine.plan.models import EngineFamily, Flag


@pytest.mark.parametrize(
    ("version", "family"),
    [
        ("MYSQL_5_7", EngineFamily.MYSQL),
        ("MYSQL_8_0_31", EngineFamily.MYSQL),
        ("POSTGRES_15", EngineFamily.POSTGRES),
        ("POSTGRES_9_6", EngineFamily.POSTGRES),
        ("SQLSERVER_2019_STANDARD", EngineFamily.SQLSERVER),
        ("SQLSERVER_2022_ENTERPRISE", EngineFamily.SQLSERVER),
    ],
)
def test_resolve_engine_family_recognised_prefixes(version: str, family: EngineFamily) -> None:
    """Versions starting with a known prefix map to that family."""
    assert resolve_engine_family(version) is family


@pytest.mark.parametrize("version", ["ORACLE_19", "postgres_15", "", None, "SPANNER"])
def test_resolve_engine_family_unknown(version: str | None) -> None:
    """Anything else is UNKNOWN rather than an error."""
    assert resolve_engine_family(version) is EngineFamily.UNKNOWN


def test_iam_flag_mysql_uses_underscore_name() -> None:
    """MySQL IAM auth flag is underscore-separated with value On."""
    flag = derive_iam_auth_flag(EngineFamily.MYSQL, True)
    assert flag == Flag(name="cloudsql_iam_authentication", value="On")


def test_iam_flag_postgres_uses_dot_name() -> None:
    """PostgreSQL IAM auth flag is dot-separated."""
    flag = derive_iam_auth_flag("POSTGRES", True)
    assert flag == Flag(name="cloudsql.iam_authentication", value="On")


@pytest.mark.parametrize("family", list(EngineFamily))
def test_iam_flag_disabled_yields_nothing(family: EngineFamily) -> None:
    """Disabled IAM auth never produces a flag."""
    assert derive_iam_auth_flag(family, False) is None


def test_iam_flag_unknown_and_sqlserver_yield_nothing() -> None:
    """Families without an IAM auth flag produce nothing even when enabled."""
    assert derive_iam_auth_flag(EngineFamily.UNKNOWN, True) is None
    assert derive_iam_auth_flag(EngineFamily.SQLSERVER, True) is None
    assert derive_iam_auth_flag("NOT_A_FAMILY", True) is None


def test_merge_flags_appends_derived_flag() -> None:
    """A derived flag fills the gap when the user did not supply it."""
    user = [Flag("max_connections", "100")]
    merged = merge_flags(user, [derive_iam_auth_flag(EngineFamily.POSTGRES, True)])
    assert merged == (
        Flag("max_connections", "100"),
        Flag("cloudsql.iam_authentication", "On"),
    )


def test_merge_flags_user_value_wins() -> None:
    """A user-supplied flag with the same name is never overwritten."""
    user = [Flag("cloudsql.iam_authentication", "off")]
    merged = merge_flags(user, [Flag("cloudsql.iam_authentication", "On")])
    assert merged == (Flag("cloudsql.iam_authentication", "off"),)


def test_merge_flags_is_idempotent() -> None:
    """Merging the derived flag twice gives the same result as once."""
    derived = [Flag("cloudsql_iam_authentication", "On")]
    once = merge_flags([Flag("slow_query_log", "on")], derived)
    twice = merge_flags(once, derived)
    assert once == twice


def test_merge_flags_ignores_none() -> None:
    """None entries (no derived flag) are skipped."""
    assert merge_flags([], [None]) == ()


def test_find_flag_conflicts_reports_conflicting_values() -> None:
    """Same name with different values is a DuplicateFlag error."""
    errors = find_flag_conflicts(
        [Flag("max_connections", "100"), Flag("max_connections", "200")]
    )
    assert len(errors) == 1
    assert errors[0].kind is ErrorKind.DUPLICATE_FLAG
    assert errors[0].path == "instance.databaseFlags.1"
    assert "max_connections" in errors[0].message


def test_find_flag_conflicts_allows_identical_repeats() -> None:
    """Identical repeats collapse silently."""
    flags = [Flag("max_connections", "100"), Flag("max_connections", "100")]
    assert find_flag_conflicts(flags) == []
    assert merge_flags(flags, []) == (Flag("max_connections", "100"),)
