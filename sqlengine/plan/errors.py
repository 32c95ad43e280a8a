"""Structured validation errors raised while assembling a provisioning plan."""

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    MISSING_NETWORK_PATH = "MissingNetworkPath"
    UNSUPPORTED_FEATURE_FOR_FAMILY = "UnsupportedFeatureForFamily"
    INVALID_FIELD_RANGE = "InvalidFieldRange"
    MISSING_REQUIRED_FIELD = "MissingRequiredField"
    DUPLICATE_FLAG = "DuplicateFlag"


@dataclass(frozen=True)
class FieldError:
    """One violated invariant: dotted field path, kind, human-readable message."""

    path: str
    kind: ErrorKind
    message: str

    def __str__(self) -> str:
        return f"{self.path}: {self.message} ({self.kind.value})"


class PlanValidationError(Exception):
    """Raised when plan assembly finds one or more invalid fields.

    Carries every error found, not just the first, so callers can report
    them all before refusing to apply.
    """

    def __init__(self, errors: list[FieldError]) -> None:
        self.errors = list(errors)
        lines = ["sql instance plan validation failed:"]
        for i, err in enumerate(self.errors, 1):
            lines.append(f"  {i}. {err}")
        super().__init__("\n".join(lines))

    @property
    def kinds(self) -> set[ErrorKind]:
        return {e.kind for e in self.errors}


class ErrorCollector:
    """Accumulates field errors so a derivation pass can report all of them at once."""

    def __init__(self) -> None:
        self.errors: list[FieldError] = []

    def add(self, path: str, kind: ErrorKind, message: str) -> None:
        self.errors.append(FieldError(path=path, kind=kind, message=message))

    def extend(self, errors: list[FieldError]) -> None:
        self.errors.extend(errors)

    def raise_if_any(self) -> None:
        if self.errors:
            raise PlanValidationError(self.errors)

    def __bool__(self) -> bool:
        return bool(self.errors)
