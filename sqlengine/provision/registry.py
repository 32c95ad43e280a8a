"""Handler registry: phase ordering and handler registration."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import IntEnum
from typing import Protocol

from sqlengine.provision.context import ProvisionContext


class Phase(IntEnum):
    """Execution phase order for handlers (lower runs first)."""

    SECRETS = 0
    INSTANCE = 1
    DATABASES = 2
    USERS = 3
    REPLICAS = 4


class ResourceHandler(Protocol):
    """Protocol for resource handler functions."""

    def __call__(self, ctx: ProvisionContext) -> None:
        ...


@dataclass
class HandlerDef:
    """Registered handler: function, phase, and handlers that must run first."""

    handler: Callable[[ProvisionContext], None]
    phase: Phase
    requires: list[str]


HANDLERS: dict[str, HandlerDef] = {}


def register(
    name: str,
    phase: Phase,
    requires: list[str] | None = None,
) -> Callable[[ResourceHandler], ResourceHandler]:
    """Decorator to register a resource handler in HANDLERS."""

    def decorator(fn: ResourceHandler) -> ResourceHandler:
        HANDLERS[name] = HandlerDef(
            handler=fn,
            phase=phase,
            requires=requires or [],
        )
        return fn

    return decorator


def ordered_handlers() -> list[tuple[str, HandlerDef]]:
    """Registered handlers sorted by phase; registration order breaks ties."""
    return sorted(HANDLERS.items(), key=lambda item: item[1].phase)


def run_handlers(ctx: ProvisionContext) -> list[str]:
    """Run every registered handler in phase order; return the names that ran.

    Raises:
        RuntimeError: if a handler requires one that is not registered or
            belongs to a later phase.
    """
    ran: list[str] = []
    for name, definition in ordered_handlers():
        missing = [r for r in definition.requires if r not in ran]
        if missing:
            raise RuntimeError(
                f"handler {name!r} requires {', '.join(missing)} to run first"
            )
        definition.handler(ctx)
        ran.append(name)
    return ran
