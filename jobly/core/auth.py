from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum


class Rejection(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True, slots=True)
class Identity:
    username: str
    is_admin: bool
    issued_at: int | None = None


@dataclass(frozen=True, slots=True)
class GateOutcome:
    rejection: Rejection | None = None
    message: str = ""

    @property
    def proceed(self) -> bool:
        return self.rejection is None


PROCEED = GateOutcome()

Gate = Callable[[Identity | None, str | None], GateOutcome]


def require_logged_in(identity: Identity | None, target_username: str | None = None) -> GateOutcome:
    if identity is None:
        return GateOutcome(Rejection.UNAUTHENTICATED, "must be logged in")
    return PROCEED


def require_admin(identity: Identity | None, target_username: str | None = None) -> GateOutcome:
    if identity is None:
        return GateOutcome(Rejection.UNAUTHENTICATED, "must be logged in")
    if not identity.is_admin:
        return GateOutcome(Rejection.FORBIDDEN, "admin access required")
    return PROCEED


def require_self_or_admin(identity: Identity | None, target_username: str | None = None) -> GateOutcome:
    if identity is None:
        return GateOutcome(Rejection.UNAUTHENTICATED, "must be logged in")
    if identity.is_admin:
        return PROCEED
    if target_username is not None and identity.username == target_username:
        return PROCEED
    return GateOutcome(Rejection.FORBIDDEN, "must be the same user or an admin")


def evaluate_gates(
    identity: Identity | None,
    gates: Iterable[Gate],
    *,
    target_username: str | None = None,
) -> GateOutcome:
    """Run ``gates`` left to right and return the first rejection, if any."""
    for gate in gates:
        outcome = gate(identity, target_username)
        if not outcome.proceed:
            return outcome
    return PROCEED
