from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class DenialKind(str, Enum):
    """Why a request was refused. None of these are retryable."""
    UNAUTHENTICATED = "unauthenticated"
    OUT_OF_SCOPE = "out_of_scope"
    INSUFFICIENT_PERMISSION = "insufficient_permission"
    INACTIVE_BRANCH = "inactive_branch"
    REVOKED_OVERRIDE = "revoked_override"
    ENGINE_UNAVAILABLE = "engine_unavailable"


DENIAL_MESSAGES: Dict[DenialKind, str] = {
    DenialKind.UNAUTHENTICATED: "Unauthorized",
    DenialKind.OUT_OF_SCOPE: "You do not have access to this branch",
    DenialKind.INSUFFICIENT_PERMISSION: "You do not have permission to perform this action",
    DenialKind.INACTIVE_BRANCH: "Your branch is currently inactive. Please contact administration.",
    DenialKind.REVOKED_OVERRIDE: "This permission has been explicitly revoked for your account",
    DenialKind.ENGINE_UNAVAILABLE: "Authorization service unavailable",
}


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of a single authorization request."""
    allowed: bool
    kind: Optional[DenialKind] = None
    message: str = ""
    context: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def allow(cls) -> "AccessDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, kind: DenialKind, message: Optional[str] = None, **context: Any) -> "AccessDecision":
        return cls(
            allowed=False,
            kind=kind,
            message=message or DENIAL_MESSAGES[kind],
            context=context,
        )

    def __bool__(self) -> bool:
        return self.allowed


class AuthorizationError(Exception):
    """Base class for failures raised at the request boundary."""

    def __init__(self, decision: AccessDecision):
        super().__init__(decision.message)
        self.decision = decision


class AuthenticationRequired(AuthorizationError):
    """No usable principal on the request."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(AccessDecision.deny(DenialKind.UNAUTHENTICATED, message))


class AccessDenied(AuthorizationError):
    """The principal is known but the decision was Deny."""


class EngineUnavailable(AuthorizationError):
    """The decision could not be computed; callers must treat this as Deny."""

    def __init__(self, reason: str = ""):
        super().__init__(AccessDecision.deny(DenialKind.ENGINE_UNAVAILABLE))
        self.reason = reason
