"""
Exception hierarchy for the sanction lifecycle.

Every exception carries a ``message`` that is safe to show to the moderator
who issued the command. Validation, authorization and conflict errors are
raised before any side effect happens.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional


class SanctionError(Exception):
    """Base class for all errors the command surface reports to the requester."""

    title = "Sanction Failed"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class ValidationError(SanctionError):
    title = "Invalid Request"


class InvalidDuration(ValidationError):
    title = "Invalid Time Format"

    def __init__(self, token: str) -> None:
        super().__init__(
            f"`{token}` is not a valid duration. Use a number followed by one unit, "
            "e.g. 30m, 1h, 7d.\nSupported units: s (seconds), m (minutes), h (hours), d (days)"
        )
        self.token = token


class DurationOutOfRange(ValidationError):
    title = "Duration Out Of Range"

    def __init__(self, message: str, duration_ms: int) -> None:
        super().__init__(message)
        self.duration_ms = duration_ms


class SelfTarget(ValidationError):
    title = "Cannot Target Yourself"

    def __init__(self) -> None:
        super().__init__("You cannot sanction yourself.")


# ---------------------------------------------------------------------------
# Authorization
# ---------------------------------------------------------------------------

class AuthorizationError(SanctionError):
    title = "Insufficient Permissions"


class InsufficientPermission(AuthorizationError):
    pass


class HierarchyViolation(AuthorizationError):
    title = "Cannot Execute Sanction"


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------

class ConflictError(SanctionError):
    title = "Already Sanctioned"

    def __init__(self, message: str, expires_at: Optional[datetime] = None) -> None:
        super().__init__(message)
        self.expires_at = expires_at


class AlreadySanctioned(ConflictError):
    """Raised by the guard when an active record already exists."""


class DuplicateSanction(ConflictError):
    """Raised by the store when an insert collides with an existing record."""


class SanctionNotFound(SanctionError):
    title = "No Active Sanction"


# ---------------------------------------------------------------------------
# Platform / persistence
# ---------------------------------------------------------------------------

class PlatformErrorCode(Enum):
    """Platform failure codes. Integer values are Discord's JSON error codes."""

    UNKNOWN_GUILD = 10004
    UNKNOWN_MEMBER = 10007
    UNKNOWN_ROLE = 10011
    UNKNOWN_USER = 10013
    UNKNOWN_BAN = 10026
    MISSING_ACCESS = 50001
    CANNOT_DM = 50007
    MISSING_PERMISSIONS = 50013
    ALREADY_APPLIED = -1
    TIMEOUT = -2
    UNKNOWN = 0

    @classmethod
    def from_code(cls, code: int) -> "PlatformErrorCode":
        for member in cls:
            if member.value == code:
                return member
        return cls.UNKNOWN


RECOVERABLE_CODES = frozenset({
    PlatformErrorCode.UNKNOWN_MEMBER,
    PlatformErrorCode.UNKNOWN_BAN,
    PlatformErrorCode.ALREADY_APPLIED,
})

_PLATFORM_MESSAGES = {
    PlatformErrorCode.UNKNOWN_GUILD: "The server could not be found.",
    PlatformErrorCode.UNKNOWN_MEMBER: "The user is not a member of this server.",
    PlatformErrorCode.UNKNOWN_ROLE: "The required role does not exist. Please run `/setup` first.",
    PlatformErrorCode.UNKNOWN_USER: "User not found.",
    PlatformErrorCode.UNKNOWN_BAN: "The user is not banned.",
    PlatformErrorCode.MISSING_ACCESS: "I do not have access to perform this action.",
    PlatformErrorCode.CANNOT_DM: "The user does not accept direct messages.",
    PlatformErrorCode.MISSING_PERMISSIONS: "I do not have permission to do that. Please check my role permissions.",
    PlatformErrorCode.ALREADY_APPLIED: "The user is already in that state.",
    PlatformErrorCode.TIMEOUT: "Discord did not respond in time.",
    PlatformErrorCode.UNKNOWN: "Discord rejected the request.",
}


class PlatformError(SanctionError):
    """Failure reported by the platform collaborator."""

    def __init__(self, code: PlatformErrorCode, message: Optional[str] = None) -> None:
        super().__init__(message or _PLATFORM_MESSAGES[code])
        self.code = code

    @property
    def recoverable(self) -> bool:
        """True when the platform is already in (or equivalent to) the target state."""
        return self.code in RECOVERABLE_CODES

    def __repr__(self) -> str:
        return f"PlatformError({self.code.name}, {self.message!r})"


class PersistenceError(SanctionError):
    title = "Storage Error"
