"""
Sanction kinds and the data structures that flow through the lifecycle engine.

``SanctionRecord`` is what the store persists, ``SanctionRequest`` is what the
guard hands to the applier, and ``SanctionResult`` / ``ReversalReport`` are what
callers get back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from warden.datatypes.platform_datatypes import MemberInfo


class SanctionKind(Enum):
    """Enumeration of temporary sanctions the engine can issue and reverse."""

    BAN = "ban"
    MUTE = "mute"
    IMAGE_MUTE = "image-mute"
    REACTION_MUTE = "reaction-mute"
    JAIL = "jail"

    def __str__(self) -> str:
        return self.value

    @property
    def is_role_based(self) -> bool:
        """True for every kind enforced by assigning a role (all but bans)."""
        return self is not SanctionKind.BAN

    @property
    def config_key(self) -> str:
        """Key used for this kind in ``app_config.yml`` sections."""
        return self.value.replace("-", "_")

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def case_action(self) -> str:
        """Ledger action name recorded when the sanction is issued."""
        return _CASE_ACTIONS[self]

    @property
    def reversal_action(self) -> str:
        """Ledger action name recorded when the sanction is lifted."""
        return _REVERSAL_ACTIONS[self]

    @classmethod
    def parse(cls, value: str) -> "SanctionKind":
        """Accept enum values, config keys and ledger action names."""
        normalized = value.strip().lower()
        for kind in cls:
            if normalized in (kind.value, kind.config_key, kind.case_action):
                return kind
        raise ValueError(f"Unknown sanction kind: {value!r}")


_LABELS = {
    SanctionKind.BAN: "temporary ban",
    SanctionKind.MUTE: "mute",
    SanctionKind.IMAGE_MUTE: "image mute",
    SanctionKind.REACTION_MUTE: "reaction mute",
    SanctionKind.JAIL: "jail sentence",
}

_CASE_ACTIONS = {
    SanctionKind.BAN: "tempban",
    SanctionKind.MUTE: "mute",
    SanctionKind.IMAGE_MUTE: "imute",
    SanctionKind.REACTION_MUTE: "rmute",
    SanctionKind.JAIL: "jail",
}

_REVERSAL_ACTIONS = {
    SanctionKind.BAN: "unban",
    SanctionKind.MUTE: "unmute",
    SanctionKind.IMAGE_MUTE: "iunmute",
    SanctionKind.REACTION_MUTE: "runmute",
    SanctionKind.JAIL: "unjail",
}


class PermissionSource(Enum):
    """Which authorization strategy allowed a request through the guard."""

    NATIVE = "native"
    OVERLAY = "overlay"


class ReversalOutcome(Enum):
    """Terminal result of one reversal attempt.

    Every outcome ends with the record being removed from the store; the tag
    only tells log readers what actually happened on the platform.
    """

    REVERSED = "reversed"
    ALREADY_REVERSED = "already-reversed"
    GUILD_MISSING = "guild-missing"
    TARGET_MISSING = "target-missing"
    ROLE_MISSING = "role-missing"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class SanctionRecord:
    """One active sanction as persisted in the ``active_sanctions`` table.

    Attributes:
        guild_id: Guild the sanction applies to.
        user_id: Sanctioned user.
        kind: Kind of sanction; with the two IDs this forms the primary key.
        executor_id: Moderator who issued it.
        reason: Free-text reason.
        duration_token: Original token as typed, e.g. ``"10m"``.
        expires_at: UTC instant at which reconciliation lifts the sanction.
        created_at: UTC instant the sanction was issued.
        extra: Kind-specific flags such as ``delete_messages`` for bans.
    """
    guild_id: int
    user_id: int
    kind: SanctionKind
    executor_id: int
    reason: str
    duration_token: str
    expires_at: datetime
    created_at: datetime
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be later than created_at")


@dataclass(slots=True)
class SanctionRequest:
    """A request that passed every guard check and is ready to apply."""
    kind: SanctionKind
    guild_id: int
    executor: MemberInfo
    target_id: int
    target: Optional[MemberInfo]
    duration_ms: int
    duration_token: str
    reason: str
    source: PermissionSource
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class SanctionResult:
    """Summary returned to the requester after a sanction was applied."""
    record: SanctionRecord
    duration_ms: int
    case_id: Optional[int] = None
    notice: Optional[str] = None

    @property
    def expires_at(self) -> datetime:
        return self.record.expires_at


@dataclass(slots=True)
class ReversalReport:
    """What happened to one record during a reversal attempt."""
    record: SanctionRecord
    outcome: ReversalOutcome
    removed: bool = False
    case_id: Optional[int] = None
    detail: str = ""


@dataclass(slots=True)
class CaseEntry:
    """Input for the case ledger."""
    guild_id: int
    action: str
    target_id: int
    executor_id: int
    reason: str
    duration: Optional[str] = None
    expires_at: Optional[datetime] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class ModerationCase:
    """A case as stored by the ledger."""
    case_id: int
    guild_id: int
    action: str
    target_id: int
    executor_id: int
    reason: str
    duration: Optional[str]
    expires_at: Optional[datetime]
    extra: Dict[str, Any]
    created_at: datetime
