"""
Value objects handed across the platform and authorization boundaries.

The engine never touches ``discord.Member`` or ``discord.Role`` directly; the
Discord adapter converts them into these snapshots so the core can be driven
by any platform implementation (and by plain fakes in tests).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet


@dataclass(frozen=True, slots=True)
class GuildInfo:
    id: int
    name: str


@dataclass(frozen=True, slots=True)
class RoleInfo:
    id: int
    name: str
    position: int = 0


@dataclass(frozen=True, slots=True)
class MemberInfo:
    """Snapshot of a guild member.

    Attributes:
        id: User ID of the member.
        guild_id: Guild the snapshot was taken in.
        display_name: Name used in log output and embeds.
        role_ids: IDs of every role the member holds.
        top_role_position: Position of the member's highest role.
        permissions: Names of the native permission flags the member holds,
            e.g. ``{"ban_members", "manage_messages"}``.
    """
    id: int
    guild_id: int
    display_name: str = ""
    role_ids: FrozenSet[int] = field(default_factory=frozenset)
    top_role_position: int = 0
    permissions: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_administrator(self) -> bool:
        return "administrator" in self.permissions

    @property
    def mention(self) -> str:
        return f"<@{self.id}>"

    def has_role(self, role_id: int) -> bool:
        return role_id in self.role_ids


@dataclass(frozen=True, slots=True)
class Verdict:
    """Uniform yes/no answer from an authorization strategy."""
    allowed: bool
    reason: str = ""
