"""
Pytest configuration and fixtures for Warden tests.
"""

import os
import sys
import tempfile
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

# Keep test runs from writing into the project's logs/ directory
os.environ.setdefault("WARDEN_LOG_DIR", tempfile.mkdtemp(prefix="warden-logs-"))

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

import pytest
import pytest_asyncio

from warden.configuration.app_configuration import AppConfig
from warden.database.db_connection import ConnectionManager
from warden.database.db_schema import SchemaManager
from warden.datatypes.platform_datatypes import GuildInfo, MemberInfo, RoleInfo
from warden.sanctions.errors import PlatformError, PlatformErrorCode

GUILD_ID = 1000
MOD_ID = 2001
TARGET_ID = 3001
ADMIN_ID = 4001


class FakeClock:
    """Controllable replacement for ``utcnow``."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakePlatform:
    """In-memory stand-in for :class:`warden.platform.discord_platform.DiscordPlatform`.

    Failures can be injected per method name through ``errors``.
    """

    def __init__(self) -> None:
        self.guilds: Dict[int, GuildInfo] = {}
        self.members: Dict[Tuple[int, int], MemberInfo] = {}
        self.roles: Dict[Tuple[int, str], RoleInfo] = {}
        self.channels: Dict[Tuple[int, str], int] = {}
        self.bans: Set[Tuple[int, int]] = set()
        self.errors: Dict[str, Exception] = {}
        self.calls: List[Tuple[Any, ...]] = []
        self.direct_messages: List[Tuple[int, Any]] = []
        self.channel_messages: List[Tuple[int, Any]] = []

    # -- setup helpers -------------------------------------------------
    def add_guild(self, guild_id: int = GUILD_ID, name: str = "Test Guild") -> GuildInfo:
        self.guilds[guild_id] = GuildInfo(id=guild_id, name=name)
        return self.guilds[guild_id]

    def add_member(
        self,
        user_id: int,
        guild_id: int = GUILD_ID,
        *,
        top: int = 0,
        permissions: Tuple[str, ...] = (),
        role_ids: Tuple[int, ...] = (),
    ) -> MemberInfo:
        member = MemberInfo(
            id=user_id,
            guild_id=guild_id,
            display_name=f"user{user_id}",
            role_ids=frozenset(role_ids),
            top_role_position=top,
            permissions=frozenset(permissions),
        )
        self.members[(guild_id, user_id)] = member
        return member

    def seed_role(self, name: str, role_id: int, guild_id: int = GUILD_ID) -> RoleInfo:
        role = RoleInfo(id=role_id, name=name, position=1)
        self.roles[(guild_id, name)] = role
        return role

    def seed_channel(self, name: str, channel_id: int, guild_id: int = GUILD_ID) -> int:
        self.channels[(guild_id, name)] = channel_id
        return channel_id

    def calls_to(self, name: str) -> List[Tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == name]

    def _maybe_fail(self, name: str) -> None:
        if name in self.errors:
            raise self.errors[name]

    # -- PlatformClient ------------------------------------------------
    async def fetch_guild(self, guild_id: int) -> Optional[GuildInfo]:
        self._maybe_fail("fetch_guild")
        return self.guilds.get(guild_id)

    async def fetch_member(self, guild_id: int, user_id: int) -> Optional[MemberInfo]:
        self._maybe_fail("fetch_member")
        return self.members.get((guild_id, user_id))

    async def ban(self, guild_id: int, user_id: int, *, reason: str, delete_message_seconds: int = 0) -> None:
        self.calls.append(("ban", guild_id, user_id, reason, delete_message_seconds))
        self._maybe_fail("ban")
        self.bans.add((guild_id, user_id))
        self.members.pop((guild_id, user_id), None)

    async def unban(self, guild_id: int, user_id: int, reason: str) -> None:
        self.calls.append(("unban", guild_id, user_id, reason))
        self._maybe_fail("unban")
        if (guild_id, user_id) not in self.bans:
            raise PlatformError(PlatformErrorCode.UNKNOWN_BAN)
        self.bans.discard((guild_id, user_id))

    async def find_role(self, guild_id: int, name: str) -> Optional[RoleInfo]:
        self._maybe_fail("find_role")
        return self.roles.get((guild_id, name))

    async def add_role(self, member: MemberInfo, role: RoleInfo, reason: str) -> None:
        self.calls.append(("add_role", member.guild_id, member.id, role.id, reason))
        self._maybe_fail("add_role")
        current = self.members[(member.guild_id, member.id)]
        self.members[(member.guild_id, member.id)] = replace(current, role_ids=current.role_ids | {role.id})

    async def remove_role(self, member: MemberInfo, role: RoleInfo, reason: str) -> None:
        self.calls.append(("remove_role", member.guild_id, member.id, role.id, reason))
        self._maybe_fail("remove_role")
        current = self.members[(member.guild_id, member.id)]
        self.members[(member.guild_id, member.id)] = replace(current, role_ids=current.role_ids - {role.id})

    async def find_channel(self, guild_id: int, name: str) -> Optional[int]:
        self._maybe_fail("find_channel")
        return self.channels.get((guild_id, name))

    async def create_role(self, guild_id: int, name: str, reason: str) -> RoleInfo:
        self.calls.append(("create_role", guild_id, name, reason))
        self._maybe_fail("create_role")
        role_id = 600 + len(self.calls_to("create_role"))
        return self.seed_role(name, role_id, guild_id)

    async def create_channel(self, guild_id: int, name: str, reason: str) -> int:
        self.calls.append(("create_channel", guild_id, name, reason))
        self._maybe_fail("create_channel")
        channel_id = 950 + len(self.calls_to("create_channel"))
        return self.seed_channel(name, channel_id, guild_id)

    async def send_direct_message(self, user_id: int, content: Any) -> None:
        self._maybe_fail("send_direct_message")
        self.direct_messages.append((user_id, content))

    async def send_channel_message(self, channel_id: int, content: Any) -> None:
        self._maybe_fail("send_channel_message")
        self.channel_messages.append((channel_id, content))


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def platform() -> FakePlatform:
    """Guild with a moderator, an admin, a regular target and all sanction roles."""
    fake = FakePlatform()
    fake.add_guild()
    fake.add_member(MOD_ID, top=10, permissions=("ban_members", "manage_messages"))
    fake.add_member(ADMIN_ID, top=1, permissions=("administrator",))
    fake.add_member(TARGET_ID, top=2)
    fake.seed_role("mute", 501)
    fake.seed_role("imute", 502)
    fake.seed_role("rmute", 503)
    fake.seed_role("Jailed", 504)
    fake.seed_channel("jail-log", 900)
    return fake


@pytest_asyncio.fixture()
async def connection(tmp_path: Path):
    """Fresh SQLite database with the full schema."""
    manager = ConnectionManager()
    await manager.open(tmp_path / "warden.db")
    await SchemaManager.initialize_schema(manager.connection)
    yield manager
    await manager.close()


@pytest.fixture()
def app_config(tmp_path: Path) -> AppConfig:
    config_path = tmp_path / "app_config.yml"
    config_path.write_text(
        "reconciliation:\n"
        "  interval_seconds: 30\n"
        "persistence:\n"
        "  retry_attempts: 3\n"
        "  retry_delay_seconds: 0\n",
        encoding="utf-8",
    )
    return AppConfig(config_path)
