import pytest

from warden.datatypes.platform_datatypes import MemberInfo
from warden.services.authorization import OverlayAuthorization

GUILD_ID = 1000
HELPER_ROLE = 77


def member(user_id: int, top: int = 0, permissions=(), roles=()) -> MemberInfo:
    return MemberInfo(
        id=user_id,
        guild_id=GUILD_ID,
        role_ids=frozenset(roles),
        top_role_position=top,
        permissions=frozenset(permissions),
    )


@pytest.mark.asyncio
async def test_native_capability(connection) -> None:
    auth = OverlayAuthorization(connection)

    assert await auth.has_native_capability(member(1, permissions=("ban_members",)), ["ban_members"])
    assert await auth.has_native_capability(member(1, permissions=("administrator",)), ["ban_members"])
    assert await auth.has_native_capability(
        member(1, permissions=("moderate_members",)), ["manage_messages", "moderate_members"]
    )
    assert not await auth.has_native_capability(member(1, permissions=("kick_members",)), ["ban_members"])


@pytest.mark.asyncio
async def test_overlay_grant_follows_roles(connection) -> None:
    auth = OverlayAuthorization(connection)
    helper = member(1, roles=(HELPER_ROLE,))

    assert not (await auth.has_overlay_grant(helper, "ban_members")).allowed

    assert await auth.grant(GUILD_ID, HELPER_ROLE, "ban_members", granted_by=5) is True
    assert await auth.grant(GUILD_ID, HELPER_ROLE, "ban_members", granted_by=5) is False
    assert (await auth.has_overlay_grant(helper, "ban_members")).allowed
    assert not (await auth.has_overlay_grant(helper, "manage_messages")).allowed

    assert await auth.revoke(GUILD_ID, HELPER_ROLE, "ban_members") is True
    assert not (await auth.has_overlay_grant(helper, "ban_members")).allowed


@pytest.mark.asyncio
async def test_overlay_administrator_grant_covers_everything(connection) -> None:
    auth = OverlayAuthorization(connection)
    await auth.grant(GUILD_ID, HELPER_ROLE, "administrator", granted_by=5)

    assert (await auth.has_overlay_grant(member(1, roles=(HELPER_ROLE,)), "manage_messages")).allowed


@pytest.mark.asyncio
async def test_grant_rejects_unknown_permission(connection) -> None:
    auth = OverlayAuthorization(connection)
    with pytest.raises(ValueError):
        await auth.grant(GUILD_ID, HELPER_ROLE, "fly", granted_by=5)


@pytest.mark.asyncio
async def test_list_grants(connection) -> None:
    auth = OverlayAuthorization(connection)
    await auth.grant(GUILD_ID, HELPER_ROLE, "ban_members", granted_by=5)
    await auth.grant(GUILD_ID, HELPER_ROLE, "manage_messages", granted_by=5)
    await auth.grant(GUILD_ID, 88, "manage_messages", granted_by=5)

    assert await auth.list_grants(GUILD_ID) == {
        HELPER_ROLE: {"ban_members", "manage_messages"},
        88: {"manage_messages"},
    }


@pytest.mark.asyncio
async def test_can_act_on_rules(connection) -> None:
    auth = OverlayAuthorization(connection)
    actor = member(1, top=5)

    assert (await auth.can_act_on(actor, member(2, top=3), "ban_members")).allowed
    assert not (await auth.can_act_on(actor, actor, "ban_members")).allowed

    real = await auth.can_act_on(actor, member(2, top=1, permissions=("ban_members",)), "ban_members")
    assert not real.allowed
    assert "real permissions" in real.reason

    assert not (await auth.can_act_on(actor, member(2, top=1, permissions=("administrator",)), "ban_members")).allowed
    assert not (await auth.can_act_on(actor, member(2, top=5), "ban_members")).allowed
    assert not (
        await auth.can_act_on(actor, member(2, top=1, permissions=("moderate_members",)), "timeout_members")
    ).allowed
