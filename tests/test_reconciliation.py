import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from conftest import GUILD_ID, MOD_ID, TARGET_ID
from warden.configuration.app_configuration import DEFAULT_ROLE_NAMES
from warden.datatypes.sanction_datatypes import ReversalOutcome, SanctionKind, SanctionRecord
from warden.sanctions.audit_sink import AuditSink
from warden.sanctions.errors import PersistenceError, PlatformError, PlatformErrorCode
from warden.sanctions.reversal import SanctionReverser
from warden.sanctions.scheduler import ReconciliationScheduler
from warden.services.case_ledger import SqliteCaseLedger
from warden.services.sanction_store import SanctionStore


@pytest.fixture()
def store(connection) -> SanctionStore:
    return SanctionStore(connection)


@pytest.fixture()
def ledger(connection, clock) -> SqliteCaseLedger:
    return SqliteCaseLedger(connection, clock=clock)


@pytest.fixture()
def reverser(platform, store, ledger) -> SanctionReverser:
    return SanctionReverser(platform, store, ledger, AuditSink(platform), DEFAULT_ROLE_NAMES.__getitem__)


async def seed(store, clock, kind=SanctionKind.BAN, user_id=TARGET_ID, guild_id=GUILD_ID, minutes=10) -> SanctionRecord:
    record = SanctionRecord(
        guild_id=guild_id,
        user_id=user_id,
        kind=kind,
        executor_id=MOD_ID,
        reason="spam",
        duration_token=f"{minutes}m",
        expires_at=clock() + timedelta(minutes=minutes),
        created_at=clock(),
    )
    return await store.create(record)


# ---------------------------------------------------------------------------
# SanctionReverser
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_ban_is_lifted_and_recorded(platform, store, ledger, reverser, clock) -> None:
    platform.bans.add((GUILD_ID, TARGET_ID))
    record = await seed(store, clock)

    report = await reverser.reverse(record)

    assert report.outcome is ReversalOutcome.REVERSED
    assert report.removed is True
    assert len(platform.calls_to("unban")) == 1
    # Bans never look the member up
    assert (GUILD_ID, TARGET_ID) not in platform.bans
    case = await ledger.get_case(GUILD_ID, report.case_id)
    assert case.action == "unban"
    assert case.extra["automatic"] is True
    assert case.extra["outcome"] == "reversed"
    assert [user for user, _ in platform.direct_messages] == [TARGET_ID]
    assert platform.channel_messages


@pytest.mark.asyncio
async def test_ban_already_lifted(platform, store, ledger, reverser, clock) -> None:
    record = await seed(store, clock)

    report = await reverser.reverse(record)

    assert report.outcome is ReversalOutcome.ALREADY_REVERSED
    assert report.case_id is None
    assert await store.find_active(GUILD_ID, TARGET_ID, SanctionKind.BAN) is None
    assert not platform.direct_messages
    assert platform.channel_messages


@pytest.mark.asyncio
async def test_mute_role_is_removed(platform, store, ledger, reverser, clock) -> None:
    platform.add_member(TARGET_ID, top=2, role_ids=(501,))
    record = await seed(store, clock, kind=SanctionKind.MUTE)

    report = await reverser.reverse(record)

    assert report.outcome is ReversalOutcome.REVERSED
    assert not platform.members[(GUILD_ID, TARGET_ID)].has_role(501)
    assert (await ledger.get_case(GUILD_ID, report.case_id)).action == "unmute"


@pytest.mark.parametrize(
    "kind, action",
    [
        (SanctionKind.IMAGE_MUTE, "iunmute"),
        (SanctionKind.REACTION_MUTE, "runmute"),
        (SanctionKind.JAIL, "unjail"),
    ],
)
@pytest.mark.asyncio
async def test_reversal_actions_per_kind(platform, store, ledger, reverser, clock, kind, action) -> None:
    role = platform.roles[(GUILD_ID, DEFAULT_ROLE_NAMES[kind])]
    platform.add_member(TARGET_ID, top=2, role_ids=(role.id,))
    record = await seed(store, clock, kind=kind)

    report = await reverser.reverse(record)

    assert (await ledger.get_case(GUILD_ID, report.case_id)).action == action


@pytest.mark.asyncio
async def test_member_gone_drops_record(platform, store, reverser, clock) -> None:
    platform.members.pop((GUILD_ID, TARGET_ID))
    record = await seed(store, clock, kind=SanctionKind.MUTE)

    report = await reverser.reverse(record)

    assert report.outcome is ReversalOutcome.TARGET_MISSING
    assert report.removed is True
    assert not platform.calls_to("remove_role")


@pytest.mark.asyncio
async def test_role_gone_drops_record(platform, store, reverser, clock) -> None:
    platform.roles.pop((GUILD_ID, "Jailed"))
    record = await seed(store, clock, kind=SanctionKind.JAIL)

    report = await reverser.reverse(record)

    assert report.outcome is ReversalOutcome.ROLE_MISSING
    assert report.removed is True


@pytest.mark.asyncio
async def test_role_already_removed(platform, store, reverser, clock) -> None:
    record = await seed(store, clock, kind=SanctionKind.REACTION_MUTE)

    report = await reverser.reverse(record)

    assert report.outcome is ReversalOutcome.ALREADY_REVERSED
    assert not platform.calls_to("remove_role")


@pytest.mark.asyncio
async def test_guild_gone_drops_record_without_sink(platform, store, reverser, clock) -> None:
    record = await seed(store, clock, guild_id=4242)

    report = await reverser.reverse(record)

    assert report.outcome is ReversalOutcome.GUILD_MISSING
    assert report.removed is True
    assert not platform.channel_messages


@pytest.mark.asyncio
async def test_platform_failure_still_clears_record(platform, store, reverser, clock) -> None:
    platform.bans.add((GUILD_ID, TARGET_ID))
    platform.errors["unban"] = PlatformError(PlatformErrorCode.MISSING_PERMISSIONS)
    record = await seed(store, clock)

    report = await reverser.reverse(record)

    assert report.outcome is ReversalOutcome.FAILED
    assert report.detail
    assert report.removed is True
    assert platform.channel_messages


@pytest.mark.asyncio
async def test_unexpected_exception_is_failed(platform, store, reverser, clock) -> None:
    platform.errors["fetch_guild"] = RuntimeError("boom")
    record = await seed(store, clock)

    report = await reverser.reverse(record)

    assert report.outcome is ReversalOutcome.FAILED
    assert report.removed is True


@pytest.mark.asyncio
async def test_dm_failure_is_swallowed(platform, store, reverser, clock) -> None:
    platform.bans.add((GUILD_ID, TARGET_ID))
    platform.errors["send_direct_message"] = PlatformError(PlatformErrorCode.CANNOT_DM)
    record = await seed(store, clock)

    report = await reverser.reverse(record)

    assert report.outcome is ReversalOutcome.REVERSED
    assert report.removed is True


@pytest.mark.asyncio
async def test_removal_failure_is_reported(platform, ledger, clock) -> None:
    store = AsyncMock()
    store.remove.side_effect = PersistenceError("locked")
    reverser = SanctionReverser(platform, store, ledger, AuditSink(platform), DEFAULT_ROLE_NAMES.__getitem__)
    platform.bans.add((GUILD_ID, TARGET_ID))
    record = SanctionRecord(
        guild_id=GUILD_ID, user_id=TARGET_ID, kind=SanctionKind.BAN, executor_id=MOD_ID,
        reason="spam", duration_token="10m",
        expires_at=clock() + timedelta(minutes=10), created_at=clock(),
    )

    report = await reverser.reverse(record)

    assert report.outcome is ReversalOutcome.REVERSED
    assert report.removed is False


@pytest.mark.asyncio
async def test_manual_lift_is_attributed(platform, store, ledger, reverser, clock) -> None:
    platform.bans.add((GUILD_ID, TARGET_ID))
    record = await seed(store, clock)

    report = await reverser.reverse(record, automatic=False, actor_id=9999, reason="appeal accepted")

    case = await ledger.get_case(GUILD_ID, report.case_id)
    assert case.executor_id == 9999
    assert case.reason == "appeal accepted"
    assert case.extra["automatic"] is False
    assert platform.calls_to("unban")[0][3] == "appeal accepted"


# ---------------------------------------------------------------------------
# ReconciliationScheduler
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_run_pass_only_touches_expired_records(platform, store, reverser, clock) -> None:
    platform.bans.update({(GUILD_ID, 1), (GUILD_ID, 2)})
    await seed(store, clock, user_id=1, minutes=5)
    await seed(store, clock, user_id=2, minutes=60)
    scheduler = ReconciliationScheduler(SanctionKind.BAN, store, reverser, clock=clock)

    assert await scheduler.run_pass() == []

    clock.advance(minutes=5)
    reports = await scheduler.run_pass()

    assert [r.record.user_id for r in reports] == [1]
    assert [r.user_id for r in await store.list_for_guild(GUILD_ID)] == [2]
    assert scheduler.status()["processed"] == 1
    assert scheduler.status()["last_pass"] == clock()


@pytest.mark.asyncio
async def test_one_failing_record_does_not_abort_pass(store, clock) -> None:
    await seed(store, clock, user_id=1, minutes=1)
    await seed(store, clock, user_id=2, minutes=2)
    clock.advance(minutes=3)

    reverser = AsyncMock()
    reverser.reverse.side_effect = [RuntimeError("boom"), AsyncMock()]
    scheduler = ReconciliationScheduler(SanctionKind.BAN, store, reverser, clock=clock)

    reports = await scheduler.run_pass()

    assert reverser.reverse.await_count == 2
    assert len(reports) == 1


@pytest.mark.asyncio
async def test_store_read_failure_yields_empty_pass(clock) -> None:
    store = AsyncMock()
    store.list_expired.side_effect = PersistenceError("locked")
    scheduler = ReconciliationScheduler(SanctionKind.MUTE, store, AsyncMock(), clock=clock)

    assert await scheduler.run_pass() == []


@pytest.mark.asyncio
async def test_start_runs_immediately_and_stop_is_idempotent(platform, store, reverser, clock) -> None:
    platform.bans.add((GUILD_ID, TARGET_ID))
    await seed(store, clock, minutes=1)
    clock.advance(minutes=2)
    scheduler = ReconciliationScheduler(SanctionKind.BAN, store, reverser, interval=3600, clock=clock)

    scheduler.start()
    scheduler.start()
    assert scheduler.is_running

    for _ in range(50):
        if await store.find_active(GUILD_ID, TARGET_ID, SanctionKind.BAN) is None:
            break
        await asyncio.sleep(0.01)

    assert await store.find_active(GUILD_ID, TARGET_ID, SanctionKind.BAN) is None

    scheduler.stop()
    scheduler.stop()
    await scheduler.shutdown()
    assert not scheduler.is_running
    assert scheduler.status()["running"] is False


@pytest.mark.asyncio
async def test_start_with_interval_override(store, reverser, clock) -> None:
    scheduler = ReconciliationScheduler(SanctionKind.JAIL, store, reverser, clock=clock)

    scheduler.start(interval=120)

    assert scheduler.status()["interval"] == 120
    await scheduler.shutdown()


@pytest.mark.asyncio
async def test_restart_right_after_stop_keeps_running(store, reverser, clock) -> None:
    scheduler = ReconciliationScheduler(SanctionKind.MUTE, store, reverser, interval=3600, clock=clock)

    scheduler.start()
    await asyncio.sleep(0.05)
    scheduler.stop()
    assert not scheduler.is_running
    assert scheduler.status()["running"] is False

    scheduler.start()
    await asyncio.sleep(0.05)

    assert scheduler.is_running
    await scheduler.shutdown()
    assert not scheduler.is_running
