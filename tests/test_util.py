import logging
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

import pytest

from warden.datatypes.sanction_datatypes import SanctionKind
from warden.sanctions.errors import PlatformError, PlatformErrorCode
from warden.util import logger as logger_module
from warden.util.text import EMBED_FIELD_LIMIT, clip
from warden.util.timestamps import discord_timestamp, from_unix_ms, to_unix_ms


def test_unix_ms_round_trip() -> None:
    moment = datetime(2026, 1, 1, 12, 0, 0, 250_000, tzinfo=timezone.utc)
    assert to_unix_ms(moment) == 1_767_268_800_250
    assert from_unix_ms(1_767_268_800_250) == moment


def test_naive_datetimes_are_treated_as_utc() -> None:
    assert to_unix_ms(datetime(1970, 1, 1, 0, 0, 1)) == 1000


def test_discord_timestamp() -> None:
    moment = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    assert discord_timestamp(moment) == "<t:1767268800:F>"
    assert discord_timestamp(moment, "R") == "<t:1767268800:R>"


def test_get_logger_attaches_handlers_once() -> None:
    first = logger_module.get_logger("warden_test_logger")
    second = logger_module.get_logger("warden_test_logger")

    assert first is second
    assert len(first.handlers) == 2
    assert any(isinstance(h, RotatingFileHandler) for h in first.handlers)
    assert any(isinstance(h, logger_module.PromptToolkitHandler) for h in first.handlers)
    assert first.propagate is False


def test_noisy_loggers_are_silenced() -> None:
    assert logging.getLogger("discord").level == logging.ERROR
    assert logging.getLogger("aiosqlite").level == logging.ERROR


@pytest.mark.parametrize(
    "value, kind",
    [
        ("ban", SanctionKind.BAN),
        ("tempban", SanctionKind.BAN),
        ("image-mute", SanctionKind.IMAGE_MUTE),
        ("image_mute", SanctionKind.IMAGE_MUTE),
        ("rmute", SanctionKind.REACTION_MUTE),
        (" JAIL ", SanctionKind.JAIL),
    ],
)
def test_sanction_kind_parse(value: str, kind: SanctionKind) -> None:
    assert SanctionKind.parse(value) is kind


def test_sanction_kind_parse_rejects_unknown() -> None:
    with pytest.raises(ValueError):
        SanctionKind.parse("kick")


def test_platform_error_recoverability() -> None:
    assert PlatformError(PlatformErrorCode.UNKNOWN_BAN).recoverable
    assert PlatformError(PlatformErrorCode.ALREADY_APPLIED).recoverable
    assert not PlatformError(PlatformErrorCode.UNKNOWN_ROLE).recoverable
    assert PlatformErrorCode.from_code(10013) is PlatformErrorCode.UNKNOWN_USER
    assert PlatformErrorCode.from_code(123456) is PlatformErrorCode.UNKNOWN


def test_clip() -> None:
    assert clip("short", 10) == "short"
    assert clip("abcdefghij", 5) == "abcd…"
    assert len(clip("x" * 3000, EMBED_FIELD_LIMIT)) == EMBED_FIELD_LIMIT
