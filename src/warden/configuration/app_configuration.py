from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from warden.datatypes.sanction_datatypes import SanctionKind
from warden.sanctions.duration import (
    DEFAULT_MAX_DURATION_MS,
    DEFAULT_MIN_DURATION_MS,
    DurationBounds,
)
from warden.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()

DEFAULT_ROLE_NAMES = {
    SanctionKind.MUTE: "mute",
    SanctionKind.IMAGE_MUTE: "imute",
    SanctionKind.REACTION_MUTE: "rmute",
    SanctionKind.JAIL: "Jailed",
}


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    The class caches the contents of ``./config/app_config.yml`` and exposes
    typed properties with defaults, so a missing or partial file still yields
    a usable configuration. Uses fcntl shared locks when reading.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                data = yaml.safe_load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                return data if isinstance(data, dict) else {}
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    def _section(self, key: str) -> Dict[str, Any]:
        value = self._data.get(key, {})
        return value if isinstance(value, dict) else {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Re-read the YAML file and replace the in-memory cache.

        Returns the raw mapping that was loaded (empty on error).
        """
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the cached configuration mapping. Callers must not mutate it."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # Convenience properties
    # --------------------------
    @property
    def database_path(self) -> Path:
        return Path(self._section("database").get("path", "./data/warden.db")).resolve()

    @property
    def reconciliation_interval(self) -> float:
        """Seconds between reconciliation passes. Default is 30 seconds."""
        return float(self._section("reconciliation").get("interval_seconds", 30.0))

    @property
    def log_channel_name(self) -> str:
        """Name of the channel that receives moderation log embeds."""
        return str(self._section("audit").get("log_channel_name", "jail-log"))

    @property
    def jail_channel_name(self) -> str:
        """Name of the channel jailed members are confined to."""
        return str(self._section("audit").get("jail_channel_name", "jail"))

    @property
    def platform_call_timeout(self) -> float:
        """Upper bound in seconds for a single Discord API call."""
        return float(self._section("platform").get("call_timeout_seconds", 10.0))

    @property
    def persistence_retry_attempts(self) -> int:
        return max(1, int(self._section("persistence").get("retry_attempts", 3)))

    @property
    def persistence_retry_delay(self) -> float:
        return float(self._section("persistence").get("retry_delay_seconds", 0.5))

    @property
    def default_reason(self) -> str:
        return str(self._data.get("default_reason") or "No reason provided")

    def duration_bounds(self, kind: SanctionKind) -> DurationBounds:
        """Return the configured duration limits for ``kind``.

        Falls back to 1 minute / 30 days when the section is missing or
        contains an unparsable token.
        """
        section = self._section("sanctions").get(kind.config_key, {})
        if not isinstance(section, dict) or not section:
            return DurationBounds()

        try:
            return DurationBounds.from_tokens(
                str(section.get("min_duration", "1m")),
                str(section.get("max_duration", "30d")),
            )
        except Exception as exc:
            logger.error(
                "[APP CONFIGURATION] Invalid duration bounds for %s: %s; using defaults", kind, exc
            )
            return DurationBounds(DEFAULT_MIN_DURATION_MS, DEFAULT_MAX_DURATION_MS)

    def role_name(self, kind: SanctionKind) -> str:
        """Name of the role that enforces a role-based sanction."""
        if not kind.is_role_based:
            raise ValueError(f"{kind} is not enforced through a role")
        return str(self._section("roles").get(kind.config_key) or DEFAULT_ROLE_NAMES[kind])


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
