"""Low-level SQL repositories. Each takes an open aiosqlite connection."""

from warden.repositories.case_repo import ModerationCaseRepository
from warden.repositories.grant_repo import PermissionGrantRepository
from warden.repositories.sanction_repo import SanctionRepository

__all__ = [
    "ModerationCaseRepository",
    "PermissionGrantRepository",
    "SanctionRepository",
]
