"""
Database schema initialization.

Creates the tables and indexes used by the sanction store, the case ledger
and the overlay permission grants, and records the schema version.
"""

import aiosqlite

from warden.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates and versions the Warden schema."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables and indexes if they do not exist yet.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized")

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        # One row per active sanction; the primary key enforces uniqueness.
        await db.execute("""
            CREATE TABLE IF NOT EXISTS active_sanctions (
                guild_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                kind TEXT NOT NULL,
                executor_id INTEGER NOT NULL,
                reason TEXT NOT NULL,
                duration_token TEXT NOT NULL,
                expires_at INTEGER NOT NULL,
                created_at INTEGER NOT NULL,
                extra TEXT NOT NULL DEFAULT '{}',
                PRIMARY KEY (guild_id, user_id, kind),
                CHECK (expires_at > created_at)
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS moderation_cases (
                guild_id INTEGER NOT NULL,
                case_id INTEGER NOT NULL,
                action TEXT NOT NULL,
                target_id INTEGER NOT NULL,
                executor_id INTEGER NOT NULL,
                reason TEXT NOT NULL,
                duration TEXT,
                expires_at INTEGER,
                extra TEXT NOT NULL DEFAULT '{}',
                created_at INTEGER NOT NULL,
                PRIMARY KEY (guild_id, case_id)
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS permission_grants (
                guild_id INTEGER NOT NULL,
                role_id INTEGER NOT NULL,
                permission TEXT NOT NULL,
                granted_by INTEGER NOT NULL,
                granted_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (guild_id, role_id, permission)
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute("CREATE INDEX IF NOT EXISTS idx_active_sanctions_guild_expiry ON active_sanctions(guild_id, expires_at)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_active_sanctions_kind_expiry ON active_sanctions(kind, expires_at)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_moderation_cases_target ON moderation_cases(guild_id, target_id)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_permission_grants_guild ON permission_grants(guild_id)")

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
