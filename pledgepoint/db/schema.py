"""
Gamification tables

The engine owns users' point/level/streak columns, user_badges,
points_transactions, activities and badges. Collaborator tables (ratings,
evidence, campaigns, learning progress, forums) are read-only here and are
created by their own services.

Unique constraints carry the exactly-once guarantees:
- user_badges (user_id, badge_code): a badge can be added once
- badges (code): catalog codes are unique
"""

import logging

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        first_name TEXT NOT NULL DEFAULT '',
        last_name TEXT NOT NULL DEFAULT '',
        district TEXT,
        active BOOLEAN NOT NULL DEFAULT TRUE,
        impact_points INTEGER NOT NULL DEFAULT 0 CHECK (impact_points >= 0),
        level TEXT NOT NULL DEFAULT 'citizen' CHECK (level IN ('citizen', 'advocate', 'leader')),
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS ix_users_impact_points ON users (impact_points DESC)",
    "CREATE INDEX IF NOT EXISTS ix_users_level ON users (level)",
    """
    CREATE TABLE IF NOT EXISTS user_streaks (
        user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
        category TEXT NOT NULL CHECK (category IN ('civic', 'learning')),
        current_streak INTEGER NOT NULL DEFAULT 0,
        longest_streak INTEGER NOT NULL DEFAULT 0,
        last_activity_at TIMESTAMPTZ,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (user_id, category)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_badges (
        user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
        badge_code TEXT NOT NULL,
        awarded_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (user_id, badge_code)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS points_transactions (
        id BIGSERIAL PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users (id) ON DELETE CASCADE,
        amount INTEGER NOT NULL CHECK (amount >= 0),
        source TEXT NOT NULL,
        reason TEXT NOT NULL,
        awarded_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS ix_points_transactions_user ON points_transactions (user_id, awarded_at DESC)",
    """
    CREATE TABLE IF NOT EXISTS activities (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        kind TEXT NOT NULL,
        related_id TEXT,
        related_type TEXT,
        details JSONB NOT NULL DEFAULT '{}'::jsonb,
        created_at TIMESTAMPTZ NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS ix_activities_user_kind ON activities (user_id, kind)",
    "CREATE INDEX IF NOT EXISTS ix_activities_user_created ON activities (user_id, created_at)",
    """
    CREATE TABLE IF NOT EXISTS badges (
        code TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT NOT NULL,
        category TEXT NOT NULL,
        image TEXT NOT NULL DEFAULT '',
        criteria_kind TEXT NOT NULL,
        threshold INTEGER NOT NULL CHECK (threshold >= 1),
        specific_value TEXT,
        points_reward INTEGER NOT NULL DEFAULT 0 CHECK (points_reward >= 0),
        unlock_message TEXT NOT NULL DEFAULT '',
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
]


async def create_schema(database) -> None:
    """Create the engine's tables if they don't exist"""
    async with database.connection() as conn:
        async with conn.transaction():
            async with conn.cursor() as cur:
                for statement in SCHEMA_STATEMENTS:
                    await cur.execute(statement)
    logger.info(f"Gamification schema ready ({len(SCHEMA_STATEMENTS)} statements)")
