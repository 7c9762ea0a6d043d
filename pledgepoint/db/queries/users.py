"""User aggregate queries: points, levels, badges, streaks"""
import logging
from datetime import datetime
from typing import List, Optional

import psycopg

from pledgepoint.db.connection import db as default_db
from pledgepoint.exceptions import UserNotFoundError, wrap_external_exception
from pledgepoint.gamification.levels import resolve_level
from pledgepoint.models.activity import StreakCategory
from pledgepoint.models.gamification import PointsApplication, PointsTransaction
from pledgepoint.models.user import Level, StreakSnapshot, UserAggregate

logger = logging.getLogger(__name__)

USER_COLUMNS = "id, first_name, last_name, district, active, impact_points, level"


class PostgresUserRepository:
    """
    User aggregates stored in PostgreSQL

    ``increment_points`` and ``award_badge`` each run in one transaction:
    the increment is a single ``UPDATE ... RETURNING`` so concurrent awards
    never lose updates, and the level plus the ledger row are written
    before commit.
    """

    def __init__(self, database=None):
        self.db = database or default_db

    async def get_user(self, user_id: str) -> Optional[UserAggregate]:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        f"SELECT {USER_COLUMNS} FROM users WHERE id = %s",
                        (user_id,)
                    )
                    row = await cur.fetchone()
                    if not row:
                        return None

                    await cur.execute(
                        "SELECT badge_code FROM user_badges WHERE user_id = %s ORDER BY awarded_at",
                        (user_id,)
                    )
                    badges = [r["badge_code"] for r in await cur.fetchall()]

                    await cur.execute(
                        """
                        SELECT category, current_streak, longest_streak, last_activity_at
                        FROM user_streaks
                        WHERE user_id = %s
                        """,
                        (user_id,)
                    )
                    streaks = {
                        StreakCategory(r["category"]): StreakSnapshot(
                            current_streak=r["current_streak"],
                            longest_streak=r["longest_streak"],
                            last_activity_at=r["last_activity_at"],
                        )
                        for r in await cur.fetchall()
                    }
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="get_user", user_id=user_id)

        return _to_user(row, badges, streaks)

    async def increment_points(
        self,
        user_id: str,
        amount: int,
        source: str,
        reason: str
    ) -> PointsApplication:
        """Add points, re-resolve level and log the transaction atomically"""
        try:
            async with self.db.connection() as conn:
                async with conn.transaction():
                    async with conn.cursor() as cur:
                        application = await _apply_points(cur, user_id, amount, source, reason)
        except psycopg.Error as e:
            raise wrap_external_exception(
                e, operation="increment_points", user_id=user_id, context={"amount": amount}
            )

        if application is None:
            raise UserNotFoundError(user_id, operation="increment_points")
        return application

    async def award_badge(
        self,
        user_id: str,
        badge_code: str,
        points_reward: int,
        reason: str
    ) -> Optional[PointsApplication]:
        """
        Add a badge if absent and grant its reward in the same transaction

        The (user_id, badge_code) primary key makes the insert the
        idempotency check: a conflicting insert returns no row and no
        points are applied.

        Returns:
            PointsApplication if the badge was newly added, None if already owned
        """
        exists = False
        application = None
        try:
            async with self.db.connection() as conn:
                async with conn.transaction():
                    async with conn.cursor() as cur:
                        await cur.execute("SELECT 1 FROM users WHERE id = %s", (user_id,))
                        if await cur.fetchone():
                            exists = True
                            await cur.execute(
                                """
                                INSERT INTO user_badges (user_id, badge_code)
                                VALUES (%s, %s)
                                ON CONFLICT (user_id, badge_code) DO NOTHING
                                RETURNING badge_code
                                """,
                                (user_id, badge_code)
                            )
                            if await cur.fetchone():
                                application = await _apply_points(
                                    cur, user_id, points_reward, f"badge:{badge_code}", reason
                                )
        except psycopg.Error as e:
            raise wrap_external_exception(
                e, operation="award_badge", user_id=user_id, context={"badge_code": badge_code}
            )

        if not exists:
            raise UserNotFoundError(user_id, operation="award_badge")
        return application

    async def update_streak(
        self,
        user_id: str,
        category: StreakCategory,
        current_streak: int,
        last_activity_at: Optional[datetime],
        longest_candidate: int
    ) -> StreakSnapshot:
        """Store the current streak and raise the longest streak if exceeded"""
        try:
            async with self.db.connection() as conn:
                async with conn.transaction():
                    async with conn.cursor() as cur:
                        await cur.execute(
                            """
                            INSERT INTO user_streaks
                                (user_id, category, current_streak, longest_streak, last_activity_at)
                            VALUES (%s, %s, %s, %s, %s)
                            ON CONFLICT (user_id, category) DO UPDATE SET
                                current_streak = EXCLUDED.current_streak,
                                longest_streak = GREATEST(user_streaks.longest_streak, EXCLUDED.longest_streak),
                                last_activity_at = EXCLUDED.last_activity_at,
                                updated_at = CURRENT_TIMESTAMP
                            RETURNING current_streak, longest_streak, last_activity_at
                            """,
                            (user_id, category.value, current_streak, longest_candidate, last_activity_at)
                        )
                        row = await cur.fetchone()
        except psycopg.errors.ForeignKeyViolation:
            raise UserNotFoundError(user_id, operation="update_streak")
        except psycopg.Error as e:
            raise wrap_external_exception(
                e, operation="update_streak", user_id=user_id, context={"category": category.value}
            )

        return StreakSnapshot(
            current_streak=row["current_streak"],
            longest_streak=row["longest_streak"],
            last_activity_at=row["last_activity_at"],
        )

    async def top_users(
        self,
        order_by: str = "points",
        district: Optional[str] = None,
        limit: int = 10
    ) -> List[UserAggregate]:
        """Active users ranked by points or badge count"""
        order = "badge_count DESC, u.impact_points DESC" if order_by == "badges" else "u.impact_points DESC"
        params: list = []
        where = "WHERE u.active"
        if district is not None:
            where += " AND u.district = %s"
            params.append(district)
        params.append(limit)

        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        f"""
                        SELECT u.id, u.first_name, u.last_name, u.district, u.active,
                               u.impact_points, u.level,
                               COALESCE(array_agg(b.badge_code) FILTER (WHERE b.badge_code IS NOT NULL), '{{}}') AS badges,
                               COUNT(b.badge_code) AS badge_count
                        FROM users u
                        LEFT JOIN user_badges b ON b.user_id = u.id
                        {where}
                        GROUP BY u.id
                        ORDER BY {order}
                        LIMIT %s
                        """,
                        tuple(params)
                    )
                    rows = await cur.fetchall()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="top_users", context={"order_by": order_by})

        return [_to_user(row, list(row["badges"]), {}) for row in rows]

    async def get_points_history(
        self,
        user_id: str,
        since: Optional[datetime] = None,
        limit: int = 50
    ) -> List[PointsTransaction]:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        SELECT user_id, amount, source, reason, awarded_at
                        FROM points_transactions
                        WHERE user_id = %s
                          AND (%s::timestamptz IS NULL OR awarded_at >= %s::timestamptz)
                        ORDER BY awarded_at DESC, id DESC
                        LIMIT %s
                        """,
                        (user_id, since, since, limit)
                    )
                    rows = await cur.fetchall()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="get_points_history", user_id=user_id)

        return [PointsTransaction(**row) for row in rows]


async def _apply_points(cur, user_id: str, amount: int, source: str, reason: str) -> Optional[PointsApplication]:
    """Increment inside the caller's transaction; None if the user doesn't exist"""
    await cur.execute(
        """
        UPDATE users
        SET impact_points = impact_points + %s,
            updated_at = CURRENT_TIMESTAMP
        WHERE id = %s
        RETURNING impact_points, level
        """,
        (amount, user_id)
    )
    row = await cur.fetchone()
    if not row:
        return None

    total = row["impact_points"]
    previous_level = Level(row["level"])
    level = resolve_level(total)
    if level != previous_level:
        await cur.execute(
            "UPDATE users SET level = %s WHERE id = %s",
            (level.value, user_id)
        )

    await cur.execute(
        """
        INSERT INTO points_transactions (user_id, amount, source, reason)
        VALUES (%s, %s, %s, %s)
        """,
        (user_id, amount, source, reason)
    )

    return PointsApplication(
        amount=amount,
        total_points=total,
        previous_level=previous_level,
        level=level,
    )


def _to_user(row: dict, badges: List[str], streaks: dict) -> UserAggregate:
    return UserAggregate(
        id=row["id"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        district=row["district"],
        active=row["active"],
        impact_points=row["impact_points"],
        level=Level(row["level"]),
        badges=badges,
        streaks=streaks,
    )
