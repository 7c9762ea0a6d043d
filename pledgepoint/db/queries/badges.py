"""Badge catalog queries"""
import logging
from typing import Iterable, List, Optional

import psycopg

from pledgepoint.db.connection import db as default_db
from pledgepoint.exceptions import wrap_external_exception
from pledgepoint.models.badge import BadgeCriteria, BadgeDefinition

logger = logging.getLogger(__name__)

BADGE_COLUMNS = (
    "code, name, description, category, image, criteria_kind, threshold, "
    "specific_value, points_reward, unlock_message"
)


class PostgresBadgeCatalog:
    """Badge definitions keyed by code"""

    def __init__(self, database=None):
        self.db = database or default_db

    async def list_badges(self) -> List[BadgeDefinition]:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(f"SELECT {BADGE_COLUMNS} FROM badges ORDER BY created_at, code")
                    rows = await cur.fetchall()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="list_badges")

        return [_to_badge(row) for row in rows]

    async def get_badge(self, code: str) -> Optional[BadgeDefinition]:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(f"SELECT {BADGE_COLUMNS} FROM badges WHERE code = %s", (code,))
                    row = await cur.fetchone()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="get_badge", context={"code": code})

        return _to_badge(row) if row else None

    async def count(self) -> int:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute("SELECT COUNT(*) AS count FROM badges")
                    row = await cur.fetchone()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="count_badges")

        return row["count"] if row else 0

    async def insert_badges(self, badges: Iterable[BadgeDefinition]) -> int:
        """Insert badges whose code is not present yet; returns how many were added"""
        added = 0
        try:
            async with self.db.connection() as conn:
                async with conn.transaction():
                    async with conn.cursor() as cur:
                        for badge in badges:
                            await cur.execute(
                                f"""
                                INSERT INTO badges ({BADGE_COLUMNS})
                                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                                ON CONFLICT (code) DO NOTHING
                                RETURNING code
                                """,
                                (
                                    badge.code,
                                    badge.name,
                                    badge.description,
                                    badge.category,
                                    badge.image,
                                    badge.criteria.kind.value,
                                    badge.criteria.threshold,
                                    badge.criteria.specific_value,
                                    badge.points_reward,
                                    badge.unlock_message,
                                )
                            )
                            if await cur.fetchone():
                                added += 1
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="insert_badges")

        logger.info(f"Inserted {added} badge definitions")
        return added


def _to_badge(row: dict) -> BadgeDefinition:
    return BadgeDefinition(
        code=row["code"],
        name=row["name"],
        description=row["description"],
        category=row["category"],
        image=row["image"],
        criteria=BadgeCriteria(
            kind=row["criteria_kind"],
            threshold=row["threshold"],
            specific_value=row["specific_value"],
        ),
        points_reward=row["points_reward"],
        unlock_message=row["unlock_message"],
    )
