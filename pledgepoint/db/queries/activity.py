"""Activity log queries"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional

import psycopg
from psycopg.types.json import Jsonb

from pledgepoint.db.connection import db as default_db
from pledgepoint.exceptions import wrap_external_exception
from pledgepoint.models.activity import ActionKind, ActivityEvent

logger = logging.getLogger(__name__)


class PostgresActivityRepository:
    """Append-only activity events"""

    def __init__(self, database=None):
        self.db = database or default_db

    async def append(self, event: ActivityEvent) -> ActivityEvent:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        INSERT INTO activities (id, user_id, kind, related_id, related_type, details, created_at)
                        VALUES (%s, %s, %s, %s, %s, %s, %s)
                        """,
                        (
                            event.id,
                            event.user_id,
                            event.kind.value,
                            event.related_id,
                            event.related_type.value if event.related_type else None,
                            Jsonb(event.details),
                            event.created_at,
                        )
                    )
                    await conn.commit()
        except psycopg.Error as e:
            raise wrap_external_exception(
                e, operation="append_activity", user_id=event.user_id, context={"kind": event.kind.value}
            )

        logger.debug(f"Appended {event.kind.value} activity for user {event.user_id}")
        return event

    async def query(
        self,
        user_id: str,
        kinds: Optional[Iterable[ActionKind]] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None
    ) -> List[ActivityEvent]:
        """Events for a user ordered by time; ``until`` is exclusive"""
        conditions = ["user_id = %s"]
        params: list = [user_id]
        if kinds is not None:
            conditions.append("kind = ANY(%s)")
            params.append([ActionKind(k).value for k in kinds])
        if since is not None:
            conditions.append("created_at >= %s")
            params.append(since)
        if until is not None:
            conditions.append("created_at < %s")
            params.append(until)

        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        f"""
                        SELECT id, user_id, kind, related_id, related_type, details, created_at
                        FROM activities
                        WHERE {' AND '.join(conditions)}
                        ORDER BY created_at
                        """,
                        tuple(params)
                    )
                    rows = await cur.fetchall()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="query_activities", user_id=user_id)

        return [ActivityEvent(**row) for row in rows]

    async def count(self, user_id: str, kinds: Optional[Iterable[ActionKind]] = None) -> int:
        params: list = [user_id]
        kind_filter = ""
        if kinds is not None:
            kind_filter = " AND kind = ANY(%s)"
            params.append([ActionKind(k).value for k in kinds])

        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        f"SELECT COUNT(*) AS count FROM activities WHERE user_id = %s{kind_filter}",
                        tuple(params)
                    )
                    row = await cur.fetchone()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation="count_activities", user_id=user_id)

        return row["count"] if row else 0
