"""
Collaborator count queries

Read-only access to tables owned by the ratings, evidence, campaign,
forum and learning services. Only the columns used here are assumed:

- ratings (user_id, comment)
- evidence (submitted_by)
- campaigns (created_by)
- campaign_supporters (user_id)
- discussions (author_id)
- upvotes (recipient_id)
- learning_modules (id, category)
- learning_progress (user_id, module_id, status)
- quiz_results (user_id, module_id, score, completed)
"""
import logging
from typing import List

import psycopg

from pledgepoint.db.connection import db as default_db
from pledgepoint.exceptions import wrap_external_exception
from pledgepoint.models.badge import QuizResult

logger = logging.getLogger(__name__)

# A rating counts as a review when its comment is at least this long
LONG_REVIEW_MIN_LENGTH = 100


class PostgresContributionRepository:
    """Per-user contribution counts and learning records"""

    def __init__(self, database=None):
        self.db = database or default_db

    async def _fetch_count(self, operation: str, query: str, params: tuple) -> int:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    row = await cur.fetchone()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation=operation, user_id=str(params[0]))
        return row["count"] if row else 0

    async def _fetch_all(self, operation: str, query: str, params: tuple) -> List[dict]:
        try:
            async with self.db.connection() as conn:
                async with conn.cursor() as cur:
                    await cur.execute(query, params)
                    return await cur.fetchall()
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation=operation, context={"params": list(params)})

    async def count_ratings(self, user_id: str) -> int:
        return await self._fetch_count(
            "count_ratings",
            "SELECT COUNT(*) AS count FROM ratings WHERE user_id = %s",
            (user_id,)
        )

    async def count_long_reviews(self, user_id: str) -> int:
        return await self._fetch_count(
            "count_long_reviews",
            "SELECT COUNT(*) AS count FROM ratings WHERE user_id = %s AND char_length(comment) >= %s",
            (user_id, LONG_REVIEW_MIN_LENGTH)
        )

    async def count_evidence(self, user_id: str) -> int:
        return await self._fetch_count(
            "count_evidence",
            "SELECT COUNT(*) AS count FROM evidence WHERE submitted_by = %s",
            (user_id,)
        )

    async def count_campaigns(self, user_id: str) -> int:
        return await self._fetch_count(
            "count_campaigns",
            "SELECT COUNT(*) AS count FROM campaigns WHERE created_by = %s",
            (user_id,)
        )

    async def count_campaign_supports(self, user_id: str) -> int:
        return await self._fetch_count(
            "count_campaign_supports",
            "SELECT COUNT(*) AS count FROM campaign_supporters WHERE user_id = %s",
            (user_id,)
        )

    async def count_discussions(self, user_id: str) -> int:
        return await self._fetch_count(
            "count_discussions",
            "SELECT COUNT(*) AS count FROM discussions WHERE author_id = %s",
            (user_id,)
        )

    async def count_upvotes(self, user_id: str) -> int:
        return await self._fetch_count(
            "count_upvotes",
            "SELECT COUNT(*) AS count FROM upvotes WHERE recipient_id = %s",
            (user_id,)
        )

    async def count_completed_modules(self, user_id: str) -> int:
        return await self._fetch_count(
            "count_completed_modules",
            "SELECT COUNT(*) AS count FROM learning_progress WHERE user_id = %s AND status = 'completed'",
            (user_id,)
        )

    async def is_module_completed(self, user_id: str, module_id: str) -> bool:
        count = await self._fetch_count(
            "is_module_completed",
            """
            SELECT COUNT(*) AS count FROM learning_progress
            WHERE user_id = %s AND module_id = %s AND status = 'completed'
            """,
            (user_id, module_id)
        )
        return count > 0

    async def list_completed_module_ids(self, user_id: str) -> List[str]:
        rows = await self._fetch_all(
            "list_completed_module_ids",
            """
            SELECT module_id FROM learning_progress
            WHERE user_id = %s AND status = 'completed'
            ORDER BY module_id
            """,
            (user_id,)
        )
        return [row["module_id"] for row in rows]

    async def list_category_module_ids(self, category: str) -> List[str]:
        rows = await self._fetch_all(
            "list_category_module_ids",
            "SELECT id FROM learning_modules WHERE category = %s ORDER BY id",
            (category,)
        )
        return [row["id"] for row in rows]

    async def list_quiz_results(self, user_id: str) -> List[QuizResult]:
        rows = await self._fetch_all(
            "list_quiz_results",
            "SELECT module_id, score, completed FROM quiz_results WHERE user_id = %s",
            (user_id,)
        )
        return [QuizResult(**row) for row in rows]
