"""
PostgreSQL repositories

Module organization:
- users.py: User aggregate, atomic point increments, badges, streaks, leaderboard
- activity.py: Append-only activity log
- badges.py: Badge catalog
- contributions.py: Read-only collaborator counts (ratings, evidence, campaigns, learning)
"""

from pledgepoint.db.queries.users import PostgresUserRepository
from pledgepoint.db.queries.activity import PostgresActivityRepository
from pledgepoint.db.queries.badges import PostgresBadgeCatalog
from pledgepoint.db.queries.contributions import PostgresContributionRepository, LONG_REVIEW_MIN_LENGTH

__all__ = [
    "PostgresUserRepository",
    "PostgresActivityRepository",
    "PostgresBadgeCatalog",
    "PostgresContributionRepository",
    "LONG_REVIEW_MIN_LENGTH",
]
