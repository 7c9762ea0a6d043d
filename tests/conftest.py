"""Global test fixtures and utilities for pledgepoint tests"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from pledgepoint.gamification.catalog import DEFAULT_BADGES
from pledgepoint.gamification.memory_store import (
    InMemoryActivityRepository,
    InMemoryBadgeCatalog,
    InMemoryContributionRepository,
    InMemoryUserRepository,
)
from pledgepoint.models.user import UserAggregate
from pledgepoint.services.gamification_service import GamificationService


# ============================================================================
# User Fixtures
# ============================================================================

@pytest.fixture
def test_user_id():
    """Standard test user ID"""
    return "64f0c2a1"


@pytest.fixture
def test_user(test_user_id):
    """Standard citizen with no points"""
    return UserAggregate(
        id=test_user_id,
        first_name="Ama",
        last_name="Mensah",
        district="Accra Central",
    )


# ============================================================================
# Repository Fixtures
# ============================================================================

@pytest.fixture
def user_repository(test_user):
    repo = InMemoryUserRepository()
    repo.add_user(test_user)
    return repo


@pytest.fixture
def activity_repository():
    return InMemoryActivityRepository()


@pytest.fixture
def contributions():
    return InMemoryContributionRepository()


@pytest.fixture
def badge_catalog():
    """Catalog preloaded with the default badges"""
    return InMemoryBadgeCatalog(DEFAULT_BADGES)


@pytest.fixture
def notifier():
    """Notification sink that records calls"""
    sink = MagicMock()
    sink.send_level_up = AsyncMock()
    sink.send_badge_earned = AsyncMock()
    return sink


@pytest.fixture
def gamification_service(user_repository, activity_repository, badge_catalog, contributions, notifier):
    """GamificationService wired to in-memory storage, UTC streak periods"""
    return GamificationService(
        user_repository=user_repository,
        activity_repository=activity_repository,
        badge_catalog=badge_catalog,
        contributions=contributions,
        notifier=notifier,
        timezone_name="UTC",
    )


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def mock_db_cursor():
    """Mock database cursor with standard query results"""
    cursor = AsyncMock()
    cursor.fetchone = AsyncMock(return_value=None)
    cursor.fetchall = AsyncMock(return_value=[])
    cursor.execute = AsyncMock()
    return cursor


@pytest.fixture
def mock_db_connection(mock_db_cursor):
    """Mock connection whose cursor() and transaction() work as async context managers"""
    conn = MagicMock()
    conn.cursor.return_value.__aenter__.return_value = mock_db_cursor
    conn.transaction.return_value.__aenter__.return_value = None
    conn.commit = AsyncMock()
    return conn


@pytest.fixture
def mock_database(mock_db_connection):
    """Mock Database whose connection() yields mock_db_connection"""
    database = MagicMock()
    database.connection.return_value.__aenter__.return_value = mock_db_connection
    return database
