"""
Prometheus metrics definitions for the pledgepoint gamification engine.

Metrics by category:
- Action processing: throughput and latency of record_action
- Points: points awarded by source, level changes
- Badges: badges awarded, per-badge evaluation failures
- Notifications: best-effort delivery failures

Metrics are exposed with prometheus_client's HTTP server when ENABLE_METRICS is set.
"""

import logging
import sys

from prometheus_client import Counter, Histogram, Info, start_http_server

logger = logging.getLogger(__name__)

# =============================================================================
# Action Processing Metrics
# =============================================================================

actions_recorded_total = Counter(
    "gamification_actions_recorded_total",
    "Total user actions recorded",
    ["action_kind", "status"],  # status: success/error
)

action_processing_duration_seconds = Histogram(
    "gamification_action_processing_duration_seconds",
    "Time to record an action and apply its rewards",
    ["action_kind"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

# =============================================================================
# Points Metrics
# =============================================================================

points_awarded_total = Counter(
    "gamification_points_awarded_total",
    "Total impact points awarded",
    ["source"],  # source: action kind or 'badge'
)

level_changes_total = Counter(
    "gamification_level_changes_total",
    "Total level changes",
    ["level"],
)

# =============================================================================
# Badge Metrics
# =============================================================================

badges_awarded_total = Counter(
    "gamification_badges_awarded_total",
    "Total badges awarded",
    ["badge_code"],
)

badge_evaluation_errors_total = Counter(
    "gamification_badge_evaluation_errors_total",
    "Badge evaluations that failed and were skipped",
    ["criteria_kind"],
)

# =============================================================================
# Notification Metrics
# =============================================================================

notification_failures_total = Counter(
    "gamification_notification_failures_total",
    "Notifications that could not be delivered",
    ["notification_type"],  # level_up/badge_earned
)

# =============================================================================
# Application Info
# =============================================================================

app_info = Info(
    "pledgepoint_app",
    "Application information",
)


def init_metrics(port: int = 9100) -> None:
    """
    Initialize metrics with application information and start the exporter.

    This should be called once at application startup.
    """
    from pledgepoint import __version__
    from pledgepoint.config import SENTRY_ENVIRONMENT

    app_info.info(
        {
            "version": __version__,
            "environment": SENTRY_ENVIRONMENT,
            "python_version": f"{sys.version_info.major}.{sys.version_info.minor}",
        }
    )
    start_http_server(port)

    logger.info(f"Prometheus metrics initialized on port {port}")
