"""
Notification sinks

The engine hands level-up and badge-earned events to a sink after the state
change has committed. Delivery is best-effort: the GamificationService logs
sink failures and never lets them reach the caller.

A sink is any object with:
    async send_level_up(user_id, level, unlocked_features)
    async send_badge_earned(user_id, badge_code, description)
"""

import logging
from typing import List

from pledgepoint.models.user import Level

logger = logging.getLogger(__name__)


class LoggingNotificationSink:
    """Default sink: writes notifications to the log"""

    async def send_level_up(self, user_id: str, level: Level, unlocked_features: List[str]) -> None:
        features = ", ".join(unlocked_features) if unlocked_features else "none"
        logger.info(f"[notify] User {user_id} reached {level.value}. Unlocked: {features}")

    async def send_badge_earned(self, user_id: str, badge_code: str, description: str) -> None:
        logger.info(f"[notify] User {user_id} earned badge {badge_code}: {description}")
