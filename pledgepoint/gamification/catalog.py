"""Default badge catalog installed on first start"""
import logging
from typing import List

from pledgepoint.models.badge import BadgeCriteria, BadgeDefinition, CriteriaKind

logger = logging.getLogger(__name__)


def _badge(code, name, description, category, criteria, reward, message) -> BadgeDefinition:
    return BadgeDefinition(
        code=code,
        name=name,
        description=description,
        category=category,
        image=f"/badges/{code}.png",
        criteria=criteria,
        points_reward=reward,
        unlock_message=message,
    )


DEFAULT_BADGES: List[BadgeDefinition] = [
    _badge(
        "first_step", "First Step",
        "Awarded for joining PledgePoint and verifying your email.",
        "onboarding",
        BadgeCriteria(kind=CriteriaKind.SPECIFIC_ACTION, threshold=1, specific_value="join"),
        10,
        "Welcome to PledgePoint! You've taken your first step toward civic engagement.",
    ),
    _badge(
        "first_voice", "First Voice",
        "Awarded for submitting your first rating or review.",
        "rating",
        BadgeCriteria(kind=CriteriaKind.RATING_COUNT, threshold=1),
        10,
        "Your voice matters! You've submitted your first rating.",
    ),
    _badge(
        "promise_seeker", "Promise Seeker",
        "Awarded for submitting your first evidence for a promise.",
        "promise",
        BadgeCriteria(kind=CriteriaKind.EVIDENCE_COUNT, threshold=1),
        10,
        "You've started tracking promises! Keep holding officials accountable.",
    ),
    _badge(
        "campaign_starter", "Campaign Starter",
        "Awarded for creating your first campaign.",
        "campaign",
        BadgeCriteria(kind=CriteriaKind.CAMPAIGN_COUNT, threshold=1),
        10,
        "Congratulations on starting your first campaign! Lead the change you want to see.",
    ),
    _badge(
        "civic_novice", "Civic Novice",
        "Awarded for completing your first learning module.",
        "learning",
        BadgeCriteria(kind=CriteriaKind.MODULE_COMPLETION, threshold=1),
        10,
        "Knowledge is power! You've completed your first learning module.",
    ),
    _badge(
        "active_rater", "Active Rater",
        "Awarded for submitting 10 ratings or reviews.",
        "rating",
        BadgeCriteria(kind=CriteriaKind.RATING_COUNT, threshold=10),
        25,
        "You're becoming a trusted voice in the community with your consistent ratings!",
    ),
    _badge(
        "promise_tracker", "Promise Tracker",
        "Awarded for submitting 5 pieces of evidence.",
        "promise",
        BadgeCriteria(kind=CriteriaKind.EVIDENCE_COUNT, threshold=5),
        25,
        "You're holding officials accountable by tracking their promises!",
    ),
    _badge(
        "rights_defender", "Rights Defender",
        "Awarded for completing the Citizens' Rights module.",
        "learning",
        BadgeCriteria(kind=CriteriaKind.MODULE_COMPLETION, threshold=1, specific_value="citizens_rights"),
        25,
        "You now understand your rights as a citizen. Knowledge is the first step to defending them!",
    ),
    _badge(
        "advocate", "Advocate",
        "Awarded for reaching the Advocate level.",
        "level",
        BadgeCriteria(kind=CriteriaKind.LEVEL_REACHED, threshold=2, specific_value="advocate"),
        0,
        "You're an Advocate now! New ways to make an impact are unlocked.",
    ),
    _badge(
        "leader", "Leader",
        "Awarded for reaching the Leader level.",
        "level",
        BadgeCriteria(kind=CriteriaKind.LEVEL_REACHED, threshold=3, specific_value="leader"),
        0,
        "You're a Leader! Your community looks to you for direction.",
    ),
]


async def seed_badge_catalog(catalog) -> int:
    """
    Install the default badges when the catalog is empty

    Returns:
        Number of badges created
    """
    if await catalog.count() > 0:
        logger.debug("Badge catalog already populated, skipping seed")
        return 0

    logger.info("Creating initial badges...")
    created = await catalog.insert_badges(DEFAULT_BADGES)
    logger.info(f"Created {created} initial badges")
    return created
