"""
Action dispatch table

Every ActionKind maps to its base point value, the streak category whose
multiplier applies to it, and whether advocates get their bonus on it.

Point Award Rules:
- Rate official: 10
- Review official: 20
- Submit evidence: 20
- Verify evidence: 30
- Create campaign: 50
- Support campaign: 10
- Complete module: module's own reward (default 20)
- Upvote received: 2
- Comment / discussion post: 5
- Anything else: 5
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pledgepoint.models.activity import ActionKind, StreakCategory

DEFAULT_POINTS = 5
DEFAULT_MODULE_REWARD = 20


@dataclass(frozen=True)
class ActionRule:
    """How one action kind is rewarded"""
    base_points: int
    streak_category: Optional[StreakCategory] = None
    advocate_bonus: bool = False
    uses_module_reward: bool = False


ACTION_RULES: Dict[ActionKind, ActionRule] = {
    ActionKind.RATE_OFFICIAL: ActionRule(10, StreakCategory.CIVIC, advocate_bonus=True),
    ActionKind.REVIEW_OFFICIAL: ActionRule(20, StreakCategory.CIVIC),
    ActionKind.SUBMIT_EVIDENCE: ActionRule(20, StreakCategory.CIVIC, advocate_bonus=True),
    ActionKind.VERIFY_EVIDENCE: ActionRule(30, StreakCategory.CIVIC),
    ActionKind.CREATE_CAMPAIGN: ActionRule(50, StreakCategory.CIVIC),
    ActionKind.SUPPORT_CAMPAIGN: ActionRule(10, StreakCategory.CIVIC),
    ActionKind.COMPLETE_MODULE: ActionRule(
        DEFAULT_MODULE_REWARD, StreakCategory.LEARNING, uses_module_reward=True
    ),
    ActionKind.RECEIVE_UPVOTE: ActionRule(2),
    ActionKind.POST_COMMENT: ActionRule(5, StreakCategory.CIVIC),
    ActionKind.POST_DISCUSSION: ActionRule(5, StreakCategory.CIVIC),
    ActionKind.START_MODULE: ActionRule(DEFAULT_POINTS, StreakCategory.LEARNING),
    ActionKind.COMPLETE_QUIZ: ActionRule(DEFAULT_POINTS, StreakCategory.LEARNING),
    ActionKind.JOIN: ActionRule(DEFAULT_POINTS),
    ActionKind.OTHER: ActionRule(DEFAULT_POINTS),
}


def _check_rules_exhaustive() -> None:
    missing = [kind.value for kind in ActionKind if kind not in ACTION_RULES]
    if missing:
        raise RuntimeError(f"ACTION_RULES has no entry for: {', '.join(missing)}")


_check_rules_exhaustive()


def rule_for(kind: ActionKind) -> ActionRule:
    return ACTION_RULES[ActionKind.parse(kind)]


def base_points_for(kind: ActionKind, context: Optional[Dict[str, Any]] = None) -> int:
    """
    Base point value for an action

    Args:
        kind: Action kind
        context: Caller context; a positive ``points_reward`` overrides the module reward

    Returns:
        Base points before multipliers
    """
    rule = rule_for(kind)
    if rule.uses_module_reward:
        reward = (context or {}).get("points_reward")
        if isinstance(reward, int) and not isinstance(reward, bool) and reward > 0:
            return reward
    return rule.base_points


def kinds_for_category(category: StreakCategory) -> List[ActionKind]:
    """Action kinds that count toward a streak category"""
    return [kind for kind, rule in ACTION_RULES.items() if rule.streak_category == category]
