"""PledgePoint gamification engine: points, streaks, levels and badges for civic actions"""

__version__ = "0.1.0"
