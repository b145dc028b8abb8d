"""
Points, levels, badges and daily activity streaks.
"""
import logging
from datetime import datetime
from typing import Optional

from app.models import User

logger = logging.getLogger(__name__)

POINTS_PER_LEVEL = 1000

REGISTRATION_POINTS = 100
LOGIN_POINTS = 10
TRANSACTION_POINTS = 5
IMPORT_POINTS = 2


def level_for_points(points: int) -> int:
    return points // POINTS_PER_LEVEL + 1


def add_points(user: User, points: int) -> bool:
    """
    Award ``points`` to ``user`` and recompute the level.

    Returns True when the award caused a level-up, in which case a
    ``Level N`` badge has been appended.
    """
    user.total_points = (user.total_points or 0) + points
    new_level = level_for_points(user.total_points)
    leveled_up = new_level > (user.level or 1)
    user.level = new_level

    if leveled_up:
        badge = {
            "name": f"Level {new_level}",
            "description": f"Reached level {new_level}!",
            "icon": "🎉",
            "earnedAt": datetime.utcnow().isoformat(),
        }
        # Reassign so the JSON column is flagged as changed
        user.badges = list(user.badges or []) + [badge]
        logger.info(f"User {user.id} reached level {new_level}")
    return leveled_up


def update_activity(user: User, now: Optional[datetime] = None) -> None:
    now = now or datetime.utcnow()
    last = user.last_activity_date

    if last is None:
        user.streak = 1
    else:
        days_apart = (now.date() - last.date()).days
        if days_apart == 1:
            user.streak = (user.streak or 0) + 1
        elif days_apart > 1:
            user.streak = 1

    user.last_activity_date = now
    user.last_active_at = now


def gamification_summary(user: User) -> dict:
    points = user.total_points or 0
    level = user.level or level_for_points(points)
    return {
        "level": level,
        "totalPoints": points,
        "streak": user.streak or 0,
        "badges": list(user.badges or []),
        "pointsToNextLevel": level * POINTS_PER_LEVEL - points,
    }
