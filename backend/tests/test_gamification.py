"""
Points, levels and activity streaks.
"""
from datetime import datetime

from app.models import User
from app.services.gamification import (
    add_points,
    gamification_summary,
    level_for_points,
    update_activity,
)


def make_user(**fields):
    values = {"total_points": 0, "level": 1, "streak": 0, "badges": []}
    values.update(fields)
    return User(email="gamer@example.com", full_name="Gamer", password_hash="x", **values)


def test_level_boundaries():
    assert level_for_points(0) == 1
    assert level_for_points(999) == 1
    assert level_for_points(1000) == 2
    assert level_for_points(2500) == 3


def test_add_points_without_level_up():
    user = make_user(total_points=100)

    assert add_points(user, 5) is False
    assert user.total_points == 105
    assert user.level == 1
    assert user.badges == []


def test_level_up_awards_badge():
    user = make_user(total_points=995)

    assert add_points(user, 10) is True
    assert user.level == 2
    assert len(user.badges) == 1
    badge = user.badges[0]
    assert badge["name"] == "Level 2"
    assert badge["description"] == "Reached level 2!"
    assert "earnedAt" in badge

    add_points(user, 5)
    assert len(user.badges) == 1


def test_streak_rules():
    user = make_user(streak=3, last_activity_date=datetime(2024, 5, 1, 22, 0))

    update_activity(user, datetime(2024, 5, 1, 23, 0))
    assert user.streak == 3

    update_activity(user, datetime(2024, 5, 2, 0, 30))
    assert user.streak == 4
    assert user.last_activity_date == datetime(2024, 5, 2, 0, 30)

    update_activity(user, datetime(2024, 5, 5, 8, 0))
    assert user.streak == 1


def test_first_activity_starts_streak():
    user = make_user(last_activity_date=None)
    update_activity(user, datetime(2024, 5, 1))
    assert user.streak == 1


def test_summary():
    user = make_user(total_points=1250, level=2, streak=4)
    summary = gamification_summary(user)

    assert summary["level"] == 2
    assert summary["totalPoints"] == 1250
    assert summary["pointsToNextLevel"] == 750
    assert summary["streak"] == 4
