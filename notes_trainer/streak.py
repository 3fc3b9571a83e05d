"""Day-streak and daily-goal bookkeeping.

Continuity is judged by calendar date in the session's time zone, not by
elapsed hours: 23:59 and 00:01 the next day are consecutive days.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo

from notes_trainer.clock import calendar_date
from notes_trainer.models import Milestone, SessionState

STREAK_MILESTONE_EVERY = 5


@dataclass(frozen=True)
class StreakUpdate:
    streak_days: int
    cards_studied_today: int
    milestone: Milestone | None = None


def advance(state: SessionState, now: datetime, tz: tzinfo | None = None) -> StreakUpdate:
    today = calendar_date(now, tz)
    last = state.last_study_date

    if last == today:
        cards = state.cards_studied_today + 1
        milestone = Milestone.GOAL_REACHED if cards == state.daily_goal else None
        return StreakUpdate(state.streak_days, cards, milestone)

    if last is not None and last == today - timedelta(days=1):
        streak = state.streak_days + 1
        milestone = Milestone.STREAK if streak % STREAK_MILESTONE_EVERY == 0 else None
    else:
        streak = 1
        milestone = None

    # First card of the day can only complete a goal of one
    if milestone is None and state.daily_goal == 1:
        milestone = Milestone.GOAL_REACHED
    return StreakUpdate(streak, 1, milestone)
