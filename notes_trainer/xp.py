"""Reward points per review and the daily/hourly XP readout."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, tzinfo

from notes_trainer.clock import date_key, hour_bucket
from notes_trainer.limits import DAILY_XP_CAP, HOURLY_CAP
from notes_trainer.models import ItemProgress, SessionState

BASE_XP = 10
XP_PER_LEVEL = 5
ON_TIME_WINDOW = (0.9, 1.1)  # days since last review
ON_TIME_BONUS = 1.5
STREAK_STEP = 0.1
MAX_STREAK_BONUS = 1.5
DUE_BONUS = 1.25


def days_since_review(progress: ItemProgress, now: datetime) -> float:
    if progress.last_review is None:
        return math.inf
    return (now - progress.last_review).total_seconds() / 86400


def xp_for(progress: ItemProgress, is_due_card: bool, now: datetime) -> int:
    """Points for reviewing an item in its current (pre-review) state."""
    base = BASE_XP + progress.level * XP_PER_LEVEL

    lo, hi = ON_TIME_WINDOW
    time_bonus = ON_TIME_BONUS if lo <= days_since_review(progress, now) <= hi else 1.0

    streak_bonus = 1.0
    if progress.consecutive_correct > 0:
        streak_bonus = min(MAX_STREAK_BONUS, 1 + progress.consecutive_correct * STREAK_STEP)

    difficulty_bonus = max(1.0, progress.difficulty)
    due_bonus = DUE_BONUS if is_due_card else 1.0

    return round_half_up(base * time_bonus * streak_bonus * difficulty_bonus * due_bonus)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class XPStats:
    xp_total: int
    xp_today: int
    remaining_xp: int
    daily_cap: int
    hourly_reviews: int
    hourly_cap: int

    def to_dict(self) -> dict:
        return {
            "xp_total": self.xp_total,
            "xp_today": self.xp_today,
            "remaining_xp": self.remaining_xp,
            "daily_cap": self.daily_cap,
            "hourly_reviews": self.hourly_reviews,
            "hourly_cap": self.hourly_cap,
        }


def xp_stats(state: SessionState, now: datetime, tz: tzinfo | None = None) -> XPStats:
    today = state.ledger.daily_xp.get(date_key(now, tz), 0)
    return XPStats(
        xp_total=state.xp_total,
        xp_today=today,
        remaining_xp=max(0, DAILY_XP_CAP - today),
        daily_cap=DAILY_XP_CAP,
        hourly_reviews=state.ledger.hourly_review_count.get(hour_bucket(now), 0),
        hourly_cap=HOURLY_CAP,
    )
