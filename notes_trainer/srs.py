"""Level-table interval scheduling, difficulty adjustment and the due set."""
from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timedelta

from notes_trainer.models import (
    MAX_DIFFICULTY,
    MAX_LEVEL,
    MIN_DIFFICULTY,
    MIN_LEVEL,
    NEUTRAL_DIFFICULTY,
    Item,
    ItemProgress,
)

# Base interval in days per mastery level; anything above the table uses the last entry.
BASE_INTERVAL_DAYS = (1, 3, 7, 14, 30, 90)

CORRECT_STEP = 0.1
# A run longer than this many correct answers climbs faster
AMPLIFY_AFTER = 3
AMPLIFY_FACTOR = 1.5
INCORRECT_FACTOR = 0.75

DECLARED_DIFFICULTY = {
    "easy": 1.25,
    "medium": NEUTRAL_DIFFICULTY,
    "hard": 0.75,
}


def interval_days(level: int, difficulty: float) -> float:
    """Effective interval: base table entry scaled by the difficulty factor."""
    base = BASE_INTERVAL_DAYS[min(max(level, 0), len(BASE_INTERVAL_DAYS) - 1)]
    return base * difficulty


def next_due(level: int, difficulty: float, now: datetime) -> datetime:
    return now + timedelta(days=interval_days(level, difficulty))


def adjust_difficulty(progress: ItemProgress, correct: bool) -> tuple[float, int]:
    """Return (new_difficulty, new_consecutive_correct).

    Slow climb on success, fast fall on failure:
      correct:   +0.1, or +0.15 once the run exceeds 3; capped at 2.0
      incorrect: x0.75 and the run resets; floored at 0.5
    """
    if correct:
        run = progress.consecutive_correct + 1
        step = CORRECT_STEP * (AMPLIFY_FACTOR if run > AMPLIFY_AFTER else 1.0)
        return min(MAX_DIFFICULTY, progress.difficulty + step), run
    return max(MIN_DIFFICULTY, progress.difficulty * INCORRECT_FACTOR), 0


def next_level(level: int, correct: bool) -> int:
    return min(MAX_LEVEL, max(MIN_LEVEL, level + (1 if correct else -1)))


def is_due(progress: ItemProgress, now: datetime) -> bool:
    return progress.next_review is None or progress.next_review <= now


def due_items(progress: Mapping[str, ItemProgress], now: datetime) -> set[str]:
    return {item_id for item_id, p in progress.items() if is_due(p, now)}


def initial_progress(item: Item | None = None) -> ItemProgress:
    """Fresh progress; the declared difficulty tag seeds the factor, unknown tags are neutral."""
    declared = (item.declared_difficulty or "").strip().lower() if item else ""
    return ItemProgress(difficulty=DECLARED_DIFFICULTY.get(declared, NEUTRAL_DIFFICULTY))


def review_progress(progress: ItemProgress, correct: bool, now: datetime) -> ItemProgress:
    """Apply one accepted review: difficulty, level, schedule and counters."""
    difficulty, run = adjust_difficulty(progress, correct)
    level = next_level(progress.level, correct)
    return ItemProgress(
        level=level,
        last_review=now,
        next_review=next_due(level, difficulty, now),
        total_reviews=progress.total_reviews + 1,
        correct_reviews=progress.correct_reviews + (1 if correct else 0),
        difficulty=difficulty,
        consecutive_correct=run,
    )


def forget_progress(progress: ItemProgress, item: Item | None = None) -> ItemProgress:
    """Back to initial progress; the attempt still counts, the success tally is kept."""
    fresh = initial_progress(item)
    return ItemProgress(
        level=fresh.level,
        difficulty=fresh.difficulty,
        total_reviews=progress.total_reviews + 1,
        correct_reviews=progress.correct_reviews,
    )
