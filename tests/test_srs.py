"""Tests for interval scheduling, difficulty adjustment and the due set."""
from __future__ import annotations

import random
from datetime import timedelta

import pytest

from notes_trainer.models import Item, ItemProgress
from notes_trainer.srs import (
    adjust_difficulty,
    due_items,
    forget_progress,
    initial_progress,
    interval_days,
    is_due,
    next_due,
    next_level,
    review_progress,
)

from conftest import T0


class TestIntervalScheduler:
    @pytest.mark.parametrize("level,days", [(0, 1), (1, 3), (2, 7), (3, 14), (4, 30), (5, 90)])
    def test_base_table(self, level, days):
        assert interval_days(level, 1.0) == days

    def test_levels_above_table_use_last_entry(self):
        assert interval_days(9, 1.0) == 90

    def test_difficulty_scales_interval(self):
        assert interval_days(2, 0.5) == pytest.approx(3.5)
        assert interval_days(2, 2.0) == pytest.approx(14.0)

    def test_fractional_days_not_rounded(self):
        delta = next_due(1, 1.1, T0) - T0
        assert delta.total_seconds() == pytest.approx(3.3 * 86400)


class TestDifficultyAdjuster:
    def test_three_correct_from_neutral(self):
        p = ItemProgress(difficulty=1.0)
        for _ in range(3):
            difficulty, run = adjust_difficulty(p, True)
            p = ItemProgress(difficulty=difficulty, consecutive_correct=run)
        assert p.difficulty == pytest.approx(1.3)
        assert p.consecutive_correct == 3

    def test_fourth_correct_is_amplified(self):
        difficulty, run = adjust_difficulty(ItemProgress(difficulty=1.3, consecutive_correct=3), True)
        assert run == 4
        assert difficulty == pytest.approx(1.45)

    def test_incorrect_falls_fast(self):
        difficulty, run = adjust_difficulty(ItemProgress(difficulty=1.3, consecutive_correct=3), False)
        assert difficulty == pytest.approx(0.975)
        assert run == 0

    def test_capped_at_two(self):
        difficulty, _ = adjust_difficulty(ItemProgress(difficulty=1.95, consecutive_correct=8), True)
        assert difficulty == 2.0

    def test_floored_at_half(self):
        difficulty, _ = adjust_difficulty(ItemProgress(difficulty=0.6), False)
        assert difficulty == 0.5


class TestLevel:
    def test_steps_by_one(self):
        assert next_level(2, True) == 3
        assert next_level(2, False) == 1

    def test_saturates(self):
        assert next_level(5, True) == 5
        assert next_level(0, False) == 0


class TestBounds:
    def test_level_and_difficulty_stay_in_range(self):
        rng = random.Random(7)
        p = ItemProgress()
        now = T0
        for _ in range(500):
            now += timedelta(days=1)
            p = review_progress(p, rng.random() < 0.6, now)
            assert 0 <= p.level <= 5
            assert 0.5 <= p.difficulty <= 2.0
            assert p.correct_reviews <= p.total_reviews


class TestReviewProgress:
    def test_correct_review(self):
        p = review_progress(ItemProgress(), True, T0)
        assert p.level == 1
        assert p.difficulty == pytest.approx(1.1)
        assert p.consecutive_correct == 1
        assert p.total_reviews == 1
        assert p.correct_reviews == 1
        assert p.last_review == T0
        assert p.next_review == next_due(1, p.difficulty, T0)

    def test_incorrect_review(self):
        start = ItemProgress(level=3, difficulty=1.2, consecutive_correct=2, total_reviews=4, correct_reviews=4)
        p = review_progress(start, False, T0)
        assert p.level == 2
        assert p.difficulty == pytest.approx(0.9)
        assert p.consecutive_correct == 0
        assert p.total_reviews == 5
        assert p.correct_reviews == 4


class TestForget:
    def test_resets_but_counts_attempt(self):
        p = ItemProgress(level=4, difficulty=1.6, consecutive_correct=5, total_reviews=9, correct_reviews=8,
                         last_review=T0, next_review=T0 + timedelta(days=30))
        f = forget_progress(p)
        assert f.level == 0
        assert f.difficulty == 1.0
        assert f.consecutive_correct == 0
        assert f.next_review is None
        assert f.total_reviews == 10
        assert f.correct_reviews == 8

    def test_idempotent_on_defaults(self):
        once = forget_progress(ItemProgress())
        twice = forget_progress(once)
        assert (once.level, once.difficulty) == (0, 1.0)
        assert (twice.level, twice.difficulty) == (0, 1.0)
        assert once.total_reviews == 1
        assert twice.total_reviews == 2


class TestInitialProgress:
    def _item(self, difficulty):
        return Item("x", "g", "t", "c", declared_difficulty=difficulty)

    def test_declared_difficulty_seeds_factor(self):
        assert initial_progress(self._item("easy")).difficulty == 1.25
        assert initial_progress(self._item("Hard")).difficulty == 0.75
        assert initial_progress(self._item("medium")).difficulty == 1.0

    def test_unknown_or_missing_is_neutral(self):
        assert initial_progress(self._item("impossible")).difficulty == 1.0
        assert initial_progress(self._item(None)).difficulty == 1.0
        assert initial_progress().difficulty == 1.0


class TestDueSet:
    def test_never_reviewed_is_due(self):
        assert is_due(ItemProgress(next_review=None), T0)

    def test_future_is_not_due(self):
        assert not is_due(ItemProgress(next_review=T0 + timedelta(seconds=1)), T0)

    def test_past_and_exact_are_due(self):
        assert is_due(ItemProgress(next_review=T0 - timedelta(days=2)), T0)
        assert is_due(ItemProgress(next_review=T0), T0)

    def test_due_items(self):
        progress = {
            "new": ItemProgress(),
            "later": ItemProgress(next_review=T0 + timedelta(days=1)),
            "overdue": ItemProgress(next_review=T0 - timedelta(hours=1)),
        }
        assert due_items(progress, T0) == {"new", "overdue"}
