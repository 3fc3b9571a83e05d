"""The review-progress state machine.

``reduce`` is a pure function from (state, action) to a TransitionResult;
``ProgressEngine`` holds the one live snapshot and swaps it in whole.

SubmitReview, when accepted, runs in this order against one ``now``:
rate-limit guard, due check, difficulty, level, schedule, XP (on the
pre-review progress), counters, ledger, streak/goal, cursor. A rejected
action returns the input state with only ``last_rejection`` replaced.
"""
from __future__ import annotations

import dataclasses
import logging
from datetime import datetime, tzinfo

from notes_trainer import limits, srs, streak
from notes_trainer.clock import Clock, SystemClock, calendar_date
from notes_trainer.models import (
    Action,
    Content,
    Cursor,
    Item,
    ItemProgress,
    MarkForgotten,
    Navigate,
    Rejection,
    RejectionKind,
    ResetAll,
    ReviewLedger,
    SessionState,
    SubmitReview,
    TransitionResult,
)
from notes_trainer.xp import XPStats, xp_for, xp_stats

log = logging.getLogger("notes_trainer.engine")


def hydrate(snapshot: SessionState | None, content: Content, daily_goal: int | None = None) -> SessionState:
    """Build the live state from a persisted snapshot (or from scratch).

    Items new to the content get fresh progress; progress for items that are
    no longer in the content is kept so it survives a temporary content gap.
    """
    state = snapshot or SessionState()
    progress = dict(state.progress)
    for item in content.items():
        if item.id not in progress:
            progress[item.id] = srs.initial_progress(item)
    return dataclasses.replace(
        state,
        progress=progress,
        cursor=clamp_cursor(state.cursor, content),
        daily_goal=daily_goal if daily_goal is not None else state.daily_goal,
    )


def reduce(state: SessionState, action: Action, *, content: Content, now: datetime, tz: tzinfo | None = None) -> TransitionResult:
    if isinstance(action, SubmitReview):
        return _submit_review(state, action, content, now, tz)
    if isinstance(action, MarkForgotten):
        return _mark_forgotten(state, action, content)
    if isinstance(action, Navigate):
        return _navigate(state, action, content)
    if isinstance(action, ResetAll):
        return _reset_all(state, content)
    raise TypeError(f"Unknown action: {action!r}")


def _reject(state: SessionState, rejection: Rejection) -> TransitionResult:
    return TransitionResult(dataclasses.replace(state, last_rejection=rejection.message), rejection)


def _no_such_item(state: SessionState, item_id: str) -> TransitionResult:
    return _reject(state, Rejection(RejectionKind.NO_SUCH_ITEM, f"No such card: {item_id}"))


def _submit_review(
    state: SessionState, action: SubmitReview, content: Content, now: datetime, tz: tzinfo | None
) -> TransitionResult:
    item_id = action.item_id
    item = content.item(item_id)
    if item is None:
        return _no_such_item(state, item_id)

    rejection = limits.can_review(item_id, now, state.ledger)
    if rejection is not None:
        return _reject(state, rejection)

    before = state.progress.get(item_id) or srs.initial_progress(item)
    due = srs.is_due(before, now)
    after = srs.review_progress(before, action.correct, now)
    xp = xp_for(before, due, now)

    if not action.correct:
        due_streak = 0
    elif due:
        due_streak = state.due_streak + 1
    else:
        due_streak = state.due_streak

    day = streak.advance(state, now, tz)
    position = content.position(item_id) or state.cursor

    new_state = dataclasses.replace(
        state,
        progress={**state.progress, item_id: after},
        xp_total=state.xp_total + xp,
        ledger=limits.record_review(state.ledger, item_id, now, xp, tz),
        streak_days=day.streak_days,
        cards_studied_today=day.cards_studied_today,
        last_study_date=calendar_date(now, tz),
        due_streak=due_streak,
        cursor=step_cursor(position, content, +1),
        last_rejection=None,
    )
    return TransitionResult(new_state, milestone=day.milestone, xp_awarded=xp)


def _mark_forgotten(state: SessionState, action: MarkForgotten, content: Content) -> TransitionResult:
    item = content.item(action.item_id)
    if item is None:
        return _no_such_item(state, action.item_id)
    current = state.progress.get(item.id) or srs.initial_progress(item)
    return TransitionResult(
        dataclasses.replace(
            state,
            progress={**state.progress, item.id: srs.forget_progress(current, item)},
            last_rejection=None,
        )
    )


def _navigate(state: SessionState, action: Navigate, content: Content) -> TransitionResult:
    if action.cursor is not None:
        cursor = clamp_cursor(action.cursor, content)
    elif action.direction == "next":
        cursor = step_cursor(state.cursor, content, +1)
    elif action.direction == "previous":
        cursor = step_cursor(state.cursor, content, -1)
    else:
        raise ValueError(f"Unknown navigation direction: {action.direction!r}")
    return TransitionResult(dataclasses.replace(state, cursor=cursor, last_rejection=None))


def _reset_all(state: SessionState, content: Content) -> TransitionResult:
    ids = [*state.progress, *content.item_ids()]
    progress = {item_id: srs.initial_progress(content.item(item_id)) for item_id in ids}
    return TransitionResult(
        SessionState(daily_goal=state.daily_goal, progress=progress, cursor=clamp_cursor(Cursor(), content))
    )


# ── Cursor ────────────────────────────────────────────────────────────────


def _positions(content: Content) -> list[Cursor]:
    return [Cursor(gi, ii) for gi, g in enumerate(content.groups) for ii in range(len(g.items))]


def clamp_cursor(cursor: Cursor, content: Content) -> Cursor:
    """Nearest real item position; (0, 0) when there is no content."""
    positions = _positions(content)
    if not positions:
        return Cursor()
    if content.item_at(cursor) is not None:
        return cursor
    key = (cursor.group_index, cursor.item_index)
    before = [p for p in positions if (p.group_index, p.item_index) <= key]
    return before[-1] if before else positions[0]


def step_cursor(cursor: Cursor, content: Content, delta: int) -> Cursor:
    """Move across group boundaries, skipping empty groups, clamped at both ends."""
    positions = _positions(content)
    if not positions:
        return Cursor()
    index = positions.index(clamp_cursor(cursor, content))
    return positions[min(max(index + delta, 0), len(positions) - 1)]


# ── Host-facing session ───────────────────────────────────────────────────


class ProgressEngine:
    """Owns the live SessionState. Callers must dispatch one action at a time."""

    def __init__(
        self,
        content: Content,
        state: SessionState | None = None,
        clock: Clock | None = None,
        tz: tzinfo | None = None,
        daily_goal: int | None = None,
    ):
        self.content = content
        self.clock = clock or SystemClock()
        self.tz = tz
        self._state = hydrate(state, content, daily_goal)

    @property
    def state(self) -> SessionState:
        return self._state

    def dispatch(self, action: Action) -> TransitionResult:
        result = reduce(self._state, action, content=self.content, now=self.clock.now(), tz=self.tz)
        self._state = result.state
        if result.rejection is not None:
            log.info("Rejected %s: %s", type(action).__name__, result.rejection.message)
        elif isinstance(action, SubmitReview):
            log.info(
                "Review %s (%s): +%d xp, level %d",
                action.item_id,
                "correct" if action.correct else "incorrect",
                result.xp_awarded,
                self._state.progress[action.item_id].level,
            )
            if result.milestone is not None:
                log.info("Milestone: %s (streak %d days)", result.milestone.value, self._state.streak_days)
        elif isinstance(action, ResetAll):
            log.warning("All progress reset")
        return result

    def submit_review(self, item_id: str, correct: bool) -> TransitionResult:
        return self.dispatch(SubmitReview(item_id, correct))

    def mark_forgotten(self, item_id: str) -> TransitionResult:
        return self.dispatch(MarkForgotten(item_id))

    def navigate(self, direction: str | None = None, cursor: Cursor | None = None) -> TransitionResult:
        return self.dispatch(Navigate(direction=direction, cursor=cursor))

    def reset_all(self) -> TransitionResult:
        return self.dispatch(ResetAll())

    def set_daily_goal(self, daily_goal: int) -> None:
        self._state = dataclasses.replace(self._state, daily_goal=daily_goal)

    def replace_content(self, content: Content) -> None:
        self.content = content
        self._state = hydrate(self._state, content)

    def due_items(self) -> list[str]:
        """Due ids in content order, limited to items the content still has."""
        due = srs.due_items(self._state.progress, self.clock.now())
        return [item_id for item_id in self.content.item_ids() if item_id in due]

    def xp_stats(self) -> XPStats:
        return xp_stats(self._state, self.clock.now(), self.tz)

    def current_item(self) -> Item | None:
        return self.content.item_at(self._state.cursor)

    def progress_for(self, item_id: str) -> ItemProgress | None:
        return self._state.progress.get(item_id)

    def prune_ledger(self, keep_hours: float) -> ReviewLedger:
        """Drop stale ledger buckets. Housekeeping between transitions, never inside one."""
        ledger = limits.prune_ledger(self._state.ledger, self.clock.now(), keep_hours, self.tz)
        self._state = dataclasses.replace(self._state, ledger=ledger)
        return ledger
