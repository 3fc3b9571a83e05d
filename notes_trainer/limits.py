"""Anti-abuse checks run before a review is accepted.

Checks run in order and the first failure wins:
  1. per-item cooldown (12h since that item was last accepted)
  2. hourly cap (100 accepted reviews per clock-hour bucket)
  3. global minimum spacing (3s between any two accepted reviews)

The daily XP ceiling is advisory only: it is reported, never enforced here.
"""
from __future__ import annotations

import math
from datetime import datetime, timedelta, tzinfo

from notes_trainer.clock import HOUR_MS, calendar_date, date_key, epoch_ms, hour_bucket
from notes_trainer.models import Rejection, RejectionKind, ReviewLedger

COOLDOWN = timedelta(hours=12)
HOURLY_CAP = 100
MIN_SPACING = timedelta(milliseconds=3000)
DAILY_XP_CAP = 1000


def can_review(item_id: str, now: datetime, ledger: ReviewLedger) -> Rejection | None:
    """Return None when the review may proceed, otherwise the reason it may not."""
    last_for_item = ledger.per_item_last_review.get(item_id)
    if last_for_item is not None:
        remaining = COOLDOWN - (now - last_for_item)
        if remaining > timedelta(0):
            hours = math.ceil(remaining.total_seconds() / 3600)
            return Rejection(
                RejectionKind.COOLDOWN,
                f"This card is cooling down. Try again in {hours} hour{'s' if hours != 1 else ''}.",
                remaining.total_seconds(),
            )

    bucket = hour_bucket(now)
    if ledger.hourly_review_count.get(bucket, 0) >= HOURLY_CAP:
        wait_ms = (bucket + 1) * HOUR_MS - epoch_ms(now)
        minutes = math.ceil(wait_ms / 60_000)
        return Rejection(
            RejectionKind.HOURLY_CAP,
            f"Hourly limit of {HOURLY_CAP} reviews reached. Try again in {minutes} minutes.",
            wait_ms / 1000,
        )

    if ledger.last_review is not None:
        remaining = MIN_SPACING - (now - ledger.last_review)
        if remaining > timedelta(0):
            return Rejection(
                RejectionKind.MIN_SPACING,
                "Reviewing too quickly. Take a moment before the next card.",
                remaining.total_seconds(),
            )

    return None


def record_review(
    ledger: ReviewLedger, item_id: str, now: datetime, xp: int, tz: tzinfo | None = None
) -> ReviewLedger:
    bucket = hour_bucket(now)
    day = date_key(now, tz)
    return ReviewLedger(
        last_review=now,
        per_item_last_review={**ledger.per_item_last_review, item_id: now},
        hourly_review_count={
            **ledger.hourly_review_count,
            bucket: ledger.hourly_review_count.get(bucket, 0) + 1,
        },
        daily_xp={**ledger.daily_xp, day: ledger.daily_xp.get(day, 0) + xp},
    )


def remaining_daily_xp(ledger: ReviewLedger, now: datetime, tz: tzinfo | None = None) -> int:
    return max(0, DAILY_XP_CAP - ledger.daily_xp.get(date_key(now, tz), 0))


def prune_ledger(
    ledger: ReviewLedger, now: datetime, keep_hours: float, tz: tzinfo | None = None
) -> ReviewLedger:
    """Drop buckets older than the window. Lookups are keyed, so this only bounds memory."""
    # Never shorter than the cooldown, or pruning would reopen cooling items
    cutoff = now - max(timedelta(hours=keep_hours), COOLDOWN)
    oldest_bucket = hour_bucket(cutoff)
    oldest_day = calendar_date(cutoff, tz).isoformat()
    return ReviewLedger(
        last_review=ledger.last_review,
        per_item_last_review={
            k: v for k, v in ledger.per_item_last_review.items() if v >= cutoff
        },
        hourly_review_count={
            k: v for k, v in ledger.hourly_review_count.items() if k >= oldest_bucket
        },
        daily_xp={k: v for k, v in ledger.daily_xp.items() if k >= oldest_day},
    )
