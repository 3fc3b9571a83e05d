from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType

from notes_trainer.clock import ensure_aware

MIN_LEVEL = 0
MAX_LEVEL = 5
MIN_DIFFICULTY = 0.5
MAX_DIFFICULTY = 2.0
NEUTRAL_DIFFICULTY = 1.0
DEFAULT_DAILY_GOAL = 20


@dataclass(frozen=True)
class Item:
    id: str
    group_id: str
    title: str
    content: str
    tag: str = "Untagged"
    image_url: str | None = None
    declared_difficulty: str | None = None  # easy | medium | hard


@dataclass(frozen=True)
class Group:
    id: str
    title: str
    items: tuple[Item, ...] = ()


@dataclass(frozen=True)
class Cursor:
    group_index: int = 0
    item_index: int = 0


class Content:
    """Ordered groups of items with an id index. Never mutated by the engine."""

    def __init__(self, groups: list[Group] | tuple[Group, ...] = ()):
        self.groups: tuple[Group, ...] = tuple(groups)
        self._positions: dict[str, Cursor] = {}
        for gi, group in enumerate(self.groups):
            for ii, item in enumerate(group.items):
                self._positions.setdefault(item.id, Cursor(gi, ii))

    def __len__(self) -> int:
        return len(self._positions)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._positions

    def item_ids(self) -> list[str]:
        return list(self._positions)

    def items(self) -> list[Item]:
        return [item for group in self.groups for item in group.items]

    def item(self, item_id: str) -> Item | None:
        pos = self._positions.get(item_id)
        return self.item_at(pos) if pos else None

    def position(self, item_id: str) -> Cursor | None:
        return self._positions.get(item_id)

    def item_at(self, cursor: Cursor) -> Item | None:
        if not 0 <= cursor.group_index < len(self.groups):
            return None
        items = self.groups[cursor.group_index].items
        if not 0 <= cursor.item_index < len(items):
            return None
        return items[cursor.item_index]

    def tags(self) -> list[str]:
        return [g.title for g in self.groups]

    def filter_tags(self, tags: list[str] | None) -> Content:
        """Restrict to groups whose tag is selected. No selection keeps everything."""
        if not tags:
            return self
        wanted = set(tags)
        return Content([g for g in self.groups if g.title in wanted])


@dataclass(frozen=True)
class ItemProgress:
    level: int = 0
    last_review: datetime | None = None
    next_review: datetime | None = None  # None: never reviewed, due now
    total_reviews: int = 0
    correct_reviews: int = 0
    difficulty: float = NEUTRAL_DIFFICULTY
    consecutive_correct: int = 0

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "last_review": _dt_out(self.last_review),
            "next_review": _dt_out(self.next_review),
            "total_reviews": self.total_reviews,
            "correct_reviews": self.correct_reviews,
            "difficulty": self.difficulty,
            "consecutive_correct": self.consecutive_correct,
        }

    @classmethod
    def from_dict(cls, raw: dict) -> ItemProgress:
        """Read a stored record, pulling out-of-range values back into bounds."""
        total = max(0, int(raw.get("total_reviews", 0)))
        return cls(
            level=min(max(int(raw.get("level", 0)), MIN_LEVEL), MAX_LEVEL),
            last_review=_dt_in(raw.get("last_review")),
            next_review=_dt_in(raw.get("next_review")),
            total_reviews=total,
            correct_reviews=min(max(int(raw.get("correct_reviews", 0)), 0), total),
            difficulty=min(max(float(raw.get("difficulty", NEUTRAL_DIFFICULTY)), MIN_DIFFICULTY), MAX_DIFFICULTY),
            consecutive_correct=max(0, int(raw.get("consecutive_correct", 0))),
        )


@dataclass(frozen=True)
class ReviewLedger:
    last_review: datetime | None = None
    per_item_last_review: Mapping[str, datetime] = field(default_factory=dict)
    hourly_review_count: Mapping[int, int] = field(default_factory=dict)  # hour bucket -> count
    daily_xp: Mapping[str, int] = field(default_factory=dict)  # ISO date -> xp

    def __post_init__(self):
        _freeze_maps(self, "per_item_last_review", "hourly_review_count", "daily_xp")

    def to_dict(self) -> dict:
        return {
            "last_review": _dt_out(self.last_review),
            "per_item_last_review": {k: _dt_out(v) for k, v in self.per_item_last_review.items()},
            "hourly_review_count": {str(k): v for k, v in self.hourly_review_count.items()},
            "daily_xp": dict(self.daily_xp),
        }

    @classmethod
    def from_dict(cls, raw: dict) -> ReviewLedger:
        return cls(
            last_review=_dt_in(raw.get("last_review")),
            per_item_last_review={
                str(k): _dt_in(v) for k, v in raw.get("per_item_last_review", {}).items() if v
            },
            hourly_review_count={int(k): int(v) for k, v in raw.get("hourly_review_count", {}).items()},
            daily_xp={str(k): int(v) for k, v in raw.get("daily_xp", {}).items()},
        )


@dataclass(frozen=True)
class SessionState:
    cursor: Cursor = Cursor()
    streak_days: int = 0
    last_study_date: date | None = None
    cards_studied_today: int = 0
    daily_goal: int = DEFAULT_DAILY_GOAL
    xp_total: int = 0
    due_streak: int = 0
    progress: Mapping[str, ItemProgress] = field(default_factory=dict)
    ledger: ReviewLedger = field(default_factory=ReviewLedger)
    last_rejection: str | None = None

    def __post_init__(self):
        _freeze_maps(self, "progress")

    def to_dict(self) -> dict:
        return {
            "cursor": [self.cursor.group_index, self.cursor.item_index],
            "streak_days": self.streak_days,
            "last_study_date": self.last_study_date.isoformat() if self.last_study_date else None,
            "cards_studied_today": self.cards_studied_today,
            "daily_goal": self.daily_goal,
            "xp_total": self.xp_total,
            "due_streak": self.due_streak,
            "progress": {k: p.to_dict() for k, p in self.progress.items()},
            "ledger": self.ledger.to_dict(),
            "last_rejection": self.last_rejection,
        }

    @classmethod
    def from_dict(cls, raw: dict) -> SessionState:
        gi, ii = raw.get("cursor") or (0, 0)
        study_date = raw.get("last_study_date")
        return cls(
            cursor=Cursor(int(gi), int(ii)),
            streak_days=int(raw.get("streak_days", 0)),
            last_study_date=date.fromisoformat(study_date) if study_date else None,
            cards_studied_today=int(raw.get("cards_studied_today", 0)),
            daily_goal=int(raw.get("daily_goal", DEFAULT_DAILY_GOAL)),
            xp_total=int(raw.get("xp_total", 0)),
            due_streak=int(raw.get("due_streak", 0)),
            progress={str(k): ItemProgress.from_dict(v) for k, v in raw.get("progress", {}).items()},
            ledger=ReviewLedger.from_dict(raw.get("ledger", {})),
            last_rejection=raw.get("last_rejection"),
        )


# ── Transitions ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SubmitReview:
    item_id: str
    correct: bool


@dataclass(frozen=True)
class MarkForgotten:
    item_id: str


@dataclass(frozen=True)
class Navigate:
    direction: str | None = None  # next | previous
    cursor: Cursor | None = None


@dataclass(frozen=True)
class ResetAll:
    pass


Action = SubmitReview | MarkForgotten | Navigate | ResetAll


class RejectionKind(str, enum.Enum):
    COOLDOWN = "cooldown"
    HOURLY_CAP = "hourly_cap"
    MIN_SPACING = "min_spacing"
    NO_SUCH_ITEM = "no_such_item"


@dataclass(frozen=True)
class Rejection:
    kind: RejectionKind
    message: str
    retry_after_seconds: float | None = None

    @property
    def rate_limited(self) -> bool:
        return self.kind is not RejectionKind.NO_SUCH_ITEM


class Milestone(str, enum.Enum):
    GOAL_REACHED = "goal_reached"
    STREAK = "streak"


@dataclass(frozen=True)
class TransitionResult:
    state: SessionState
    rejection: Rejection | None = None
    milestone: Milestone | None = None
    xp_awarded: int = 0

    @property
    def accepted(self) -> bool:
        return self.rejection is None


def _dt_out(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _dt_in(value: str | None) -> datetime | None:
    if not value:
        return None
    return ensure_aware(datetime.fromisoformat(value))


def _freeze_maps(obj: object, *names: str) -> None:
    # Snapshots hand out read-only views; transitions build new dicts instead
    for name in names:
        object.__setattr__(obj, name, MappingProxyType(dict(getattr(obj, name))))
