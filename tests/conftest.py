"""Shared test fixtures."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from notes_trainer.clock import FixedClock
from notes_trainer.db import Database
from notes_trainer.engine import ProgressEngine
from notes_trainer.models import Content, Group, Item

T0 = datetime(2026, 3, 2, 10, 0, 0, tzinfo=timezone.utc)


def make_content(groups: dict[str, list[str]]) -> Content:
    """Build Content from {tag: [item ids]}; titles and bodies are derived from ids."""
    return Content([
        Group(
            id=tag,
            title=tag,
            items=tuple(
                Item(id=item_id, group_id=tag, title=f"Note {item_id}", content=f"Body of {item_id}", tag=tag)
                for item_id in ids
            ),
        )
        for tag, ids in groups.items()
    ])


@pytest.fixture
def clock():
    return FixedClock(T0)


@pytest.fixture
def sample_content():
    """Two tags, three notes, plus an empty group that navigation must skip."""
    return make_content({
        "Biology": ["1", "2"],
        "Empty": [],
        "History": ["3"],
    })


@pytest.fixture
def engine(sample_content, clock):
    return ProgressEngine(sample_content, clock=clock, tz=timezone.utc)


@pytest.fixture
def tmp_db(tmp_path):
    """Create a fresh temporary database."""
    db = Database(tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture
def notes_csv():
    """A notes sheet export as the published CSV looks."""
    return """\
title,content,tag,imageUrl,difficulty
Mitochondria,"The **powerhouse** of the cell.",Biology,,easy
Ribosome,"Builds proteins, one amino acid at a time.",Biology,https://example.com/ribosome.png,
,"Orphan content without a title",Biology,,
Treaty of Westphalia,Signed in 1648.,History,,hard
Loose note,No tag on this one.,,,
"""
