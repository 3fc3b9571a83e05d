"""Parse a published notes sheet (CSV export) into tag groups of Items.

Expected header columns:
  | title | content | tag | imageUrl |        (required: title, content)
  | id | difficulty |                         (optional)

Rows without a title or content are skipped. Items are grouped by tag in
order of first appearance; a missing tag becomes "Untagged".
"""
from __future__ import annotations

import csv
import io
import logging
from pathlib import Path

from notes_trainer.models import Content, Group, Item

log = logging.getLogger("notes_trainer.content")

REQUIRED_COLUMNS = ("title", "content")
DEFAULT_TAG = "Untagged"


class ContentError(Exception):
    """The notes sheet could not be fetched or read."""


def parse_content_csv(text: str) -> Content:
    reader = csv.DictReader(io.StringIO(text.lstrip("﻿")))
    header = [h.strip() for h in (reader.fieldnames or [])]
    missing = [c for c in REQUIRED_COLUMNS if c not in header]
    if missing:
        raise ContentError(f"Notes sheet is missing column(s): {', '.join(missing)}")

    grouped: dict[str, list[Item]] = {}
    seen: set[str] = set()
    valid = 0

    for row in reader:
        row = {(k or "").strip(): (v or "").strip() for k, v in row.items() if k is not None}
        title = row.get("title", "")
        content = row.get("content", "")
        if not title or not content:
            continue
        valid += 1

        item_id = row.get("id") or str(valid)
        if item_id in seen:
            log.warning("Duplicate card id %s (%r), keeping the first", item_id, title)
            continue
        seen.add(item_id)

        tag = row.get("tag") or DEFAULT_TAG
        grouped.setdefault(tag, []).append(Item(
            id=item_id,
            group_id=tag,
            title=title,
            content=content,
            tag=tag,
            image_url=row.get("imageUrl") or None,
            declared_difficulty=row.get("difficulty") or None,
        ))

    return Content([Group(id=tag, title=tag, items=tuple(items)) for tag, items in grouped.items()])


def parse_content_file(path: Path) -> Content:
    return parse_content_csv(path.read_text(encoding="utf-8"))
