"""Loading the notes sheet from disk or from its published URL."""
from __future__ import annotations

import logging
import time
from pathlib import Path

import httpx

from notes_trainer.config import Settings
from notes_trainer.models import Content
from notes_trainer.parsers.content_parser import ContentError, parse_content_csv, parse_content_file

log = logging.getLogger("notes_trainer.content")


async def fetch_content(
    url: str,
    timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Content:
    t0 = time.monotonic()
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True) as client:
            resp = await client.get(url)
            resp.raise_for_status()
    except httpx.HTTPError as e:
        raise ContentError(f"Failed to fetch notes: {e}") from e
    content = parse_content_csv(resp.text)
    log.info("Fetched %d cards in %d groups (%.1fs)", len(content), len(content.groups), time.monotonic() - t0)
    return content


def load_content_file(path: Path) -> Content:
    try:
        content = parse_content_file(path)
    except (OSError, UnicodeDecodeError) as e:
        raise ContentError(f"Failed to read notes file {path}: {e}") from e
    log.info("Loaded %d cards in %d groups from %s", len(content), len(content.groups), path.name)
    return content


async def load_content(settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> Content:
    """Local file wins over the URL; neither configured means no cards."""
    if settings.content_file:
        return load_content_file(settings.content_full_path)
    if settings.content_url:
        return await fetch_content(settings.content_url, settings.fetch_timeout, transport)
    log.warning("No content_file or content_url configured, starting with no cards")
    return Content()
