"""FastAPI application with all routes."""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import math
from zoneinfo import ZoneInfoNotFoundError

logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")

from fastapi import FastAPI, HTTPException, Query, Request

from notes_trainer.config import Settings, load_settings, save_settings
from notes_trainer.content import load_content
from notes_trainer.db import Database, PersistenceError
from notes_trainer.engine import ProgressEngine
from notes_trainer.limits import remaining_daily_xp
from notes_trainer.models import Content, Cursor, Item, TransitionResult
from notes_trainer.parsers.content_parser import ContentError

app = FastAPI(title="Notes Trainer")
log = logging.getLogger("notes_trainer.app")

# Global state (initialized in startup)
_db: Database | None = None
_settings: Settings | None = None
_engine: ProgressEngine | None = None
# Transitions are applied one at a time, never interleaved
_dispatch_lock = asyncio.Lock()


def get_db() -> Database:
    assert _db is not None
    return _db


def get_settings() -> Settings:
    assert _settings is not None
    return _settings


def get_engine() -> ProgressEngine:
    assert _engine is not None
    return _engine


def _restore_state(db: Database, settings: Settings):
    try:
        return db.load_state(settings.user_id)
    except PersistenceError as e:
        log.warning("%s; starting a fresh session", e)
        return None


@app.on_event("startup")
async def startup():
    global _db, _settings, _engine
    if _engine is not None:
        return  # Already initialized (e.g. by tests)
    _settings = load_settings()
    _db = Database(_settings.db_full_path)
    try:
        content = await load_content(_settings)
    except ContentError as e:
        log.warning("%s; starting with no cards", e)
        content = Content()
    try:
        tz = _settings.tzinfo
    except (ZoneInfoNotFoundError, ValueError):
        log.warning("Unknown timezone %r in config; using the local zone", _settings.timezone)
        tz = None
    _engine = ProgressEngine(
        content,
        _restore_state(_db, _settings),
        tz=tz,
        daily_goal=_settings.daily_goal,
    )
    log.info("Session ready: %d cards, %d due", len(content), len(_engine.due_items()))


@app.on_event("shutdown")
async def shutdown():
    if _engine and _db:
        _persist()
    if _db:
        _db.close()


def _persist() -> bool:
    engine = get_engine()
    s = get_settings()
    if s.prune_ledger_hours > 0:
        engine.prune_ledger(s.prune_ledger_hours)
    return get_db().save_state(s.user_id, engine.state)


def _item_dict(item: Item | None) -> dict | None:
    if item is None:
        return None
    engine = get_engine()
    progress = engine.progress_for(item.id)
    return {
        "id": item.id,
        "group_id": item.group_id,
        "title": item.title,
        "content": item.content,
        "tag": item.tag,
        "image_url": item.image_url,
        "progress": progress.to_dict() if progress else None,
    }


def _state_summary() -> dict:
    engine = get_engine()
    state = engine.state
    return {
        "cursor": {"group": state.cursor.group_index, "item": state.cursor.item_index},
        "streak_days": state.streak_days,
        "last_study_date": state.last_study_date.isoformat() if state.last_study_date else None,
        "cards_studied_today": state.cards_studied_today,
        "daily_goal": state.daily_goal,
        "xp_total": state.xp_total,
        "due_streak": state.due_streak,
        "due_count": len(engine.due_items()),
        "total_cards": len(engine.content),
        "last_rejection": state.last_rejection,
    }


def _raise_for_rejection(result: TransitionResult) -> None:
    rejection = result.rejection
    if rejection is None:
        return
    if not rejection.rate_limited:
        raise HTTPException(404, rejection.message)
    headers = {}
    if rejection.retry_after_seconds is not None:
        headers["Retry-After"] = str(math.ceil(rejection.retry_after_seconds))
    raise HTTPException(429, rejection.message, headers=headers)


async def _dispatch(apply) -> TransitionResult:
    async with _dispatch_lock:
        result = apply(get_engine())
        if result.accepted and not _persist():
            log.warning("Progress kept in memory only; will retry on the next change")
    _raise_for_rejection(result)
    return result


# ── API: Read-only views ──────────────────────────────────────────────────

@app.get("/api/state")
async def api_state():
    return _state_summary()


@app.get("/api/xp")
async def api_xp():
    return get_engine().xp_stats().to_dict()


@app.get("/api/due")
async def api_due():
    due = get_engine().due_items()
    return {"count": len(due), "items": due}


@app.get("/api/current")
async def api_current():
    item = get_engine().current_item()
    if item is None:
        raise HTTPException(404, "No cards loaded")
    return _item_dict(item)


@app.get("/api/content")
async def api_content(tag: list[str] | None = Query(default=None)):
    content = get_engine().content.filter_tags(tag)
    return {
        "tags": get_engine().content.tags(),
        "groups": [
            {
                "id": g.id,
                "title": g.title,
                "items": [{"id": i.id, "title": i.title} for i in g.items],
            }
            for g in content.groups
        ],
    }


# ── API: Transitions ──────────────────────────────────────────────────────

@app.post("/api/review")
async def api_review(request: Request):
    body = await request.json()
    if not isinstance(body.get("correct"), bool):
        raise HTTPException(400, "Answer must be true or false")
    engine = get_engine()
    item_id = body.get("item_id")
    if item_id is None:
        current = engine.current_item()
        if current is None:
            raise HTTPException(404, "No cards loaded")
        item_id = current.id
    item_id = str(item_id)

    s = get_settings()
    if s.block_at_daily_cap and remaining_daily_xp(engine.state.ledger, engine.clock.now(), engine.tz) == 0:
        raise HTTPException(429, "Daily XP limit reached. Come back tomorrow.")

    result = await _dispatch(lambda e: e.submit_review(item_id, body["correct"]))
    return {
        "item_id": item_id,
        "xp_awarded": result.xp_awarded,
        "milestone": result.milestone.value if result.milestone else None,
        "progress": result.state.progress[item_id].to_dict(),
        "xp": get_engine().xp_stats().to_dict(),
        "state": _state_summary(),
        "next": _item_dict(get_engine().current_item()),
    }


@app.post("/api/forgot")
async def api_forgot(request: Request):
    body = await request.json()
    item_id = body.get("item_id")
    if item_id is None:
        raise HTTPException(400, "No item_id provided")
    item_id = str(item_id)
    result = await _dispatch(lambda e: e.mark_forgotten(item_id))
    return {"item_id": item_id, "progress": result.state.progress[item_id].to_dict()}


@app.post("/api/navigate")
async def api_navigate(request: Request):
    body = await request.json()
    if "group" in body:
        cursor = Cursor(int(body["group"]), int(body.get("item", 0)))
        await _dispatch(lambda e: e.navigate(cursor=cursor))
    elif body.get("direction") in ("next", "previous"):
        await _dispatch(lambda e: e.navigate(direction=body["direction"]))
    else:
        raise HTTPException(400, "Navigate needs a direction (next/previous) or a group index")
    return {"state": _state_summary(), "current": _item_dict(get_engine().current_item())}


@app.post("/api/reset")
async def api_reset():
    await _dispatch(lambda e: e.reset_all())
    return _state_summary()


@app.post("/api/content/reload")
async def api_content_reload():
    s = get_settings()
    try:
        content = await load_content(s)
    except ContentError as e:
        raise HTTPException(502, str(e))
    async with _dispatch_lock:
        get_engine().replace_content(content)
        _persist()
    return {"total_cards": len(content), "tags": content.tags()}


# ── API: Settings ─────────────────────────────────────────────────────────

@app.get("/api/settings")
async def api_get_settings():
    return get_settings().to_dict()


@app.put("/api/settings")
async def api_update_settings(request: Request):
    body = await request.json()
    s = get_settings()
    known = {f.name for f in Settings.__dataclass_fields__.values()}
    candidate = dataclasses.replace(s, **{k: v for k, v in body.items() if k in known})
    try:
        candidate.tzinfo
    except (ZoneInfoNotFoundError, ValueError):
        raise HTTPException(400, f"Unknown timezone: {candidate.timezone}")
    for k in known:
        setattr(s, k, getattr(candidate, k))
    save_settings(s)
    async with _dispatch_lock:
        engine = get_engine()
        engine.tz = s.tzinfo
        engine.set_daily_goal(s.daily_goal)
    return s.to_dict()
