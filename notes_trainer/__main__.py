"""CLI entry point for notes-trainer.

Usage:
  python -m notes_trainer serve [--port PORT] [--host HOST]
  python -m notes_trainer stats
  python -m notes_trainer due
  python -m notes_trainer reset [--yes]
"""
from __future__ import annotations

import asyncio
import sys


def main():
    args = sys.argv[1:]
    command = args[0] if args else "serve"

    if command == "serve":
        _serve(args[1:])
    elif command == "stats":
        _stats()
    elif command == "due":
        _due()
    elif command == "reset":
        _reset(args[1:])
    else:
        print(f"Unknown command: {command}")
        print("Commands: serve, stats, due, reset")
        sys.exit(1)


def _parse_flag(args: list[str], name: str, default: str) -> str:
    for i, a in enumerate(args):
        if a == name and i + 1 < len(args):
            return args[i + 1]
    return default


def _serve(args: list[str]):
    import uvicorn

    port = int(_parse_flag(args, "--port", "8765"))
    host = _parse_flag(args, "--host", "127.0.0.1")
    print(f"Starting Notes Trainer on http://{host}:{port}")
    print("Press Ctrl+C to stop\n")
    uvicorn.run(
        "notes_trainer.app:app",
        host=host,
        port=port,
        reload=False,
        timeout_graceful_shutdown=5,
    )


def _open_engine():
    from notes_trainer.config import load_settings
    from notes_trainer.content import load_content
    from notes_trainer.db import Database
    from notes_trainer.engine import ProgressEngine
    from notes_trainer.parsers.content_parser import ContentError
    from zoneinfo import ZoneInfoNotFoundError

    settings = load_settings()
    db = Database(settings.db_full_path)
    try:
        content = asyncio.run(load_content(settings))
    except ContentError as e:
        print(f"Could not load cards: {e}")
        db.close()
        sys.exit(1)
    try:
        tz = settings.tzinfo
    except (ZoneInfoNotFoundError, ValueError):
        print(f"Unknown timezone {settings.timezone!r} in config.json")
        db.close()
        sys.exit(1)
    engine = ProgressEngine(
        content,
        db.load_state(settings.user_id),
        tz=tz,
        daily_goal=settings.daily_goal,
    )
    return settings, db, engine


def _stats():
    settings, db, engine = _open_engine()
    state = engine.state
    xp = engine.xp_stats()

    print("Notes Trainer Stats")
    print("=" * 40)
    print(f"Cards:              {len(engine.content)}")
    print(f"Groups:             {len(engine.content.groups)}")
    print(f"Cards due:          {len(engine.due_items())}")
    print(f"Total XP:           {xp.xp_total}")
    print(f"XP today:           {xp.xp_today} ({xp.remaining_xp} left)")
    print(f"Reviews this hour:  {xp.hourly_reviews}/{xp.hourly_cap}")
    print(f"Day streak:         {state.streak_days}")
    print(f"Studied today:      {state.cards_studied_today}/{state.daily_goal}")
    print(f"Review streak:      {state.due_streak}")
    db.close()


def _due():
    settings, db, engine = _open_engine()
    due = engine.due_items()
    if not due:
        print("Nothing due.")
    for item_id in due:
        item = engine.content.item(item_id)
        progress = engine.progress_for(item_id)
        print(f"  [{item.tag}] {item.title}  (level {progress.level})")
    db.close()


def _reset(args: list[str]):
    if "--yes" not in args:
        answer = input("This will reset all progress. Continue? [y/N] ")
        if answer.strip().lower() != "y":
            print("Aborted.")
            return
    settings, db, engine = _open_engine()
    engine.reset_all()
    if db.save_state(settings.user_id, engine.state):
        print("All progress reset.")
    else:
        print("Reset failed to save.")
        sys.exit(1)
    db.close()


if __name__ == "__main__":
    main()
