from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import timezone, tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"

DEFAULTS = {
    "content_url": "",
    "content_file": "",
    "db_path": "progress.db",
    "user_id": "local",
    "daily_goal": 20,
    "timezone": "",
    "block_at_daily_cap": False,
    "prune_ledger_hours": 0,
    "fetch_timeout": 30.0,
}


@dataclass
class Settings:
    content_url: str = DEFAULTS["content_url"]
    content_file: str = DEFAULTS["content_file"]
    db_path: str = DEFAULTS["db_path"]
    user_id: str = DEFAULTS["user_id"]
    daily_goal: int = DEFAULTS["daily_goal"]
    timezone: str = DEFAULTS["timezone"]
    block_at_daily_cap: bool = DEFAULTS["block_at_daily_cap"]
    prune_ledger_hours: float = DEFAULTS["prune_ledger_hours"]
    fetch_timeout: float = DEFAULTS["fetch_timeout"]

    @property
    def project_root(self) -> Path:
        return Path(__file__).resolve().parent.parent

    @property
    def db_full_path(self) -> Path:
        return self.project_root / self.db_path

    @property
    def content_full_path(self) -> Path:
        return self.project_root / self.content_file

    @property
    def tzinfo(self) -> tzinfo | None:
        """Zone used for calendar-day keys.

        Empty means None, which the clock helpers read as the machine's local
        zone per instant, so DST changes are followed. Raises
        ``ZoneInfoNotFoundError`` (or ``ValueError`` for a malformed key) when
        the name is not a known IANA zone.
        """
        if not self.timezone:
            return None
        if self.timezone.upper() == "UTC":
            return timezone.utc
        return ZoneInfo(self.timezone)

    def to_dict(self) -> dict:
        return {
            "content_url": self.content_url,
            "content_file": self.content_file,
            "db_path": self.db_path,
            "user_id": self.user_id,
            "daily_goal": self.daily_goal,
            "timezone": self.timezone,
            "block_at_daily_cap": self.block_at_daily_cap,
            "prune_ledger_hours": self.prune_ledger_hours,
            "fetch_timeout": self.fetch_timeout,
        }


def load_settings() -> Settings:
    if CONFIG_PATH.exists():
        raw = json.loads(CONFIG_PATH.read_text())
        # Migrate: sheets_url -> content_url
        if "sheets_url" in raw:
            raw.setdefault("content_url", raw["sheets_url"])
            del raw["sheets_url"]
        known = {f.name for f in Settings.__dataclass_fields__.values()}
        filtered = {k: v for k, v in raw.items() if k in known}
        return Settings(**filtered)
    return Settings()


def save_settings(settings: Settings) -> None:
    CONFIG_PATH.write_text(json.dumps(settings.to_dict(), indent=4) + "\n")
