# config.py
from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

# =========================
# Timezone
# =========================
TZ = ZoneInfo(os.getenv("APP_TIMEZONE", "Europe/Madrid"))


def now_local() -> datetime:
    return datetime.now(TZ)


# =========================
# Persistence (per environment)
# =========================
def _pick_data_dir() -> Path:
    candidates = []
    env = os.getenv("DATA_DIR")
    if env:
        candidates.append(Path(env))
    candidates += [Path("/data"), Path.cwd() / "data"]

    for p in candidates:
        try:
            p.mkdir(parents=True, exist_ok=True)
            t = p / ".rwtest"
            t.write_text("ok")
            t.unlink(missing_ok=True)
            return p
        except OSError:
            continue
    return Path.cwd()


def data_dir() -> Path:
    """Resolved when a store is opened, never at import."""
    return _pick_data_dir()


def db_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    return f"sqlite:///{(data_dir() / 'shifts.db').as_posix()}"


# =========================
# Engine parameters
# =========================
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD")
COUNTDOWN_TICK_SECONDS = 1         # countdown re-sampled every second
SHIFT_REFRESH_SECONDS = 60         # current-shift detection re-run every minute
DEFAULT_OVERNIGHT_HOURS = 8.0      # end = start + scheduled hours when no end is known
HOURS_ROUNDING_STEP = 0.5
