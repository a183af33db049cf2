# -*- coding: utf-8 -*-
"""Runtime settings for the WebGarden server.

Resolution order: explicit overrides (CLI flags) > environment > conf/settings.ini
> built-in defaults. A missing settings.ini is not an error.
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from core.garden.engine import DEFAULT_TICK_SECONDS, Timing
from core.garden.weather import DEFAULT_CYCLE_SECONDS

PROJECT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "conf" / "settings.ini"
DEFAULT_DB_PATH = PROJECT_ROOT / "data" / "garden.sqlite"


@dataclass(frozen=True)
class GardenSettings:
    """Runtime settings.

    Notes
    - db_path is the SQLite file holding users + gardens (created on first use).
    - root_path is for reverse-proxy mount (e.g. '/garden').
    - tick_seconds / weather_cycle_seconds drive the lazy simulation.
    """

    db_path: Path = DEFAULT_DB_PATH
    host: str = "127.0.0.1"
    port: int = 8000
    root_path: str = ""
    cors_allow_origins: List[str] = field(default_factory=list)
    tick_seconds: float = DEFAULT_TICK_SECONDS
    weather_cycle_seconds: float = DEFAULT_CYCLE_SECONDS
    leaderboard_default_limit: int = 10

    @property
    def timing(self) -> Timing:
        return Timing(tick_seconds=self.tick_seconds, weather_cycle_seconds=self.weather_cycle_seconds)

    @staticmethod
    def normalize_root_path(root_path: str) -> str:
        rp = (root_path or "").strip()
        if not rp:
            return ""
        if not rp.startswith("/"):
            rp = "/" + rp
        rp = rp.rstrip("/")
        return rp


def _expand(val: Optional[str]) -> Optional[str]:
    if not val:
        return None
    return os.path.expanduser(val.strip())


def _cfg_get(cfg: configparser.ConfigParser, section: str, key: str) -> Optional[str]:
    try:
        val = cfg.get(section, key, fallback="").strip()
    except configparser.Error:
        val = ""
    return _expand(val) if val else None


def _as_float(val: Optional[str], default: float) -> float:
    if val is None:
        return default
    try:
        num = float(val)
    except ValueError:
        raise SystemExit(f"Invalid number in settings: {val!r}")
    return num if num > 0 else default


def load_ini(path: Path) -> configparser.ConfigParser:
    cfg = configparser.ConfigParser()
    if path.exists():
        cfg.read(path, encoding="utf-8")
    return cfg


def resolve_settings(
    *,
    config_path: Path = DEFAULT_CONFIG_PATH,
    db_path: Optional[str] = None,
    host: Optional[str] = None,
    port: Optional[int] = None,
    root_path: Optional[str] = None,
    cors_allow_origins: Optional[List[str]] = None,
    tick_seconds: Optional[float] = None,
    weather_cycle_seconds: Optional[float] = None,
) -> GardenSettings:
    cfg = load_ini(Path(config_path))

    db = db_path or os.environ.get("GARDEN_DB") or _cfg_get(cfg, "GARDEN", "DB_PATH")
    host = host or _cfg_get(cfg, "SERVER", "HOST") or "127.0.0.1"
    port_val = port or _as_float(_cfg_get(cfg, "SERVER", "PORT"), 8000)
    rp = root_path if root_path is not None else (_cfg_get(cfg, "SERVER", "ROOT_PATH") or "")

    origins = list(cors_allow_origins or [])
    if not origins:
        raw = _cfg_get(cfg, "SERVER", "CORS_ALLOW_ORIGINS") or ""
        origins = [o.strip() for o in raw.split(",") if o.strip()]

    tick = tick_seconds or _as_float(
        os.environ.get("GARDEN_TICK_SECONDS") or _cfg_get(cfg, "GARDEN", "TICK_SECONDS"), DEFAULT_TICK_SECONDS
    )
    cycle = weather_cycle_seconds or _as_float(
        os.environ.get("GARDEN_WEATHER_SECONDS") or _cfg_get(cfg, "GARDEN", "WEATHER_CYCLE_SECONDS"),
        DEFAULT_CYCLE_SECONDS,
    )
    limit = int(_as_float(_cfg_get(cfg, "GARDEN", "LEADERBOARD_DEFAULT_LIMIT"), 10))

    db_resolved = Path(db) if db else DEFAULT_DB_PATH
    if not db_resolved.is_absolute():
        db_resolved = PROJECT_ROOT / db_resolved

    return GardenSettings(
        db_path=db_resolved,
        host=str(host),
        port=int(port_val),
        root_path=GardenSettings.normalize_root_path(rp),
        cors_allow_origins=origins,
        tick_seconds=float(tick),
        weather_cycle_seconds=float(cycle),
        leaderboard_default_limit=max(1, limit),
    )
