# -*- coding: utf-8 -*-
from __future__ import annotations

import json
import logging
import secrets
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from core.garden import errors
from core.garden.models import STATS_FIELDS, GardenState, GardenStats, default_garden, format_ts, utcnow

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    api_token TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS gardens (
    user_id TEXT PRIMARY KEY REFERENCES users(id),
    doc_json TEXT NOT NULL,
    version INTEGER NOT NULL DEFAULT 0,
    total_points INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_gardens_points ON gardens(total_points DESC);
"""


class GardenStore:
    """Per-user garden persistence over SQLite (thread-safe).

    - load/save move the whole GardenState document; save is compare-and-swap on
      `version` when `expected_version` is given.
    - get_or_create is the only path that creates a garden implicitly.
    - users are owned by the auth layer; the store only reads them (plus
      `add_user` for the CLI).
    """

    def __init__(self, path: Path):
        self._path = Path(path)
        self._lock = threading.RLock()
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise errors.StoreError(f"Cannot create storage directory: {self._path.parent}") from exc
        with self._conn() as conn:
            conn.executescript(SCHEMA)

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                conn = sqlite3.connect(str(self._path))
                conn.row_factory = sqlite3.Row
            except sqlite3.Error as exc:
                logger.exception("failed to open garden db %s", self._path)
                raise errors.StoreError() from exc
            try:
                yield conn
                conn.commit()
            except sqlite3.Error as exc:
                conn.rollback()
                logger.exception("garden db query failed")
                raise errors.StoreError() from exc
            except Exception:
                conn.rollback()
                raise
            finally:
                conn.close()

    # ----------------- users -----------------

    def add_user(self, email: str, *, user_id: Optional[str] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
        mail = str(email or "").strip().lower()
        if not mail or "@" not in mail:
            raise errors.ValidationError(f"Invalid email: {email!r}")
        row = {
            "id": user_id or uuid.uuid4().hex,
            "email": mail,
            "api_token": secrets.token_urlsafe(32),
            "created_at": format_ts(now or utcnow()),
        }
        with self._conn() as conn:
            if conn.execute("SELECT 1 FROM users WHERE email = ?", (mail,)).fetchone():
                raise errors.ConflictError(f"Email already registered: {mail}")
            conn.execute(
                "INSERT INTO users (id, email, api_token, created_at) VALUES (?, ?, ?, ?)",
                (row["id"], row["email"], row["api_token"], row["created_at"]),
            )
        logger.info("user added: %s (%s)", row["email"], row["id"])
        return row

    def rotate_token(self, user_id: str) -> str:
        token = secrets.token_urlsafe(32)
        with self._conn() as conn:
            cur = conn.execute("UPDATE users SET api_token = ? WHERE id = ?", (token, str(user_id)))
            if cur.rowcount == 0:
                raise errors.UserNotFoundError()
        return token

    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        mail = str(email or "").strip().lower()
        with self._conn() as conn:
            row = conn.execute("SELECT id, email, created_at FROM users WHERE email = ?", (mail,)).fetchone()
        return dict(row) if row else None

    def user_by_token(self, token: str) -> Optional[Dict[str, Any]]:
        tok = str(token or "").strip()
        if not tok:
            return None
        with self._conn() as conn:
            row = conn.execute("SELECT id, email, created_at FROM users WHERE api_token = ?", (tok,)).fetchone()
        return dict(row) if row else None

    def iter_user_ids(self) -> List[str]:
        with self._conn() as conn:
            return [str(r["id"]) for r in conn.execute("SELECT id FROM users ORDER BY created_at")]

    # ----------------- gardens -----------------

    def _require_user(self, conn: sqlite3.Connection, user_id: str) -> None:
        if conn.execute("SELECT 1 FROM users WHERE id = ?", (str(user_id),)).fetchone() is None:
            raise errors.UserNotFoundError()

    @staticmethod
    def _decode(row: Mapping[str, Any]) -> GardenState:
        try:
            doc = json.loads(row["doc_json"])
        except (TypeError, ValueError) as exc:
            raise errors.StoreError("Stored garden document is corrupt") from exc
        state = GardenState.from_dict(doc if isinstance(doc, dict) else {})
        state.version = int(row["version"] or 0)
        return state

    def load(self, user_id: str) -> GardenState:
        with self._conn() as conn:
            self._require_user(conn, user_id)
            row = conn.execute("SELECT doc_json, version FROM gardens WHERE user_id = ?", (str(user_id),)).fetchone()
        if row is None:
            raise errors.GardenNotFoundError()
        return self._decode(row)

    def get_or_create(self, user_id: str, now: Optional[datetime] = None) -> Tuple[GardenState, bool]:
        """Return (state, created)."""
        with self._lock:
            try:
                return self.load(user_id), False
            except errors.GardenNotFoundError:
                pass
            state = self.save(user_id, default_garden(now), expected_version=0)
            logger.info("garden initialized for user %s", user_id)
            return state, True

    def save(self, user_id: str, state: GardenState, *, expected_version: Optional[int] = None) -> GardenState:
        """Persist the whole aggregate and return it with the bumped version.

        expected_version=None is last-write-wins; otherwise the stored version
        must match (0 means "no garden yet").
        """
        out = state.copy()
        with self._conn() as conn:
            self._require_user(conn, user_id)
            row = conn.execute("SELECT version FROM gardens WHERE user_id = ?", (str(user_id),)).fetchone()
            current = int(row["version"]) if row is not None else 0
            if expected_version is not None and int(expected_version) != current:
                logger.warning(
                    "stale garden save for user %s (expected v%s, stored v%s)", user_id, expected_version, current
                )
                raise errors.StaleGardenError()

            out.version = current + 1
            doc = json.dumps(out.to_dict(), ensure_ascii=False)
            params = (doc, out.version, out.stats.total_points, format_ts(out.last_updated), str(user_id))
            if row is None:
                conn.execute(
                    "INSERT INTO gardens (doc_json, version, total_points, updated_at, user_id) VALUES (?, ?, ?, ?, ?)",
                    params,
                )
            else:
                conn.execute(
                    "UPDATE gardens SET doc_json = ?, version = ?, total_points = ?, updated_at = ? WHERE user_id = ?",
                    params,
                )
        return out

    def patch_stats(self, user_id: str, partial: Mapping[str, Any], now: Optional[datetime] = None) -> GardenStats:
        """Merge known stats fields into the stored garden (garden must exist)."""
        with self._lock:
            state = self.load(user_id)
            for key, value in (partial or {}).items():
                attr = STATS_FIELDS.get(str(key))
                if attr is None:
                    continue
                try:
                    num = int(value)
                except (TypeError, ValueError):
                    raise errors.ValidationError(f"Stats field {key} must be an integer")
                if num < 0:
                    raise errors.ValidationError(f"Stats field {key} must be non-negative")
                if attr == "total_points" and num < state.stats.total_points:
                    raise errors.ValidationError("totalPoints cannot decrease")
                setattr(state.stats, attr, num)
            # level is derived, a patched value never sticks
            state.stats.recompute_level()
            state.last_updated = now or utcnow()
            saved = self.save(user_id, state, expected_version=state.version)
            return saved.stats

    def leaderboard(self, limit: int = 10) -> List[Dict[str, Any]]:
        with self._conn() as conn:
            rows = conn.execute(
                """
                SELECT u.email, u.created_at, g.doc_json, g.version
                FROM gardens g JOIN users u ON u.id = g.user_id
                WHERE g.total_points > 0
                ORDER BY g.total_points DESC, u.created_at ASC
                LIMIT ?
                """,
                (int(limit),),
            ).fetchall()

        out: List[Dict[str, Any]] = []
        for idx, row in enumerate(rows):
            stats = self._decode(row).stats
            out.append(
                {
                    "rank": idx + 1,
                    "email": row["email"],
                    "points": stats.total_points,
                    "level": stats.level,
                    "plantsGrown": stats.plants_grown,
                    "joinedDate": row["created_at"],
                }
            )
        return out
