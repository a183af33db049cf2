# -*- coding: utf-8 -*-
"""Garden service: load -> simulate -> engine action -> save, per user.

Actions for one user are serialized in-process by a per-user lock; across
processes the store's version check rejects stale writes.
"""

from __future__ import annotations

import logging
import random
import threading
import weakref
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from core.garden import engine, errors
from core.garden.engine import Outcome, Timing
from core.garden.models import GardenState, GardenStats, utcnow

from .store import GardenStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Action = Callable[[GardenState, datetime], Outcome]


class GardenService:
    def __init__(
        self,
        store: GardenStore,
        *,
        timing: Optional[Timing] = None,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.timing = timing or engine.DEFAULT_TIMING
        self.clock: Clock = clock or utcnow
        self.rng = rng or random.Random()
        # entries drop out once no request holds the user's lock
        self._locks: "weakref.WeakValueDictionary[str, Any]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _user_lock(self, user_id: str) -> Any:
        with self._locks_guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[user_id] = lock
            return lock

    def _simulate(self, state: GardenState, now: datetime) -> GardenState:
        return engine.simulate(state, now, self.rng, timing=self.timing)

    def _run(self, user_id: str, action: Action) -> Outcome:
        """Run one engine action; nothing is saved when it raises."""
        with self._user_lock(user_id):
            now = self.clock()
            stored = self.store.load(user_id)
            current = self._simulate(stored, now)
            outcome = action(current, now)
            outcome.state = self.store.save(user_id, outcome.state, expected_version=stored.version)
            if outcome.cell is not None:
                outcome.cell = outcome.state.find_cell(outcome.cell.id)
            return outcome

    # ----------------- reads -----------------

    def get_garden(self, user_id: str) -> Tuple[GardenState, bool]:
        """Return (state, created). The only implicit-creation path."""
        with self._user_lock(user_id):
            now = self.clock()
            state, created = self.store.get_or_create(user_id, now)
            if created:
                return state, True
            current = self._simulate(state, now)
            return self.store.save(user_id, current, expected_version=state.version), False

    def leaderboard(self, limit: int = 10) -> List[Dict[str, Any]]:
        return self.store.leaderboard(limit)

    # ----------------- actions -----------------

    def plant(self, user_id: str, cell_id: str, plant_type: str) -> Outcome:
        out = self._run(user_id, lambda s, now: engine.plant(s, cell_id, plant_type, now))
        logger.info("user %s planted %s at %s", user_id, out.plant_type, cell_id)
        return out

    def water(self, user_id: str, cell_id: str) -> Outcome:
        out = self._run(user_id, lambda s, now: engine.water(s, cell_id, now, timing=self.timing))
        logger.info("user %s watered %s", user_id, cell_id)
        return out

    def water_all(self, user_id: str) -> Outcome:
        out = self._run(user_id, lambda s, now: engine.water_all(s, now, timing=self.timing))
        logger.info("user %s watered %d plants", user_id, len(out.watered))
        return out

    def harvest(self, user_id: str, cell_id: str) -> Outcome:
        out = self._run(user_id, lambda s, now: engine.harvest(s, cell_id, now, timing=self.timing))
        logger.info("user %s harvested %s at %s (+%d)", user_id, out.plant_type, cell_id, out.points_earned)
        return out

    def remove(self, user_id: str, cell_id: str) -> Outcome:
        out = self._run(user_id, lambda s, now: engine.remove(s, cell_id, now))
        logger.info("user %s removed %s from %s", user_id, out.plant_type, cell_id)
        return out

    def tick(self, user_id: str) -> GardenState:
        return self._run(user_id, lambda s, now: Outcome(state=s)).state

    def save_garden(self, user_id: str, state: GardenState, *, expected_version: Optional[int] = None) -> GardenState:
        """Client-driven full overwrite (last-write-wins unless a version is sent)."""
        with self._user_lock(user_id):
            now = self.clock()
            # client values are current as of this save
            for cell in state.occupied_cells():
                if cell.plant.last_tick_at is None:
                    cell.plant.last_tick_at = now
            state.last_updated = now
            if state.weather_changed_at is None:
                state.weather_changed_at = now
            saved = self.store.save(user_id, state, expected_version=expected_version)
            logger.info("user %s saved garden (v%d)", user_id, saved.version)
            return saved

    def patch_stats(self, user_id: str, partial: Mapping[str, Any]) -> GardenStats:
        with self._user_lock(user_id):
            return self.store.patch_stats(user_id, partial, self.clock())

    def tick_all(self) -> int:
        """Scheduled job: catch every initialized garden up to now. Returns count."""
        count = 0
        for user_id in self.store.iter_user_ids():
            try:
                self.tick(user_id)
            except errors.GardenNotFoundError:
                continue
            except errors.GardenError as exc:
                logger.warning("tick skipped for user %s: %s", user_id, exc.message)
                continue
            count += 1
        return count
