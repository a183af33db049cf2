# -*- coding: utf-8 -*-
"""Weather conditions and the periodic transition policy.

Weather is part of each user's GardenState (never process-global). A transition
picks uniformly from the auto-cycle set; landing on rain soaks every cell.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from core.garden.models import GardenState

logger = logging.getLogger(__name__)

DEFAULT_WEATHER = "sunny"
DEFAULT_CYCLE_SECONDS = 120.0


@dataclass(frozen=True)
class WeatherCondition:
    weather_id: str
    name: str
    dehydration_rate: float
    growth_multiplier: float
    description: str = ""
    auto_cycle: bool = False

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "id": self.weather_id,
            "name": self.name,
            "dehydrationRate": self.dehydration_rate,
            "growthBonus": self.growth_multiplier,
            "description": self.description,
        }


WEATHER_CATALOG: Mapping[str, WeatherCondition] = MappingProxyType(
    {
        "sunny": WeatherCondition("sunny", "Sunny", 8, 1.5, "Plants dry faster but grow quickly", auto_cycle=True),
        "windy": WeatherCondition("windy", "Windy", 6, 1.0, "Moderate conditions", auto_cycle=True),
        "rainy": WeatherCondition("rainy", "Rainy", 0, 1.3, "Auto-waters all plants!", auto_cycle=True),
        "cloudy": WeatherCondition("cloudy", "Cloudy", 4, 1.1, "Mild and slow to dry"),
        "stormy": WeatherCondition("stormy", "Stormy", 2, 0.8, "Wet but growth is stunted"),
    }
)

AUTO_CYCLE: Tuple[str, ...] = tuple(w for w, cond in WEATHER_CATALOG.items() if cond.auto_cycle)


def get_weather(weather: Any) -> WeatherCondition:
    """Lookup with fallback to sunny for unknown names found in stored documents."""
    key = str(weather or "").strip().lower()
    return WEATHER_CATALOG.get(key) or WEATHER_CATALOG[DEFAULT_WEATHER]


def is_known_weather(weather: Any) -> bool:
    return str(weather or "").strip().lower() in WEATHER_CATALOG


def pick_next_weather(rng: Optional[random.Random] = None) -> str:
    r = rng or random
    return AUTO_CYCLE[r.randrange(len(AUTO_CYCLE))]


def apply_transition(state: GardenState, new_weather: str, at: datetime) -> None:
    """Switch weather in place (caller owns `state`)."""
    state.weather = new_weather
    state.weather_changed_at = at
    if new_weather == "rainy":
        for cell in state.grid:
            cell.soak()
    logger.debug("weather -> %s at %s", new_weather, at.isoformat())


def next_transition_at(state: GardenState, cycle_seconds: float = DEFAULT_CYCLE_SECONDS) -> Optional[datetime]:
    if state.weather_changed_at is None:
        return None
    return state.weather_changed_at + timedelta(seconds=float(cycle_seconds))


def advance_weather(
    state: GardenState,
    now: datetime,
    rng: Optional[random.Random] = None,
    *,
    cycle_seconds: float = DEFAULT_CYCLE_SECONDS,
) -> GardenState:
    """Return a copy of `state` with at most one weather transition applied.

    A garden with no transition timestamp is anchored at `now` without changing
    weather. Multi-period catch-up (with decay between transitions) lives in
    `core.garden.engine.simulate`.
    """
    out = state.copy()
    due = next_transition_at(out, cycle_seconds)
    if due is None:
        out.weather_changed_at = now
        return out
    if now >= due:
        apply_transition(out, pick_next_weather(rng), due)
    return out


def public_weather() -> Dict[str, Dict[str, Any]]:
    return {wid: w.to_public_dict() for wid, w in WEATHER_CATALOG.items()}
