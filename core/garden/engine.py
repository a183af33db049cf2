# -*- coding: utf-8 -*-
"""Garden engine: plant / water / harvest / remove / decay.

Every action takes a GardenState plus parameters and returns an `Outcome`
holding a new state; the input state is never mutated, so a failed action
leaves nothing half-applied.

Time model
- Decay is incremental from each plant's `last_tick_at` to `now`.
- Per tick interval: water drops by dehydration_rate / 6, health drops by 2
  while water is below 30. Both are pro-rated over elapsed time.
- Growth gains elapsed / growth_duration * 100 * growth_multiplier (max 100).
  Under constant weather this equals the closed form computed from planted_at;
  a weather change never lowers growth already earned.
- Repeating a tick at the same `now` changes nothing.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from core.garden import errors
from core.garden.catalog import get_plant_type, normalize_plant_type
from core.garden.models import Cell, GardenState, PlantInstance
from core.garden.weather import (
    DEFAULT_CYCLE_SECONDS,
    WeatherCondition,
    apply_transition,
    get_weather,
    pick_next_weather,
)

logger = logging.getLogger(__name__)

THIRST_THRESHOLD = 30.0
THIRST_DAMAGE_PER_TICK = 2.0
DEHYDRATION_DIVISOR = 6.0
DEFAULT_TICK_SECONDS = 10.0
FALLBACK_HARVEST_POINTS = 5
# beyond this many pending transitions, older periods are decayed in one step
MAX_CATCHUP_TRANSITIONS = 5000
GROWTH_EPSILON = 1e-6


@dataclass(frozen=True)
class Timing:
    tick_seconds: float = DEFAULT_TICK_SECONDS
    weather_cycle_seconds: float = DEFAULT_CYCLE_SECONDS

    @property
    def tick_ms(self) -> float:
        return float(self.tick_seconds) * 1000.0


DEFAULT_TIMING = Timing()


@dataclass
class Outcome:
    state: GardenState
    cell: Optional[Cell] = None
    points_earned: int = 0
    plant_type: Optional[str] = None
    watered: List[str] = field(default_factory=list)


# ----------------- decay -----------------


def _elapsed_ms(start: Optional[datetime], end: datetime) -> float:
    if start is None:
        return 0.0
    return max(0.0, (end - start).total_seconds() * 1000.0)


def _settle_cell(cell: Cell, weather: WeatherCondition, now: datetime, timing: Timing) -> None:
    """Bring one cell's water/health/growth forward to `now` (in place)."""
    plant = cell.plant
    if plant is None:
        return
    if plant.last_tick_at is None:
        plant.last_tick_at = now
        return
    dt_ms = _elapsed_ms(plant.last_tick_at, now)
    if dt_ms <= 0:
        return

    ticks = dt_ms / timing.tick_ms
    loss_per_tick = weather.dehydration_rate / DEHYDRATION_DIVISOR
    water_before = cell.water_level
    cell.water_level = max(0.0, water_before - loss_per_tick * ticks)

    if water_before < THIRST_THRESHOLD:
        thirsty_ticks = ticks
    elif loss_per_tick <= 0:
        thirsty_ticks = 0.0
    else:
        thirsty_ticks = max(0.0, ticks - (water_before - THIRST_THRESHOLD) / loss_per_tick)
    if thirsty_ticks > 0:
        plant.health = max(0.0, plant.health - THIRST_DAMAGE_PER_TICK * thirsty_ticks)

    ptype = get_plant_type(plant.type)
    if ptype is not None and ptype.growth_ms > 0:
        gained = (dt_ms * 100.0 * weather.growth_multiplier) / ptype.growth_ms
        growth = plant.growth_progress + gained
        # snap float residue so maturity lands on exactly 100
        plant.growth_progress = 100.0 if growth >= 100.0 - GROWTH_EPSILON else growth

    plant.last_tick_at = now


def _settle_all(state: GardenState, now: datetime, timing: Timing) -> None:
    weather = get_weather(state.weather)
    for cell in state.grid:
        _settle_cell(cell, weather, now, timing)


def decay_tick(state: GardenState, now: datetime, *, timing: Timing = DEFAULT_TIMING) -> GardenState:
    """Recompute water/health/growth of every planted cell under the current weather."""
    out = state.copy()
    _settle_all(out, now, timing)
    return out


def simulate(
    state: GardenState,
    now: datetime,
    rng: Optional[random.Random] = None,
    *,
    timing: Timing = DEFAULT_TIMING,
) -> GardenState:
    """Catch a garden up to `now`: decay and weather transitions, in order.

    Each weather period is decayed under its own weather before the next
    transition fires, so a rainy transition soaks cells that had already dried.
    """
    out = state.copy()
    cycle = timedelta(seconds=float(timing.weather_cycle_seconds))
    if out.weather_changed_at is None:
        out.weather_changed_at = out.last_updated or now
    if cycle.total_seconds() <= 0:
        _settle_all(out, now, timing)
        return out

    pending = int((now - out.weather_changed_at) / cycle) if now > out.weather_changed_at else 0
    if pending > MAX_CATCHUP_TRANSITIONS:
        skip_to = out.weather_changed_at + cycle * (pending - MAX_CATCHUP_TRANSITIONS)
        _settle_all(out, skip_to, timing)
        out.weather_changed_at = skip_to
        logger.info("weather catch-up truncated: skipped %d periods", pending - MAX_CATCHUP_TRANSITIONS)

    due = out.weather_changed_at + cycle
    while due <= now:
        _settle_all(out, due, timing)
        apply_transition(out, pick_next_weather(rng), due)
        due = due + cycle

    _settle_all(out, now, timing)
    return out


# ----------------- actions -----------------


def _require_cell(state: GardenState, cid: str) -> Cell:
    cell = state.find_cell(cid)
    if cell is None:
        raise errors.CellNotFoundError(f"Cell not found: {cid}")
    return cell


def plant(state: GardenState, cid: str, plant_type: str, now: datetime) -> Outcome:
    ptype = get_plant_type(plant_type)
    if ptype is None:
        raise errors.InvalidPlantTypeError(f"Unknown plant type: {plant_type}")

    out = state.copy()
    if out.inventory.get(ptype.plant_id, 0) <= 0:
        raise errors.OutOfStockError(f"Not enough {ptype.plant_id} in inventory")

    cell = _require_cell(out, cid)
    if cell.occupied:
        raise errors.CellOccupiedError(f"Cell already occupied: {cell.id}")

    cell.plant = PlantInstance(type=ptype.plant_id, planted_at=now, health=100.0, growth_progress=0.0, last_tick_at=now)
    cell.water_level = 100.0
    cell.last_watered = now
    out.inventory[ptype.plant_id] -= 1
    out.stats.plants_planted += 1
    out.last_updated = now
    return Outcome(state=out, cell=cell, plant_type=ptype.plant_id)


def water(state: GardenState, cid: str, now: datetime, *, timing: Timing = DEFAULT_TIMING) -> Outcome:
    out = state.copy()
    cell = _require_cell(out, cid)
    if not cell.occupied:
        raise errors.NoPlantToWaterError()
    _settle_cell(cell, get_weather(out.weather), now, timing)
    cell.soak()
    cell.last_watered = now
    out.last_updated = now
    return Outcome(state=out, cell=cell, watered=[cell.id])


def water_all(state: GardenState, now: datetime, *, timing: Timing = DEFAULT_TIMING) -> Outcome:
    out = state.copy()
    weather = get_weather(out.weather)
    watered: List[str] = []
    for cell in out.grid:
        if not cell.occupied:
            continue
        _settle_cell(cell, weather, now, timing)
        cell.soak()
        cell.last_watered = now
        watered.append(cell.id)
    out.last_updated = now
    return Outcome(state=out, watered=watered)


def harvest(state: GardenState, cid: str, now: datetime, *, timing: Timing = DEFAULT_TIMING) -> Outcome:
    out = state.copy()
    cell = _require_cell(out, cid)
    if cell.plant is None:
        raise errors.NoPlantError("No plant to harvest")
    _settle_cell(cell, get_weather(out.weather), now, timing)
    if not cell.plant.is_mature:
        raise errors.NotReadyError(f"Plant not ready to harvest ({cell.plant.growth_progress:.1f}%)")

    kind = cell.plant.type
    ptype = get_plant_type(kind)
    points = ptype.points if ptype is not None else FALLBACK_HARVEST_POINTS

    out.inventory[kind] = out.inventory.get(kind, 0) + 1
    out.stats.total_points += points
    out.stats.plants_grown += 1
    out.stats.recompute_level()

    cell.plant = None
    cell.soak()
    out.last_updated = now
    return Outcome(state=out, cell=cell, points_earned=points, plant_type=kind)


def remove(state: GardenState, cid: str, now: datetime) -> Outcome:
    """Dig up a plant at any growth stage: stock is refunded, no points, water untouched."""
    out = state.copy()
    cell = _require_cell(out, cid)
    if cell.plant is None:
        raise errors.NoPlantError("No plant to remove")
    kind = normalize_plant_type(cell.plant.type)
    out.inventory[kind] = out.inventory.get(kind, 0) + 1
    cell.plant = None
    out.last_updated = now
    return Outcome(state=out, cell=cell, plant_type=kind)
