# -*- coding: utf-8 -*-
"""Garden state aggregate (per user) and its JSON document form.

Document shape (camelCase, as served by the HTTP layer):

    {
      "grid": [{"id": "cell-0-0", "row": 0, "col": 0, "plant": null,
                "waterLevel": 100, "soilMoisture": 100, "lastWatered": null}, ...],
      "inventory": {"flower": 5, ...},
      "stats": {"totalPoints": 0, "plantsPlanted": 0, "plantsGrown": 0, "level": 1, "streak": 0},
      "weather": "sunny",
      "weatherChangedAt": "...",
      "lastUpdated": "...",
      "version": 0
    }
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.garden.catalog import DEFAULT_INVENTORY, normalize_plant_type

GRID_ROWS = 6
GRID_COLS = 6
POINTS_PER_LEVEL = 100


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clamp(value: Any, lo: float = 0.0, hi: float = 100.0) -> float:
    try:
        num = float(value)
    except (TypeError, ValueError):
        return lo
    if num != num:  # NaN
        return lo
    return max(lo, min(hi, num))


def cell_id(row: int, col: int) -> str:
    return f"cell-{int(row)}-{int(col)}"


def level_for(total_points: int) -> int:
    return int(total_points) // POINTS_PER_LEVEL + 1


def parse_ts(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        # epoch milliseconds (JS Date.getTime())
        dt = datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_ts(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class PlantInstance:
    type: str
    planted_at: datetime
    health: float = 100.0
    growth_progress: float = 0.0
    # decay is applied from here forward; None means the values are current
    # as of whenever the garden is next settled or saved
    last_tick_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.health = clamp(self.health)
        self.growth_progress = clamp(self.growth_progress)

    @property
    def is_mature(self) -> bool:
        return self.growth_progress >= 100.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "plantedAt": format_ts(self.planted_at),
            "health": self.health,
            "growthProgress": self.growth_progress,
            "lastTickAt": format_ts(self.last_tick_at),
        }

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["PlantInstance"]:
        """Parse a stored plant; an all-null (or typeless/undated) plant is vacant."""
        if not isinstance(raw, dict):
            return None
        ptype = normalize_plant_type(raw.get("type"))
        planted_at = parse_ts(raw.get("plantedAt"))
        if not ptype or planted_at is None:
            return None
        health = raw.get("health")
        growth = raw.get("growthProgress")
        return cls(
            type=ptype,
            planted_at=planted_at,
            health=100.0 if health is None else clamp(health),
            growth_progress=0.0 if growth is None else clamp(growth),
            last_tick_at=parse_ts(raw.get("lastTickAt")),
        )


@dataclass
class Cell:
    row: int
    col: int
    plant: Optional[PlantInstance] = None
    water_level: float = 100.0
    soil_moisture: float = 100.0
    last_watered: Optional[datetime] = None

    @property
    def id(self) -> str:
        return cell_id(self.row, self.col)

    @property
    def occupied(self) -> bool:
        return self.plant is not None

    def soak(self) -> None:
        self.water_level = 100.0
        self.soil_moisture = 100.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "row": self.row,
            "col": self.col,
            "plant": self.plant.to_dict() if self.plant else None,
            "waterLevel": self.water_level,
            "soilMoisture": self.soil_moisture,
            "lastWatered": format_ts(self.last_watered),
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Cell":
        return cls(
            row=int(raw.get("row") or 0),
            col=int(raw.get("col") or 0),
            plant=PlantInstance.from_dict(raw.get("plant")),
            water_level=clamp(raw.get("waterLevel", 100)),
            soil_moisture=clamp(raw.get("soilMoisture", 100)),
            last_watered=parse_ts(raw.get("lastWatered")),
        )


@dataclass
class GardenStats:
    total_points: int = 0
    plants_planted: int = 0
    plants_grown: int = 0
    level: int = 1
    streak: int = 0

    def recompute_level(self) -> None:
        self.level = level_for(self.total_points)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalPoints": self.total_points,
            "plantsPlanted": self.plants_planted,
            "plantsGrown": self.plants_grown,
            "level": self.level,
            "streak": self.streak,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "GardenStats":
        raw = raw if isinstance(raw, dict) else {}

        def _int(key: str, default: int) -> int:
            try:
                return max(0, int(raw.get(key, default) or 0))
            except (TypeError, ValueError):
                return default

        return cls(
            total_points=_int("totalPoints", 0),
            plants_planted=_int("plantsPlanted", 0),
            plants_grown=_int("plantsGrown", 0),
            level=max(1, _int("level", 1)),
            streak=_int("streak", 0),
        )


STATS_FIELDS = {
    "totalPoints": "total_points",
    "plantsPlanted": "plants_planted",
    "plantsGrown": "plants_grown",
    "level": "level",
    "streak": "streak",
}


@dataclass
class GardenState:
    grid: List[Cell]
    inventory: Dict[str, int]
    stats: GardenStats = field(default_factory=GardenStats)
    weather: str = "sunny"
    weather_changed_at: Optional[datetime] = None
    last_updated: Optional[datetime] = None
    version: int = 0

    def copy(self) -> "GardenState":
        return copy.deepcopy(self)

    def occupied_cells(self) -> List[Cell]:
        return [c for c in self.grid if c.occupied]

    def find_cell(self, cid: str) -> Optional[Cell]:
        key = str(cid or "").strip()
        for c in self.grid:
            if c.id == key:
                return c
        return None

    def planted_count(self, plant_type: str) -> int:
        return sum(1 for c in self.grid if c.plant is not None and c.plant.type == plant_type)

    def summary(self) -> Dict[str, Any]:
        planted = self.occupied_cells()
        return {
            "activePlants": len(planted),
            "thirstyPlants": sum(1 for c in planted if c.water_level < 30),
            "readyToHarvest": sum(1 for c in planted if c.plant and c.plant.is_mature),
            "overallHealth": round(sum(c.plant.health for c in planted if c.plant) / max(1, len(planted))),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "grid": [c.to_dict() for c in self.grid],
            "inventory": dict(self.inventory),
            "stats": self.stats.to_dict(),
            "weather": self.weather,
            "weatherChangedAt": format_ts(self.weather_changed_at),
            "lastUpdated": format_ts(self.last_updated),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "GardenState":
        cells = {c.id: c for c in (Cell.from_dict(x) for x in (raw.get("grid") or []) if isinstance(x, dict))}
        # always the full fixed grid, in row-major order
        grid = [cells.get(cell_id(r, c)) or Cell(row=r, col=c) for r in range(GRID_ROWS) for c in range(GRID_COLS)]

        inventory: Dict[str, int] = {}
        for k, v in (raw.get("inventory") or {}).items():
            key = normalize_plant_type(k)
            if not key:
                continue
            try:
                inventory[key] = max(0, int(v))
            except (TypeError, ValueError):
                inventory[key] = 0

        return cls(
            grid=grid,
            inventory=inventory,
            stats=GardenStats.from_dict(raw.get("stats")),
            weather=str(raw.get("weather") or "sunny").strip().lower(),
            weather_changed_at=parse_ts(raw.get("weatherChangedAt")),
            last_updated=parse_ts(raw.get("lastUpdated")),
            version=int(raw.get("version") or 0),
        )


def empty_grid() -> List[Cell]:
    return [Cell(row=r, col=c) for r in range(GRID_ROWS) for c in range(GRID_COLS)]


def default_garden(now: Optional[datetime] = None) -> GardenState:
    ts = now or utcnow()
    return GardenState(
        grid=empty_grid(),
        inventory=dict(DEFAULT_INVENTORY),
        stats=GardenStats(),
        weather="sunny",
        weather_changed_at=ts,
        last_updated=ts,
        version=0,
    )
