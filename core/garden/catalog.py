# -*- coding: utf-8 -*-
"""Plant catalog (static, read-only)."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True)
class PlantType:
    plant_id: str
    name: str
    icon: str
    growth_ms: int
    water_needs: float
    points: int

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "id": self.plant_id,
            "name": self.name,
            "icon": self.icon,
            "growthTime": self.growth_ms,
            "waterNeeds": self.water_needs,
            "points": self.points,
        }


PLANT_CATALOG: Mapping[str, PlantType] = MappingProxyType(
    {
        "flower": PlantType("flower", "Flower", "🌸", growth_ms=3_600_000, water_needs=8, points=10),
        "tree": PlantType("tree", "Tree", "🌳", growth_ms=7_200_000, water_needs=12, points=25),
        "bush": PlantType("bush", "Bush", "🌿", growth_ms=5_400_000, water_needs=10, points=15),
        "sprout": PlantType("sprout", "Sprout", "🌱", growth_ms=1_800_000, water_needs=5, points=5),
    }
)

# seed stock handed to every new garden
DEFAULT_INVENTORY: Mapping[str, int] = MappingProxyType({"flower": 5, "tree": 3, "bush": 4, "sprout": 8})


def normalize_plant_type(plant_type: Any) -> str:
    return str(plant_type or "").strip().lower()


def get_plant_type(plant_type: Any) -> Optional[PlantType]:
    """Return the catalog entry for `plant_type`, or None when unknown."""
    return PLANT_CATALOG.get(normalize_plant_type(plant_type))


def public_catalog() -> Dict[str, Dict[str, Any]]:
    return {pid: p.to_public_dict() for pid, p in PLANT_CATALOG.items()}
