# -*- coding: utf-8 -*-
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from core.garden import errors
from core.garden.catalog import PLANT_CATALOG, normalize_plant_type, public_catalog
from core.garden.models import GRID_COLS, GRID_ROWS, GardenState, cell_id
from core.garden.weather import is_known_weather, public_weather

from .auth import current_user_id
from .service import GardenService


def get_service(request: Request) -> GardenService:
    return request.app.state.service  # type: ignore[attr-defined]


def _json(data: Dict[str, Any], *, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=data, status_code=status_code)


router = APIRouter(prefix="/api")


# ----------------- request bodies -----------------


class PlantIn(BaseModel):
    type: Optional[str] = None
    plantedAt: Optional[Any] = None
    health: Optional[float] = None
    growthProgress: Optional[float] = None
    lastTickAt: Optional[Any] = None


class CellIn(BaseModel):
    id: Optional[str] = None
    row: int = Field(..., ge=0, lt=GRID_ROWS)
    col: int = Field(..., ge=0, lt=GRID_COLS)
    plant: Optional[PlantIn] = None
    waterLevel: float = 100.0
    soilMoisture: float = 100.0
    lastWatered: Optional[Any] = None


class SaveGardenRequest(BaseModel):
    grid: List[CellIn]
    inventory: Dict[str, int]
    stats: Dict[str, Any]
    weather: Optional[str] = None
    weatherChangedAt: Optional[Any] = None
    version: Optional[int] = Field(None, ge=0)

    @field_validator("grid")
    @classmethod
    def _full_grid(cls, grid: List[CellIn]) -> List[CellIn]:
        seen = set()
        for c in grid:
            cid = cell_id(c.row, c.col)
            if c.id and c.id != cid:
                raise ValueError(f"cell id {c.id} does not match position {cid}")
            if cid in seen:
                raise ValueError(f"duplicate cell {cid}")
            seen.add(cid)
            if c.plant is not None and c.plant.type and normalize_plant_type(c.plant.type) not in PLANT_CATALOG:
                raise ValueError(f"unknown plant type {c.plant.type!r} in {cid}")
        if len(seen) != GRID_ROWS * GRID_COLS:
            raise ValueError(f"grid must contain exactly {GRID_ROWS * GRID_COLS} cells")
        return grid

    @field_validator("inventory")
    @classmethod
    def _inventory(cls, inv: Dict[str, int]) -> Dict[str, int]:
        for k, v in inv.items():
            if normalize_plant_type(k) not in PLANT_CATALOG:
                raise ValueError(f"unknown plant type {k!r} in inventory")
            if v < 0:
                raise ValueError(f"inventory count for {k} must be non-negative")
        return inv

    @field_validator("weather")
    @classmethod
    def _weather(cls, weather: Optional[str]) -> Optional[str]:
        if weather and not is_known_weather(weather):
            raise ValueError(f"unknown weather {weather!r}")
        return weather


class StatsPatchRequest(BaseModel):
    stats: Dict[str, Any]


class CellRequest(BaseModel):
    cellId: str = Field(..., min_length=1)


class PlantRequest(CellRequest):
    plantType: str = Field(..., min_length=1)


class WaterRequest(BaseModel):
    cellId: Optional[str] = None
    waterAll: bool = False


# ----------------- garden -----------------


@router.get("/garden")
def get_garden(user_id: str = Depends(current_user_id), svc: GardenService = Depends(get_service)):
    state, created = svc.get_garden(user_id)
    return _json(
        {
            "message": "Garden initialized" if created else "Garden data retrieved",
            "garden": state.to_dict(),
            "summary": state.summary(),
        }
    )


@router.post("/garden/save")
def save_garden(
    body: SaveGardenRequest,
    user_id: str = Depends(current_user_id),
    svc: GardenService = Depends(get_service),
):
    raw = body.model_dump(exclude={"version"})
    raw["weather"] = (body.weather or "sunny").strip().lower()
    state = GardenState.from_dict(raw)
    saved = svc.save_garden(user_id, state, expected_version=body.version)
    return _json({"message": "Garden saved successfully", "garden": saved.to_dict()})


@router.put("/garden/stats")
def update_stats(
    body: StatsPatchRequest,
    user_id: str = Depends(current_user_id),
    svc: GardenService = Depends(get_service),
):
    if not body.stats:
        raise errors.InvalidPayloadError("Stats data is required")
    stats = svc.patch_stats(user_id, body.stats)
    return _json({"message": "Garden stats updated", "stats": stats.to_dict()})


@router.post("/garden/plant")
def plant(body: PlantRequest, user_id: str = Depends(current_user_id), svc: GardenService = Depends(get_service)):
    out = svc.plant(user_id, body.cellId, body.plantType)
    return _json(
        {
            "message": "Plant added successfully",
            "cell": out.cell.to_dict() if out.cell else None,
            "inventory": dict(out.state.inventory),
            "stats": out.state.stats.to_dict(),
        }
    )


@router.post("/garden/harvest")
def harvest(body: CellRequest, user_id: str = Depends(current_user_id), svc: GardenService = Depends(get_service)):
    out = svc.harvest(user_id, body.cellId)
    return _json(
        {
            "message": "Plant harvested successfully",
            "pointsEarned": out.points_earned,
            "inventory": dict(out.state.inventory),
            "stats": out.state.stats.to_dict(),
        }
    )


@router.post("/garden/water")
def water(body: WaterRequest, user_id: str = Depends(current_user_id), svc: GardenService = Depends(get_service)):
    if body.waterAll:
        out = svc.water_all(user_id)
        return _json({"message": "All plants watered", "grid": [c.to_dict() for c in out.state.grid]})
    if not body.cellId:
        raise errors.InvalidPayloadError("Cell ID is required")
    out = svc.water(user_id, body.cellId)
    return _json({"message": "Plant watered successfully", "cell": out.cell.to_dict() if out.cell else None})


@router.delete("/garden/plant/{cell}")
def remove_plant(cell: str, user_id: str = Depends(current_user_id), svc: GardenService = Depends(get_service)):
    out = svc.remove(user_id, cell)
    return _json({"message": "Plant removed successfully", "inventory": dict(out.state.inventory)})


@router.post("/garden/tick")
def tick(user_id: str = Depends(current_user_id), svc: GardenService = Depends(get_service)):
    state = svc.tick(user_id)
    return _json({"message": "Garden updated", "garden": state.to_dict(), "summary": state.summary()})


# ----------------- public -----------------


@router.get("/garden/leaderboard")
def leaderboard(
    request: Request,
    limit: Optional[int] = Query(None, ge=1, le=100),
    svc: GardenService = Depends(get_service),
):
    n = int(limit or getattr(request.app.state, "leaderboard_default_limit", 10))
    rows = svc.leaderboard(n)
    return _json({"message": "Garden leaderboard retrieved", "leaderboard": rows, "totalGardens": len(rows)})


@router.get("/garden/catalog")
def catalog():
    return _json({"plants": public_catalog(), "weather": public_weather()})
