"""Tests for the garden engine (plant / water / harvest / remove / decay)."""

import random
from datetime import timedelta

import pytest

from core.garden import engine, errors
from core.garden.catalog import DEFAULT_INVENTORY, PLANT_CATALOG
from core.garden.engine import Timing

from .conftest import FixedWeatherRng


def _planted(garden, t0, cid="cell-0-0", kind="sprout", weather="sunny"):
    garden.weather = weather
    return engine.plant(garden, cid, kind, t0).state


def test_plant_places_plant_and_takes_stock(garden, t0):
    out = engine.plant(garden, "cell-0-0", "sprout", t0)

    assert out.state.inventory["sprout"] == 7
    assert out.state.stats.plants_planted == 1
    assert out.cell.plant.type == "sprout"
    assert out.cell.plant.growth_progress == 0
    assert out.cell.plant.health == 100
    assert out.cell.water_level == 100
    assert out.cell.last_watered == t0
    # input state is untouched
    assert garden.inventory["sprout"] == 8
    assert garden.find_cell("cell-0-0").plant is None


def test_plant_type_is_normalized(garden, t0):
    out = engine.plant(garden, "cell-1-1", "  Flower ", t0)
    assert out.cell.plant.type == "flower"
    assert out.state.inventory["flower"] == 4


@pytest.mark.parametrize(
    "cid, kind, exc",
    [
        ("cell-0-0", "cactus", errors.InvalidPlantTypeError),
        ("cell-9-9", "tree", errors.CellNotFoundError),
        ("nope", "tree", errors.CellNotFoundError),
    ],
)
def test_plant_rejects_bad_input(garden, t0, cid, kind, exc):
    with pytest.raises(exc):
        engine.plant(garden, cid, kind, t0)


def test_plant_out_of_stock(garden, t0):
    garden.inventory["tree"] = 0
    with pytest.raises(errors.OutOfStockError):
        engine.plant(garden, "cell-0-0", "tree", t0)


def test_plant_occupied_cell(garden, t0):
    state = _planted(garden, t0)
    with pytest.raises(errors.CellOccupiedError):
        engine.plant(state, "cell-0-0", "flower", t0)
    assert state.inventory["flower"] == 5


def test_error_codes_map_to_http_status():
    assert errors.InvalidPlantTypeError().status_code == 400
    assert errors.InvalidPlantTypeError().code == "invalid_activity"
    assert errors.CellNotFoundError().status_code == 404
    assert errors.CellOccupiedError().status_code == 400
    assert errors.AuthError().status_code == 401
    assert errors.StaleGardenError().status_code == 409
    assert errors.StoreError().status_code == 500


# ----------------- growth -----------------


def test_growth_reaches_exactly_100_at_duration_over_multiplier(garden, t0):
    state = _planted(garden, t0, kind="sprout", weather="sunny")
    sprout = PLANT_CATALOG["sprout"]
    mature_at = t0 + timedelta(milliseconds=sprout.growth_ms / 1.5)

    half = engine.decay_tick(state, t0 + (mature_at - t0) / 2)
    assert half.find_cell("cell-0-0").plant.growth_progress == pytest.approx(50.0)

    done = engine.decay_tick(state, mature_at)
    assert done.find_cell("cell-0-0").plant.growth_progress == 100.0

    later = engine.decay_tick(done, mature_at + timedelta(hours=3))
    assert later.find_cell("cell-0-0").plant.growth_progress == 100.0


def test_growth_is_monotonic_over_many_ticks(garden, t0):
    state = _planted(garden, t0, kind="flower", weather="windy")
    last = 0.0
    now = t0
    for _ in range(400):
        now = now + timedelta(seconds=10)
        state = engine.decay_tick(state, now)
        growth = state.find_cell("cell-0-0").plant.growth_progress
        assert last <= growth <= 100.0
        last = growth
    # 4000 s of a 3600 s flower under neutral weather
    assert last == 100.0


def test_weather_change_never_lowers_growth(garden, t0):
    state = _planted(garden, t0, kind="sprout", weather="sunny")
    state = engine.decay_tick(state, t0 + timedelta(minutes=10))
    before = state.find_cell("cell-0-0").plant.growth_progress
    assert before == pytest.approx(50.0)

    state.weather = "stormy"
    state = engine.decay_tick(state, t0 + timedelta(minutes=10))
    assert state.find_cell("cell-0-0").plant.growth_progress == pytest.approx(before)


def test_decay_tick_is_idempotent_at_fixed_now(garden, t0):
    state = _planted(garden, t0)
    now = t0 + timedelta(minutes=7)
    once = engine.decay_tick(state, now)
    twice = engine.decay_tick(once, now)
    assert once.to_dict() == twice.to_dict()


def test_unticked_plant_is_anchored_not_replayed(garden, t0):
    state = _planted(garden, t0, kind="tree")
    plant = state.find_cell("cell-0-0").plant
    plant.growth_progress = 40.0
    plant.last_tick_at = None
    later = t0 + timedelta(minutes=30)

    out = engine.decay_tick(state, later)
    cell = out.find_cell("cell-0-0")
    assert cell.plant.growth_progress == 40.0
    assert cell.water_level == 100
    assert cell.plant.last_tick_at == later

    # 60s of sunny growth on a 2h tree: 60000 * 100 * 1.5 / 7.2e6
    out = engine.decay_tick(out, later + timedelta(seconds=60))
    assert out.find_cell("cell-0-0").plant.growth_progress == pytest.approx(41.25)


# ----------------- water / health -----------------


def test_water_drains_by_dehydration_rate_per_tick(garden, t0):
    state = _planted(garden, t0, weather="sunny")
    state = engine.decay_tick(state, t0 + timedelta(seconds=60), timing=Timing(tick_seconds=10))
    # 6 ticks * 8/6
    assert state.find_cell("cell-0-0").water_level == pytest.approx(92.0)
    assert state.find_cell("cell-0-0").plant.health == 100


def test_rainy_weather_does_not_dehydrate(garden, t0):
    state = _planted(garden, t0, weather="rainy")
    state = engine.decay_tick(state, t0 + timedelta(hours=1))
    assert state.find_cell("cell-0-0").water_level == 100


def test_health_drops_only_while_thirsty(garden, t0):
    state = _planted(garden, t0, weather="sunny")
    state.find_cell("cell-0-0").water_level = 31.0
    state = engine.decay_tick(state, t0 + timedelta(seconds=20))
    cell = state.find_cell("cell-0-0")
    # 31 -> 28.33; below 30 for the last 1.25 of 2 ticks
    assert cell.water_level == pytest.approx(31.0 - 2 * 8 / 6)
    assert cell.plant.health == pytest.approx(100.0 - 2 * 1.25)


def test_water_and_health_clamp_at_zero(garden, t0):
    state = _planted(garden, t0, weather="sunny")
    state = engine.decay_tick(state, t0 + timedelta(days=2))
    cell = state.find_cell("cell-0-0")
    assert cell.water_level == 0
    assert cell.plant.health == 0


def test_water_restores_cell(garden, t0):
    state = _planted(garden, t0)
    state.find_cell("cell-0-0").soil_moisture = 10
    now = t0 + timedelta(minutes=5)
    out = engine.water(state, "cell-0-0", now)
    assert out.cell.water_level == 100
    assert out.cell.soil_moisture == 100
    assert out.cell.last_watered == now


def test_water_all_skips_empty_cells(garden, t0):
    state = _planted(garden, t0, "cell-0-0")
    state = engine.plant(state, "cell-2-3", "bush", t0).state
    state.find_cell("cell-0-0").water_level = 12
    state.find_cell("cell-2-3").water_level = 40
    state.find_cell("cell-5-5").water_level = 50

    out = engine.water_all(state, t0 + timedelta(seconds=1))

    assert sorted(out.watered) == ["cell-0-0", "cell-2-3"]
    assert out.state.find_cell("cell-0-0").water_level == 100
    assert out.state.find_cell("cell-2-3").water_level == 100
    assert out.state.find_cell("cell-5-5").water_level == 50


# ----------------- harvest / remove -----------------


def test_harvest_not_ready(garden, t0):
    state = _planted(garden, t0)
    state.find_cell("cell-0-0").plant.growth_progress = 99.9
    with pytest.raises(errors.NotReadyError):
        engine.harvest(state, "cell-0-0", t0)
    assert state.stats.total_points == 0
    assert state.inventory["sprout"] == 7


def test_harvest_at_exactly_100(garden, t0):
    state = _planted(garden, t0, kind="tree")
    state.find_cell("cell-0-0").plant.growth_progress = 100.0
    state.find_cell("cell-0-0").water_level = 20

    out = engine.harvest(state, "cell-0-0", t0)

    assert out.points_earned == 25
    assert out.state.stats.total_points == 25
    assert out.state.stats.plants_grown == 1
    assert out.state.inventory["tree"] == DEFAULT_INVENTORY["tree"]
    cell = out.state.find_cell("cell-0-0")
    assert cell.plant is None
    assert cell.water_level == 100
    assert cell.soil_moisture == 100


def test_harvest_recomputes_level(garden, t0):
    state = _planted(garden, t0, kind="tree")
    state.stats.total_points = 95
    state.find_cell("cell-0-0").plant.growth_progress = 100.0
    out = engine.harvest(state, "cell-0-0", t0)
    assert out.state.stats.total_points == 120
    assert out.state.stats.level == 2


def test_remove_refunds_without_points_or_water(garden, t0):
    state = _planted(garden, t0, kind="bush")
    state.find_cell("cell-0-0").water_level = 33

    out = engine.remove(state, "cell-0-0", t0)

    assert out.state.inventory["bush"] == DEFAULT_INVENTORY["bush"]
    assert out.state.stats.total_points == 0
    assert out.state.stats.plants_grown == 0
    assert out.state.find_cell("cell-0-0").plant is None
    assert out.state.find_cell("cell-0-0").water_level == 33


@pytest.mark.parametrize(
    "action, exc",
    [
        (lambda s, now: engine.water(s, "cell-4-4", now), errors.NoPlantToWaterError),
        (lambda s, now: engine.harvest(s, "cell-4-4", now), errors.NoPlantError),
        (lambda s, now: engine.remove(s, "cell-4-4", now), errors.NoPlantError),
    ],
)
def test_actions_on_vacant_cell_fail_without_side_effects(garden, t0, action, exc):
    before = garden.to_dict()
    with pytest.raises(exc):
        action(garden, t0)
    assert garden.to_dict() == before


def test_inventory_is_conserved(garden, t0):
    rng = random.Random(42)
    start = dict(garden.inventory)
    state = garden
    now = t0
    cells = [c.id for c in state.grid]
    for _ in range(300):
        now = now + timedelta(minutes=rng.choice([1, 5, 30]))
        state = engine.decay_tick(state, now)
        cid = rng.choice(cells)
        op = rng.choice(["plant", "harvest", "remove"])
        try:
            if op == "plant":
                state = engine.plant(state, cid, rng.choice(list(PLANT_CATALOG)), now).state
            elif op == "harvest":
                state = engine.harvest(state, cid, now).state
            else:
                state = engine.remove(state, cid, now).state
        except errors.GardenError:
            pass
        for kind, count in start.items():
            assert state.inventory[kind] + state.planted_count(kind) == count
    assert state.stats.level == state.stats.total_points // 100 + 1


# ----------------- simulate (weather catch-up) -----------------


def test_simulate_rain_soaks_every_cell(garden, t0):
    state = _planted(garden, t0, weather="sunny")
    state.weather_changed_at = t0
    state.find_cell("cell-3-3").water_level = 40

    out = engine.simulate(state, t0 + timedelta(seconds=121), FixedWeatherRng("rainy"))

    assert out.weather == "rainy"
    assert out.weather_changed_at == t0 + timedelta(seconds=120)
    assert out.find_cell("cell-0-0").water_level == 100
    assert out.find_cell("cell-3-3").water_level == 100


def test_simulate_applies_each_period_weather(garden, t0):
    state = _planted(garden, t0, kind="flower", weather="sunny")
    state.weather_changed_at = t0
    out = engine.simulate(state, t0 + timedelta(seconds=240), FixedWeatherRng("windy"))
    # 120 s sunny (1.5) + 120 s windy (1.0) of a 3600 s flower
    expected = (120 * 1.5 + 120 * 1.0) / 3600 * 100
    assert out.find_cell("cell-0-0").plant.growth_progress == pytest.approx(expected)
    assert out.weather == "windy"


def test_simulate_before_next_transition_keeps_weather(garden, t0):
    garden.weather_changed_at = t0
    out = engine.simulate(garden, t0 + timedelta(seconds=119), FixedWeatherRng("rainy"))
    assert out.weather == "sunny"
    assert out.weather_changed_at == t0


def test_simulate_long_absence_is_bounded(garden, t0):
    state = _planted(garden, t0, kind="tree", weather="sunny")
    state.weather_changed_at = t0
    out = engine.simulate(state, t0 + timedelta(days=30), random.Random(1))
    cell = out.find_cell("cell-0-0")
    assert cell.plant.growth_progress == 100.0
    assert out.weather_changed_at > t0 + timedelta(days=29)
