# -*- coding: utf-8 -*-
"""Virtual garden simulation (catalog, weather, state, engine)."""

from core.garden.catalog import PLANT_CATALOG, get_plant_type  # noqa: F401
from core.garden.engine import (  # noqa: F401
    decay_tick,
    harvest,
    plant,
    remove,
    simulate,
    water,
    water_all,
)
from core.garden.models import GardenState, default_garden  # noqa: F401
from core.garden.weather import WEATHER_CATALOG, advance_weather  # noqa: F401
