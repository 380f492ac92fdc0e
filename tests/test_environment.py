import random

import pytest

from evoverse.config import SimConfig
from evoverse.environment import FoodField
from evoverse.timeline import EARTH_EPOCHS


def _epoch_with_band(band):
    return next(e for e in EARTH_EPOCHS if e.food_band == band)


def _field(config, seed=3):
    return FoodField(config, random.Random(seed))


def test_seeded_food_sits_in_the_ocean_band(config):
    field = _field(config)
    field.seed(300)
    assert all(f.y < 0.95 * config.ocean_height for f in field)


@pytest.mark.parametrize(
    "band, limit",
    [
        ("ocean", lambda c: 0.95 * c.ocean_height),
        ("shelf", lambda c: 0.7 * c.world_height),
        ("global", lambda c: c.world_height),
    ],
)
def test_spawned_food_respects_the_epoch_band(config, band, limit):
    field = _field(config)
    added = field.spawn(500, _epoch_with_band(band))

    assert added == 500
    assert all(0 <= f.x <= config.world_width for f in field)
    assert all(0 <= f.y < limit(config) for f in field)


def test_shelf_food_reaches_above_the_ocean(config):
    field = _field(config)
    field.spawn(500, _epoch_with_band("shelf"))
    assert any(f.y >= config.ocean_height for f in field)


def test_spawn_never_exceeds_max_food():
    cfg = SimConfig(max_food=50)
    field = _field(cfg)
    assert field.spawn(80, EARTH_EPOCHS[0]) == 50
    assert field.spawn(10, EARTH_EPOCHS[0]) == 0
    assert len(field) == 50
