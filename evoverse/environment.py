from __future__ import annotations

import random
from dataclasses import dataclass
from typing import List

from .config import SimConfig
from .spatial_hash import SpatialHash
from .timeline import Epoch


# ------------------------------------------------------------------ #
# Vertical bands
# ------------------------------------------------------------------ #
OCEAN = "ocean"
LAND = "land"
AIR = "air"

# Ideal motility (swim, land, fly) for each band
REGION_PREFERENCE: dict[str, tuple[float, float, float]] = {
    OCEAN: (1.0, 0.0, 0.0),
    LAND: (0.2, 1.0, 0.0),
    AIR: (0.0, 0.2, 1.0),
}


def region_at(y: float, config: SimConfig) -> str:
    if y < config.ocean_height:
        return OCEAN
    if y < config.land_height:
        return LAND
    return AIR


# ------------------------------------------------------------------ #
# Food
# ------------------------------------------------------------------ #
@dataclass(eq=False)
class Food:
    """Point resource; `eaten` marks it for removal at the end of the tick."""

    x: float
    y: float
    energy: float
    eaten: bool = False


@dataclass(frozen=True)
class FoodSnapshot:
    x: float
    y: float
    energy: float


class FoodField:
    """Bounded, regenerating collection of food items (oldest first)."""

    def __init__(self, config: SimConfig, rng: random.Random):
        self.config = config
        self.rng = rng
        self.items: List[Food] = []
        self._eaten = 0
        self.index = SpatialHash(config.world_width, config.world_height, cell_size=config.food_cell_size)

    def __len__(self) -> int:
        return len(self.items) - self._eaten

    def __iter__(self):
        return (f for f in self.items if not f.eaten)

    def clear(self) -> None:
        self.items.clear()
        self._eaten = 0
        self.index.clear()

    # -------------------------------------------------------------- #
    # Placement
    # -------------------------------------------------------------- #
    def _band_limit(self, band: str) -> float:
        cfg = self.config
        if band == "ocean":
            return cfg.ocean_height * 0.95
        if band == "shelf":
            return cfg.world_height * 0.7
        return cfg.world_height

    def _make_food(self, band: str) -> Food:
        cfg = self.config
        x = self.rng.random() * cfg.world_width
        y = self.rng.random() * self._band_limit(band)
        return Food(x, y, cfg.food_energy * (0.8 + self.rng.random() * 0.8))

    def seed(self, count: int) -> int:
        """Initial food is placed in the ocean band."""
        return self._add(count, "ocean")

    def spawn(self, count: int, epoch: Epoch) -> int:
        """Add up to `count` items placed per the epoch's band; never exceeds max_food."""
        return self._add(count, epoch.food_band)

    def _add(self, count: int, band: str) -> int:
        room = max(0, self.config.max_food - len(self))
        n = max(0, min(count, room))
        for _ in range(n):
            self.items.append(self._make_food(band))
        return n

    # -------------------------------------------------------------- #
    # Queries & consumption
    # -------------------------------------------------------------- #
    def rebuild_index(self) -> None:
        self.compact()
        if self.config.use_spatial_index:
            self.index.rebuild(self.items)

    def near(self, x: float, y: float, radius: float) -> list[Food]:
        """Uneaten food possibly within `radius`; callers filter exact distances."""
        if self.config.use_spatial_index:
            candidates = self.index.query_radius(x, y, radius)
        else:
            candidates = self.items
        return [f for f in candidates if not f.eaten]

    def consume(self, food: Food) -> float:
        if food.eaten:
            return 0.0
        food.eaten = True
        self._eaten += 1
        return food.energy

    def compact(self) -> None:
        if self._eaten:
            self.items = [f for f in self.items if not f.eaten]
            self._eaten = 0

    # -------------------------------------------------------------- #
    # Trimming
    # -------------------------------------------------------------- #
    def trim_oldest(self, count: int) -> int:
        self.compact()
        count = max(0, min(count, len(self.items)))
        if count:
            del self.items[:count]
        return count

    def trim_fraction(self, fraction: float) -> int:
        return self.trim_oldest(int(len(self) * fraction))

    def enforce_cap(self) -> int:
        return self.trim_oldest(len(self) - self.config.max_food)

    def snapshot(self) -> tuple[FoodSnapshot, ...]:
        return tuple(FoodSnapshot(f.x, f.y, f.energy) for f in self.items if not f.eaten)


__all__ = [
    "Food",
    "FoodField",
    "FoodSnapshot",
    "region_at",
    "REGION_PREFERENCE",
    "OCEAN",
    "LAND",
    "AIR",
]
