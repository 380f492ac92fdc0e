# evoverse/timeline.py
from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from typing import Sequence

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------ #
# Timeline entries
# ------------------------------------------------------------------ #
@dataclass(frozen=True)
class Epoch:
    """A named era; `food_band` selects where new food is placed."""

    year: float
    name: str
    environment: str
    challenges: tuple[str, ...]
    oxygen: float
    food_band: str = "global"  # "ocean", "shelf" or "global"


@dataclass(frozen=True)
class ExtinctionEvent:
    year: float
    name: str
    severity: float
    description: str = ""


@dataclass(frozen=True)
class IceAge:
    year: float
    duration: float
    name: str

    def covers(self, year: float) -> bool:
        return self.year <= year <= self.year + self.duration


EARTH_EPOCHS: tuple[Epoch, ...] = (
    Epoch(-3_800_000_000, "Archaean", "Hot, volcanic, no oxygen",
          ("High temperatures", "UV radiation", "Volcanic activity"), 0.0, "ocean"),
    Epoch(-2_500_000_000, "Proterozoic", "Great Oxygenation Event",
          ("Oxygen toxicity", "Ice ages", "Limited habitats"), 0.1, "ocean"),
    Epoch(-541_000_000, "Cambrian Explosion", "Oxygen-rich oceans",
          ("Predation", "Competition", "New niches"), 0.15, "shelf"),
    Epoch(-485_000_000, "Ordovician", "Warm, shallow seas",
          ("Marine adaptation", "Early predators"), 0.18, "shelf"),
    Epoch(-443_000_000, "Silurian", "Stabilizing climate",
          ("Land colonization", "Ozone layer formation"), 0.20),
    Epoch(-419_000_000, "Devonian", "Age of Fishes",
          ("Aquatic competition", "Early forests"), 0.22),
    Epoch(-359_000_000, "Carboniferous", "Oxygen-rich atmosphere",
          ("Giant insects", "Forest fires", "Climate change"), 0.35),
    Epoch(-299_000_000, "Permian", "Supercontinent formation",
          ("Desertification", "Temperature extremes"), 0.23),
    Epoch(-252_000_000, "Mesozoic", "Age of Reptiles",
          ("Dinosaurs", "Climate shifts", "Continental drift"), 0.26),
    Epoch(-201_000_000, "Jurassic", "Warm, humid",
          ("Large predators", "Competitive ecosystems"), 0.26),
    Epoch(-145_000_000, "Cretaceous", "High sea levels",
          ("Flowering plants", "New predators"), 0.30),
    Epoch(-66_000_000, "Cenozoic", "Age of Mammals",
          ("Mammal radiation", "Climate cooling"), 0.21),
    Epoch(-23_000_000, "Neogene", "Modern ecosystems",
          ("Grasslands", "Climate oscillations"), 0.21),
    Epoch(-2_600_000, "Quaternary", "Ice Ages",
          ("Glacial cycles", "Rapid climate change"), 0.21),
)

DEFAULT_EXTINCTION_EVENTS: tuple[ExtinctionEvent, ...] = (
    ExtinctionEvent(-445_000_000, "Ordovician-Silurian", 0.85, "Global cooling and sea level drop"),
    ExtinctionEvent(-372_000_000, "Late Devonian", 0.75, "Ocean anoxia and climate change"),
    ExtinctionEvent(-252_000_000, "Permian-Triassic", 0.95, "The Great Dying - volcanic activity"),
    ExtinctionEvent(-201_000_000, "Triassic-Jurassic", 0.80, "Climate change and ocean acidification"),
    ExtinctionEvent(-66_000_000, "Cretaceous-Paleogene", 0.75, "Asteroid impact and volcanic activity"),
)

DEFAULT_ICE_AGES: tuple[IceAge, ...] = (
    IceAge(-2_400_000_000, 300_000_000, "Huronian"),
    IceAge(-720_000_000, 230_000_000, "Cryogenian"),
    IceAge(-460_000_000, 30_000_000, "Andean-Saharan"),
    IceAge(-360_000_000, 100_000_000, "Karoo"),
    IceAge(-2_600_000, 2_600_000, "Quaternary"),
)

# Trait-driven alternative: stages advance on population-level trait shares
TRAIT_EPOCHS: tuple[Epoch, ...] = (
    Epoch(0, "Bacteria", "Single cells in the ocean", ("Finding food",), 0.0, "ocean"),
    Epoch(1, "Multicellularity", "Cells stick together", ("Body size", "Cooperation"), 0.1, "shelf"),
    Epoch(2, "Land Colonization", "Life leaves the water", ("Dry land", "Gravity"), 0.18),
    Epoch(3, "Flight Emergence", "Life takes to the air", ("Lift", "Energy budget"), 0.21),
)
MULTICELLULARITY_ADHESION = 0.6
LAND_MOTILITY = 0.6
FLIGHT_MOTILITY = 0.6
TRAIT_EPOCH_MIN_FRACTION = 0.2
MULTICELLULARITY_MIN_SIZE = 0.5


def format_year(year: float) -> str:
    """Human readable year; negative years are rendered as "... ago"."""
    if year < 0:
        years_ago = abs(year)
        if years_ago >= 1_000_000:
            return f"{years_ago / 1_000_000:.1f} million years ago"
        if years_ago >= 1000:
            return f"{years_ago / 1000:.0f} thousand years ago"
        return f"{years_ago:.0f} years ago"
    return f"{year:.0f}"


# ------------------------------------------------------------------ #
# Resolved environment for one tick
# ------------------------------------------------------------------ #
@dataclass(frozen=True)
class EnvironmentState:
    tick: int
    year: float
    epoch: Epoch
    extinction: ExtinctionEvent | None = None
    ice_age: IceAge | None = None

    @property
    def oxygen(self) -> float:
        return self.epoch.oxygen


class EnvironmentController:
    """
    Translates a tick count into simulated year, epoch, extinction event
    and ice age. Every lookup is a pure function of the year.
    """

    def __init__(
        self,
        start_year: float,
        years_per_tick: float,
        *,
        epochs: Sequence[Epoch] = EARTH_EPOCHS,
        extinction_events: Sequence[ExtinctionEvent] = DEFAULT_EXTINCTION_EVENTS,
        ice_ages: Sequence[IceAge] = DEFAULT_ICE_AGES,
    ):
        self.start_year = start_year
        self.years_per_tick = years_per_tick
        self.epochs = tuple(sorted(epochs, key=lambda e: e.year))
        self._epoch_years = [e.year for e in self.epochs]
        self.extinction_events = tuple(extinction_events)
        self.ice_ages = tuple(ice_ages)

    def year_at(self, tick: int) -> float:
        return self.start_year + tick * self.years_per_tick

    def epoch_at(self, year: float) -> Epoch:
        idx = bisect.bisect_right(self._epoch_years, year) - 1
        return self.epochs[max(0, idx)]

    def extinction_at(self, year: float) -> ExtinctionEvent | None:
        window = self.years_per_tick * 5
        for event in self.extinction_events:
            if abs(year - event.year) < window:
                return event
        return None

    def is_extinction_active(self, year: float) -> bool:
        return self.extinction_at(year) is not None

    def ice_age_at(self, year: float) -> IceAge | None:
        for ice_age in self.ice_ages:
            if ice_age.covers(year):
                return ice_age
        return None

    def find_extinction_event(self, name: str) -> ExtinctionEvent | None:
        for event in self.extinction_events:
            if event.name == name:
                return event
        return None

    def resolve(self, tick: int) -> EnvironmentState:
        year = self.year_at(tick)
        return EnvironmentState(
            tick=tick,
            year=year,
            epoch=self.epoch_at(year),
            extinction=self.extinction_at(year),
            ice_age=self.ice_age_at(year),
        )


class TraitEpochModel:
    """
    Alternative epoch model: Bacteria -> Multicellularity -> Land
    Colonization -> Flight Emergence, advanced by the share of organisms
    past fixed trait cutoffs. Stages only move forward.
    """

    def __init__(self, stages: Sequence[Epoch] = TRAIT_EPOCHS):
        self.stages = tuple(stages)
        self.index = 0

    @property
    def current(self) -> Epoch:
        return self.stages[self.index]

    def reset(self) -> None:
        self.index = 0

    def _ready_for_next(self, organisms) -> bool:
        n = len(organisms)
        if n == 0:
            return False

        def share(pred) -> float:
            return sum(1 for o in organisms if pred(o.traits)) / n

        if self.index == 0:
            avg_size = sum(o.traits.size for o in organisms) / n
            return (
                avg_size >= MULTICELLULARITY_MIN_SIZE
                and share(lambda t: t.adhesion > MULTICELLULARITY_ADHESION) >= TRAIT_EPOCH_MIN_FRACTION
            )
        if self.index == 1:
            return share(lambda t: t.motility_land > LAND_MOTILITY) >= TRAIT_EPOCH_MIN_FRACTION
        if self.index == 2:
            return share(lambda t: t.motility_fly > FLIGHT_MOTILITY) >= TRAIT_EPOCH_MIN_FRACTION
        return False

    def update(self, organisms) -> Epoch:
        alive = [o for o in organisms if o.alive]
        if self.index < len(self.stages) - 1 and self._ready_for_next(alive):
            self.index += 1
            logger.info("Trait epoch advanced to %s", self.current.name)
        return self.current


__all__ = [
    "Epoch",
    "ExtinctionEvent",
    "IceAge",
    "EnvironmentState",
    "EnvironmentController",
    "TraitEpochModel",
    "EARTH_EPOCHS",
    "TRAIT_EPOCHS",
    "DEFAULT_EXTINCTION_EVENTS",
    "DEFAULT_ICE_AGES",
    "format_year",
]
