# evoverse/traits.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

# Gene slots (canonical 12-slot layout; 8 and 9 are unused)
HUE = 0
SIZE = 1
METABOLISM = 2
SWIM = 3
SENSOR = 4
ADHESION = 5
LAND = 6
FLY = 7
OXYGEN_TOLERANCE = 10
COLD_RESISTANCE = 11

GENE_MIN = -2.5
GENE_MAX = 2.5

# Used when the genome is too short to carry the environmental slots
DEFAULT_OXYGEN_TOLERANCE = 0.5
DEFAULT_COLD_RESISTANCE = 0.5


def clamp_gene(value: float) -> float:
    return max(GENE_MIN, min(GENE_MAX, value))


@dataclass(frozen=True)
class Traits:
    """Phenotype derived from a gene vector."""

    hue: float
    size: float
    metabolism: float
    motility_swim: float
    motility_land: float
    motility_fly: float
    sensor: float
    adhesion: float
    oxygen_tolerance: float
    cold_resistance: float

    @property
    def motility(self) -> tuple[float, float, float]:
        return (self.motility_swim, self.motility_land, self.motility_fly)


def derive_traits(genes: Sequence[float]) -> Traits:
    """
    Map a gene vector (length >= 8) onto phenotype values.

    The three motilities are divided by the sum of their absolute values,
    so they are relative weights that may be negative, not probabilities.
    """
    if len(genes) < 8:
        raise ValueError(f"gene vector needs at least 8 slots, got {len(genes)}")

    swim = 0.5 + genes[SWIM] * 0.5
    land = 0.2 + genes[LAND] * 0.4
    fly = 0.1 + genes[FLY] * 0.4
    total = abs(swim) + abs(land) + abs(fly)
    if total <= 0:
        total = 1.0

    if len(genes) >= 12:
        oxygen_tolerance = genes[OXYGEN_TOLERANCE] * 0.5 + 0.5
        cold_resistance = genes[COLD_RESISTANCE] * 0.5 + 0.5
    else:
        oxygen_tolerance = DEFAULT_OXYGEN_TOLERANCE
        cold_resistance = DEFAULT_COLD_RESISTANCE

    return Traits(
        hue=max(0.0, min(1.0, genes[HUE] * 0.5 + 0.5)),
        size=max(0.25, 0.4 + genes[SIZE] * 0.3),
        metabolism=max(0.01, 0.03 + genes[METABOLISM] * 0.02),
        motility_swim=swim / total,
        motility_land=land / total,
        motility_fly=fly / total,
        sensor=max(1.0, 3.0 + genes[SENSOR] * 3.0),
        adhesion=genes[ADHESION] * 0.5 + 0.5,
        oxygen_tolerance=oxygen_tolerance,
        cold_resistance=cold_resistance,
    )


__all__ = [
    "Traits",
    "derive_traits",
    "clamp_gene",
    "GENE_MIN",
    "GENE_MAX",
]
