from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Callable, Sequence

from .config import SimConfig
from .environment import REGION_PREFERENCE, Food, FoodField, region_at
from .timeline import EnvironmentState
from .traits import Traits, clamp_gene, derive_traits

# Environmental stress
OXYGEN_FLOOR = 0.05
OXYGEN_TOLERANCE_MIN = 0.3
COLD_RESISTANCE_MIN = 0.5
COLD_STRESS = 0.3

MIN_REPRODUCTIVE_AGE = 3
ASEXUAL_SHARE = 0.45       # child energy and remaining parent energy
SEXUAL_CHILD_SHARE = 0.22  # of the parents' combined energy
SEXUAL_PARENT_SHARE = 0.55


# ------------------------------------------------------------------ #
# Genetic operators
# ------------------------------------------------------------------ #
def mutate_genes(genes: Sequence[float], config: SimConfig, rng: random.Random) -> tuple[float, ...]:
    """
    Per-slot mutation with probability `mutation_rate`, uniform delta in
    [-mutation_std, mutation_std], clamped to the gene range. Offspring
    may also gain one extra random slot (genome extension).
    """
    child: list[float] = []
    for g in genes:
        if rng.random() < config.mutation_rate:
            g += (rng.random() * 2 - 1) * config.mutation_std
        child.append(clamp_gene(g))

    if len(child) < config.max_dna_length and rng.random() < config.dna_extension_prob:
        child.append(rng.uniform(-0.5, 0.5))
    return tuple(child)


def crossover_genes(g1: Sequence[float], g2: Sequence[float], rng: random.Random) -> list[float]:
    """Uniform crossover; slots only one parent has are taken from that parent."""
    shorter, longer = (g1, g2) if len(g1) <= len(g2) else (g2, g1)
    child = [g1[i] if rng.random() < 0.5 else g2[i] for i in range(len(shorter))]
    child.extend(longer[len(shorter):])
    return child


def bacterium_genes(rng: random.Random, length: int = 12) -> tuple[float, ...]:
    """Founding genome: small, ocean adapted, anaerobic, no adhesion."""
    genes = [0.0] * length
    genes[0] = rng.random() * 0.2 - 0.1
    genes[1] = rng.random() * 0.2 - 0.3   # very small
    genes[2] = rng.random() * 0.2 - 0.1   # low metabolism
    genes[3] = 0.8 + rng.random() * 0.3   # swimmer
    genes[4] = rng.random() * 0.4 - 0.3   # poor sensors
    genes[5] = rng.random() * 0.4 - 0.8   # no adhesion
    genes[6] = -0.8                       # no land adaptation
    genes[7] = -0.9                       # no flight
    if length >= 12:
        genes[10] = -0.9                  # anaerobic
        genes[11] = -0.5                  # cold sensitive
    return tuple(genes)


# ------------------------------------------------------------------ #
# Read-only view
# ------------------------------------------------------------------ #
@dataclass(frozen=True)
class OrganismSnapshot:
    id: int
    x: float
    y: float
    energy: float
    age: int
    alive: bool
    species: int | None
    parents: tuple[int, ...]
    genes: tuple[float, ...]
    traits: Traits


class Organism:
    """
    A single simulated organism:
    - position, energy and age
    - immutable gene vector with derived traits
    - per-tick behaviour (stress, sensing, movement, eating, death)
    - asexual cloning and sexual crossover with mutation
    """

    def __init__(
        self,
        organism_id: int,
        x: float,
        y: float,
        genes: Sequence[float],
        energy: float = 80.0,
        parents: Sequence[int] = (),
        config: SimConfig | None = None,
    ):
        self.id = organism_id
        self.x = float(x)
        self.y = float(y)
        if config is not None:
            self.clamp_to(config)
        self.energy = float(energy)
        self.age = 0
        self.alive = True
        self.death_cause: str | None = None
        self.parents = tuple(parents)

        self.genes: tuple[float, ...] = tuple(float(g) for g in genes)
        self.traits = derive_traits(self.genes)

        # Aliases for convenience
        self.size = self.traits.size
        self.metabolism = self.traits.metabolism
        self.sensor = self.traits.sensor

        self.species: int | None = None

    def __repr__(self) -> str:
        return (
            f"Organism(id={self.id}, x={self.x:.2f}, y={self.y:.2f}, "
            f"energy={self.energy:.2f}, age={self.age}, alive={self.alive})"
        )

    @property
    def eat_radius(self) -> float:
        return 1.5 * self.size + 1.0

    def region(self, config: SimConfig) -> str:
        return region_at(self.y, config)

    def snapshot(self) -> OrganismSnapshot:
        return OrganismSnapshot(
            id=self.id,
            x=self.x,
            y=self.y,
            energy=self.energy,
            age=self.age,
            alive=self.alive,
            species=self.species,
            parents=self.parents,
            genes=self.genes,
            traits=self.traits,
        )

    def mark_dead(self, cause: str) -> None:
        if not self.alive:
            return
        self.alive = False
        self.death_cause = cause

    # -------------------------------------------------------------- #
    # Per-tick behaviour
    # -------------------------------------------------------------- #
    def environmental_stress(self, env: EnvironmentState) -> float:
        stress = 0.0
        t = self.traits
        if env.oxygen > OXYGEN_FLOOR and t.oxygen_tolerance < OXYGEN_TOLERANCE_MIN:
            stress += (env.oxygen - OXYGEN_FLOOR) * 2
        if env.ice_age is not None and t.cold_resistance < COLD_RESISTANCE_MIN:
            stress += COLD_STRESS
        if env.extinction is not None:
            stress += env.extinction.severity * 0.5
        return stress

    def sense(self, food: FoodField, rng: random.Random) -> tuple[float, float, Food | None, float]:
        """
        Sum unit vectors toward food inside the sensor radius and find the
        nearest item. Falls back to a small random drift when nothing pulls.
        """
        fx = fy = 0.0
        nearest: Food | None = None
        nearest_d = math.inf
        radius = max(self.sensor, self.eat_radius)

        for f in food.near(self.x, self.y, radius):
            dx = f.x - self.x
            dy = f.y - self.y
            d = math.hypot(dx, dy)
            if d < nearest_d:
                nearest_d = d
                nearest = f
            if d <= self.sensor:
                fx += dx / max(d, 1e-6)
                fy += dy / max(d, 1e-6)

        if math.hypot(fx, fy) < 1e-6:
            ang = rng.random() * 2 * math.pi
            fx, fy = math.cos(ang) * 0.2, math.sin(ang) * 0.2
        return fx, fy, nearest, nearest_d

    def speed(self, target_mag: float, config: SimConfig, env: EnvironmentState) -> float:
        pref = self.traits.motility
        ideal = REGION_PREFERENCE[self.region(config)]
        mismatch = 1 - sum(p * q for p, q in zip(pref, ideal))

        speed = 0.8 * (1.0 / self.size) * (0.5 + target_mag * 0.2)
        speed *= 1 - 0.5 * mismatch
        if env.ice_age is not None:
            speed *= 0.7
        if env.extinction is not None:
            speed *= 0.8
        return speed

    def clamp_to(self, config: SimConfig) -> None:
        self.x = max(0.0, min(config.world_width, self.x))
        self.y = max(0.0, min(config.world_height, self.y))

    def displace(self, dx: float, dy: float, config: SimConfig) -> None:
        """Move by (dx, dy), hard-clamped to the world rectangle."""
        self.x += dx
        self.y += dy
        self.clamp_to(config)

    def step(
        self,
        food: FoodField,
        env: EnvironmentState,
        config: SimConfig,
        rng: random.Random,
    ) -> None:
        if not self.alive:
            return
        self.age += 1

        stress = self.environmental_stress(env)
        if stress > 0:
            self.energy -= stress * 0.1
            if rng.random() < stress * 0.01:
                self.mark_dead("stress")
                return

        tx, ty, nearest, nearest_d = self.sense(food, rng)
        speed = self.speed(math.hypot(tx, ty), config, env)

        self.displace(
            tx * 0.12 * speed + (rng.random() * 2 - 1) * 0.3,
            ty * 0.12 * speed + (rng.random() * 2 - 1) * 0.3,
            config,
        )

        self.energy -= config.move_cost_base * speed * (1 + self.metabolism)
        self.energy -= config.upkeep_cost

        # Distance was measured before moving
        if nearest is not None and nearest_d < self.eat_radius:
            self.energy += food.consume(nearest)

        if self.energy <= 0 or math.isnan(self.energy):
            self.mark_dead("starvation")

    # -------------------------------------------------------------- #
    # Reproduction
    # -------------------------------------------------------------- #
    def can_reproduce(self, config: SimConfig) -> bool:
        return self.alive and self.energy > config.repro_energy and self.age > MIN_REPRODUCTIVE_AGE

    def reproduce_asexual(
        self,
        config: SimConfig,
        rng: random.Random,
        next_id: Callable[[], int],
    ) -> Organism | None:
        """Clone with mutation; child and parent each keep 45% of the parent's energy."""
        if not self.can_reproduce(config):
            return None

        genes = mutate_genes(self.genes, config, rng)
        spread = 0.8 + self.size * 0.6
        dx = (rng.random() * 2 - 1) * spread
        dy = (rng.random() * 2 - 1) * spread
        child = Organism(
            next_id(),
            self.x + dx,
            self.y + dy,
            genes,
            energy=self.energy * ASEXUAL_SHARE,
            parents=(self.id,),
            config=config,
        )
        self.energy *= ASEXUAL_SHARE
        return child

    def mate(
        self,
        partner: Organism,
        config: SimConfig,
        rng: random.Random,
        next_id: Callable[[], int],
    ) -> Organism:
        """Produce one child by uniform crossover; both parents pay 45% of their energy."""
        genes = mutate_genes(crossover_genes(self.genes, partner.genes, rng), config, rng)
        dx = (rng.random() * 2 - 1) * 1.5
        dy = (rng.random() * 2 - 1) * 1.5
        child = Organism(
            next_id(),
            self.x + dx,
            self.y + dy,
            genes,
            energy=(self.energy + partner.energy) * SEXUAL_CHILD_SHARE,
            parents=(self.id, partner.id),
            config=config,
        )
        self.energy *= SEXUAL_PARENT_SHARE
        partner.energy *= SEXUAL_PARENT_SHARE
        return child


__all__ = [
    "Organism",
    "OrganismSnapshot",
    "mutate_genes",
    "crossover_genes",
    "bacterium_genes",
]
