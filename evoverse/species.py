from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Sequence

import numpy as np

logger = logging.getLogger(__name__)

STD_EPSILON = 1e-6
FOUNDER_NOTES = "Primitive anaerobic bacteria"


@dataclass
class SpeciesPrototype:
    """Reference gene slice of a species; fixed at creation."""

    id: int
    prototype: tuple[float, ...]
    count: int = 0
    founded_tick: int = 0
    founded_year: float = 0.0
    notes: str = ""


@dataclass(frozen=True)
class SpeciationEvent:
    species_id: int
    prototype: tuple[float, ...]
    notes: str
    distance: float | None = None  # None for the founding species


# ------------------------------------------------------------------ #
# Sampling strategies
# ------------------------------------------------------------------ #
class FullPopulationSampler:
    """Classify every live organism."""

    def sample(self, organisms: Sequence) -> list:
        return list(organisms)


class RandomSampleSampler:
    """
    Classify a fixed-size random subset. An approximation for large
    populations: unsampled organisms keep their previous label.
    Deterministic for a given seed.
    """

    def __init__(self, size: int, seed: int | None = None):
        if size < 1:
            raise ValueError("sample size must be >= 1")
        self.size = size
        self.np_rng = np.random.default_rng(seed)

    def sample(self, organisms: Sequence) -> list:
        n = len(organisms)
        if n <= self.size:
            return list(organisms)
        idx = np.sort(self.np_rng.choice(n, size=self.size, replace=False))
        return [organisms[i] for i in idx]


def make_sampler(sample_size: int | None, seed: int | None = None):
    if sample_size is None:
        return FullPopulationSampler()
    return RandomSampleSampler(sample_size, seed=seed)


# ------------------------------------------------------------------ #
# Classifier
# ------------------------------------------------------------------ #
class SpeciesClassifier:
    """
    Online nearest-prototype clustering in a per-column standardized
    gene space. Standardization statistics come from the current batch,
    so stored (raw) prototypes are re-standardized on every pass.
    """

    def __init__(self, threshold: float = 0.95, gene_count: int = 8, sampler=None):
        self.threshold = threshold
        self.gene_count = gene_count
        self.sampler = sampler or FullPopulationSampler()
        self.prototypes: list[SpeciesPrototype] = []
        self._next_id = 1

    def reset(self) -> None:
        self.prototypes = []
        self._next_id = 1

    def _create(self, raw: np.ndarray, tick: int, year: float, notes: str) -> SpeciesPrototype:
        proto = SpeciesPrototype(
            id=self._next_id,
            prototype=tuple(float(v) for v in raw),
            founded_tick=tick,
            founded_year=year,
            notes=notes,
        )
        self._next_id += 1
        self.prototypes.append(proto)
        logger.debug("New species %d at tick %d: %s", proto.id, tick, notes)
        return proto

    def _recount(self, organisms: Sequence) -> None:
        counts = Counter(o.species for o in organisms if o.species is not None)
        for proto in self.prototypes:
            proto.count = counts.get(proto.id, 0)

    def counts(self) -> dict[int, int]:
        return {p.id: p.count for p in self.prototypes}

    def classify(self, organisms: Sequence, *, tick: int = 0, year: float = 0.0) -> list[SpeciationEvent]:
        """Label organisms in place and return the species created by this pass."""
        alive = [o for o in organisms if o.alive]
        if not alive:
            return []
        sample = self.sampler.sample(alive)
        if not sample:
            return []

        k = self.gene_count
        raw = np.array([o.genes[:k] for o in sample], dtype=float)
        mean = raw.mean(axis=0)
        std = raw.std(axis=0) + STD_EPSILON
        normed = (raw - mean) / std

        events: list[SpeciationEvent] = []

        if not self.prototypes:
            founder = self._create(raw[0], tick, year, FOUNDER_NOTES)
            for o in alive:
                o.species = founder.id
            events.append(SpeciationEvent(founder.id, founder.prototype, FOUNDER_NOTES))
            self._recount(alive)
            return events

        protos = (np.array([p.prototype for p in self.prototypes], dtype=float) - mean) / std
        ids = [p.id for p in self.prototypes]

        # Distances to the existing prototypes in one pass
        d2 = (
            (normed ** 2).sum(axis=1)[:, None]
            + (protos ** 2).sum(axis=1)[None, :]
            - 2.0 * normed @ protos.T
        )
        dists = np.sqrt(np.maximum(d2, 0.0))

        # Prototypes founded during this pass
        new_ids: list[int] = []
        new_rows: list[np.ndarray] = []

        for i, o in enumerate(sample):
            z = normed[i]
            best = int(np.argmin(dists[i]))
            best_d = float(dists[i, best])
            best_id = ids[best]

            if new_rows:
                nd = np.sqrt(((np.array(new_rows) - z) ** 2).sum(axis=1))
                j = int(np.argmin(nd))
                if float(nd[j]) < best_d:
                    best_d = float(nd[j])
                    best_id = new_ids[j]

            if best_d < self.threshold:
                o.species = best_id
                continue

            notes = f"Evolutionary divergence (dist {best_d:.2f})"
            proto = self._create(raw[i], tick, year, notes)
            o.species = proto.id
            new_ids.append(proto.id)
            new_rows.append(z)
            events.append(SpeciationEvent(proto.id, proto.prototype, notes, best_d))

        self._recount(alive)
        return events


def diversity_score(
    organisms: Sequence,
    gene_count: int = 8,
    sample_size: int | None = None,
    np_rng: np.random.Generator | None = None,
) -> float:
    """Mean pairwise Euclidean distance between gene slices; 0.0 below two organisms."""
    alive = [o for o in organisms if o.alive]
    if sample_size is not None and len(alive) > sample_size:
        rng = np_rng if np_rng is not None else np.random.default_rng()
        idx = np.sort(rng.choice(len(alive), size=sample_size, replace=False))
        alive = [alive[i] for i in idx]
    n = len(alive)
    if n < 2:
        return 0.0

    mat = np.array([o.genes[:gene_count] for o in alive], dtype=float)
    diff = mat[:, None, :] - mat[None, :, :]
    dists = np.sqrt((diff ** 2).sum(axis=-1))
    upper = dists[np.triu_indices(n, k=1)]
    return float(upper.mean())


__all__ = [
    "SpeciesPrototype",
    "SpeciationEvent",
    "SpeciesClassifier",
    "FullPopulationSampler",
    "RandomSampleSampler",
    "make_sampler",
    "diversity_score",
]
