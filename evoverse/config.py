# evoverse/config.py
from __future__ import annotations

from dataclasses import dataclass, field

from .errors import ConfigError
from .timeline import DEFAULT_EXTINCTION_EVENTS, DEFAULT_ICE_AGES, ExtinctionEvent, IceAge


@dataclass
class SimConfig:
    """
    All tunables of one simulation run.

    Defaults reproduce the "EvoVerse 2D" Earth-history setup: a 160x120
    world split into ocean (top), land and air bands, 30 anaerobic
    bacteria and 300 food items at 3.8 billion years ago, one million
    years per tick.
    """

    # --- World geometry ---
    world_width: float = 160.0
    world_height: float = 120.0
    ocean_height: float = 40.0   # y < ocean_height  -> ocean
    land_height: float = 80.0    # y < land_height   -> land, else air

    # --- Population ---
    initial_population: int = 30
    initial_energy: float = 80.0
    max_population: int = 1000        # hard cap applied when newborns merge
    population_ceiling: int = 700     # safety valve trigger
    population_cull_target: int = 400

    # --- Food ---
    initial_food: int = 300
    max_food: int = 800
    food_energy: float = 35.0
    food_replenish_fraction: float = 0.4
    food_replenish_interval: int = 5
    food_replenish_batch: int = 100

    # --- Energetics ---
    move_cost_base: float = 0.02
    upkeep_cost: float = 0.005

    # --- Genetics ---
    dna_length: int = 12
    max_dna_length: int = 16
    dna_extension_prob: float = 0.0
    repro_energy: float = 120.0
    mutation_rate: float = 0.12
    mutation_std: float = 0.12

    # --- Species classification ---
    species_dist_thresh: float = 0.95
    species_gene_count: int = 8
    species_interval: int = 1
    species_sample_size: int | None = None   # None -> full population
    diversity_sample_size: int | None = 150

    # --- Timeline ---
    start_year: float = -3_800_000_000
    years_per_tick: float = 1_000_000
    epoch_model: str = "timeline"            # or "traits"
    extinction_events: list[ExtinctionEvent] = field(
        default_factory=lambda: list(DEFAULT_EXTINCTION_EVENTS)
    )
    ice_ages: list[IceAge] = field(default_factory=lambda: list(DEFAULT_ICE_AGES))
    extinction_trigger_prob: float = 0.1
    extinction_food_trim_prob: float = 0.2
    ice_age_food_trim_prob: float = 0.1
    manual_extinction_ticks: int = 10

    # --- Performance ---
    use_spatial_index: bool = True
    food_cell_size: float = 8.0
    agent_cell_size: float = 16.0

    seed: int | None = None

    def validate(self) -> None:
        """Raise ConfigError for settings that cannot produce a real run."""

        if self.world_width <= 0 or self.world_height <= 0:
            raise ConfigError(
                f"world dimensions must be positive, got {self.world_width}x{self.world_height}"
            )
        if not 0 <= self.ocean_height <= self.land_height <= self.world_height:
            raise ConfigError(
                "band boundaries must satisfy 0 <= ocean_height <= land_height <= world_height"
            )
        if self.initial_population < 0:
            raise ConfigError(f"initial_population must be >= 0, got {self.initial_population}")
        if self.initial_food < 0 or self.max_food < 0:
            raise ConfigError("food amounts must be >= 0")
        if self.max_population < 0 or self.population_ceiling < 0:
            raise ConfigError("population caps must be >= 0")
        if self.population_cull_target > self.population_ceiling:
            raise ConfigError("population_cull_target must not exceed population_ceiling")
        if self.mutation_rate < 0 or self.mutation_std < 0:
            raise ConfigError(
                f"mutation rate/std must be >= 0, got {self.mutation_rate}/{self.mutation_std}"
            )
        if not 0 <= self.dna_extension_prob <= 1:
            raise ConfigError("dna_extension_prob must lie in [0, 1]")
        if self.dna_length < 8 or self.max_dna_length < self.dna_length:
            raise ConfigError("dna_length must be >= 8 and <= max_dna_length")
        if not 1 <= self.species_gene_count <= 8:
            raise ConfigError("species_gene_count must lie in [1, 8]")
        if self.species_interval < 1 or self.food_replenish_interval < 1:
            raise ConfigError("intervals must be >= 1 tick")
        if self.years_per_tick <= 0:
            raise ConfigError("years_per_tick must be positive")
        if self.food_cell_size <= 0 or self.agent_cell_size <= 0:
            raise ConfigError("spatial index cell sizes must be positive")
        if self.epoch_model not in ("timeline", "traits"):
            raise ConfigError(f"unknown epoch_model {self.epoch_model!r}")


__all__ = ["SimConfig"]
