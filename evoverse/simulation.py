from __future__ import annotations

import logging
import math
import random
from dataclasses import asdict, replace

import numpy as np

from .config import SimConfig
from .environment import FoodField, FoodSnapshot
from .errors import ConfigError, SimulationStateError
from .organism import Organism, OrganismSnapshot, bacterium_genes
from .spatial_hash import SpatialHash
from .species import SpeciesClassifier, SpeciesPrototype, diversity_score, make_sampler
from .stats import EvolutionStats, MetricsSnapshot, SimEvent, average
from .timeline import EnvironmentController, EnvironmentState, ExtinctionEvent, TraitEpochModel, format_year

logger = logging.getLogger(__name__)


class Simulation:
    """
    Owns organisms, food, the species table and the logs, and advances
    the world one logical tick per `step()` call. Nothing here looks at
    wall-clock time; frame pacing belongs to whoever drives `step()`.
    """

    def __init__(self, config: SimConfig | None = None, *, telemetry=None):
        self.config = config or SimConfig()
        self.telemetry = telemetry

        self.seeded = False
        self.tick = 0
        self.base_seed: int | None = None

        self.organisms: list[Organism] = []
        self.lineage: dict[int, tuple[int, ...]] = {}
        self.stats = EvolutionStats()

        self.rng = random.Random()
        self.np_rng = np.random.default_rng()
        self.food: FoodField | None = None
        self.organism_index: SpatialHash | None = None
        self.controller: EnvironmentController | None = None
        self.trait_epochs: TraitEpochModel | None = None
        self.classifier: SpeciesClassifier | None = None
        self.env_state: EnvironmentState | None = None

        self._next_organism_id = 1
        self._forced_extinction: ExtinctionEvent | None = None
        self._forced_until = -1

    # ------------------------------------------------------------------ #
    # Seeding
    # ------------------------------------------------------------------ #
    def seed(self, initial_population: int | None = None, *, rng_seed: int | None = None) -> None:
        """
        Reset the clock and regenerate organisms and food. Clears the
        species table, metrics and event log.
        """
        cfg = self.config
        cfg.validate()
        population = cfg.initial_population if initial_population is None else initial_population
        if population < 0:
            raise ConfigError(f"initial population must be >= 0, got {population}")

        if rng_seed is not None:
            self.base_seed = rng_seed
        elif cfg.seed is not None:
            self.base_seed = cfg.seed
        else:
            self.base_seed = random.randrange(2**32)
        self.rng = random.Random(self.base_seed)
        self.np_rng = np.random.default_rng(self.base_seed)

        self.tick = 0
        self._next_organism_id = 1
        self._forced_extinction = None
        self._forced_until = -1

        self.controller = EnvironmentController(
            cfg.start_year,
            cfg.years_per_tick,
            extinction_events=cfg.extinction_events,
            ice_ages=cfg.ice_ages,
        )
        self.trait_epochs = TraitEpochModel() if cfg.epoch_model == "traits" else None
        self.classifier = SpeciesClassifier(
            threshold=cfg.species_dist_thresh,
            gene_count=cfg.species_gene_count,
            sampler=make_sampler(cfg.species_sample_size, seed=self.base_seed),
        )
        self.stats.reset()

        # Primitive anaerobic bacteria near the ocean surface
        self.organisms = []
        self.lineage = {}
        for _ in range(population):
            x = self.rng.random() * cfg.world_width
            y = self.rng.random() * (cfg.ocean_height * 0.8)
            genes = bacterium_genes(self.rng, cfg.dna_length)
            organism = Organism(self._allocate_id(), x, y, genes, energy=cfg.initial_energy, config=cfg)
            self.organisms.append(organism)
            self.lineage[organism.id] = ()

        self.food = FoodField(cfg, self.rng)
        self.food.seed(cfg.initial_food)

        self.organism_index = SpatialHash(cfg.world_width, cfg.world_height, cell_size=cfg.agent_cell_size)
        self.env_state = self._resolve_environment()
        self._rebuild_organism_index()

        self.seeded = True
        logger.info(
            "Seeded %d organisms and %d food items (seed=%d, %s)",
            len(self.organisms),
            len(self.food),
            self.base_seed,
            format_year(self.env_state.year),
        )

    def seed_manifest(self) -> dict:
        """Expose the seed used for the run for offline replay."""
        return {"base_seed": self.base_seed, "config": asdict(self.config)}

    def _allocate_id(self) -> int:
        organism_id = self._next_organism_id
        self._next_organism_id += 1
        return organism_id

    def _require_seeded(self, action: str) -> None:
        if not self.seeded:
            raise SimulationStateError(f"cannot {action}: call seed() first")

    # ------------------------------------------------------------------ #
    # Environment
    # ------------------------------------------------------------------ #
    def _resolve_environment(self) -> EnvironmentState:
        state = self.controller.resolve(self.tick)
        if self.trait_epochs is not None:
            state = replace(state, epoch=self.trait_epochs.update(self.organisms))
        if self._forced_extinction is not None:
            if self.tick <= self._forced_until:
                if state.extinction is None:
                    state = replace(state, extinction=self._forced_extinction)
            else:
                self._forced_extinction = None
        return state

    def _log_event(self, kind: str, **data) -> SimEvent:
        env = self.env_state
        event = SimEvent(kind=kind, tick=self.tick, year=env.year, epoch=env.epoch.name, data=data)
        self.stats.log_event(event)
        if self.telemetry is not None:
            self.telemetry.log_events([event])
        return event

    def _log_environment_changes(self, prev: EnvironmentState, env: EnvironmentState) -> None:
        if prev.epoch.name != env.epoch.name:
            logger.info(
                "Epoch transition at %s: %s -> %s (oxygen %.0f%%)",
                format_year(env.year),
                prev.epoch.name,
                env.epoch.name,
                env.oxygen * 100,
            )
            self._log_event(
                "epoch",
                previous=prev.epoch.name,
                name=env.epoch.name,
                environment=env.epoch.environment,
                oxygen=env.oxygen,
            )
        if env.extinction is not None and env.extinction != prev.extinction:
            logger.info("Extinction event %s began (severity %.2f)", env.extinction.name, env.extinction.severity)
            self._log_event(
                "extinction",
                name=env.extinction.name,
                severity=env.extinction.severity,
                description=env.extinction.description,
                manual=False,
            )
        if prev.extinction is not None and env.extinction != prev.extinction:
            logger.info("Extinction event %s ended", prev.extinction.name)
            self._log_event("extinction_end", name=prev.extinction.name)
        if env.ice_age is not None and env.ice_age != prev.ice_age:
            logger.info("Ice age %s began", env.ice_age.name)
            self._log_event("ice_age", name=env.ice_age.name, duration=env.ice_age.duration)
        if prev.ice_age is not None and env.ice_age != prev.ice_age:
            logger.info("Ice age %s ended", prev.ice_age.name)
            self._log_event("ice_age_end", name=prev.ice_age.name)

    def _apply_extinction(self, event: ExtinctionEvent) -> int:
        """Cull organisms with probability severity * 0.3 and sometimes trim food."""
        mortality = event.severity * 0.3
        killed = 0
        for o in self.organisms:
            if o.alive and self.rng.random() < mortality:
                o.mark_dead("extinction")
                killed += 1
        if len(self.food) > 50 and self.rng.random() < self.config.extinction_food_trim_prob:
            self.food.trim_fraction(0.1)
        return killed

    def _apply_ice_age(self) -> None:
        if self.rng.random() < self.config.ice_age_food_trim_prob and len(self.food) > 30:
            self.food.trim_fraction(0.05)

    # ------------------------------------------------------------------ #
    # Tick
    # ------------------------------------------------------------------ #
    def step(self, sexual: bool = False) -> MetricsSnapshot:
        """Advance exactly one logical tick and return its metrics record."""
        self._require_seeded("step")
        cfg = self.config

        self.tick += 1
        prev = self.env_state
        self.env_state = env = self._resolve_environment()
        self._log_environment_changes(prev, env)

        if env.extinction is not None and self.rng.random() < cfg.extinction_trigger_prob:
            self._apply_extinction(env.extinction)
        if env.ice_age is not None:
            self._apply_ice_age()

        self.food.rebuild_index()
        self._rebuild_organism_index()

        newborns: list[Organism] = []
        for o in self.organisms:
            if not o.alive:
                continue
            o.step(self.food, env, cfg, self.rng)
            if not sexual:
                child = o.reproduce_asexual(cfg, self.rng, self._allocate_id)
                if child is not None:
                    newborns.append(child)

        if sexual:
            newborns.extend(self._sexual_reproduction())

        self.food.compact()
        self._merge_newborns(newborns)
        self.organisms = [o for o in self.organisms if o.alive]

        self._replenish_food()
        self._population_safety_valve()

        if self.tick % cfg.species_interval == 0:
            self._classify_species()

        return self._record_metrics()

    def run(self, ticks: int, sexual: bool = False) -> MetricsSnapshot | None:
        snapshot = None
        for _ in range(ticks):
            snapshot = self.step(sexual)
        return snapshot

    def _rebuild_organism_index(self) -> None:
        self.organism_index.clear()
        for o in self.organisms:
            if o.alive:
                o.clamp_to(self.config)
                self.organism_index.insert(o, o.x, o.y)

    def _sexual_reproduction(self) -> list[Organism]:
        """Shuffle eligible organisms, pair neighbours in the list, one child per pair."""
        cfg = self.config
        eligible = [o for o in self.organisms if o.can_reproduce(cfg)]
        self.rng.shuffle(eligible)

        children = []
        for i in range(0, len(eligible) - 1, 2):
            p1, p2 = eligible[i], eligible[i + 1]
            children.append(p1.mate(p2, cfg, self.rng, self._allocate_id))
        return children

    def _merge_newborns(self, newborns: list[Organism]) -> None:
        for child in newborns:
            self.lineage[child.id] = child.parents
        self.organisms.extend(newborns)

        alive = [o for o in self.organisms if o.alive]
        excess = len(alive) - self.config.max_population
        if excess > 0:
            alive.sort(key=lambda o: o.energy)
            for o in alive[:excess]:
                o.mark_dead("culled")

    def _population_safety_valve(self) -> None:
        cfg = self.config
        if len(self.organisms) <= cfg.population_ceiling:
            return
        before = len(self.organisms)
        ordered = sorted(self.organisms, key=lambda o: o.energy)
        for o in ordered[: before - cfg.population_cull_target]:
            o.mark_dead("culled")
        self.organisms = [o for o in self.organisms if o.alive]
        logger.warning(
            "Population %d exceeded ceiling %d at tick %d; culled to %d",
            before,
            cfg.population_ceiling,
            self.tick,
            len(self.organisms),
        )

    def _replenish_food(self) -> None:
        cfg = self.config
        if len(self.food) < cfg.initial_food * cfg.food_replenish_fraction and self.tick % cfg.food_replenish_interval == 0:
            amount = min(cfg.food_replenish_batch, round(cfg.initial_food * 0.3))
            added = self.food.spawn(amount, self.env_state.epoch)
            logger.debug("Replenished %d food at tick %d", added, self.tick)
        self.food.enforce_cap()

    def _classify_species(self) -> None:
        env = self.env_state
        for ev in self.classifier.classify(self.organisms, tick=self.tick, year=env.year):
            self._log_event(
                "species",
                species_id=ev.species_id,
                prototype=[round(v, 4) for v in ev.prototype],
                notes=ev.notes,
                distance=ev.distance,
            )

    def _record_metrics(self) -> MetricsSnapshot:
        cfg = self.config
        env = self.env_state
        alive = self.organisms
        snapshot = MetricsSnapshot(
            tick=self.tick,
            year=env.year,
            epoch=env.epoch.name,
            oxygen=env.oxygen,
            population=len(alive),
            food=len(self.food),
            avg_size=average(o.size for o in alive),
            avg_energy=average(o.energy for o in alive),
            diversity=diversity_score(alive, cfg.species_gene_count, cfg.diversity_sample_size, self.np_rng),
            species_count=sum(1 for p in self.classifier.prototypes if p.count > 0),
            avg_oxygen_tolerance=average(o.traits.oxygen_tolerance for o in alive),
            avg_land_adaptation=average(o.traits.motility_land for o in alive),
            extinction_event=env.extinction.name if env.extinction is not None else None,
            ice_age=env.ice_age.name if env.ice_age is not None else None,
        )
        self.stats.record(snapshot)
        if self.telemetry is not None:
            self.telemetry.record_metrics(snapshot)
        return snapshot

    # ------------------------------------------------------------------ #
    # External entry points
    # ------------------------------------------------------------------ #
    def spawn_food(self, n: int) -> int:
        """Add up to `n` food items right away; returns how many fit under max_food."""
        self._require_seeded("spawn food")
        return self.food.spawn(n, self.env_state.epoch)

    def trigger_extinction_event(self, event: ExtinctionEvent | str) -> ExtinctionEvent:
        """
        Force an extinction event now, regardless of the timeline. The
        first cull is applied immediately; the event then stays active for
        `manual_extinction_ticks` ticks.
        """
        self._require_seeded("trigger an extinction event")
        if isinstance(event, str):
            found = self.controller.find_extinction_event(event)
            if found is None:
                raise ConfigError(f"no configured extinction event named {event!r}")
            event = found

        self._forced_extinction = event
        self._forced_until = self.tick + self.config.manual_extinction_ticks
        self.env_state = replace(self.env_state, extinction=event)

        logger.warning("Extinction event %s triggered manually (severity %.2f)", event.name, event.severity)
        self._log_event(
            "extinction",
            name=event.name,
            severity=event.severity,
            description=event.description,
            manual=True,
        )
        self._apply_extinction(event)
        self.organisms = [o for o in self.organisms if o.alive]
        return event

    # ------------------------------------------------------------------ #
    # Read accessors
    # ------------------------------------------------------------------ #
    @property
    def current_year(self) -> float:
        return self.controller.year_at(self.tick) if self.controller else self.config.start_year

    @property
    def epoch_name(self) -> str | None:
        return self.env_state.epoch.name if self.env_state else None

    def organisms_snapshot(self) -> tuple[OrganismSnapshot, ...]:
        return tuple(o.snapshot() for o in self.organisms if o.alive)

    def food_snapshot(self) -> tuple[FoodSnapshot, ...]:
        return self.food.snapshot() if self.food else ()

    def species_snapshot(self) -> tuple[SpeciesPrototype, ...]:
        if self.classifier is None:
            return ()
        return tuple(replace(p) for p in self.classifier.prototypes)

    def metrics_history(self) -> tuple[MetricsSnapshot, ...]:
        return tuple(self.stats.history)

    def event_log(self) -> tuple[SimEvent, ...]:
        return tuple(self.stats.events)

    def lineage_snapshot(self) -> dict[int, tuple[int, ...]]:
        return dict(self.lineage)

    def organisms_near(self, x: float, y: float, radius: float) -> list[Organism]:
        """Live organisms within `radius`, using the index built at the start of the tick."""
        if self.organism_index is None:
            return []
        return [
            o
            for o in self.organism_index.query_radius(x, y, radius)
            if o.alive and math.hypot(o.x - x, o.y - y) <= radius
        ]


__all__ = ["Simulation"]
