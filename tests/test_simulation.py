import math

import pytest

pytest.importorskip("numpy")

from evoverse.config import SimConfig
from evoverse.errors import ConfigError, SimulationStateError
from evoverse.organism import Organism
from evoverse.simulation import Simulation
from evoverse.timeline import ExtinctionEvent


def _seeded(config=None, population=None, seed=1234):
    sim = Simulation(config or SimConfig())
    sim.seed(population, rng_seed=seed)
    return sim


@pytest.mark.parametrize(
    "overrides",
    [
        {"world_width": 0},
        {"world_height": -5},
        {"mutation_rate": -0.1},
        {"mutation_std": -1.0},
        {"initial_population": -3},
        {"ocean_height": 90, "land_height": 80},
        {"dna_length": 6},
    ],
)
def test_invalid_config_fails_at_seed(overrides):
    sim = Simulation(SimConfig(**overrides))
    with pytest.raises(ConfigError):
        sim.seed()


def test_negative_population_argument_is_rejected():
    with pytest.raises(ConfigError):
        Simulation().seed(-1)


def test_driving_before_seed_is_a_state_error():
    sim = Simulation()
    with pytest.raises(SimulationStateError):
        sim.step()
    with pytest.raises(SimulationStateError):
        sim.spawn_food(5)
    with pytest.raises(SimulationStateError):
        sim.trigger_extinction_event("Permian-Triassic")


def test_seed_builds_initial_world():
    cfg = SimConfig()
    sim = _seeded(cfg)

    assert sim.tick == 0
    assert len(sim.organisms) == cfg.initial_population
    assert len(sim.food) == cfg.initial_food
    assert [o.id for o in sim.organisms] == list(range(1, cfg.initial_population + 1))
    assert all(0 <= o.y <= cfg.ocean_height * 0.8 for o in sim.organisms)
    assert all(0 <= f.y <= cfg.ocean_height * 0.95 for f in sim.food_snapshot())
    assert sim.epoch_name == "Archaean"
    assert sim.event_log() == ()
    assert sim.metrics_history() == ()


def test_reseeding_resets_history_and_ids():
    sim = _seeded(population=10)
    sim.run(5)
    sim.seed(8, rng_seed=2)

    assert sim.tick == 0
    assert sim.metrics_history() == ()
    assert sim.species_snapshot() == ()
    assert min(o.id for o in sim.organisms) == 1


def test_spawn_food_respects_cap():
    cfg = SimConfig(initial_food=300, max_food=320)
    sim = _seeded(cfg)

    assert sim.spawn_food(50) == 20
    assert len(sim.food) == cfg.max_food
    assert sim.spawn_food(10) == 0
    assert len(sim.food) == cfg.max_food


def test_spawned_food_stays_in_world_bounds():
    cfg = SimConfig(start_year=-300_000_000, max_food=5000)
    sim = _seeded(cfg)
    sim.spawn_food(2000)

    for f in sim.food_snapshot():
        assert 0 <= f.x <= cfg.world_width
        assert 0 <= f.y <= cfg.world_height


def test_long_run_keeps_population_bounded_and_speciates():
    cfg = SimConfig(
        world_width=160,
        world_height=120,
        ocean_height=40,
        initial_population=30,
        initial_food=300,
        mutation_rate=0.12,
        mutation_std=0.12,
    )
    sim = _seeded(cfg, seed=2024)

    for _ in range(1000):
        metrics = sim.step(sexual=False)
        assert 0 <= metrics.population <= 700
        for o in sim.organisms:
            assert 0.0 <= o.x <= cfg.world_width
            assert 0.0 <= o.y <= cfg.world_height

    species_events = [e for e in sim.event_log() if e.kind == "species"]
    assert species_events[0].data["notes"] == "Primitive anaerobic bacteria"
    assert len(species_events) >= 2
    assert len(sim.metrics_history()) == 1000
    assert all(e.tick >= 1 and e.year == sim.controller.year_at(e.tick) for e in sim.event_log())


def test_every_label_points_at_an_existing_prototype():
    sim = _seeded(seed=5)
    sim.run(60)
    ids = {p.id for p in sim.species_snapshot()}
    assert all(o.species in ids for o in sim.organisms_snapshot() if o.species is not None)


def test_runs_are_reproducible_for_a_seed():
    a = _seeded(seed=77)
    b = _seeded(seed=77)
    a.run(80)
    b.run(80)
    assert a.metrics_history() == b.metrics_history()
    assert [e.data for e in a.event_log()] == [e.data for e in b.event_log()]


def test_manual_extinction_reduces_population():
    cfg = SimConfig(repro_energy=1e9)
    sim = _seeded(cfg, seed=11)
    before = len(sim.organisms)

    event = sim.trigger_extinction_event(ExtinctionEvent(0, "Manual", 0.95, "test"))
    sim.run(50)

    assert event.severity == 0.95
    assert len(sim.organisms) < before
    manual = [e for e in sim.event_log() if e.kind == "extinction"]
    assert len(manual) == 1
    assert manual[0].data["manual"] is True
    ended = [e for e in sim.event_log() if e.kind == "extinction_end"]
    assert [(e.tick, e.data["name"]) for e in ended] == [(11, "Manual")]


def test_manual_extinction_stays_active_for_its_window():
    cfg = SimConfig(manual_extinction_ticks=3)
    sim = _seeded(cfg)
    sim.trigger_extinction_event("Permian-Triassic")

    names = [sim.step().extinction_event for _ in range(5)]
    assert names == ["Permian-Triassic"] * 3 + [None, None]


def test_unknown_extinction_name_is_rejected():
    sim = _seeded()
    with pytest.raises(ConfigError):
        sim.trigger_extinction_event("Heat Death")


def test_epoch_transition_is_logged_once():
    cfg = SimConfig(start_year=-2_503_000_000)
    sim = _seeded(cfg)
    sim.run(10)

    transitions = [e for e in sim.event_log() if e.kind == "epoch"]
    assert len(transitions) == 1
    assert transitions[0].tick == 3
    assert transitions[0].data["previous"] == "Archaean"
    assert transitions[0].data["name"] == "Proterozoic"


def test_timeline_extinction_and_ice_age_are_logged():
    cfg = SimConfig(start_year=-258_000_000)
    sim = _seeded(cfg)
    sim.run(3)

    kinds = [(e.kind, e.data.get("name")) for e in sim.event_log() if e.kind != "species"]
    assert ("extinction", "Permian-Triassic") in kinds
    assert sim.metrics_history()[-1].extinction_event == "Permian-Triassic"


def test_nan_energy_organism_is_removed():
    sim = _seeded(population=5)
    victim = sim.organisms[0]
    victim.energy = float("nan")

    sim.step()

    assert victim not in sim.organisms
    assert not victim.alive


def test_merge_cap_drops_lowest_energy_first():
    cfg = SimConfig(max_population=5)
    sim = _seeded(cfg, population=5)
    for i, o in enumerate(sim.organisms):
        o.energy = 100.0 + i
    parent = sim.organisms[0]
    newborns = [
        Organism(sim._allocate_id(), parent.x, parent.y, parent.genes, energy=50.0 + i, parents=(parent.id,))
        for i in range(3)
    ]

    sim._merge_newborns(newborns)

    assert sum(1 for o in sim.organisms if o.alive) == 5
    assert all(n.death_cause == "culled" for n in newborns)
    assert all(sim.lineage[n.id] == (parent.id,) for n in newborns)


def test_population_safety_valve_culls_to_target():
    cfg = SimConfig(population_ceiling=20, population_cull_target=10)
    sim = _seeded(cfg, population=25)
    everyone = list(sim.organisms)
    for i, o in enumerate(everyone):
        o.energy = 80.0 + i

    sim.step()

    culled = [o for o in everyone if o.death_cause == "culled"]
    assert len(sim.organisms) == 10
    assert len(culled) == 15
    assert min(o.energy for o in sim.organisms) >= max(o.energy for o in culled)


def test_sexual_pass_pairs_eligible_organisms():
    sim = _seeded(population=5)
    for o in sim.organisms:
        o.energy = 300.0
        o.age = 10

    children = sim._sexual_reproduction()

    assert len(children) == 2
    assert all(len(c.parents) == 2 for c in children)
    paired = [p for c in children for p in c.parents]
    assert len(set(paired)) == 4
    for o in sim.organisms:
        expected = 300.0 * 0.55 if o.id in paired else 300.0
        assert o.energy == pytest.approx(expected)


def test_sexual_mode_runs():
    sim = _seeded(seed=3)
    metrics = sim.run(30, sexual=True)
    assert metrics.tick == 30


def test_children_do_not_act_in_their_birth_tick():
    sim = _seeded(population=1)
    parent = sim.organisms[0]
    parent.energy = 500.0
    parent.age = 10

    sim.step()

    child = next(o for o in sim.organisms if o.id != parent.id)
    assert child.age == 0
    assert child.parents == (parent.id,)
    assert sim.lineage_snapshot()[child.id] == (parent.id,)


def test_empty_world_keeps_ticking():
    sim = _seeded(population=0)
    for _ in range(10):
        metrics = sim.step()
    assert metrics.population == 0
    assert metrics.diversity == 0.0
    assert sim.species_snapshot() == ()


def test_food_is_replenished_when_scarce():
    cfg = SimConfig(initial_food=300)
    sim = _seeded(cfg, population=0)
    sim.food.trim_oldest(250)

    sim.run(5)

    assert len(sim.food) == 50 + 90


def test_organisms_near_filters_exact_distance():
    sim = _seeded(population=10)
    sim.step()
    target = sim.organisms[0]
    sim._rebuild_organism_index()

    near = sim.organisms_near(target.x, target.y, 0.5)
    assert target in near
    assert all(math.hypot(o.x - target.x, o.y - target.y) <= 0.5 for o in near)


def test_snapshots_are_detached_from_live_state():
    sim = _seeded(population=3)
    snap = sim.organisms_snapshot()
    sim.organisms[0].energy = -1.0
    assert snap[0].energy != -1.0

    species_before = sim.species_snapshot()
    sim.step()
    assert species_before == ()


def test_trait_epoch_model_mode():
    cfg = SimConfig(epoch_model="traits")
    sim = _seeded(cfg)
    metrics = sim.step()
    assert metrics.epoch == "Bacteria"
    assert metrics.oxygen == 0.0


def test_extinction_trims_ten_percent_of_food():
    sim = _seeded(SimConfig(extinction_food_trim_prob=1.0))
    assert len(sim.food) == 300

    sim._apply_extinction(ExtinctionEvent(0, "Calm", 0.0, "no deaths"))
    assert len(sim.food) == 270


def test_extinction_leaves_small_food_supply_alone():
    sim = _seeded(SimConfig(extinction_food_trim_prob=1.0))
    sim.food.trim_oldest(250)

    sim._apply_extinction(ExtinctionEvent(0, "Calm", 0.0, "no deaths"))
    assert len(sim.food) == 50


def test_ice_age_trims_five_percent_of_food():
    sim = _seeded(SimConfig(ice_age_food_trim_prob=1.0))
    sim._apply_ice_age()
    assert len(sim.food) == 285

    sim.food.trim_oldest(len(sim.food) - 30)
    sim._apply_ice_age()
    assert len(sim.food) == 30


def test_hand_placed_organism_is_clamped_into_the_index():
    sim = _seeded(population=0)
    stray = Organism(sim._allocate_id(), -5.0, 200.0, [0.0] * 12)
    sim.organisms.append(stray)
    sim._rebuild_organism_index()

    assert (stray.x, stray.y) == (0.0, sim.config.world_height)
    assert sim.organisms_near(0.0, sim.config.world_height, 1.0) == [stray]
