import json
import sqlite3

import pytest

pytest.importorskip("numpy")

from evoverse.config import SimConfig
from evoverse.simulation import Simulation
from evoverse.telemetry import TelemetryRecorder


def _make_recorder(tmp_path, interval=1):
    return TelemetryRecorder(
        "test_run",
        base_seed=123,
        world_size=(160, 120),
        snapshot_interval=interval,
        base_path=tmp_path,
    )


def test_simulation_streams_metrics_and_events(tmp_path):
    recorder = _make_recorder(tmp_path, interval=5)
    sim = Simulation(SimConfig(), telemetry=recorder)
    sim.seed(rng_seed=123)
    sim.run(20)
    recorder.close()

    conn = sqlite3.connect(recorder.db_path)
    ticks = [r[0] for r in conn.execute("SELECT tick FROM metrics ORDER BY tick")]
    kinds = [r[0] for r in conn.execute("SELECT kind FROM events")]
    founder = conn.execute("SELECT data FROM events WHERE kind='species' ORDER BY tick LIMIT 1").fetchone()[0]
    species_rows = conn.execute("SELECT species_id, founded_tick, notes FROM species ORDER BY species_id").fetchall()
    conn.close()

    assert ticks == [5, 10, 15, 20]
    assert "species" in kinds
    assert json.loads(founder)["species_id"] == 1
    assert species_rows[0] == (1, 1, "Primitive anaerobic bacteria")


def test_forced_metrics_row_ignores_interval(tmp_path):
    recorder = _make_recorder(tmp_path, interval=50)
    sim = Simulation(SimConfig())
    sim.seed(rng_seed=1)
    snapshot = sim.step()

    assert not recorder.record_metrics(snapshot)
    assert recorder.record_metrics(snapshot, force=True)

    conn = sqlite3.connect(recorder.db_path)
    row = conn.execute("SELECT population, epoch FROM metrics WHERE tick=1").fetchone()
    conn.close()
    recorder.close()

    assert row == (snapshot.population, "Archaean")


def test_reused_run_id_starts_clean(tmp_path):
    counts = []
    for _ in range(2):
        recorder = _make_recorder(tmp_path, interval=1)
        sim = Simulation(SimConfig(), telemetry=recorder)
        sim.seed(rng_seed=7)
        sim.run(5)
        recorder.close()

        conn = sqlite3.connect(recorder.db_path)
        counts.append(
            tuple(conn.execute(f"SELECT COUNT(*) FROM {t}").fetchone()[0] for t in ("metrics", "events", "species"))
        )
        conn.close()

    assert counts[0] == counts[1]
    assert counts[1][0] == 5
