import pytest

pytest.importorskip("numpy")
pytest.importorskip("matplotlib")

from evoverse.config import SimConfig
from evoverse.reporting import generate_report
from evoverse.simulation import Simulation
from evoverse.telemetry import TelemetryRecorder


def test_generate_report_creates_files(tmp_path):
    recorder = TelemetryRecorder(
        "report_run",
        base_seed=99,
        world_size=(160, 120),
        snapshot_interval=1,
        base_path=tmp_path,
    )
    sim = Simulation(SimConfig(), telemetry=recorder)
    sim.seed(rng_seed=99)
    sim.run(10)
    recorder.close()

    report_path = generate_report(recorder.db_path, recorder.run_dir)

    assert report_path.exists()
    charts_dir = recorder.run_dir / "charts"
    assert (charts_dir / "population.png").exists()
    assert (charts_dir / "diversity.png").exists()
    assert (charts_dir / "events.png").exists()
    assert "Run summary" in report_path.read_text(encoding="utf-8")
    html = report_path.read_text(encoding="utf-8")
    assert "Final state" in html
    assert "Archaean (from tick 1)" in html


def test_extinction_onsets_and_epoch_spans():
    from evoverse.reporting import _epoch_spans, _extinction_onsets

    metrics = [
        {"tick": 1, "epoch": "Permian", "extinction_event": None},
        {"tick": 2, "epoch": "Permian", "extinction_event": "Permian-Triassic"},
        {"tick": 3, "epoch": "Triassic", "extinction_event": "Permian-Triassic"},
        {"tick": 4, "epoch": "Triassic", "extinction_event": None},
    ]
    assert _extinction_onsets(metrics) == [2]
    assert _epoch_spans(metrics) == [("Permian", 1), ("Triassic", 3)]
