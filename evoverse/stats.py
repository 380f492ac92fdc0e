# evoverse/stats.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, List


# ----------------------------------------------------------------------
# Per-tick metrics record
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class MetricsSnapshot:
    tick: int
    year: float
    epoch: str
    oxygen: float

    population: int
    food: int
    avg_size: float
    avg_energy: float
    diversity: float
    species_count: int

    # Evolutionary progress
    avg_oxygen_tolerance: float
    avg_land_adaptation: float

    # Environmental overlays (names, or None when inactive)
    extinction_event: str | None
    ice_age: str | None


# ----------------------------------------------------------------------
# Discrete events
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class SimEvent:
    """
    One entry of the event log. `kind` is "species", "epoch",
    "extinction" or "ice_age"; `data` holds kind-specific fields.
    """
    kind: str
    tick: int
    year: float
    epoch: str
    data: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return asdict(self)


# ----------------------------------------------------------------------
# Time series over the run
# ----------------------------------------------------------------------
@dataclass
class EvolutionStats:
    """
    Collects one MetricsSnapshot per tick and the discrete event log.
    `max_history_len=None` keeps the whole run.
    """
    history: List[MetricsSnapshot] = field(default_factory=list)
    events: List[SimEvent] = field(default_factory=list)
    max_history_len: int | None = None

    latest: MetricsSnapshot | None = None

    def reset(self) -> None:
        self.history.clear()
        self.events.clear()
        self.latest = None

    def latest_as_dict(self) -> dict | None:
        if self.latest is None:
            return None
        return asdict(self.latest)

    def history_as_dicts(self) -> list[dict]:
        return [asdict(s) for s in self.history]

    def events_as_dicts(self) -> list[dict]:
        return [e.as_dict() for e in self.events]

    def record(self, snapshot: MetricsSnapshot) -> None:
        self.latest = snapshot
        self.history.append(snapshot)
        if self.max_history_len is not None and len(self.history) > self.max_history_len:
            self.history.pop(0)

    def log_event(self, event: SimEvent) -> None:
        self.events.append(event)

    def events_of(self, kind: str) -> list[SimEvent]:
        return [e for e in self.events if e.kind == kind]


def average(values) -> float:
    vals = list(values)
    return float(sum(vals) / len(vals)) if vals else 0.0


__all__ = ["MetricsSnapshot", "SimEvent", "EvolutionStats", "average"]
