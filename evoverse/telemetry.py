from __future__ import annotations

import datetime as _dt
import json
import sqlite3
from dataclasses import asdict
from pathlib import Path
from typing import Iterable

from .stats import MetricsSnapshot, SimEvent

METRIC_COLUMNS = (
    "tick",
    "year",
    "epoch",
    "oxygen",
    "population",
    "food",
    "avg_size",
    "avg_energy",
    "diversity",
    "species_count",
    "avg_oxygen_tolerance",
    "avg_land_adaptation",
    "extinction_event",
    "ice_age",
)


class TelemetryRecorder:
    """
    Writes one run to SQLite: run metadata, per-tick metrics on the snapshot
    interval, every simulation event, and a species table fed by speciation
    events.
    """

    def __init__(
        self,
        run_id: str,
        *,
        base_seed: int | None,
        world_size: tuple[float, float],
        snapshot_interval: int = 10,
        base_path: str | Path = "reports",
    ) -> None:
        self.run_id = run_id
        self.snapshot_interval = max(1, snapshot_interval)
        self.base_seed = base_seed
        self.world_size = world_size

        self.base_path = Path(base_path)
        self.run_dir = self.base_path / f"run_{self.run_id}"
        self.run_dir.mkdir(parents=True, exist_ok=True)
        self.db_path = self.run_dir / f"run_{self.run_id}.sqlite"

        self._conn = sqlite3.connect(self.db_path)
        self._init_db()

    # ------------------------------------------------------------------ #
    # Database schema
    # ------------------------------------------------------------------ #
    def _init_db(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS run_meta (
                run_id TEXT PRIMARY KEY,
                seed INTEGER,
                world_width REAL,
                world_height REAL,
                start_time TEXT
            )
            """
        )
        cur.execute(
            """
            INSERT OR REPLACE INTO run_meta(run_id, seed, world_width, world_height, start_time)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                self.run_id,
                self.base_seed,
                self.world_size[0],
                self.world_size[1],
                _dt.datetime.now(_dt.timezone.utc).isoformat(),
            ),
        )

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS metrics (
                tick INTEGER PRIMARY KEY,
                year REAL,
                epoch TEXT,
                oxygen REAL,
                population INTEGER,
                food INTEGER,
                avg_size REAL,
                avg_energy REAL,
                diversity REAL,
                species_count INTEGER,
                avg_oxygen_tolerance REAL,
                avg_land_adaptation REAL,
                extinction_event TEXT,
                ice_age TEXT
            )
            """
        )

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS events (
                tick INTEGER,
                year REAL,
                epoch TEXT,
                kind TEXT,
                data TEXT
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS species (
                species_id INTEGER PRIMARY KEY,
                founded_tick INTEGER,
                founded_year REAL,
                notes TEXT,
                distance REAL,
                prototype TEXT
            )
            """
        )
        # A reused run id starts from empty tables
        for table in ("metrics", "events", "species"):
            cur.execute(f"DELETE FROM {table}")
        self._conn.commit()

    # ------------------------------------------------------------------ #
    # Recording
    # ------------------------------------------------------------------ #
    def record_metrics(self, snapshot: MetricsSnapshot, *, force: bool = False) -> bool:
        """Store one metrics row; ticks off the snapshot interval are skipped unless forced."""
        if not force and snapshot.tick % self.snapshot_interval != 0:
            return False
        row = asdict(snapshot)
        placeholders = ", ".join("?" for _ in METRIC_COLUMNS)
        cur = self._conn.cursor()
        cur.execute(
            f"INSERT OR REPLACE INTO metrics({', '.join(METRIC_COLUMNS)}) VALUES ({placeholders})",
            tuple(row[c] for c in METRIC_COLUMNS),
        )
        self._conn.commit()
        return True

    def log_events(self, events: Iterable[SimEvent]) -> None:
        events = list(events)
        if not events:
            return
        cur = self._conn.cursor()
        cur.executemany(
            "INSERT INTO events(tick, year, epoch, kind, data) VALUES (?, ?, ?, ?, ?)",
            [(e.tick, e.year, e.epoch, e.kind, json.dumps(e.data)) for e in events],
        )
        founded = [e for e in events if e.kind == "species"]
        if founded:
            cur.executemany(
                "INSERT OR REPLACE INTO species(species_id, founded_tick, founded_year, notes, distance, prototype) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                [
                    (
                        e.data["species_id"],
                        e.tick,
                        e.year,
                        e.data.get("notes", ""),
                        e.data.get("distance"),
                        json.dumps(e.data.get("prototype", [])),
                    )
                    for e in founded
                ],
            )
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()


__all__ = ["TelemetryRecorder", "METRIC_COLUMNS"]
