from __future__ import annotations

import sqlite3
from collections import Counter
from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt


class ReportGenerator:
    def __init__(self, db_path: Path, output_dir: Path) -> None:
        self.db_path = Path(db_path)
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        (self.output_dir / "charts").mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------ #
    def load_data(self):
        conn = sqlite3.connect(self.db_path)
        cur = conn.cursor()
        cur.execute("SELECT * FROM metrics ORDER BY tick ASC")
        metric_rows = cur.fetchall()
        metric_cols = [d[0] for d in cur.description]

        cur.execute("SELECT tick, kind FROM events ORDER BY tick ASC")
        events = cur.fetchall()

        cur.execute("SELECT * FROM run_meta")
        run_meta = cur.fetchone()
        meta_cols = [d[0] for d in cur.description]
        conn.close()

        metrics = [dict(zip(metric_cols, row)) for row in metric_rows]
        meta = dict(zip(meta_cols, run_meta)) if run_meta else {}
        return metrics, events, meta

    # ------------------------------------------------------------------ #
    def plot_population(self, metrics):
        if not metrics:
            return None
        ticks = [m["tick"] for m in metrics]

        fig, ax = plt.subplots(figsize=(8, 4))
        ax.plot(ticks, [m["population"] for m in metrics], label="Population", color="#4e79a7")
        ax.plot(ticks, [m["food"] for m in metrics], label="Food", color="#59a14f", alpha=0.7)
        for tick in _extinction_onsets(metrics):
            ax.axvline(tick, color="#e15759", linestyle="--", linewidth=1)
        ax.set_xlabel("Tick")
        ax.set_ylabel("Count")
        ax.legend()
        path = self.output_dir / "charts" / "population.png"
        fig.tight_layout()
        fig.savefig(path)
        plt.close(fig)
        return path

    def plot_diversity(self, metrics):
        if not metrics:
            return None
        ticks = [m["tick"] for m in metrics]

        fig, ax = plt.subplots(figsize=(8, 4))
        ax.plot(ticks, [m["diversity"] for m in metrics], label="Diversity", color="#f28e2b")
        ax.set_xlabel("Tick")
        ax.set_ylabel("Mean genetic distance")
        ax2 = ax.twinx()
        ax2.plot(ticks, [m["species_count"] for m in metrics], label="Species", color="#76b7b2")
        ax2.set_ylabel("Species")
        path = self.output_dir / "charts" / "diversity.png"
        fig.tight_layout()
        fig.savefig(path)
        plt.close(fig)
        return path

    def plot_event_counts(self, events):
        if not events:
            return None
        counts = Counter(kind for _, kind in events)
        labels = list(counts)

        fig, ax = plt.subplots(figsize=(5, 4))
        ax.bar(labels, [counts[k] for k in labels], color="#9c755f", edgecolor="black")
        ax.set_title("Events by kind")
        path = self.output_dir / "charts" / "events.png"
        fig.tight_layout()
        fig.savefig(path)
        plt.close(fig)
        return path

    def write_html(self, meta, charts, metrics=()):
        html_path = self.output_dir / "summary.html"
        parts = ["<html><head><title>EvoVerse Run Report</title></head><body>"]
        parts.append("<h1>Run summary</h1>")
        parts.append("<ul>")
        for key, value in meta.items():
            parts.append(f"<li><b>{key}</b>: {value}</li>")
        parts.append("</ul>")

        if metrics:
            last = metrics[-1]
            parts.append("<h2>Final state</h2><table>")
            for key in ("tick", "epoch", "population", "food", "species_count", "diversity"):
                parts.append(f"<tr><td>{key}</td><td>{last[key]}</td></tr>")
            parts.append("</table>")

            parts.append("<h2>Epochs reached</h2><ol>")
            for epoch, first_tick in _epoch_spans(metrics):
                parts.append(f"<li>{epoch} (from tick {first_tick})</li>")
            parts.append("</ol>")

        for title, path in charts:
            if path is None:
                continue
            rel = Path("charts") / Path(path).name
            parts.append(f"<h2>{title}</h2><img src='{rel}' alt='{title}' style='max-width: 100%;'>")

        parts.append("</body></html>")
        html_path.write_text("\n".join(parts), encoding="utf-8")
        return html_path

    def generate(self):
        metrics, events, meta = self.load_data()
        charts = [
            ("Population and food over time", self.plot_population(metrics)),
            ("Diversity and species over time", self.plot_diversity(metrics)),
            ("Events by kind", self.plot_event_counts(events)),
        ]
        return self.write_html(meta, charts, metrics)


def _extinction_onsets(metrics):
    """Ticks where an extinction window opens."""
    onsets = []
    previous = None
    for m in metrics:
        current = m.get("extinction_event")
        if current and current != previous:
            onsets.append(m["tick"])
        previous = current
    return onsets


def _epoch_spans(metrics):
    spans = []
    for m in metrics:
        if not spans or spans[-1][0] != m["epoch"]:
            spans.append((m["epoch"], m["tick"]))
    return spans


def generate_report(db_path: Path, output_dir: Path) -> Path:
    generator = ReportGenerator(db_path, output_dir)
    return generator.generate()


__all__ = ["generate_report", "ReportGenerator"]
