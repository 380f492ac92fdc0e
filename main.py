import argparse
import datetime as _dt
import logging

from evoverse.config import SimConfig
from evoverse.simulation import Simulation
from evoverse.timeline import format_year

logger = logging.getLogger("evoverse")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run a headless EvoVerse simulation.")
    parser.add_argument("--ticks", type=int, default=2000)
    parser.add_argument("--population", type=int, default=30)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--sexual", action="store_true", help="use batch sexual reproduction")
    parser.add_argument("--telemetry-dir", default=None, help="write a SQLite telemetry database here")
    parser.add_argument("--report", action="store_true", help="render charts after the run")
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def make_run_id(seed):
    stamp = _dt.datetime.now(_dt.timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    return f"{stamp}_{seed}"


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(name)s %(levelname)s %(message)s")

    config = SimConfig(initial_population=args.population, seed=args.seed)
    sim = Simulation(config)
    sim.seed()

    recorder = None
    if args.telemetry_dir is not None:
        from evoverse.telemetry import TelemetryRecorder

        recorder = TelemetryRecorder(
            make_run_id(sim.base_seed),
            base_seed=sim.base_seed,
            world_size=(config.world_width, config.world_height),
            base_path=args.telemetry_dir,
        )
        sim.telemetry = recorder

    for _ in range(args.ticks):
        sim.step(sexual=args.sexual)
        if not sim.organisms:
            logger.info("Population went extinct at tick %d", sim.tick)
            break

    latest = sim.stats.latest
    if latest is not None:
        logger.info(
            "Finished at %s (%s): population=%d food=%d species=%d diversity=%.3f",
            format_year(latest.year),
            latest.epoch,
            latest.population,
            latest.food,
            latest.species_count,
            latest.diversity,
        )

    if recorder is not None:
        if latest is not None:
            recorder.record_metrics(latest, force=True)
        recorder.close()
        if args.report:
            from evoverse.reporting import generate_report

            path = generate_report(recorder.db_path, recorder.run_dir)
            logger.info("Report written to %s", path)
        return recorder.db_path
    return None


if __name__ == "__main__":
    main()
