#!/usr/bin/env python3
"""
Drive cars down a corridor of roads, park them, and report analytics.

Every car starts on the first road and ends on the last one, either
stopping at a random point or parking near a building. After the run the
analytics are summarized into a JSON report and pickled for later
inspection.

Usage:
    python -m scripts.run_simulation --config configs/demo.yaml
    python -m scripts.run_simulation --config configs/demo.yaml --cars 500 -v

Outputs (in the output directory):
    report.json         Summary metrics, throughput, delays, parking overhead
    trips.csv           One row per finished or aborted trip
    analytics.pkl       Saved Analytics, see Analytics.load_for_inspection
    config_used.yaml    The configuration after CLI overrides
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import numpy as np
import yaml

from src.simulation import (
    Analytics,
    SimpleMap,
    SimulationConfig,
    SimulationResult,
    create_demo_map,
)
from src.simulation import run_simulation as run_engine

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def load_config(config_path: Path) -> dict[str, Any]:
    """Read a YAML scenario; an empty file is an empty scenario."""
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def setup_logging(config: dict[str, Any], verbose: bool = False) -> None:
    """Log to stderr, and to a file if the scenario names one."""
    log_settings = config.get("logging", {})
    level_name = "DEBUG" if verbose else log_settings.get("level", "INFO")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_settings.get("file"):
        log_path = Path(log_settings["file"])
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    logging.basicConfig(level=getattr(logging, level_name), format=LOG_FORMAT, handlers=handlers)


def create_network(config: dict[str, Any]) -> SimpleMap:
    """Build the corridor described by the ``network`` section."""
    network = config.get("network", {})
    return create_demo_map(
        n_roads=network.get("n_roads", 3),
        road_length=network.get("road_length_m", 100.0),
        parking_length=network.get("parking_length_m"),
    )


def create_departures(
    config: dict[str, Any],
    n_cars: int,
    rng: np.random.Generator,
) -> list[dict[str, Any]]:
    """
    Draw one departure per car from the ``demand`` section.

    Departure times are uniform over the departure window. A
    ``park_fraction`` share of cars park near a random building; the rest
    stop somewhere along the last road.
    """
    demand = config.get("demand", {})
    network = config.get("network", {})

    last_road = network.get("n_roads", 3) - 1
    road_length = network.get("road_length_m", 100.0)
    window = demand.get("departure_window_seconds", 600.0)
    park_fraction = demand.get("park_fraction", 0.5)

    departures = []
    for car in range(n_cars):
        departure: dict[str, Any] = {
            "trip_id": car,
            "car_id": car,
            "time": float(rng.uniform(0, window)),
            "from_road": 0,
            "to_road": last_road,
        }
        if rng.random() < park_fraction:
            departure["park_near"] = int(rng.integers(0, 100))
        else:
            # Stay clear of both ends of the lane
            departure["end_dist"] = float(rng.uniform(1.0, road_length - 1.0))
        departures.append(departure)
    return departures


def build_report(
    result: SimulationResult, analytics: Analytics, sim_map: SimpleMap
) -> dict[str, Any]:
    """Summarize a finished run as JSON-friendly data."""
    config = result.config
    now = result.end_time
    last_road = max(sim_map.roads)

    throughput = analytics.throughput_road(now, last_road, config.throughput_window_seconds)
    delays = {
        intersection: [
            (bucket_end, histogram.describe())
            for bucket_end, histogram in analytics.intersection_delays_bucketized(
                now, intersection, config.delay_bucket_seconds
            )
        ]
        for intersection in range(1, last_road + 1)
    }

    return {
        "metrics": result.metrics,
        "throughput_last_road": {mode.name.lower(): pts[-1][1] for mode, pts in throughput.items()},
        "intersection_delays": delays,
        "parking_overhead": analytics.analyze_parking_phases(),
    }


def run_simulation(
    config: dict[str, Any],
    n_cars: int,
    seed: int,
    output_dir: Path,
    duration_seconds: float,
) -> dict[str, Any]:
    """Run one scenario end to end, save everything and return the report."""
    settings = config.get("simulation", {})
    sim_config = SimulationConfig(
        **{key: value for key, value in settings.items() if key in SimulationConfig.__dataclass_fields__}
    )
    sim_config.duration_seconds = duration_seconds
    sim_config.random_seed = seed

    sim_map = create_network(config)
    departures = create_departures(config, n_cars, np.random.default_rng(seed))
    logger.info(
        f"Running '{settings.get('name', 'unnamed')}': {n_cars} cars on "
        f"{len(sim_map.roads)} roads for up to {duration_seconds}s (seed {seed})"
    )

    result, engine = run_engine(sim_config, sim_map, departures)
    logger.info(f"Stopped at {result.end_time:.0f}s after {result.duration_seconds:.1f}s wall clock")

    report = build_report(result, engine.analytics, sim_map)
    save_results(result, engine.analytics, report, config, output_dir)
    return report


def save_results(
    result: SimulationResult,
    analytics: Analytics,
    report: dict[str, Any],
    config: dict[str, Any],
    output_dir: Path,
) -> None:
    """Write the report, trip table, analytics snapshot and config."""
    output_dir.mkdir(parents=True, exist_ok=True)
    output = config.get("output", {})

    with open(output_dir / "report.json", "w") as f:
        json.dump(report, f, indent=2, default=str)

    if output.get("save_raw_data", True) and not result.raw_data.empty:
        result.raw_data.to_csv(output_dir / "trips.csv", index=False)

    if output.get("save_analytics", True):
        analytics.save(output_dir / "analytics.pkl")

    with open(output_dir / "config_used.yaml", "w") as f:
        yaml.safe_dump(config, f, default_flow_style=False)

    logger.info(f"Results written to {output_dir}")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the corridor parking simulation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--config", type=Path, required=True, help="Scenario YAML file")
    parser.add_argument("--cars", type=int, help="Number of cars (overrides demand.n_cars)")
    parser.add_argument("--seed", type=int, help="Random seed (overrides simulation.random_seed)")
    parser.add_argument("--duration", type=float, help="Simulated seconds (overrides simulation.duration_seconds)")
    parser.add_argument("--output-dir", type=Path, help="Where to write results (overrides output.directory)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log at DEBUG level")
    parser.add_argument("--dry-run", action="store_true", help="Print the resolved scenario and exit")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except (FileNotFoundError, yaml.YAMLError) as e:
        print(f"Error loading {args.config}: {e}", file=sys.stderr)
        return 1

    setup_logging(config, args.verbose)

    settings = config.get("simulation", {})
    n_cars = args.cars if args.cars is not None else config.get("demand", {}).get("n_cars", 100)
    seed = args.seed if args.seed is not None else settings.get("random_seed", 42)
    duration = args.duration if args.duration is not None else settings.get("duration_seconds", 3600.0)
    output_dir = args.output_dir or Path(config.get("output", {}).get("directory", "results/simulation"))

    if args.dry_run:
        print(f"{n_cars} cars, seed {seed}, {duration}s, output to {output_dir}\n")
        print(yaml.safe_dump(config, default_flow_style=False))
        return 0

    try:
        report = run_simulation(config, n_cars, seed, output_dir, duration)
    except KeyboardInterrupt:
        print("\nSimulation interrupted by user.")
        return 130

    metrics = report["metrics"]
    print(f"Finished trips: {metrics['total_trips']}, aborted: {metrics['aborted_trips']}")
    print(f"Trip duration: {metrics['trip_duration']}")
    print("\n".join(report["parking_overhead"]))
    return 0


if __name__ == "__main__":
    sys.exit(main())
