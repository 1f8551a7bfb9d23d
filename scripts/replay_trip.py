from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from triptrack.io.location_source import ReplayLocationSource, read_fixes
from triptrack.metrics.stats import format_distance, format_duration, format_speed
from triptrack.output.sinks import SampleSinks
from triptrack.pipeline.config import TrackingConfig
from triptrack.pipeline.engine import TrackingEngine
from triptrack.utils.config import load_yaml, resolve_path, section
from triptrack.utils.logging import setup_logging


def main() -> None:
    ap = argparse.ArgumentParser(description="Replay a recorded GPS fix file through the tracking engine")
    ap.add_argument("--fixes", required=True, help="CSV, JSONL or JSON file of recorded fixes")
    ap.add_argument("--config", default="configs/tracking.yaml", help="Tracking YAML")
    ap.add_argument("--speedup", type=float, default=0.0, help="Replay speed multiplier; 0 replays as fast as possible")
    ap.add_argument("--summary-json", default=None, help="Optional path to write the trip summary as JSON")
    ap.add_argument("--log-level", default="INFO")
    ap.add_argument("--log-file", default=None)
    args = ap.parse_args()

    base_dir = os.getcwd()
    setup_logging(level=args.log_level, log_file=args.log_file)

    raw = load_yaml(resolve_path(args.config, base_dir))
    tracking = section(raw, "tracking") if "tracking" in raw else raw
    cfg = TrackingConfig.from_dict(tracking)
    sinks = SampleSinks.from_dict(section(raw, "output"), base_dir)

    source = ReplayLocationSource(read_fixes(resolve_path(args.fixes, base_dir)))
    with TrackingEngine(cfg, source, sinks=sinks) as engine:
        engine.start()
        source.play(speedup=args.speedup)
        summary = engine.stop()

    print(
        f"distance={format_distance(summary.distance_km)} moving={format_duration(summary.moving_time_s)} "
        f"max={format_speed(summary.max_speed_kmh)} avg={format_speed(summary.avg_speed_kmh)} "
        f"path_points={len(summary.path)} unsnapped={summary.unsnapped_points}"
    )
    if args.summary_json:
        out = Path(resolve_path(args.summary_json, base_dir))
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(summary.to_dict(), indent=2), encoding="utf-8")


if __name__ == "__main__":
    main()
