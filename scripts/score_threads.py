"""Score threads and cognitive load from CSV/JSON exports."""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from monocle_engine.adapters import csv_adapter, json_adapter
from monocle_engine.config import configure_logging, get_settings
from monocle_engine.schema import ensure_aware
from monocle_engine.services import IntelligenceService, local_now
from monocle_engine.stores import InMemoryStore
from monocle_engine.text_generation import build_text_generator


def _adapter(path: Path):
    suffix = path.suffix.lower()
    if suffix == ".csv":
        return csv_adapter
    if suffix == ".json":
        return json_adapter
    raise ValueError("Unsupported input format, expected .csv or .json")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run monocle-engine scoring over exported data")
    parser.add_argument("--threads", required=True, help="Path to CSV/JSON threads file")
    parser.add_argument("--activities", help="Path to CSV/JSON activity log")
    parser.add_argument("--user", required=True, help="User id to score")
    parser.add_argument("--now", help="ISO timestamp to score against (default: current time)")
    parser.add_argument("--ai", action="store_true", help="Use configured text providers for explanations")
    parser.add_argument("--out", help="Also write the report to this JSON file")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level)

    store = InMemoryStore()
    threads_path = Path(args.threads)
    for thread in _adapter(threads_path).parse_threads(str(threads_path)):
        store.save_thread(thread)
    if args.activities:
        activities_path = Path(args.activities)
        for activity in _adapter(activities_path).parse_activities(str(activities_path)):
            store.record_activity(activity)

    now = ensure_aware(datetime.fromisoformat(args.now)) if args.now else local_now()
    generator = build_text_generator(settings) if args.ai else None
    service = IntelligenceService(store, generator=generator, clock=lambda: now)

    report = {
        "recommendations": [r.to_dict() for r in service.generate_recommendations(args.user)],
        "cognitiveLoad": service.calculate_cognitive_load(args.user).to_dict(),
        "insights": [i.to_dict() for i in service.generate_insights(args.user)],
    }
    print(json.dumps(report, indent=2))

    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(report, indent=2), encoding="utf-8")
        print(f"Saved report to {out_path}")


if __name__ == "__main__":
    main()
