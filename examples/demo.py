"""Demo script for monocle-engine."""

import sys
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from monocle_engine.adapters.csv_adapter import parse_threads
from monocle_engine.adapters.json_adapter import parse_activities
from monocle_engine.schema import ensure_aware
from monocle_engine.services import IntelligenceService
from monocle_engine.stores import InMemoryStore


def main() -> None:
    store = InMemoryStore()
    for thread in parse_threads("examples/sample_threads.csv"):
        store.save_thread(thread)
    for activity in parse_activities("examples/sample_activities.json"):
        store.record_activity(activity)

    now = ensure_aware(datetime.fromisoformat("2025-03-10T10:00:00"))
    service = IntelligenceService(store, generator=None, clock=lambda: now)

    for rec in service.generate_recommendations("demo"):
        print(f"{rec.score:3d}  {rec.thread_id}  {rec.reasoning.title}")
    print("Cognitive load:", service.calculate_cognitive_load("demo").to_dict())
    for insight in service.generate_insights("demo"):
        print(f"[{insight.severity}] {insight.title}")


if __name__ == "__main__":
    main()
