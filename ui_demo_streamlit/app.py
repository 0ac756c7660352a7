"""Streamlit demo UI for monocle-engine."""

from __future__ import annotations

import tempfile
from collections import Counter
from datetime import datetime, time
from pathlib import Path
from typing import Any

from monocle_engine.adapters import csv_adapter, json_adapter
from monocle_engine.schema import ensure_aware
from monocle_engine.scoring import priority_score
from monocle_engine.services import IntelligenceService
from monocle_engine.stores import InMemoryStore

LEVEL_COLORS = {"low": "green", "medium": "blue", "high": "orange", "critical": "red"}


def _adapter_for(file_path: str):
    suffix = Path(file_path).suffix.lower()
    if suffix == ".csv":
        return csv_adapter
    if suffix == ".json":
        return json_adapter
    raise ValueError("Unsupported file type. Please use .csv or .json")


def _save_uploaded(uploaded_file) -> str:
    suffix = Path(uploaded_file.name).suffix.lower()
    with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as handle:
        handle.write(uploaded_file.getbuffer())
        return handle.name


def _build_summary(threads: list) -> dict[str, Any]:
    priority_counts = Counter(thread.priority for thread in threads)
    return {
        "total_threads": len(threads),
        "ignored": sum(1 for thread in threads if thread.is_ignored),
        "with_deadline": sum(1 for thread in threads if thread.deadline is not None),
        "priority_counts": {p: priority_counts.get(p, 0) for p in ("high", "medium", "low")},
    }


def run_engine(threads: list, activities: list, user_id: str, now: datetime) -> dict[str, Any]:
    """Run all engine steps and return a UI-friendly result payload."""

    store = InMemoryStore()
    for thread in threads:
        store.save_thread(thread)
    for activity in activities:
        store.record_activity(activity)
    service = IntelligenceService(store, generator=None, clock=lambda: now)

    return {
        "summary": _build_summary([t for t in threads if t.user_id == user_id]),
        "scores": [
            {"thread": t.title, "priority": t.priority, "progress": t.progress, "score": priority_score(t, now)}
            for t in store.get_user_threads(user_id)
        ],
        "recommendations": service.generate_recommendations(user_id),
        "load": service.calculate_cognitive_load(user_id),
        "insights": service.generate_insights(user_id),
    }


def main() -> None:
    import streamlit as st

    st.set_page_config(page_title="Monocle Engine Demo", layout="wide")
    st.title("Monocle Engine: Streamlit Demo")

    with st.sidebar:
        st.header("Controls")
        uploaded_threads = st.file_uploader("Upload threads", type=["csv", "json"])
        uploaded_activities = st.file_uploader("Upload activity log", type=["csv", "json"])
        use_demo = st.checkbox("Load demo dataset", value=True)
        user_id = st.text_input("User id", value="demo")
        now_date = st.date_input("Score as of date", value=datetime(2025, 3, 10).date())
        now_time = st.time_input("Score as of time", value=time(10, 0))
        run = st.button("Run engine", type="primary")

    if not run:
        st.info("Configure inputs in the sidebar and click **Run engine**.")
        return

    try:
        if use_demo:
            threads = csv_adapter.parse_threads("examples/sample_threads.csv")
            activities = json_adapter.parse_activities("examples/sample_activities.json")
        elif uploaded_threads is not None:
            path = _save_uploaded(uploaded_threads)
            threads = _adapter_for(path).parse_threads(path)
            activities = []
            if uploaded_activities is not None:
                activity_path = _save_uploaded(uploaded_activities)
                activities = _adapter_for(activity_path).parse_activities(activity_path)
        else:
            st.error("Please upload a threads file or enable 'Load demo dataset'.")
            return

        if not threads:
            st.error("No threads were found in the selected input.")
            return

        now = ensure_aware(datetime.combine(now_date, now_time))
        result = run_engine(threads, activities, user_id, now)

        st.subheader("A) Thread Summary")
        summary = result["summary"]
        c1, c2, c3 = st.columns(3)
        c1.metric("Threads", summary["total_threads"])
        c2.metric("Ignored", summary["ignored"])
        c3.metric("With deadline", summary["with_deadline"])
        st.table([summary["priority_counts"]])

        st.subheader("B) Priority Scores")
        st.table(result["scores"])

        st.subheader("C) Recommendations")
        if not result["recommendations"]:
            st.write("No thread scores 50 or more right now.")
        for rec in result["recommendations"]:
            st.markdown(f"**{rec.score}** - {rec.reasoning.title}: {rec.reasoning.description}")
            for factor in rec.reasoning.factors:
                st.caption(f"{factor.label} ({factor.weight}): {factor.description}")

        st.subheader("D) Cognitive Load")
        load = result["load"]
        l1, l2 = st.columns(2)
        l1.metric("score", f"{load.score:.1f}")
        l2.markdown(f"level: :{LEVEL_COLORS[load.level]}[**{load.level}**]")
        st.progress(min(1.0, load.score / 100.0))
        st.table([load.factors.to_dict()])

        st.subheader("E) Insights")
        for insight in result["insights"]:
            st.write(f"[{insight.severity}] {insight.title}: {insight.description}")

    except ValueError as exc:
        st.error(f"Input error: {exc}")
    except Exception:
        st.error("Something went wrong while running the demo. Please verify the input format.")


if __name__ == "__main__":
    main()
