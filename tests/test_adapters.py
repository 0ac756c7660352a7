import json

import pytest

from monocle_engine.adapters.csv_adapter import parse_activities as parse_csv_activities
from monocle_engine.adapters.csv_adapter import parse_threads as parse_csv_threads
from monocle_engine.adapters.json_adapter import parse_activities as parse_json_activities
from monocle_engine.adapters.json_adapter import parse_threads as parse_json_threads


def test_csv_threads_parse_success(tmp_path):
    path = tmp_path / "threads.csv"
    path.write_text(
        "id,user_id,title,priority,progress,deadline,is_ignored,created_at,tags\n"
        "t1,u1,Deck,high,30,2025-03-11T09:00:00,false,2025-03-01T09:00:00,finance;slides\n"
        "t2,u1,Expenses,low,,,yes,2025-03-02T09:00:00,\n",
        encoding="utf-8",
    )
    threads = parse_csv_threads(str(path))
    assert len(threads) == 2
    assert threads[0].tags == ["finance", "slides"]
    assert threads[0].deadline is not None and threads[0].deadline.tzinfo is not None
    assert threads[0].last_activity == threads[0].created_at
    assert threads[1].progress == 0
    assert threads[1].deadline is None
    assert threads[1].is_ignored is True


def test_csv_threads_invalid_row(tmp_path):
    path = tmp_path / "threads.csv"
    path.write_text("id,user_id,title,priority,created_at\nt1,u1,Deck,urgent,2025-03-01T09:00:00\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Row 2"):
        parse_csv_threads(str(path))


def test_csv_activities_with_metadata(tmp_path):
    path = tmp_path / "activities.csv"
    path.write_text(
        'user_id,type,timestamp,metadata\nu1,focus-session,2025-03-10T09:00:00,"{""durationMinutes"": 25}"\n',
        encoding="utf-8",
    )
    [activity] = parse_csv_activities(str(path))
    assert activity.metadata == {"durationMinutes": 25}
    assert activity.id


def test_json_parse_success(tmp_path):
    path = tmp_path / "threads.json"
    payload = [
        {"id": "t1", "user_id": "u1", "title": "Deck", "priority": "medium", "created_at": "2025-03-01T09:00:00",
         "tags": ["a"], "is_ignored": True, "progress": 45},
    ]
    path.write_text(json.dumps(payload), encoding="utf-8")
    [thread] = parse_json_threads(str(path))
    assert thread.tags == ["a"]
    assert thread.is_ignored is True
    assert thread.progress == 45


def test_json_parse_malformed(tmp_path):
    path = tmp_path / "activities.json"
    path.write_text(json.dumps([{"user_id": "u1", "type": "context-switch", "timestamp": "bad"}]), encoding="utf-8")
    with pytest.raises(ValueError):
        parse_json_activities(str(path))

    path.write_text(json.dumps({"not": "a list"}), encoding="utf-8")
    with pytest.raises(ValueError):
        parse_json_activities(str(path))
