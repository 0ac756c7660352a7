from monocle_engine.escalation import deadline_points, deadline_weight, ignored_severity, load_level


def test_deadline_bands():
    assert deadline_points(None) == 0
    assert deadline_points(0.5) == 30
    assert deadline_points(1) == 30
    assert deadline_points(2.9) == 20
    assert deadline_points(3) == 20
    assert deadline_points(7) == 10
    assert deadline_points(7.01) == 0


def test_load_level_boundaries():
    assert load_level(0) == "low"
    assert load_level(24) == "low"
    assert load_level(24.99) == "low"
    assert load_level(25) == "medium"
    assert load_level(49) == "medium"
    assert load_level(50) == "high"
    assert load_level(74) == "high"
    assert load_level(75) == "critical"
    assert load_level(100) == "critical"


def test_day_based_weights():
    assert deadline_weight(2) == "high"
    assert deadline_weight(3) == "medium"
    assert ignored_severity(1) == "critical"
    assert ignored_severity(0) == "critical"
    assert ignored_severity(2) == "warning"
