import pytest

from futures_seats.scoring.features import breadth_label, limit_for, round_half_up, safe_float, strip_digits
from futures_seats.scoring.weights import stable_sorted, weighted_sum


def test_round_half_up():
    assert round_half_up(2.5) == 3.0
    # ties round away from zero: -2.5 goes to -3, not -2
    assert round_half_up(-2.5) == -3.0
    assert round_half_up(2.675, 2) == pytest.approx(2.68)
    assert round_half_up(10.125, 2) == pytest.approx(10.13)
    assert round_half_up(1234.4) == 1234.0


def test_stable_sort_keeps_input_order_for_ties():
    items = [
        {"seat": "b", "net": 10.0},
        {"seat": "a", "net": -10.0},
        {"seat": "c", "net": 20.0},
    ]
    ordered = stable_sorted(items, key=lambda item: abs(item["net"]), reverse=True)
    assert [item["seat"] for item in ordered] == ["c", "b", "a"]


def test_stable_sort_determinism():
    items_a = [
        {"commodity_id": "b", "score": 1.0},
        {"commodity_id": "a", "score": 1.0},
        {"commodity_id": "c", "score": 2.0},
    ]
    items_b = [
        {"commodity_id": "a", "score": 1.0},
        {"commodity_id": "c", "score": 2.0},
        {"commodity_id": "b", "score": 1.0},
    ]

    sorted_a = stable_sorted(
        items_a,
        key=lambda item: item["score"],
        reverse=True,
        tie_breaker=lambda item: item["commodity_id"],
    )
    sorted_b = stable_sorted(
        items_b,
        key=lambda item: item["score"],
        reverse=True,
        tie_breaker=lambda item: item["commodity_id"],
    )

    assert [item["commodity_id"] for item in sorted_a] == ["c", "a", "b"]
    assert [item["commodity_id"] for item in sorted_b] == ["c", "a", "b"]


def test_weighted_sum_ignores_unweighted_features():
    weights = {"price-condition": 10, "real-compare": 15}
    assert weighted_sum({"price-condition": 1.0, "other": 1.0}, weights) == pytest.approx(10.0)


def test_feature_helpers():
    assert safe_float("3.5") == 3.5
    assert safe_float(None, 1.0) == 1.0
    assert safe_float("n/a") == 0.0
    assert strip_digits("螺纹钢2405") == "螺纹钢"
    assert limit_for("all") is None
    assert limit_for(20) == 20
    assert breadth_label(10) == "10"
    assert breadth_label("all") == "all"
