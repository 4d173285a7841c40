import pytest
from trip_fakes import BASE_TS, point

from tracking.services.distance import (
    accumulate,
    average_speed_kmh,
    compute_trip_metrics,
    segment_distance_km,
    trip_duration_seconds,
)


def test_scenario_a_short_interval_contributes_nothing() -> None:
    route = [point(0, 0, t=0), point(0, 0.001, t=4000)]
    assert accumulate(route) == 0.0
    assert len(route) == 2


def test_scenario_b_walking_segment_is_counted() -> None:
    route = [point(0, 0, t=0), point(0, 0.0001, t=10_000)]
    assert accumulate(route) == pytest.approx(0.0111195, rel=1e-3)


def test_scenario_c_implausible_speed_is_excluded() -> None:
    route = [point(0, 0, t=0), point(0, 0.45, t=60_000)]
    assert segment_distance_km(route[0], route[1]) == 0.0
    assert accumulate(route) == 0.0


def test_segment_at_five_seconds_is_counted() -> None:
    a, b = point(0, 0, t=0), point(0, 0.0001, t=5000)
    assert segment_distance_km(a, b) > 0


def test_highway_speed_is_plausible() -> None:
    # ~1.67 km in 60 s is about 100 km/h
    a, b = point(0, 0, t=0), point(0, 0.015, t=60_000)
    assert segment_distance_km(a, b) == pytest.approx(1.668, rel=1e-3)


def test_duplicate_point_does_not_change_distance() -> None:
    route = [point(0, 0, t=0), point(0, 0.001, t=30_000)]
    with_duplicate = [*route, point(0, 0.001, t=60_000)]
    assert accumulate(with_duplicate) == accumulate(route)


def test_points_closer_than_five_meters_never_add_distance() -> None:
    route = [point(0, 0.00003 * i, t=10_000 * i) for i in range(2)]
    assert accumulate(route) == 0.0


def test_distance_never_decreases_as_points_are_appended() -> None:
    raw = [
        point(0, 0, t=0),
        point(0, 0.00003, t=10_000),
        point(0, 0.0002, t=20_000, acc=80),
        point(0, 0.0003, t=30_000),
        point(0, 0.3, t=40_000),
        point(0, 0.3001, t=50_000),
        point(0, 0.3002, t=52_000),
    ]
    totals = [accumulate(raw[: i + 1]) for i in range(len(raw))]
    assert totals == sorted(totals)


def test_trip_duration_is_never_negative() -> None:
    assert trip_duration_seconds(BASE_TS, BASE_TS - 5000) == 0
    assert trip_duration_seconds(BASE_TS, BASE_TS + 61_999) == 61


def test_average_speed_handles_zero_duration() -> None:
    assert average_speed_kmh(5.0, 0) == 0.0
    assert average_speed_kmh(5.0, 1800) == pytest.approx(10.0)


def test_compute_trip_metrics_combines_values() -> None:
    route = [point(0, 0, t=0), point(0, 0.0001, t=10_000)]
    metrics = compute_trip_metrics(route, BASE_TS, BASE_TS + 10_000)
    assert metrics.duration == 10
    assert metrics.distance == pytest.approx(0.0111195, rel=1e-3)
    assert metrics.averageSpeed == pytest.approx(metrics.distance / 10 * 3600)
