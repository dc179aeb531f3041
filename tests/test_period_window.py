"""Unit tests for period window statistics."""

import pytest

from wellness_log.domain.records import BloodPressureRecord, HabitRecord, WeightRecord
from wellness_log.services.period_window import (
    PeriodWindowAggregator,
    blood_pressure_category,
    blood_pressure_summary,
    blood_pressure_trend,
    filter_by_window,
    habit_achievement_stats,
    latest_date,
    round_half_up,
    trend_line,
    weight_extrema,
    weight_trend,
    window_bounds,
)
from wellness_log.services.reconciliation import reconcile
from wellness_log.utils.exceptions import ValidationError
from wellness_log.utils.parameters import StatisticsConfig


def habit(day: int, value: float, field_id: str = "walk") -> HabitRecord:
    return HabitRecord(id=f"{field_id}-{day}", date=f"2024-01-{day:02d}", field_id=field_id, value=value)


def weight(record_id: str, date: str, value: float, time: str = "08:00", **extra) -> WeightRecord:
    return WeightRecord(id=record_id, date=date, time=time, weight=value, **extra)


def bp(record_id: str, date: str, time: str, systolic: float, diastolic: float, **extra) -> BloodPressureRecord:
    return BloodPressureRecord(
        id=record_id, date=date, time=time, systolic=systolic, diastolic=diastolic, **extra
    )


def test_window_bounds() -> None:
    """Test that a 14 day window ending on the 14th starts on the 1st."""
    if window_bounds("2024-01-14", 14) != ("2024-01-01", "2024-01-14"):
        raise AssertionError(f"Unexpected bounds: {window_bounds('2024-01-14', 14)}")
    if window_bounds("2024-03-01", 2) != ("2024-02-29", "2024-03-01"):
        raise AssertionError("Expected the window to cross the leap day")
    if window_bounds("2024-01-14", 1) != ("2024-01-14", "2024-01-14"):
        raise AssertionError("Expected a one day window to cover only the end date")


def test_window_bounds_rejects_empty_window() -> None:
    """Test that non-positive window sizes raise."""
    with pytest.raises(ValidationError):
        window_bounds("2024-01-14", 0)
    with pytest.raises(ValidationError):
        window_bounds("2024-01-14", -3)


def test_filter_by_window() -> None:
    """Test inclusive filtering and the empty end date case."""
    records = [weight("a", "2023-12-31", 70.0), weight("b", "2024-01-01", 70.1), weight("c", "2024-01-14", 70.2)]

    kept = filter_by_window(records, 14, "2024-01-14")

    if [r.id for r in kept] != ["b", "c"]:
        raise AssertionError(f"Expected b and c, got {[r.id for r in kept]}")
    if filter_by_window(records, 14, None) != []:
        raise AssertionError("Expected no records without an end date")


def test_latest_date() -> None:
    """Test the most recent date across collections."""
    weights = [weight("a", "2024-01-10", 70.0)]
    pressures = [bp("b", "2024-01-12", "08:00", 120, 80)]

    if latest_date(weights, pressures, []) != "2024-01-12":
        raise AssertionError("Expected 2024-01-12")
    if latest_date([], [], []) is not None:
        raise AssertionError("Expected None for empty collections")


def test_habit_achievement_stats() -> None:
    """Test that partial days are reported but left out of the rate."""
    records = (
        [habit(day, 1.0) for day in range(1, 11)]
        + [habit(11, 0.0), habit(12, 0.0)]
        + [habit(13, 0.5), habit(14, 0.5)]
        + [habit(14, 0.0, field_id="read")]
    )

    stats = habit_achievement_stats(records, "walk", 14, "2024-01-14")

    if (stats.total, stats.achieved, stats.partial, stats.rate) != (12, 10, 2, 83):
        raise AssertionError(f"Unexpected stats: {stats}")


def test_habit_rate_rounds_half_up() -> None:
    """Test that 1 of 8 reports 13 percent."""
    records = [habit(1, 1.0)] + [habit(day, 0.0) for day in range(2, 9)]

    stats = habit_achievement_stats(records, "walk", 14, "2024-01-14")

    if stats.rate != 13:
        raise AssertionError(f"Expected rate 13, got {stats.rate}")


def test_habit_stats_without_decided_days() -> None:
    """Test that a window with only partial days has a zero rate."""
    stats = habit_achievement_stats([habit(5, 0.5)], "walk", 14, "2024-01-14")

    if (stats.total, stats.partial, stats.rate) != (0, 1, 0):
        raise AssertionError(f"Unexpected stats: {stats}")


def test_round_half_up() -> None:
    """Test rounding of exact halves."""
    if round_half_up(12.5) != 13 or round_half_up(2.5) != 3 or round_half_up(2.49) != 2:
        raise AssertionError("Expected halves to round up")


def test_weight_extrema() -> None:
    """Test min, max and count inside the window."""
    records = [
        weight("a", "2024-01-10", 70.2),
        weight("b", "2024-01-12", 69.8),
        weight("c", "2024-01-14", 70.5),
        weight("old", "2023-12-01", 60.0),
    ]

    extrema = weight_extrema(records, 14, "2024-01-14")

    if (extrema.min, extrema.max, extrema.count) != (69.8, 70.5, 3):
        raise AssertionError(f"Unexpected extrema: {extrema}")

    empty = weight_extrema([], 14, "2024-01-14")
    if empty.min is not None or empty.count != 0:
        raise AssertionError(f"Expected empty extrema, got {empty}")


def test_blood_pressure_summary() -> None:
    """Test averages and ranges of readings."""
    records = [
        bp("a", "2024-01-13", "08:00", 120, 80, heart_rate=60),
        bp("b", "2024-01-14", "08:00", 125, 81),
    ]

    summary = blood_pressure_summary(records, 14, "2024-01-14")

    if (summary.count, summary.avg_systolic, summary.avg_diastolic) != (2, 123, 81):
        raise AssertionError(f"Unexpected averages: {summary}")
    if (summary.min_systolic, summary.max_systolic) != (120, 125):
        raise AssertionError(f"Unexpected systolic range: {summary}")
    if summary.avg_heart_rate != 60:
        raise AssertionError(f"Expected heart rate average 60, got {summary.avg_heart_rate}")


def test_weight_trend() -> None:
    """Test trend over the five most recent records."""
    rising = [weight(f"w{day}", f"2024-01-{day:02d}", 70.0 + day * 0.2) for day in range(1, 8)]
    falling = [weight(f"w{day}", f"2024-01-{day:02d}", 80.0 - day * 0.2) for day in range(1, 8)]
    flat = [weight(f"w{day}", f"2024-01-{day:02d}", 70.0 + (day % 2) * 0.1) for day in range(1, 8)]

    if weight_trend(rising) != "increasing":
        raise AssertionError("Expected increasing trend")
    if weight_trend(falling) != "decreasing":
        raise AssertionError("Expected decreasing trend")
    if weight_trend(flat) != "stable":
        raise AssertionError("Expected stable trend")
    if weight_trend(rising[:1]) != "stable":
        raise AssertionError("Expected a single record to be stable")


def test_aggregator_window_ends_at_latest_record_across_collections() -> None:
    """Test that a recent habit entry moves the weight window."""
    aggregator = PeriodWindowAggregator(
        weight_records=[weight("a", "2024-01-01", 70.0), weight("b", "2024-01-10", 71.0)],
        habit_records=[habit(20, 1.0)],
        statistics_config=StatisticsConfig(default_window_days=14),
    )

    if aggregator.end_date != "2024-01-20":
        raise AssertionError(f"Expected end date 2024-01-20, got {aggregator.end_date}")
    if aggregator.window_bounds() != ("2024-01-07", "2024-01-20"):
        raise AssertionError(f"Unexpected bounds: {aggregator.window_bounds()}")

    extrema = aggregator.weight_extrema()
    if (extrema.min, extrema.count) != (71.0, 1):
        raise AssertionError(f"Expected only the 2024-01-10 weight, got {extrema}")


def test_aggregator_without_records() -> None:
    """Test that an empty aggregator reports empty statistics."""
    aggregator = PeriodWindowAggregator()

    if aggregator.window_bounds() is not None:
        raise AssertionError("Expected no window without data")
    if aggregator.weight_extrema().count != 0 or aggregator.weight_series() != []:
        raise AssertionError("Expected empty weight statistics")
    if aggregator.habit_achievement_stats("walk").rate != 0:
        raise AssertionError("Expected a zero rate")


def test_aggregator_blood_pressure_series() -> None:
    """Test clustering and exclusion in the windowed blood pressure series."""
    aggregator = PeriodWindowAggregator(
        bp_records=[
            bp("a", "2024-01-14", "08:00", 130, 85),
            bp("b", "2024-01-14", "08:05", 118, 76, exclude_from_graph=True),
            bp("c", "2024-01-14", "08:20", 125, 80),
            bp("old", "2023-11-01", "08:00", 140, 90),
        ]
    )

    clustered = aggregator.blood_pressure_series()
    if [p.record.id for p in clustered] != ["b", "c"]:
        raise AssertionError(f"Unexpected clustered series: {[p.record.id for p in clustered]}")

    visible = aggregator.blood_pressure_series(include_excluded=False)
    if [p.record.id for p in visible] != ["a", "c"]:
        raise AssertionError(f"Unexpected visible series: {[p.record.id for p in visible]}")

    raw = aggregator.blood_pressure_series(clustered=False)
    if [p.record.id for p in raw] != ["a", "b", "c"]:
        raise AssertionError(f"Unexpected raw series: {[p.record.id for p in raw]}")


def test_aggregator_weight_series_disambiguates() -> None:
    """Test that same-minute weights come back as distinct ordered points."""
    aggregator = PeriodWindowAggregator(
        weight_records=[weight("a", "2024-01-14", 70.0), weight("b", "2024-01-14", 70.4)]
    )

    points = aggregator.weight_series()

    if [p.record.id for p in points] != ["a", "b"]:
        raise AssertionError(f"Unexpected order: {[p.record.id for p in points]}")
    if points[0].timestamp >= points[1].timestamp:
        raise AssertionError("Expected strictly increasing timestamps")


def test_window_size_is_validated_without_data() -> None:
    """Test that an invalid window raises whether or not records exist."""
    with pytest.raises(ValidationError):
        filter_by_window([], 0, None)
    with pytest.raises(ValidationError):
        PeriodWindowAggregator().window_bounds(0)
    with pytest.raises(ValidationError):
        PeriodWindowAggregator().weight_extrema(0)


def test_blood_pressure_category() -> None:
    """Test grading against both limits of each grade."""
    cases = [
        ((119, 79), "normal", "low"),
        ((119, 80), "high_normal", "normal"),
        ((135, 70), "elevated", "normal"),
        ((150, 95), "grade_1_hypertension", "high"),
        ((170, 105), "grade_2_hypertension", "high"),
        ((185, 70), "grade_3_hypertension", "very_high"),
    ]

    for (systolic, diastolic), category, risk in cases:
        result = blood_pressure_category(systolic, diastolic)
        if (result.category, result.risk) != (category, risk):
            raise AssertionError(f"Unexpected grade for {systolic}/{diastolic}: {result}")


def test_blood_pressure_trend() -> None:
    """Test that the three newest readings are compared with the older ones."""
    older = [
        bp("o1", "2024-01-10", "08:00", 120, 80),
        bp("o2", "2024-01-11", "08:00", 122, 80),
        bp("o3", "2024-01-12", "08:00", 118, 80),
    ]
    recent = [
        bp("r1", "2024-01-13", "08:00", 130, 80),
        bp("r2", "2024-01-14", "08:00", 128, 82),
        bp("r3", "2024-01-15", "08:00", 129, 81),
    ]

    trend = blood_pressure_trend(list(reversed(recent)) + older)

    if (trend.systolic, trend.diastolic, trend.direction) != ("increasing", "stable", "increasing"):
        raise AssertionError(f"Unexpected trend: {trend}")

    falling = blood_pressure_trend(recent + [bp("n", "2024-01-16", "08:00", 110, 70)] * 3)
    if falling.direction != "decreasing":
        raise AssertionError(f"Expected a falling trend, got {falling}")

    if blood_pressure_trend(recent).direction != "stable":
        raise AssertionError("Expected stable without older readings to compare against")


def test_trend_line_least_squares() -> None:
    """Test the fitted line over a linear daily series."""
    points = reconcile(
        [
            weight("a", "2024-01-14", 70.0),
            weight("b", "2024-01-15", 71.0),
            weight("c", "2024-01-16", 72.0),
        ]
    )

    line = trend_line(points, lambda p: p.record.weight)

    if line is None:
        raise AssertionError("Expected a trend line")
    if abs(line.slope_per_day - 1.0) > 1e-9:
        raise AssertionError(f"Expected a slope of 1 kg/day, got {line.slope_per_day}")
    if abs(line.start_value - 70.0) > 1e-9 or abs(line.end_value - 72.0) > 1e-9:
        raise AssertionError(f"Unexpected end points: {line}")
    if (line.start, line.end) != (points[0].timestamp, points[-1].timestamp):
        raise AssertionError("Expected the line to span the first and last point")


def test_trend_line_needs_two_usable_points() -> None:
    """Test that missing values are skipped and short series have no line."""
    points = reconcile(
        [
            WeightRecord(id="a", date="2024-01-14", weight=70.0, body_fat=20.0),
            WeightRecord(id="b", date="2024-01-15", weight=71.0),
        ]
    )

    if trend_line(points, lambda p: p.record.body_fat) is not None:
        raise AssertionError("Expected no line from a single body fat value")
    if trend_line([], lambda p: p.record.weight) is not None:
        raise AssertionError("Expected no line from an empty series")


def test_aggregator_trends() -> None:
    """Test the trend helpers exposed on the aggregator."""
    aggregator = PeriodWindowAggregator(
        weight_records=[
            weight("a", "2024-01-14", 70.0),
            weight("b", "2024-01-15", 69.0),
            weight("hidden", "2024-01-15", 90.0, time="09:00", exclude_from_graph=True),
        ],
        bp_records=[
            bp("x", "2024-01-14", "08:00", 118, 78),
            bp("y", "2024-01-15", "08:00", 142, 88),
        ],
    )

    line = aggregator.weight_trend_line()
    if line is None or abs(line.slope_per_day + 1.0) > 1e-9:
        raise AssertionError(f"Expected -1 kg/day without the excluded record, got {line}")

    category = aggregator.latest_blood_pressure_category()
    if category is None or category.category != "grade_1_hypertension":
        raise AssertionError(f"Expected the latest reading to be grade 1, got {category}")

    lines = aggregator.blood_pressure_trend_lines()
    if lines["systolic"] is None or abs(lines["systolic"].slope_per_day - 24.0) > 1e-9:
        raise AssertionError(f"Unexpected systolic line: {lines['systolic']}")

    if aggregator.blood_pressure_trend().direction != "stable":
        raise AssertionError("Expected a stable trend with only two readings")
    if PeriodWindowAggregator().latest_blood_pressure_category() is not None:
        raise AssertionError("Expected no category without readings")
