"""Unit tests for time-series reconciliation."""

from datetime import datetime, timedelta

import pytest
import pytz

from wellness_log.domain.records import BloodPressureRecord, RecordKind, WeightRecord
from wellness_log.services.reconciliation import (
    cluster_blood_pressure,
    disambiguate_timestamps,
    reconcile,
    without_excluded,
)
from wellness_log.utils.exceptions import ValidationError
from wellness_log.utils.parameters import ReconciliationConfig


def weight(record_id: str, time: str, value: float = 70.0, date: str = "2024-01-15", **extra) -> WeightRecord:
    return WeightRecord(id=record_id, date=date, time=time, weight=value, **extra)


def bp(record_id: str, time: str, systolic: float, diastolic: float, **extra) -> BloodPressureRecord:
    return BloodPressureRecord(
        id=record_id, date="2024-01-15", time=time, systolic=systolic, diastolic=diastolic, **extra
    )


def test_colliding_timestamps_keep_stored_order() -> None:
    """Test that records sharing a minute get increasing offsets in stored order."""
    records = [weight("A", "08:00"), weight("B", "08:00"), weight("C", "08:00")]

    points = reconcile(records, RecordKind.WEIGHT)

    base = datetime(2024, 1, 15, 8, 0, tzinfo=pytz.UTC)
    expected = [base, base + timedelta(milliseconds=1), base + timedelta(milliseconds=2)]

    if [p.record.id for p in points] != ["A", "B", "C"]:
        raise AssertionError(f"Expected order A, B, C, got {[p.record.id for p in points]}")
    if [p.timestamp for p in points] != expected:
        raise AssertionError(f"Unexpected timestamps: {[p.timestamp for p in points]}")


def test_scrambled_input_is_sorted() -> None:
    """Test that output is chronological regardless of stored order."""
    records = [
        weight("late", "21:30"),
        weight("early", "06:15"),
        weight("prev-day", "23:59", date="2024-01-14"),
        weight("noon", "12:00"),
    ]

    points = reconcile(records)

    ids = [p.record.id for p in points]
    if ids != ["prev-day", "early", "noon", "late"]:
        raise AssertionError(f"Unexpected order: {ids}")

    timestamps = [p.timestamp for p in points]
    if len(set(timestamps)) != len(timestamps):
        raise AssertionError("Expected strictly increasing timestamps")


def test_collisions_interleaved_with_other_minutes() -> None:
    """Test that offsets count per nominal value, not per position."""
    records = [weight("A", "08:00"), weight("X", "09:00"), weight("B", "08:00")]

    points = reconcile(records)

    if [p.record.id for p in points] != ["A", "B", "X"]:
        raise AssertionError(f"Unexpected order: {[p.record.id for p in points]}")
    if points[2].timestamp != datetime(2024, 1, 15, 9, 0, tzinfo=pytz.UTC):
        raise AssertionError("Expected the lone 09:00 record to keep its nominal timestamp")


def test_disambiguation_is_idempotent() -> None:
    """Test that disambiguating an already unique list changes nothing."""
    base = datetime(2024, 1, 15, 8, 0)
    nominal = [base, base, base + timedelta(minutes=1), base, base + timedelta(minutes=1)]

    once = disambiguate_timestamps(nominal)
    twice = disambiguate_timestamps(once)

    if len(set(once)) != len(once):
        raise AssertionError("Expected unique timestamps after one pass")
    if twice != once:
        raise AssertionError(f"Expected idempotence, got {twice} vs {once}")


def test_custom_tick_and_timezone() -> None:
    """Test configured tick size and wall-clock timezone."""
    config = ReconciliationConfig(timezone="Asia/Tokyo", tick_milliseconds=1000)
    records = [weight("A", "08:00"), weight("B", "08:00")]

    points = reconcile(records, config=config)

    if points[1].timestamp - points[0].timestamp != timedelta(seconds=1):
        raise AssertionError("Expected a one second tick")
    if points[0].timestamp.utcoffset() != timedelta(hours=9):
        raise AssertionError(f"Expected +09:00 offset, got {points[0].timestamp.utcoffset()}")


def test_excluded_records_are_annotated_not_dropped() -> None:
    """Test that exclude_from_graph is passed through."""
    records = [weight("kept", "08:00"), weight("hidden", "09:00", exclude_from_graph=True)]

    points = reconcile(records)

    if len(points) != 2:
        raise AssertionError(f"Expected 2 points, got {len(points)}")
    if [p.excluded for p in points] != [False, True]:
        raise AssertionError(f"Unexpected excluded flags: {[p.excluded for p in points]}")
    if [p.record.id for p in without_excluded(points)] != ["kept"]:
        raise AssertionError("Expected without_excluded to drop the hidden point")


def test_kind_mismatch_raises() -> None:
    """Test that reconcile rejects records of another kind."""
    with pytest.raises(ValidationError):
        reconcile([weight("A", "08:00")], RecordKind.BLOOD_PRESSURE)


def test_bp_cluster_keeps_lowest_reading() -> None:
    """Test the same-sitting example: two readings collapse, a later one stays."""
    points = reconcile(
        [bp("a", "08:00", 130, 85), bp("b", "08:05", 128, 82), bp("c", "08:20", 125, 80)]
    )

    kept = cluster_blood_pressure(points)

    if [p.record.id for p in kept] != ["b", "c"]:
        raise AssertionError(f"Expected readings b and c, got {[p.record.id for p in kept]}")


def test_bp_cluster_tie_breaks_on_diastolic() -> None:
    """Test that equal sums prefer the lower diastolic reading."""
    points = reconcile([bp("a", "08:00", 120, 80), bp("b", "08:03", 125, 75)])

    kept = cluster_blood_pressure(points)

    if [p.record.id for p in kept] != ["b"]:
        raise AssertionError(f"Expected 125/75 to be kept, got {[p.record.id for p in kept]}")


def test_bp_cluster_tie_breaks_on_earliest() -> None:
    """Test that identical readings keep the earliest one."""
    points = reconcile(
        [bp("later", "08:02", 120, 80), bp("same-minute", "08:00", 120, 80), bp("first", "08:00", 120, 80)]
    )

    kept = cluster_blood_pressure(points)

    if [p.record.id for p in kept] != ["same-minute"]:
        raise AssertionError(f"Expected the earliest reading, got {[p.record.id for p in kept]}")


def test_bp_cluster_anchor_does_not_roll() -> None:
    """Test that readings 9 minutes apart still split once past 10 minutes from the anchor."""
    points = reconcile(
        [
            bp("a", "08:00", 130, 85),
            bp("b", "08:09", 131, 86),
            bp("c", "08:18", 132, 87),
            bp("d", "08:27", 133, 88),
        ]
    )

    kept = cluster_blood_pressure(points)

    if [p.record.id for p in kept] != ["a", "c"]:
        raise AssertionError(f"Expected clusters anchored at a and c, got {[p.record.id for p in kept]}")


def test_bp_cluster_window_is_inclusive() -> None:
    """Test that a reading exactly 10 minutes after the anchor joins the cluster."""
    points = reconcile([bp("a", "08:00", 130, 85), bp("b", "08:10", 120, 80)])

    kept = cluster_blood_pressure(points)

    if [p.record.id for p in kept] != ["b"]:
        raise AssertionError(f"Expected one cluster, got {[p.record.id for p in kept]}")


def test_bp_cluster_rejects_other_kinds() -> None:
    """Test that clustering only accepts blood pressure points."""
    with pytest.raises(ValidationError):
        cluster_blood_pressure(reconcile([weight("A", "08:00")]))


def test_bp_cluster_empty() -> None:
    """Test clustering an empty series."""
    if cluster_blood_pressure([]) != []:
        raise AssertionError("Expected an empty result")


def test_wall_clock_order_across_daylight_saving_gap() -> None:
    """Test that minutes inside a spring-forward gap keep their wall-clock order."""
    config = ReconciliationConfig(timezone="America/New_York")

    forward = reconcile(
        [weight("b0300", "03:00", date="2024-03-10"), weight("a0230", "02:30", date="2024-03-10")],
        config=config,
    )
    if [p.record.id for p in forward] != ["a0230", "b0300"]:
        raise AssertionError(f"Expected 02:30 before 03:00, got {[p.record.id for p in forward]}")

    distinct = reconcile(
        [weight("x0330", "03:30", date="2024-03-10"), weight("y0230", "02:30", date="2024-03-10")],
        config=config,
    )
    if [p.record.id for p in distinct] != ["y0230", "x0330"]:
        raise AssertionError(f"Expected 02:30 before 03:30, got {[p.record.id for p in distinct]}")
    if [p.wall_clock for p in distinct] != [datetime(2024, 3, 10, 2, 30), datetime(2024, 3, 10, 3, 30)]:
        raise AssertionError("Expected different minutes to keep their nominal wall-clock times")
    if distinct[1].timestamp.utcoffset() != timedelta(hours=-4):
        raise AssertionError(f"Expected 03:30 to be daylight time, got {distinct[1].timestamp}")


def test_bp_cluster_uses_wall_clock_across_gap() -> None:
    """Test that two gap-day readings an hour apart on the clock stay separate."""
    config = ReconciliationConfig(timezone="America/New_York")
    readings = [
        BloodPressureRecord(id="early", date="2024-03-10", time="02:30", systolic=130, diastolic=85),
        BloodPressureRecord(id="late", date="2024-03-10", time="03:30", systolic=120, diastolic=80),
    ]

    kept = cluster_blood_pressure(reconcile(readings, config=config))

    if [p.record.id for p in kept] != ["early", "late"]:
        raise AssertionError(f"Expected two clusters, got {[p.record.id for p in kept]}")
