"""
Period window statistics.

Windows are trailing ranges of calendar dates ending at the most recent record
date, not at today, so a log with nothing recorded today still reports
meaningful statistics. Every function here is pure.
"""

import logging
import math
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from typing import Any, Protocol, TypeVar

from pydantic import BaseModel, ConfigDict

from wellness_log.domain.records import BloodPressureRecord, HabitRecord, WeightRecord
from wellness_log.services.reconciliation import (
    ReconciledPoint,
    cluster_blood_pressure,
    cluster_window,
    reconcile,
    without_excluded,
)
from wellness_log.utils.datetime_utils import shift_date
from wellness_log.utils.exceptions import ValidationError
from wellness_log.utils.parameters import ReconciliationConfig, StatisticsConfig

logger = logging.getLogger(__name__)


class Dated(Protocol):
    @property
    def date(self) -> str: ...


D = TypeVar("D", bound=Dated)


class HabitAchievementStats(BaseModel):
    """Achievement summary for one habit over a window."""

    field_id: str
    total: int = 0
    achieved: int = 0
    partial: int = 0
    rate: int = 0

    model_config = ConfigDict(frozen=True)


class WeightExtrema(BaseModel):
    """Lowest and highest weight over a window."""

    min: float | None = None
    max: float | None = None
    count: int = 0

    model_config = ConfigDict(frozen=True)


class BloodPressureSummary(BaseModel):
    """Average and range of blood pressure readings over a window."""

    count: int = 0
    avg_systolic: int = 0
    avg_diastolic: int = 0
    min_systolic: float | None = None
    max_systolic: float | None = None
    min_diastolic: float | None = None
    max_diastolic: float | None = None
    avg_heart_rate: int | None = None

    model_config = ConfigDict(frozen=True)


class BloodPressureCategory(BaseModel):
    """Hypertension grade of a single reading with its risk level."""

    category: str
    risk: str

    model_config = ConfigDict(frozen=True)


class BloodPressureTrend(BaseModel):
    """Direction of recent systolic and diastolic averages."""

    systolic: str = "stable"
    diastolic: str = "stable"

    model_config = ConfigDict(frozen=True)

    @property
    def direction(self) -> str:
        """Overall direction; a rise in either value wins over a fall."""
        if "increasing" in (self.systolic, self.diastolic):
            return "increasing"
        if "decreasing" in (self.systolic, self.diastolic):
            return "decreasing"
        return "stable"


class TrendLine(BaseModel):
    """Least-squares line between the first and last point of a series."""

    start: datetime
    end: datetime
    start_value: float
    end_value: float
    slope_per_day: float

    model_config = ConfigDict(frozen=True)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive values."""
    return math.floor(value + 0.5)


def latest_date(*collections: Iterable[Any]) -> str | None:
    """
    Return the most recent ``date`` across the given collections.

    Args:
        collections: Iterables of records (or reconciled points).

    Returns:
        Latest YYYY-MM-DD date, or None when every collection is empty.
    """
    dates = [item.date for collection in collections for item in collection]
    return max(dates) if dates else None


def _check_days(days: int) -> None:
    if days < 1:
        raise ValidationError(f"Window must span at least one day, got {days}")


def window_bounds(end_date: str, days: int) -> tuple[str, str]:
    """
    Compute the inclusive date range of a trailing window.

    Args:
        end_date: Last day of the window (YYYY-MM-DD).
        days: Number of calendar days in the window.

    Returns:
        Tuple of (start_date, end_date), both inclusive.

    Raises:
        ValidationError: If ``days`` is less than 1.
    """
    _check_days(days)
    return shift_date(end_date, -(days - 1)), end_date


def filter_by_window(records: Iterable[D], days: int, end_date: str | None) -> list[D]:
    """
    Keep the records whose date falls inside the trailing window.

    Args:
        records: Records or reconciled points.
        days: Window length in days.
        end_date: Last day of the window; None yields an empty result.

    Returns:
        Matching items in their input order.

    Raises:
        ValidationError: If ``days`` is less than 1, even when there is no data.
    """
    _check_days(days)
    if end_date is None:
        return []
    start, end = window_bounds(end_date, days)
    return [r for r in records if start <= r.date <= end]


def habit_achievement_stats(
    records: Iterable[HabitRecord], field_id: str, days: int, end_date: str | None
) -> HabitAchievementStats:
    """
    Summarise how often a habit was achieved inside the window.

    Partial (0.5) entries are counted separately and left out of ``total``, so
    the rate only reflects fully decided days.

    Args:
        records: Habit records.
        field_id: Habit definition to summarise.
        days: Window length in days.
        end_date: Last day of the window.

    Returns:
        Totals and the achievement rate as a rounded percentage.
    """
    windowed = [r for r in filter_by_window(records, days, end_date) if r.field_id == field_id]

    achieved = sum(1 for r in windowed if r.achieved)
    partial = sum(1 for r in windowed if r.partial)
    total = len(windowed) - partial

    rate = round_half_up(achieved / total * 100) if total else 0

    return HabitAchievementStats(
        field_id=field_id, total=total, achieved=achieved, partial=partial, rate=rate
    )


def weight_extrema(
    records: Iterable[WeightRecord], days: int, end_date: str | None
) -> WeightExtrema:
    """Return min and max weight plus record count inside the window."""
    weights = [r.weight for r in filter_by_window(records, days, end_date)]
    if not weights:
        return WeightExtrema()
    return WeightExtrema(min=min(weights), max=max(weights), count=len(weights))


def blood_pressure_summary(
    records: Iterable[BloodPressureRecord], days: int, end_date: str | None
) -> BloodPressureSummary:
    """Return averages and ranges of blood pressure readings inside the window."""
    windowed = filter_by_window(records, days, end_date)
    if not windowed:
        return BloodPressureSummary()

    systolic = [r.systolic for r in windowed]
    diastolic = [r.diastolic for r in windowed]
    heart_rates = [r.heart_rate for r in windowed if r.heart_rate is not None]

    return BloodPressureSummary(
        count=len(windowed),
        avg_systolic=round_half_up(sum(systolic) / len(systolic)),
        avg_diastolic=round_half_up(sum(diastolic) / len(diastolic)),
        min_systolic=min(systolic),
        max_systolic=max(systolic),
        min_diastolic=min(diastolic),
        max_diastolic=max(diastolic),
        avg_heart_rate=(
            round_half_up(sum(heart_rates) / len(heart_rates)) if heart_rates else None
        ),
    )


def _direction(difference: float, threshold: float) -> str:
    if difference > threshold:
        return "increasing"
    if difference < -threshold:
        return "decreasing"
    return "stable"


def weight_trend(
    records: Sequence[WeightRecord], sample_size: int = 5, threshold: float = 0.5
) -> str:
    """
    Classify the recent weight direction.

    Compares the newest record with the oldest of the ``sample_size`` most
    recent ones.

    Returns:
        ``increasing``, ``decreasing`` or ``stable``.
    """
    recent = sorted(records, key=lambda r: (r.date, r.time), reverse=True)[:sample_size]
    if len(recent) < 2:
        return "stable"

    return _direction(recent[0].weight - recent[-1].weight, threshold)


# Upper bounds (exclusive) of each grade, Japanese Society of Hypertension guidelines.
_BP_GRADES: tuple[tuple[float, float, str, str], ...] = (
    (120, 80, "normal", "low"),
    (130, 85, "high_normal", "normal"),
    (140, 90, "elevated", "normal"),
    (160, 100, "grade_1_hypertension", "high"),
    (180, 110, "grade_2_hypertension", "high"),
)


def blood_pressure_category(systolic: float, diastolic: float) -> BloodPressureCategory:
    """
    Grade a reading.

    A reading belongs to the first grade whose systolic and diastolic limits
    it stays below; anything above every limit is grade 3 hypertension.
    """
    for systolic_limit, diastolic_limit, category, risk in _BP_GRADES:
        if systolic < systolic_limit and diastolic < diastolic_limit:
            return BloodPressureCategory(category=category, risk=risk)
    return BloodPressureCategory(category="grade_3_hypertension", risk="very_high")


def blood_pressure_trend(
    records: Sequence[BloodPressureRecord], recent_count: int = 3, threshold: float = 5.0
) -> BloodPressureTrend:
    """
    Compare the average of the newest readings with the average of all older ones.

    Averages are rounded half up before comparing. With no older readings to
    compare against, both directions are ``stable``.

    Args:
        records: Blood pressure records in any order.
        recent_count: Number of newest readings forming the recent group.
        threshold: Minimum difference in mmHg that counts as a change.

    Returns:
        Systolic and diastolic directions.
    """
    ordered = sorted(records, key=lambda r: (r.date, r.time))
    recent = ordered[-recent_count:]
    older = ordered[:-recent_count]
    if len(ordered) < 2 or not older:
        return BloodPressureTrend()

    def average(group: list[BloodPressureRecord], attr: str) -> int:
        return round_half_up(sum(getattr(r, attr) for r in group) / len(group))

    return BloodPressureTrend(
        systolic=_direction(average(recent, "systolic") - average(older, "systolic"), threshold),
        diastolic=_direction(average(recent, "diastolic") - average(older, "diastolic"), threshold),
    )


def trend_line(
    points: Sequence[ReconciledPoint], value: Callable[[ReconciledPoint], float | None]
) -> TrendLine | None:
    """
    Fit a least-squares line through a reconciled series.

    The x axis is elapsed wall-clock time since the first point, so the fit
    follows the same ordering as the series.

    Args:
        points: Reconciled points in chronological order.
        value: Extracts the plotted value; points where it returns None are skipped.

    Returns:
        The fitted line at the first and last usable point, or None with fewer
        than two usable points or when every point shares one time.
    """
    usable: list[tuple[ReconciledPoint, float]] = []
    for point in points:
        y = value(point)
        if y is not None:
            usable.append((point, y))
    if len(usable) < 2:
        return None

    origin = usable[0][0].wall_clock
    xs = [(p.wall_clock - origin).total_seconds() for p, _ in usable]
    ys = [float(v) for _, v in usable]

    n = len(usable)
    sum_x = sum(xs)
    sum_y = sum(ys)
    sum_xx = sum(x * x for x in xs)
    sum_xy = sum(x * y for x, y in zip(xs, ys))

    avg_x = sum_x / n
    avg_y = sum_y / n
    denominator = sum_xx - sum_x * avg_x
    if denominator == 0:
        logger.debug(f"No trend line: all {n} points share one time")
        return None

    slope = (sum_xy - sum_x * avg_y) / denominator
    intercept = avg_y - slope * avg_x

    return TrendLine(
        start=usable[0][0].timestamp,
        end=usable[-1][0].timestamp,
        start_value=slope * xs[0] + intercept,
        end_value=slope * xs[-1] + intercept,
        slope_per_day=slope * 86400,
    )


class PeriodWindowAggregator:
    """
    Windowed statistics over snapshots of the record collections.

    The window end is the latest date across weight, blood pressure and habit
    records. The aggregator holds its own copies and never touches the cache.
    """

    def __init__(
        self,
        weight_records: Iterable[WeightRecord] = (),
        bp_records: Iterable[BloodPressureRecord] = (),
        habit_records: Iterable[HabitRecord] = (),
        statistics_config: StatisticsConfig | None = None,
        reconciliation_config: ReconciliationConfig | None = None,
    ) -> None:
        """
        Initialize aggregator.

        Args:
            weight_records: Weight records snapshot.
            bp_records: Blood pressure records snapshot.
            habit_records: Habit records snapshot.
            statistics_config: Window and trend settings.
            reconciliation_config: Timezone, tick and clustering settings.
        """
        self.weight_records = tuple(weight_records)
        self.bp_records = tuple(bp_records)
        self.habit_records = tuple(habit_records)
        self.statistics_config = statistics_config or StatisticsConfig()
        self.reconciliation_config = reconciliation_config or ReconciliationConfig()
        self.end_date = latest_date(self.weight_records, self.bp_records, self.habit_records)

    def _days(self, days: int | None) -> int:
        return self.statistics_config.default_window_days if days is None else days

    def window_bounds(self, days: int | None = None) -> tuple[str, str] | None:
        """Return the inclusive window range, or None when there is no data."""
        _check_days(self._days(days))
        if self.end_date is None:
            return None
        return window_bounds(self.end_date, self._days(days))

    def filter_by_window(self, records: Iterable[D], days: int | None = None) -> list[D]:
        return filter_by_window(records, self._days(days), self.end_date)

    def habit_achievement_stats(
        self, field_id: str, days: int | None = None
    ) -> HabitAchievementStats:
        return habit_achievement_stats(
            self.habit_records, field_id, self._days(days), self.end_date
        )

    def weight_extrema(self, days: int | None = None) -> WeightExtrema:
        return weight_extrema(self.weight_records, self._days(days), self.end_date)

    def blood_pressure_summary(self, days: int | None = None) -> BloodPressureSummary:
        return blood_pressure_summary(self.bp_records, self._days(days), self.end_date)

    def weight_trend(self) -> str:
        return weight_trend(
            self.weight_records,
            self.statistics_config.trend_sample_size,
            self.statistics_config.trend_threshold,
        )

    def weight_series(
        self, days: int | None = None, include_excluded: bool = True
    ) -> list[ReconciledPoint]:
        """Reconciled weight points inside the window."""
        points = self.filter_by_window(
            reconcile(self.weight_records, config=self.reconciliation_config), days
        )
        return points if include_excluded else without_excluded(points)

    def blood_pressure_series(
        self, days: int | None = None, include_excluded: bool = True, clustered: bool = True
    ) -> list[ReconciledPoint]:
        """
        Reconciled blood pressure points inside the window.

        Clustering runs after disambiguation and window filtering, and after
        excluded points are dropped when ``include_excluded`` is False.
        """
        points = self.filter_by_window(
            reconcile(self.bp_records, config=self.reconciliation_config), days
        )
        if not include_excluded:
            points = without_excluded(points)
        if clustered:
            points = cluster_blood_pressure(points, cluster_window(self.reconciliation_config))
        return points

    def latest_blood_pressure_category(self) -> BloodPressureCategory | None:
        """Grade of the most recent reading, or None without readings."""
        if not self.bp_records:
            return None
        latest = max(self.bp_records, key=lambda r: (r.date, r.time))
        return blood_pressure_category(latest.systolic, latest.diastolic)

    def blood_pressure_trend(self) -> BloodPressureTrend:
        return blood_pressure_trend(
            self.bp_records,
            self.statistics_config.bp_trend_recent_count,
            self.statistics_config.bp_trend_threshold,
        )

    def weight_trend_line(
        self, days: int | None = None, include_excluded: bool = False
    ) -> TrendLine | None:
        """Least-squares line through the windowed weight series."""
        return trend_line(
            self.weight_series(days, include_excluded), lambda p: p.record.weight
        )

    def blood_pressure_trend_lines(
        self, days: int | None = None, include_excluded: bool = False
    ) -> dict[str, TrendLine | None]:
        """Systolic and diastolic least-squares lines through the clustered series."""
        points = self.blood_pressure_series(days, include_excluded)
        return {
            "systolic": trend_line(points, lambda p: p.record.systolic),
            "diastolic": trend_line(points, lambda p: p.record.diastolic),
        }
