"""
Time-series reconciliation service.

Turns minute-resolution records into a strictly ordered series for plotting,
and collapses same-sitting blood pressure readings into one representative point.

Ordering and clustering work on naive wall-clock datetimes, the way the user
entered them. The timezone is attached afterwards to produce each point's
``timestamp``, so a minute inside a daylight saving gap still sorts between
its wall-clock neighbours.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta

from wellness_log.domain.records import BloodPressureRecord, MeasurementRecord, RecordKind
from wellness_log.utils.datetime_utils import (
    make_timezone_aware,
    parse_wall_clock,
    within_window,
)
from wellness_log.utils.exceptions import ValidationError
from wellness_log.utils.parameters import ReconciliationConfig

logger = logging.getLogger(__name__)

DEFAULT_TICK = timedelta(milliseconds=1)
DEFAULT_CLUSTER_WINDOW = timedelta(minutes=10)


class ReconciledPoint:
    """A record placed on the time axis with its disambiguated timestamp."""

    __slots__ = ("record", "wall_clock", "timestamp", "excluded")

    def __init__(
        self, record: MeasurementRecord, wall_clock: datetime, timestamp: datetime
    ) -> None:
        """
        Initialize reconciled point.

        Args:
            record: The untouched source record.
            wall_clock: Effective naive wall-clock time (nominal time plus collision offset).
            timestamp: ``wall_clock`` localized to the configured timezone.
        """
        self.record = record
        self.wall_clock = wall_clock
        self.timestamp = timestamp
        self.excluded = bool(getattr(record, "exclude_from_graph", False))

    @property
    def date(self) -> str:
        return self.record.date

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReconciledPoint):
            return NotImplemented
        return self.record == other.record and self.wall_clock == other.wall_clock

    def __repr__(self) -> str:
        return f"ReconciledPoint(id={self.record.id!r}, timestamp={self.timestamp.isoformat()!r})"


def nominal_wall_clock(record: MeasurementRecord) -> datetime:
    """Return the record's ``date`` + ``time`` as a naive wall-clock datetime."""
    return parse_wall_clock(record.date, record.time)


def disambiguate_timestamps(
    timestamps: Sequence[datetime], tick: timedelta = DEFAULT_TICK
) -> list[datetime]:
    """
    Make colliding timestamps unique without reordering them.

    Walking the input in its stored order, the n-th occurrence (0-based) of a
    timestamp value is moved ``n * tick`` later. Unique input is returned unchanged.

    Args:
        timestamps: Nominal timestamps in stored order.
        tick: Offset unit added per earlier occurrence.

    Returns:
        Effective timestamps, positionally aligned with the input.
    """
    seen: dict[datetime, int] = defaultdict(int)
    effective: list[datetime] = []

    for ts in timestamps:
        occurrence = seen[ts]
        seen[ts] = occurrence + 1
        effective.append(ts + tick * occurrence)

    return effective


def reconcile(
    records: Iterable[MeasurementRecord],
    kind: RecordKind | None = None,
    config: ReconciliationConfig | None = None,
) -> list[ReconciledPoint]:
    """
    Place records on a strictly ordered time axis.

    Args:
        records: Records in their stored order.
        kind: Expected record kind; every record must match it when given.
        config: Reconciliation configuration (timezone and tick size).

    Returns:
        Points sorted by effective wall-clock time ascending. Records flagged
        ``exclude_from_graph`` are kept and marked ``excluded``.

    Raises:
        ValidationError: If a record does not match ``kind``.
    """
    config = config or ReconciliationConfig()
    tick = timedelta(milliseconds=config.tick_milliseconds)
    record_list = list(records)

    if kind is not None:
        expected = RecordKind(kind)
        for record in record_list:
            if record.kind != expected:
                raise ValidationError(
                    f"Cannot reconcile {record.kind} record {record.id} as {expected.value}"
                )

    nominal = [nominal_wall_clock(r) for r in record_list]
    effective = disambiguate_timestamps(nominal, tick)

    points = [
        ReconciledPoint(r, wc, make_timezone_aware(wc, config.timezone, assume_local=True))
        for r, wc in zip(record_list, effective)
    ]
    points.sort(key=lambda p: p.wall_clock)

    collisions = sum(1 for n, e in zip(nominal, effective) if n != e)
    if collisions:
        logger.debug(f"Disambiguated {collisions} colliding timestamps")

    return points


def _representative_key(point: ReconciledPoint) -> tuple[float, float, datetime]:
    record = point.record
    return (record.pressure_sum, record.diastolic, point.wall_clock)


def cluster_blood_pressure(
    points: Sequence[ReconciledPoint], window: timedelta = DEFAULT_CLUSTER_WINDOW
) -> list[ReconciledPoint]:
    """
    Collapse readings taken in the same sitting into one representative reading.

    Points are walked chronologically. A reading joins the current cluster while
    it is at most ``window`` after the cluster's first reading (the anchor); the
    anchor never moves, so a slow drift of readings still splits into several
    clusters. Each cluster keeps the reading with the lowest systolic + diastolic,
    then the lowest diastolic, then the earliest wall-clock time.

    Args:
        points: Reconciled blood pressure points.
        window: Maximum distance from the anchor.

    Returns:
        One point per cluster, in chronological order.

    Raises:
        ValidationError: If a point does not hold a blood pressure record.
    """
    ordered = sorted(points, key=lambda p: p.wall_clock)
    for point in ordered:
        if not isinstance(point.record, BloodPressureRecord):
            raise ValidationError(
                f"Cannot cluster {point.record.kind} record {point.record.id} as blood pressure"
            )

    clusters: list[list[ReconciledPoint]] = []
    anchor: datetime | None = None

    for point in ordered:
        if anchor is not None and within_window(anchor, point.wall_clock, window):
            clusters[-1].append(point)
        else:
            anchor = point.wall_clock
            clusters.append([point])

    kept = [min(cluster, key=_representative_key) for cluster in clusters]

    logger.debug(f"Clustered {len(ordered)} blood pressure readings into {len(kept)}")
    return kept


def cluster_window(config: ReconciliationConfig | None = None) -> timedelta:
    """Return the configured blood pressure clustering window."""
    config = config or ReconciliationConfig()
    return timedelta(minutes=config.bp_cluster_window_minutes)


def without_excluded(points: Iterable[ReconciledPoint]) -> list[ReconciledPoint]:
    """Drop points whose record is flagged ``exclude_from_graph``."""
    return [p for p in points if not p.excluded]
