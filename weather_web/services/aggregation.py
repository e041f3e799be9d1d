"""
Time-windowed read queries over stored readings.

Readings are bucketed by their own `unix_timestamp` truncated to the hour
(UTC), never by the time they were received, so backfilled data lands in
the right bucket.
"""

import re
import time
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Tuple

from sqlalchemy import Integer, func, literal_column, select
from sqlalchemy.orm import aliased

from weather_web import config
from weather_web.exceptions import NotFoundError, ValidationError
from weather_web.db.models import Reading, Sender, Statistic
from weather_web.db.session import DatabaseSessionManager
from weather_web.dto.reading import HourlyAverageDTO, ReadingDTO
from weather_web.dto.statistic import StatisticDTO
from weather_web.dto.visualization import SenderSeriesDTO, SeriesSummary
from weather_web.services.conditions import StatType
from weather_web.services.reading import query_readings
from weather_web.services.sender import list_active_senders

SECONDS_PER_HOUR = 3600

DEFAULT_SAMPLE_HOURS = 5
DEFAULT_RANGE_HOURS = 24
DEFAULT_STATISTICS_LIMIT = 24
MAX_STATISTICS_LIMIT = 1000

LEADING_INTEGER = re.compile(r"\s*[+-]?\d+")


def clamp_hours(value: Any, default: int, maximum: int) -> int:
    """
    Turn a caller supplied window into a usable number of hours.

    Only the leading integer counts, so "3.5" and "12h" give 3 and 12.
    Missing, unparsable and non-positive values fall back to `default`,
    values above `maximum` are cut down to it.
    """
    if value is None or isinstance(value, bool):
        return default
    match = LEADING_INTEGER.match(str(value))
    if match is None:
        return default
    hours = int(match.group(0))
    if hours < 1:
        return default
    return min(hours, maximum)


def clamp_limit(value: Any) -> int:
    return clamp_hours(value, DEFAULT_STATISTICS_LIMIT, MAX_STATISTICS_LIMIT)


def _window_start(hours: int, now: Optional[int]) -> int:
    if now is None:
        now = int(time.time())
    return now - hours * SECONDS_PER_HOUR


def _hour_bucket() -> Any:
    # Rendered inline so SELECT and GROUP BY share the identical expression
    divisor = literal_column(str(SECONDS_PER_HOUR), Integer)
    return Reading.unix_timestamp // divisor


async def get_latest(
    db: DatabaseSessionManager, sender_id: str
) -> Optional[ReadingDTO]:
    async with db.session() as session:
        stmt = (
            select(Reading)
            .where(Reading.sender_id == sender_id)
            .order_by(Reading.unix_timestamp.desc(), Reading.id.desc())
            .limit(1)
        )
        result = (await session.execute(stmt)).scalars().first()
        if result is None:
            return None
        return ReadingDTO.model_validate(result)


async def get_range(
    db: DatabaseSessionManager,
    sender_id: str,
    hours: Any = None,
    now: Optional[int] = None,
    maximum: int = config.MAX_HOURS_STANDARD,
) -> List[ReadingDTO]:
    hours = clamp_hours(hours, DEFAULT_RANGE_HOURS, maximum)
    return await query_readings(
        db, sender_id, since=_window_start(hours, now)
    )


async def get_hourly_samples(
    db: DatabaseSessionManager,
    sender_id: str,
    hours: Any = None,
    now: Optional[int] = None,
) -> List[ReadingDTO]:
    """
    One reading per hour bucket: the earliest one in each bucket.

    At most `hours` buckets are returned, the most recent ones, ordered
    oldest first. Ties on the timestamp go to the lowest row id.
    """
    hours = clamp_hours(
        hours, DEFAULT_SAMPLE_HOURS, config.MAX_HOURS_STANDARD
    )

    rank = (
        func.row_number()
        .over(
            partition_by=_hour_bucket(),
            order_by=(Reading.unix_timestamp, Reading.id),
        )
        .label("bucket_rank")
    )
    ranked = (
        select(Reading, rank)
        .where(
            Reading.sender_id == sender_id,
            Reading.unix_timestamp >= _window_start(hours, now),
        )
        .subquery()
    )
    sample = aliased(Reading, ranked)
    stmt = (
        select(sample)
        .where(ranked.c.bucket_rank == 1)
        .order_by(sample.unix_timestamp.desc())
        .limit(hours)
    )

    async with db.session() as session:
        result = await session.execute(stmt)
        samples = [ReadingDTO.model_validate(r) for r in result.scalars()]

    samples.reverse()
    return samples


async def get_hourly_averages(
    db: DatabaseSessionManager,
    sender_id: str,
    hours: Any = None,
    now: Optional[int] = None,
) -> List[HourlyAverageDTO]:
    hours = clamp_hours(hours, DEFAULT_RANGE_HOURS, config.MAX_HOURS_STANDARD)

    bucket = _hour_bucket().label("bucket")
    stmt = (
        select(
            bucket,
            func.avg(Reading.temperature).label("avg_temp"),
            func.min(Reading.temperature).label("min_temp"),
            func.max(Reading.temperature).label("max_temp"),
            func.avg(Reading.humidity).label("avg_humidity"),
            func.avg(Reading.pressure).label("avg_pressure"),
            func.count(Reading.id).label("measurement_count"),
        )
        .where(
            Reading.sender_id == sender_id,
            Reading.unix_timestamp >= _window_start(hours, now),
        )
        .group_by(bucket)
        .order_by(bucket)
    )

    async with db.session() as session:
        rows = (await session.execute(stmt)).all()

    return [
        HourlyAverageDTO(
            hour=datetime.fromtimestamp(
                int(row.bucket) * SECONDS_PER_HOUR, tz=timezone.utc
            ),
            avg_temp=row.avg_temp,
            min_temp=row.min_temp,
            max_temp=row.max_temp,
            avg_humidity=row.avg_humidity,
            avg_pressure=row.avg_pressure,
            measurement_count=row.measurement_count,
        )
        for row in rows
    ]


def parse_stat_type(value: Any) -> StatType:
    try:
        if not isinstance(value, str):
            raise ValueError(value)
        return StatType(value.strip().lower())
    except ValueError:
        raise ValidationError(
            "Invalid statistics type. Must be one of: "
            + ", ".join(t.value for t in StatType)
        )


def period_bounds(
    stat_type: StatType, at: datetime
) -> Tuple[datetime, datetime]:
    """
    The [start, end) period of the given granularity containing `at`.

    Days, weeks (starting Monday) and months are taken in UTC.
    """
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    at = at.astimezone(timezone.utc)

    hour = at.replace(minute=0, second=0, microsecond=0)
    if stat_type is StatType.HOURLY:
        return hour, hour + timedelta(hours=1)

    day = hour.replace(hour=0)
    if stat_type is StatType.DAILY:
        return day, day + timedelta(days=1)
    if stat_type is StatType.WEEKLY:
        start = day - timedelta(days=day.weekday())
        return start, start + timedelta(weeks=1)

    start = day.replace(day=1)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


async def get_statistics(
    db: DatabaseSessionManager,
    sender_id: str,
    stat_type: Any = StatType.HOURLY,
    limit: Any = None,
) -> List[StatisticDTO]:
    stat_type = parse_stat_type(stat_type)
    async with db.session() as session:
        stmt = (
            select(Statistic)
            .where(
                Statistic.sender_id == sender_id,
                Statistic.stat_type == stat_type.value,
            )
            .order_by(Statistic.period_start.desc(), Statistic.id.desc())
            .limit(clamp_limit(limit))
        )
        result = await session.execute(stmt)
        return [StatisticDTO.model_validate(s) for s in result.scalars()]


async def compute_statistic(
    db: DatabaseSessionManager,
    sender_id: str,
    stat_type: Any,
    at: Optional[datetime] = None,
) -> Optional[StatisticDTO]:
    """
    Roll up the readings of the period containing `at` into a new
    statistics row.

    Returns None, writing nothing, when the period holds no readings.
    Rollups are append-only: computing a period twice stores two rows.
    """
    stat_type = parse_stat_type(stat_type)
    start, end = period_bounds(stat_type, at or datetime.now(timezone.utc))

    stmt = select(
        func.count(Reading.id).label("data_points"),
        func.avg(Reading.temperature).label("avg_temperature"),
        func.min(Reading.temperature).label("min_temperature"),
        func.max(Reading.temperature).label("max_temperature"),
        func.avg(Reading.humidity).label("avg_humidity"),
        func.min(Reading.humidity).label("min_humidity"),
        func.max(Reading.humidity).label("max_humidity"),
        func.avg(Reading.pressure).label("avg_pressure"),
    ).where(
        Reading.sender_id == sender_id,
        Reading.unix_timestamp >= int(start.timestamp()),
        Reading.unix_timestamp < int(end.timestamp()),
    )

    async with db.session() as session:
        sender = (
            await session.execute(
                select(Sender.id).where(Sender.sender_id == sender_id)
            )
        ).first()
        if sender is None:
            raise NotFoundError(f"Sender not found: {sender_id}")

        row = (await session.execute(stmt)).one()
        if not row.data_points:
            return None

        stat = Statistic(
            sender_id=sender_id,
            stat_type=stat_type.value,
            period_start=start,
            period_end=end,
            **row._asdict(),
        )
        session.add(stat)
        await session.commit()
        return StatisticDTO.model_validate(stat)


def _mean(values: List[float | None]) -> float | None:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


async def visualization_data(
    db: DatabaseSessionManager,
    hours: Any = None,
    now: Optional[int] = None,
) -> List[SenderSeriesDTO]:
    """Readings of every active sender over a window, with a summary."""
    hours = clamp_hours(
        hours, DEFAULT_RANGE_HOURS, config.MAX_HOURS_VISUALIZATION
    )

    series = []
    for sender in await list_active_senders(db):
        data = await get_range(
            db,
            sender.sender_id,
            hours,
            now=now,
            maximum=config.MAX_HOURS_VISUALIZATION,
        )
        series.append(
            SenderSeriesDTO(
                sender=sender,
                data_points=data,
                statistics=SeriesSummary(
                    count=len(data),
                    avg_temperature=_mean([d.temperature for d in data]),
                    avg_humidity=_mean([d.humidity for d in data]),
                    avg_pressure=_mean([d.pressure for d in data]),
                ),
            )
        )
    return series
