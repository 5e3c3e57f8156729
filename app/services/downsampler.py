"""Time-bucketed averages ("dots") used for coarse charts."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Sequence

from app.models.entities import Reading

HOURS_PER_DAY = 24
MAX_DOTS_PER_DAY = 24


def downsample(
    readings: Sequence[Reading],
    dots_per_day: int,
    start: int,
    end: int,
    sensor_id: str = "",
) -> list[Reading]:
    """Average ``readings`` into buckets of ``24 // dots_per_day`` hours.

    ``dots_per_day == 0`` disables downsampling and returns the readings as
    given. Bucket sizes are truncated, so 5 dots per day yields 4 hour
    buckets. A bucket without readings still produces an all-zero dot.
    """
    if not 0 <= dots_per_day <= MAX_DOTS_PER_DAY:
        raise ValueError(f"dots_per_day must be in range 0-{MAX_DOTS_PER_DAY}")
    if dots_per_day == 0:
        return list(readings)

    increment = timedelta(hours=HOURS_PER_DAY // dots_per_day)
    bucket_start = datetime.fromtimestamp(start, tz=timezone.utc)
    end_time = datetime.fromtimestamp(end, tz=timezone.utc)
    dots = []
    while bucket_start < end_time:
        bucket_end = bucket_start + increment
        dots.append(average_matching(readings, bucket_start, bucket_end, sensor_id))
        bucket_start = bucket_end
    return dots


def average_matching(
    readings: Sequence[Reading], start: datetime, end: datetime, sensor_id: str = ""
) -> Reading:
    matching = [reading for reading in readings if start <= reading.timestamp < end]
    dot = Reading(sensor_id=sensor_id, timestamp=start)
    if not matching:
        return dot

    count = len(matching)
    dot.battery_voltage = sum(r.battery_voltage for r in matching) / count
    dot.temperature = sum(r.temperature for r in matching) / count
    # Integer channels keep integer averages, truncated toward zero.
    dot.humidity = int(sum(r.humidity for r in matching) / count)
    dot.radio_quality = int(sum(r.radio_quality for r in matching) / count)
    return dot
