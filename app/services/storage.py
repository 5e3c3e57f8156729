from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator
from uuid import uuid4

from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.core.config import Settings
from app.models.entities import Coordinator, CoordinatorReading, Reading, Sensor
from app.models.enums import FormatVersion, LogStream
from app.services.codec import coordinator_token
from app.services.decoders import MissingSensorID

log = logging.getLogger("tick-store")

LOG_STREAM_KEYS = {
    LogStream.V1: "logs",
    LogStream.V2: "logs:v2",
    LogStream.V3: "logs:v3",
}


class StoreUnavailable(RuntimeError):
    """The backing Redis instance failed or could not be reached."""


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except RedisError as exc:
        raise StoreUnavailable(f"{operation} failed: {exc}") from exc


class TickStore:
    """Per-sensor time series and the coordinator registry, kept in Redis.

    Ticks live in a sorted set per sensor scored by their Unix timestamp. Each
    stored member carries a random entry id so that identical readings are
    all kept instead of being collapsed by the set.
    """

    def __init__(self, redis: Redis, settings: Settings):
        self.redis = redis
        self.prefix = settings.key_prefix
        self.default_coordinator_id = settings.default_coordinator_id
        self.log_capacity = settings.log_capacity

    @classmethod
    def from_settings(cls, settings: Settings) -> "TickStore":
        return cls(Redis.from_url(settings.redis_url, decode_responses=True), settings)

    async def close(self) -> None:
        await self.redis.aclose()

    # --- keys --- #
    def _key(self, name: str) -> str:
        return f"{self.prefix}{name}"

    def sensor_ticks_key(self, sensor_id: str) -> str:
        return self._key(f"sensor:{sensor_id}:ticks")

    def sensor_fields_key(self, sensor_id: str) -> str:
        return self._key(f"sensor:{sensor_id}:fields")

    def coordinator_fields_key(self, coordinator_id: str) -> str:
        return self._key(f"coordinator:{coordinator_id}:fields")

    def coordinator_sensors_key(self, coordinator_id: str) -> str:
        return self._key(f"coordinator:{coordinator_id}:sensors")

    def coordinator_readings_key(self, coordinator_id: str) -> str:
        return self._key(f"coordinator:{coordinator_id}:readings")

    @property
    def coordinators_key(self) -> str:
        return self._key("coordinators")

    @property
    def sensor_to_coordinator_key(self) -> str:
        return self._key("sensor_to_coordinator")

    def log_key(self, stream: LogStream | FormatVersion) -> str:
        if isinstance(stream, FormatVersion):
            stream = LogStream.for_version(stream)
        return self._key(LOG_STREAM_KEYS[LogStream(stream)])

    # --- time series --- #
    async def append(self, sensor_id: str, timestamp: float, record: dict) -> None:
        member = json.dumps({**record, "id": uuid4().hex}, separators=(",", ":"))
        with _store_errors("append"):
            await self.redis.zadd(self.sensor_ticks_key(sensor_id), {member: timestamp})

    async def range_by_index(self, sensor_id: str, start: int, stop: int) -> list[Reading]:
        """Ticks newest first, by position (0 is the most recent)."""
        with _store_errors("range_by_index"):
            members = await self.redis.zrevrange(self.sensor_ticks_key(sensor_id), start, stop)
        return [self._load_reading(member) for member in members]

    async def range_by_score(self, sensor_id: str, start: float, end: float) -> list[Reading]:
        """Ticks with ``start <= timestamp <= end``, oldest first."""
        with _store_errors("range_by_score"):
            members = await self.redis.zrangebyscore(self.sensor_ticks_key(sensor_id), start, end)
        return [self._load_reading(member) for member in members]

    @staticmethod
    def _load_reading(member: str) -> Reading:
        return Reading.from_dict(json.loads(member))

    # --- registry --- #
    async def resolve_coordinator(self, sensor_id: str) -> str | None:
        with _store_errors("resolve_coordinator"):
            return await self.redis.hget(self.sensor_to_coordinator_key, sensor_id)

    async def associate(self, sensor_id: str, coordinator_id: str) -> None:
        with _store_errors("associate"):
            await self.redis.hset(self.sensor_to_coordinator_key, sensor_id, coordinator_id)
            await self.redis.sadd(self.coordinator_sensors_key(coordinator_id), sensor_id)

    async def register_coordinator(self, coordinator_id: str) -> None:
        """Add the coordinator to the registry and (re)write its access token."""
        with _store_errors("register_coordinator"):
            await self.redis.sadd(self.coordinators_key, coordinator_id)
            await self.redis.hset(
                self.coordinator_fields_key(coordinator_id), "token", coordinator_token(coordinator_id)
            )

    async def coordinator_sensor_ids(self, coordinator_id: str) -> set[str]:
        with _store_errors("coordinator_sensor_ids"):
            return set(await self.redis.smembers(self.coordinator_sensors_key(coordinator_id)))

    async def coordinator_sensors(self, coordinator_id: str) -> list[Sensor]:
        sensors = []
        for sensor_id in sorted(await self.coordinator_sensor_ids(coordinator_id)):
            sensor = await self.get_sensor(sensor_id, coordinator_id)
            sensors.append(sensor)
        return sensors

    async def get_sensor(self, sensor_id: str, coordinator_id: str | None = None) -> Sensor:
        with _store_errors("get_sensor"):
            lat, lng, calibration = await self.redis.hmget(
                self.sensor_fields_key(sensor_id), ["lat", "lng", "calibration_constant"]
            )
        if coordinator_id is None:
            coordinator_id = await self.resolve_coordinator(sensor_id) or self.default_coordinator_id
        last = await self.range_by_index(sensor_id, 0, 0)
        return Sensor(
            id=sensor_id,
            coordinator_id=coordinator_id,
            lat=lat,
            lng=lng,
            calibration_constant=float(calibration) if calibration not in (None, "") else None,
            last_tick=last[0].timestamp if last else None,
        )

    async def save_sensor_coordinates(self, sensor_id: str, lat: str, lng: str) -> None:
        with _store_errors("save_sensor_coordinates"):
            await self.redis.hset(self.sensor_fields_key(sensor_id), mapping={"lat": lat, "lng": lng})

    async def set_calibration_constant(self, sensor_id: str, value: float | None) -> None:
        with _store_errors("set_calibration_constant"):
            if value is None:
                await self.redis.hdel(self.sensor_fields_key(sensor_id), "calibration_constant")
            else:
                await self.redis.hset(self.sensor_fields_key(sensor_id), "calibration_constant", repr(value))

    async def calibration_constant(self, sensor_id: str) -> float | None:
        with _store_errors("calibration_constant"):
            value = await self.redis.hget(self.sensor_fields_key(sensor_id), "calibration_constant")
        if value in (None, ""):
            return None
        return float(value)

    # --- coordinators --- #
    async def coordinator_token(self, coordinator_id: str) -> str | None:
        with _store_errors("coordinator_token"):
            return await self.redis.hget(self.coordinator_fields_key(coordinator_id), "token")

    async def set_coordinator_name(self, coordinator_id: str, name: str) -> None:
        with _store_errors("set_coordinator_name"):
            await self.redis.sadd(self.coordinators_key, coordinator_id)
            await self.redis.hset(self.coordinator_fields_key(coordinator_id), "name", name)

    async def coordinator_name(self, coordinator_id: str) -> str:
        with _store_errors("coordinator_name"):
            name = await self.redis.hget(self.coordinator_fields_key(coordinator_id), "name")
        return name or coordinator_id

    async def get_coordinator(self, coordinator_id: str) -> Coordinator | None:
        with _store_errors("get_coordinator"):
            name, token = await self.redis.hmget(self.coordinator_fields_key(coordinator_id), ["name", "token"])
        if token is None and name is None:
            return None
        return Coordinator(
            id=coordinator_id,
            token=token or coordinator_token(coordinator_id),
            display_name=name or coordinator_id,
            sensor_ids=await self.coordinator_sensor_ids(coordinator_id),
        )

    async def list_coordinators(self) -> list[Coordinator]:
        with _store_errors("list_coordinators"):
            ids = await self.redis.smembers(self.coordinators_key)
        coordinators = []
        for coordinator_id in sorted(ids):
            coordinator = await self.get_coordinator(coordinator_id)
            if coordinator is not None:
                coordinators.append(coordinator)
        return coordinators

    async def save_coordinator_reading(self, reading: CoordinatorReading) -> None:
        member = json.dumps({**reading.to_dict(), "id": uuid4().hex}, separators=(",", ":"))
        score = datetime.now(timezone.utc).timestamp()
        with _store_errors("save_coordinator_reading"):
            await self.redis.zadd(self.coordinator_readings_key(reading.coordinator_id), {member: score})

    async def coordinator_readings(self, coordinator_id: str, start: int, stop: int) -> list[CoordinatorReading]:
        with _store_errors("coordinator_readings"):
            members = await self.redis.zrevrange(self.coordinator_readings_key(coordinator_id), start, stop)
        return [CoordinatorReading.from_dict(json.loads(member)) for member in members]

    # --- ingestion --- #
    async def save(self, reading: Reading) -> str:
        """Append a tick and update the registry; returns the owning coordinator id."""
        if not reading.sensor_id:
            raise MissingSensorID("Missing sensor ID")
        log.debug("Saving tick %s", reading)

        await self.append(reading.sensor_id, reading.score, reading.to_dict())

        coordinator_id = reading.coordinator_id
        if not coordinator_id:
            coordinator_id = await self.resolve_coordinator(reading.sensor_id)
        if not coordinator_id:
            log.info(
                "Coordinator not found for sensor %s, saving tick to coordinator %s",
                reading.sensor_id,
                self.default_coordinator_id,
            )
            coordinator_id = self.default_coordinator_id
        reading.coordinator_id = coordinator_id

        await self.register_coordinator(coordinator_id)
        await self.associate(reading.sensor_id, coordinator_id)
        return coordinator_id

    # --- diagnostic logs --- #
    async def push_log(self, stream: LogStream | FormatVersion, raw: bytes) -> None:
        entry = f"{datetime.now(timezone.utc).isoformat()} {raw.decode('utf-8', errors='replace')}"
        key = self.log_key(stream)
        with _store_errors("push_log"):
            await self.redis.lpush(key, entry)
            await self.redis.ltrim(key, 0, self.log_capacity - 1)

    async def recent_log_entries(self, stream: LogStream | FormatVersion, limit: int | None = None) -> list[str]:
        limit = self.log_capacity if limit is None else min(limit, self.log_capacity)
        if limit <= 0:
            return []
        with _store_errors("recent_log_entries"):
            return await self.redis.lrange(self.log_key(stream), 0, limit - 1)
