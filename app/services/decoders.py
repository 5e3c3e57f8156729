"""Decoders for the three coexisting upload formats.

The format is never sniffed from the payload: every TCP listener is bound to
exactly one decoder in :data:`DECODERS`. A decoder either returns the whole
upload or raises :class:`DecodeError`; one bad message rejects its batch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from pydantic import ValidationError

from app.models.entities import CoordinatorReading, Reading
from app.models.enums import FormatVersion
from app.schemas.payload import UploadPayload
from app.services import codec
from app.services.framer import split_messages

V1_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
V1_FIELD_COUNT = 7
V2_READING_FIELD_COUNT = 5
V2_TRAILER_FIELD_COUNT = 3


class DecodeError(ValueError):
    """Base class for payloads that cannot be turned into readings."""


class MalformedMessage(DecodeError):
    pass


class MissingSensorID(DecodeError):
    pass


@dataclass
class Upload:
    version: FormatVersion
    readings: list[Reading] = field(default_factory=list)
    coordinator_reading: CoordinatorReading | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _split_fields(message: str, expected: int) -> list[str]:
    parts = message.split(";")
    if len(parts) != expected:
        raise MalformedMessage(f"{expected} fields expected, got {len(parts)}: {message!r}")
    return parts


def _to_int(value: str, name: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        raise MalformedMessage(f"Invalid {name}: {value!r}") from None


def _to_float(value: str, name: str) -> float:
    try:
        return float(value.strip())
    except ValueError:
        raise MalformedMessage(f"Invalid {name}: {value!r}") from None


def _require_sensor_id(sensor_id: str) -> str:
    sensor_id = sensor_id.strip()
    if not sensor_id:
        raise MissingSensorID("Missing sensor ID")
    return sensor_id


def parse_v1_datetime(value: str) -> datetime:
    # strptime accepts unpadded month, day, hour, minute and second fields.
    try:
        parsed = datetime.strptime(value.strip(), V1_DATETIME_FORMAT)
    except ValueError:
        raise MalformedMessage(f"Invalid datetime: {value!r}") from None
    return parsed.replace(tzinfo=timezone.utc)


def parse_tick_v1(line: str) -> Reading:
    """Parse ``datetime;sensor_id;next;battery;temperature;humidity;radio``."""
    line = line.strip()
    if line.startswith("<"):
        line = line[1:]
    if line.endswith(">"):
        line = line[:-1]
    parts = _split_fields(line, V1_FIELD_COUNT)
    raw_battery = _to_float(parts[3], "battery_voltage")
    raw_temperature = _to_int(parts[4], "temperature")
    return Reading(
        sensor_id=_require_sensor_id(parts[1]),
        timestamp=parse_v1_datetime(parts[0]),
        format_version=FormatVersion.V1,
        next_data_session=parts[2].strip(),
        raw_battery=raw_battery,
        battery_voltage=codec.convert_battery(FormatVersion.V1, raw_battery),
        raw_temperature=raw_temperature,
        temperature=codec.convert_temperature(FormatVersion.V1, raw_temperature),
        humidity=_to_int(parts[5], "humidity"),
        radio_quality=_to_int(parts[6], "radio_quality"),
    )


def parse_tick_v2(message: str, received_at: datetime | None = None) -> Reading:
    """Parse ``sensor_id;temperature;battery;humidity;send_counter``."""
    parts = _split_fields(message, V2_READING_FIELD_COUNT)
    sensor_id = _require_sensor_id(parts[0])
    raw_temperature = _to_float(parts[1], "temperature")
    raw_battery = _to_float(parts[2], "battery_voltage")
    return Reading(
        sensor_id=sensor_id,
        timestamp=received_at or _utcnow(),
        format_version=FormatVersion.V2,
        raw_temperature=raw_temperature,
        temperature=codec.convert_temperature(FormatVersion.V2, raw_temperature),
        raw_battery=raw_battery,
        battery_voltage=codec.convert_battery(FormatVersion.V2, raw_battery),
        humidity=_to_int(parts[3], "humidity"),
        send_counter=_to_int(parts[4], "send_counter"),
    )


def parse_coordinator_reading(message: str, received_at: datetime | None = None) -> CoordinatorReading:
    """Parse the ``coordinator_id;gsm_coverage;battery`` trailer of a V2 upload."""
    parts = _split_fields(message, V2_TRAILER_FIELD_COUNT)
    coordinator_id = parts[0].strip()
    if not coordinator_id:
        raise MalformedMessage("Missing coordinator ID")
    raw_battery = _to_float(parts[2], "battery_voltage")
    return CoordinatorReading(
        coordinator_id=coordinator_id,
        timestamp=received_at or _utcnow(),
        gsm_coverage=_to_int(parts[1], "gsm_coverage"),
        raw_battery=raw_battery,
        battery_voltage=codec.battery_voltage(raw_battery),
    )


def decode_v1(data: bytes, received_at: datetime | None = None) -> Upload:
    text = data.decode("utf-8", errors="replace")
    readings = []
    for line in text.replace("\r", "\n").split("\n"):
        if not line.strip():
            continue
        readings.append(parse_tick_v1(line))
    return Upload(version=FormatVersion.V1, readings=readings)


def decode_v2(data: bytes, received_at: datetime | None = None) -> Upload:
    received_at = received_at or _utcnow()
    messages = split_messages(data)
    if len(messages) < 2:
        raise MalformedMessage("Invalid package: at least 1 sensor reading and 1 coordinator reading expected")
    trailer = parse_coordinator_reading(messages[-1], received_at)
    readings = []
    for message in messages[:-1]:
        if not message:
            continue
        reading = parse_tick_v2(message, received_at)
        reading.coordinator_id = trailer.coordinator_id
        readings.append(reading)
    return Upload(version=FormatVersion.V2, readings=readings, coordinator_reading=trailer)


def decode_v3(data: bytes, received_at: datetime | None = None) -> Upload:
    received_at = received_at or _utcnow()
    try:
        payload = UploadPayload.model_validate_json(data)
    except ValidationError as exc:
        raise MalformedMessage(f"Invalid JSON payload: {exc}") from exc

    coordinator = payload.coordinator
    if not coordinator.coordinator_id:
        raise MalformedMessage("Missing coordinator ID")
    readings = []
    for item in coordinator.sensor_readings:
        readings.append(
            Reading(
                sensor_id=_require_sensor_id(item.sensor_id),
                timestamp=received_at,
                format_version=FormatVersion.V3,
                raw_temperature=item.sensor_temperature,
                temperature=codec.convert_temperature(FormatVersion.V3, item.sensor_temperature),
                raw_battery=item.battery_voltage,
                battery_voltage=codec.convert_battery(FormatVersion.V3, item.battery_voltage),
                humidity=item.moisture,
                send_counter=item.sendcounter,
                coordinator_id=coordinator.coordinator_id,
            )
        )
    coordinator_reading = CoordinatorReading(
        coordinator_id=coordinator.coordinator_id,
        timestamp=received_at,
        gsm_coverage=coordinator.gsm_coverage,
        raw_battery=coordinator.battery_voltage,
        battery_voltage=codec.battery_voltage(coordinator.battery_voltage),
        uptime=coordinator.uptime,
        first_overflow=coordinator.first_overflow,
        tries=coordinator.tries,
        successes=coordinator.successes,
    )
    return Upload(version=FormatVersion.V3, readings=readings, coordinator_reading=coordinator_reading)


Decoder = Callable[[bytes, datetime | None], Upload]

DECODERS: dict[FormatVersion, Decoder] = {
    FormatVersion.V1: decode_v1,
    FormatVersion.V2: decode_v2,
    FormatVersion.V3: decode_v3,
}
