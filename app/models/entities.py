from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from app.models.enums import FormatVersion
from app.services.codec import millivolts_to_volts

# Older records carry nanosecond fractions; datetime keeps microseconds.
_FRACTION = re.compile(r"(\.\d{6})\d+")


def _parse_datetime(value: str) -> datetime:
    # Older records were written with a trailing "Z".
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    value = _FRACTION.sub(r"\1", value, count=1)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _sensor_id_from_json(value: Any) -> str:
    # Sensor IDs were plain integers before hardware IDs were introduced.
    if isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        return str(int(value))
    if isinstance(value, str):
        return value
    return ""


def _number(value: Any, cast=float):
    if value is None or value == "":
        return cast(0)
    return cast(value)


@dataclass
class Reading:
    """One measurement from a sensor, also called a tick."""

    sensor_id: str
    timestamp: datetime
    format_version: FormatVersion | None = None
    raw_temperature: float = 0
    temperature: float = 0.0
    raw_battery: float = 0
    battery_voltage: float = 0.0
    humidity: int = 0
    radio_quality: int = 0
    send_counter: int = 0
    next_data_session: str | None = None
    # Routing key only, never part of the stored record.
    coordinator_id: str | None = field(default=None, compare=False)

    @property
    def score(self) -> int:
        return int(self.timestamp.timestamp())

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "sensor_id": self.sensor_id,
            "datetime": self.timestamp.isoformat(),
            "raw_temperature": self.raw_temperature,
            "temperature": self.temperature,
            "raw_battery": self.raw_battery,
            "battery_voltage": self.battery_voltage,
            "humidity": self.humidity,
            "radio_quality": self.radio_quality,
            "send_counter": self.send_counter,
            "version": int(self.format_version) if self.format_version is not None else None,
        }
        if self.next_data_session is not None:
            data["next_data_session"] = self.next_data_session
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Reading":
        sensor_id = _sensor_id_from_json(data.get("sensor_id"))
        if not sensor_id:
            raise ValueError("Missing sensor_id in stored record")
        if "datetime" not in data:
            raise ValueError("Missing datetime in stored record")
        version = data.get("version")
        if "battery_voltage" in data:
            battery = _number(data["battery_voltage"])
        else:
            battery = _number(data.get("battery_voltage_visual"))
            # The old field held millivolts for V1 and untagged records.
            if version in (None, 0, FormatVersion.V1):
                battery = millivolts_to_volts(battery)
        return cls(
            sensor_id=sensor_id,
            timestamp=_parse_datetime(data["datetime"]),
            format_version=FormatVersion(version) if version else None,
            raw_temperature=_number(data.get("raw_temperature")),
            temperature=_number(data.get("temperature")),
            raw_battery=_number(data.get("raw_battery")),
            battery_voltage=battery,
            humidity=_number(data.get("humidity", data.get("sensor2")), int),
            radio_quality=_number(data.get("radio_quality"), int),
            send_counter=_number(data.get("send_counter"), int),
            next_data_session=data.get("next_data_session"),
        )


@dataclass
class CoordinatorReading:
    """Health summary a coordinator sends along with its sensors' readings."""

    coordinator_id: str
    timestamp: datetime
    gsm_coverage: int = 0
    raw_battery: float = 0
    battery_voltage: float = 0.0
    uptime: int | None = None
    first_overflow: int | None = None
    tries: int | None = None
    successes: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "coordinator_id": self.coordinator_id,
            "datetime": self.timestamp.isoformat(),
            "gsm_coverage": self.gsm_coverage,
            "raw_battery": self.raw_battery,
            "battery_voltage": self.battery_voltage,
            "uptime": self.uptime,
            "first_overflow": self.first_overflow,
            "tries": self.tries,
            "successes": self.successes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CoordinatorReading":
        return cls(
            coordinator_id=str(data["coordinator_id"]),
            timestamp=_parse_datetime(data["datetime"]),
            gsm_coverage=_number(data.get("gsm_coverage"), int),
            raw_battery=_number(data.get("raw_battery")),
            battery_voltage=_number(data.get("battery_voltage")),
            uptime=data.get("uptime"),
            first_overflow=data.get("first_overflow"),
            tries=data.get("tries"),
            successes=data.get("successes"),
        )


@dataclass
class Sensor:
    id: str
    coordinator_id: str
    lat: str | None = None
    lng: str | None = None
    calibration_constant: float | None = None
    last_tick: datetime | None = None


@dataclass
class Coordinator:
    id: str
    token: str
    display_name: str = ""
    sensor_ids: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        if not self.display_name:
            self.display_name = self.id
