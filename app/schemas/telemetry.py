from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class TickOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    sensor_id: str
    timestamp: datetime
    format_version: int | None = None
    raw_temperature: float = 0
    temperature: float = 0.0
    battery_voltage: float = 0.0
    humidity: int = 0
    radio_quality: int = 0
    send_counter: int = 0
    next_data_session: str | None = None


class SensorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    coordinator_id: str
    lat: str | None = None
    lng: str | None = None
    calibration_constant: float | None = None
    last_tick: datetime | None = None


class SensorIn(BaseModel):
    lat: str | None = None
    lng: str | None = None
    calibration_constant: float | None = None


class CoordinatorOut(BaseModel):
    id: str
    label: str
    token: str | None = None


class CoordinatorIn(BaseModel):
    label: str = Field(..., min_length=1)


class CoordinatorReadingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    coordinator_id: str
    timestamp: datetime
    gsm_coverage: int
    battery_voltage: float
    uptime: int | None = None
    first_overflow: int | None = None
    tries: int | None = None
    successes: int | None = None
