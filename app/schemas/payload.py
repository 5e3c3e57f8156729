from pydantic import BaseModel, ConfigDict, Field, field_validator


class SensorReadingIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    sensor_id: str
    battery_voltage: int
    cpu_temperature: int = 0
    sensor_temperature: int
    moisture: int
    sendcounter: int = 0

    @field_validator("sensor_id", mode="before")
    @classmethod
    def _coerce_sensor_id(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class CoordinatorIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    coordinator_id: str
    gsm_coverage: int = 0
    battery_voltage: int = 0
    uptime: int = 0
    first_overflow: int = 0
    tries: int = 0
    successes: int = 0
    sensor_readings: list[SensorReadingIn] = Field(default_factory=list)

    @field_validator("coordinator_id", mode="before")
    @classmethod
    def _coerce_coordinator_id(cls, value):
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class UploadPayload(BaseModel):
    """JSON document a V3 coordinator sends over TCP."""

    coordinator: CoordinatorIn
