"""Conversion of raw sensor codes into physical units.

Each wire format ships temperature in its own encoding, so the formula is
chosen by :class:`FormatVersion`:

* V1 sends a bit-packed sign-magnitude code (:func:`decode_temperature`).
* V2 sends an ADC reading converted with :func:`adc_temperature`, which
  honours an optional per-sensor calibration constant.
* V3 sends an ADC reading converted with :func:`linear_temperature`.
"""

from __future__ import annotations

import hashlib

from app.models.enums import FormatVersion

# Weight contributed by each set bit of a V1 temperature code, bit 15 is the sign.
TEMPERATURE_BIT_WEIGHTS: tuple[tuple[int, float], ...] = (
    (7, 0.5),
    (8, 1),
    (9, 2),
    (10, 4),
    (11, 8),
    (12, 16),
    (13, 32),
    (14, 64),
)
TEMPERATURE_SIGN_BIT = 15

BATTERY_VOLTS_PER_UNIT = 0.00384
MILLIVOLTS_PER_VOLT = 1000


def decode_temperature(code: int) -> float:
    value = 0.0
    for bit, weight in TEMPERATURE_BIT_WEIGHTS:
        if code & (1 << bit):
            value += weight
    if code & (1 << TEMPERATURE_SIGN_BIT):
        value = -value
    return value


def linear_temperature(raw: float) -> float:
    return (raw - 324.31) / 1.22


def adc_temperature(raw: float, calibration_constant: float | None = None) -> float:
    temperature = ((raw * 0.001292) - 0.6) / 0.01
    if calibration_constant is not None:
        temperature += calibration_constant
    return temperature


def convert_temperature(
    version: FormatVersion, raw: float, calibration_constant: float | None = None
) -> float:
    if version is FormatVersion.V1:
        return decode_temperature(int(raw))
    if version is FormatVersion.V2:
        return adc_temperature(raw, calibration_constant)
    if version is FormatVersion.V3:
        return linear_temperature(raw)
    raise ValueError(f"Unsupported format version: {version!r}")


def battery_voltage(raw: float) -> float:
    """Volts from a V2/V3 battery code."""
    return raw * BATTERY_VOLTS_PER_UNIT


def millivolts_to_volts(millivolts: float) -> float:
    return millivolts / MILLIVOLTS_PER_VOLT


def convert_battery(version: FormatVersion, raw: float) -> float:
    if version is FormatVersion.V1:
        return millivolts_to_volts(raw)
    return battery_voltage(raw)


def coordinator_token(coordinator_id: str) -> str:
    seed = f"OPEN{coordinator_id}SENSOR{coordinator_id}PLATFORM"
    return hashlib.md5(seed.encode("utf-8")).hexdigest()
