"""Tests for raw value conversion."""
import hashlib

import pytest

from app.models.enums import FormatVersion
from app.services import codec


@pytest.mark.parametrize(
    "code, expected",
    [
        (5056, 19.5),
        (2528, 9.5),
        (2240, 8.5),
        (5632, 22.0),
        (6784, 26.5),
        (0, 0.0),
    ],
)
def test_decode_temperature(code: int, expected: float):
    assert codec.decode_temperature(code) == expected


def test_decode_temperature_sign_bit():
    assert codec.decode_temperature(0x8000 | 2528) == -9.5


def test_decode_temperature_ignores_low_bits():
    # Bits 0-6 carry no weight.
    assert codec.decode_temperature(2528 | 0x7F) == 9.5


def test_decode_temperature_full_magnitude():
    assert codec.decode_temperature(0x7F80) == 127.5


def test_linear_temperature():
    assert codec.linear_temperature(324.31) == pytest.approx(0.0)
    assert codec.linear_temperature(621) == pytest.approx((621 - 324.31) / 1.22)


def test_adc_temperature_with_calibration():
    base = codec.adc_temperature(347)
    assert base == pytest.approx(((347 * 0.001292) - 0.6) / 0.01)
    assert codec.adc_temperature(347, 1.5) == pytest.approx(base + 1.5)
    assert codec.adc_temperature(347, None) == base


def test_convert_temperature_dispatches_on_version():
    assert codec.convert_temperature(FormatVersion.V1, 5056) == 19.5
    assert codec.convert_temperature(FormatVersion.V2, 347) == codec.adc_temperature(347)
    assert codec.convert_temperature(FormatVersion.V3, 621) == codec.linear_temperature(621)


def test_battery_conversion():
    assert codec.battery_voltage(886) == pytest.approx(3.40224)
    assert codec.convert_battery(FormatVersion.V1, 3158) == pytest.approx(3.158)
    assert codec.convert_battery(FormatVersion.V3, 797) == pytest.approx(797 * 0.00384)


def test_coordinator_token():
    expected = hashlib.md5(b"OPEN13SENSOR13PLATFORM").hexdigest()
    assert codec.coordinator_token("13") == expected
    assert codec.coordinator_token("13") == codec.coordinator_token("13")
    assert codec.coordinator_token("14") != expected
