"""Tests for the V1, V2 and V3 upload decoders."""
from datetime import datetime, timezone

import pytest

from app.models.enums import FormatVersion
from app.services import codec
from app.services.decoders import (
    DECODERS,
    MalformedMessage,
    MissingSensorID,
    decode_v1,
    decode_v2,
    decode_v3,
    parse_tick_v1,
)


def test_parse_tick_v1_fields():
    tick = parse_tick_v1("<2012-12-26 12:46:5;75942;60;3158;5632;1584;144>")
    assert tick.sensor_id == "75942"
    assert tick.next_data_session == "60"
    assert tick.raw_battery == 3158
    assert tick.battery_voltage == pytest.approx(3.158)
    assert tick.raw_temperature == 5632
    assert tick.temperature == 22.0
    assert tick.humidity == 1584
    assert tick.radio_quality == 144
    assert tick.format_version is FormatVersion.V1


def test_parse_tick_v1_unpadded_datetime():
    tick = parse_tick_v1("<2012-2-5 12:46:5;75942;60;3158;5632;1584;144>")
    assert tick.timestamp == datetime(2012, 2, 5, 12, 46, 5, tzinfo=timezone.utc)
    assert tick.timestamp.tzname() == "UTC"


@pytest.mark.parametrize(
    "line, field, expected",
    [
        ("<2012-12-26 12:46:05;75942;60;3158;5632;1584;144>", "second", 5),
        ("<2012-12-26 12:46:35;75942;60;3158;5632;1584;144>", "second", 35),
        ("<2012-12-26 13:2:36;75942;10;3202;6784;1580;150>", "minute", 2),
        ("<2012-12-26 12:46:5;75942;60;3158;5632;1584;144>", "month", 12),
    ],
)
def test_parse_tick_v1_datetime_parts(line: str, field: str, expected: int):
    assert getattr(parse_tick_v1(line).timestamp, field) == expected


def test_parse_tick_v1_without_brackets():
    tick = parse_tick_v1("2013-4-7 10:24:39;426842;60;3135;6656;2312;126")
    assert tick.sensor_id == "426842"


@pytest.mark.parametrize(
    "line",
    [
        "<2012-12-26 12:46:5;75942;60;3158;5632;1584>",
        "<2012-12-26 12:46:5;75942;60;3158;warm;1584;144>",
        "<2012-13-26 12:46:5;75942;60;3158;5632;1584;144>",
        "<yesterday;75942;60;3158;5632;1584;144>",
    ],
)
def test_parse_tick_v1_rejects_malformed(line: str):
    with pytest.raises(MalformedMessage):
        parse_tick_v1(line)


def test_parse_tick_v1_rejects_missing_sensor_id():
    with pytest.raises(MissingSensorID):
        parse_tick_v1("<2012-12-26 12:46:5;;60;3158;5632;1584;144>")


def test_decode_v1_example_file(testdata):
    upload = decode_v1((testdata / "example.txt").read_bytes())
    assert len(upload.readings) == 5
    assert {r.sensor_id for r in upload.readings} == {"426842", "75942"}
    assert upload.coordinator_reading is None


def test_decode_v1_single_line_starting_with_cr():
    upload = decode_v1(b"\r<2013-4-7 10:24:39;426842;60;3135;6656;2312;126>")
    assert len(upload.readings) == 1


def test_decode_v1_bad_line_rejects_batch():
    with pytest.raises(MalformedMessage):
        decode_v1(b"<2013-4-7 10:24:39;426842;60;3135;6656;2312;126>\r\n<2013-4-7 10:25:39;426842>\r\n")


def test_decode_v2():
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    upload = decode_v2(b"<13;347;886;199;51>(132207)<13;22;196>", now)
    assert len(upload.readings) == 1

    tick = upload.readings[0]
    assert tick.sensor_id == "13"
    assert tick.raw_temperature == 347
    assert tick.temperature == pytest.approx(codec.adc_temperature(347))
    assert tick.raw_battery == 886
    assert tick.battery_voltage == pytest.approx(886 * 0.00384)
    assert tick.humidity == 199
    assert tick.send_counter == 51
    assert tick.timestamp == now
    assert tick.format_version is FormatVersion.V2

    trailer = upload.coordinator_reading
    assert trailer.coordinator_id == "13"
    assert trailer.gsm_coverage == 22
    assert trailer.raw_battery == 196
    assert tick.coordinator_id == trailer.coordinator_id


def test_decode_v2_uses_ingestion_time_by_default():
    before = datetime.now(timezone.utc)
    upload = decode_v2(b"<13;347;886;199;51><13;22;196>")
    assert before <= upload.readings[0].timestamp <= datetime.now(timezone.utc)


def test_decode_v2_noise_between_messages():
    clean = decode_v2(b"<10;400;880;150;40><11;410;870;151;41><7;22;196>")
    noisy = decode_v2(b"<10;400;880;150;40>><11;410;870;151;41>\x00\r\n<7;22;196>")
    assert [r.sensor_id for r in noisy.readings] == [r.sensor_id for r in clean.readings] == ["10", "11"]
    assert all(r.coordinator_id == "7" for r in noisy.readings)


@pytest.mark.parametrize("payload", [b"", b"<13;22;196>", b"no frames at all"])
def test_decode_v2_requires_reading_and_trailer(payload: bytes):
    with pytest.raises(MalformedMessage):
        decode_v2(payload)


def test_decode_v2_bad_reading_rejects_batch():
    with pytest.raises(MalformedMessage):
        decode_v2(b"<13;347;886;199;51><14;347;886><13;22;196>")


def test_decode_v2_bad_trailer():
    with pytest.raises(MalformedMessage):
        decode_v2(b"<13;347;886;199;51><13;22;low>")


def test_decode_v3_example(testdata):
    now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    upload = decode_v3((testdata / "example.json").read_bytes(), now)
    assert len(upload.readings) == 3

    tick = upload.readings[0]
    assert tick.sensor_id == "13A20040B421AC"
    assert tick.raw_battery == 797
    assert tick.battery_voltage == pytest.approx(797 * 0.00384)
    assert tick.raw_temperature == 621
    assert tick.temperature == pytest.approx((621 - 324.31) / 1.22)
    assert tick.humidity == 92
    assert tick.send_counter == 18
    assert tick.coordinator_id == "20"
    assert tick.timestamp == now

    coordinator = upload.coordinator_reading
    assert coordinator.coordinator_id == "20"
    assert coordinator.gsm_coverage == 26
    assert coordinator.raw_battery == 166
    assert coordinator.uptime == 1890037
    assert coordinator.tries == 2
    assert coordinator.successes == 2


@pytest.mark.parametrize(
    "payload",
    [
        b"not json",
        b'{"coordinator": {"coordinator_id": 1, "sensor_readings": [{"sensor_id": "A"}]}}',
        b'{"something_else": {}}',
    ],
)
def test_decode_v3_rejects_malformed(payload: bytes):
    with pytest.raises(MalformedMessage):
        decode_v3(payload)


def test_decode_v3_rejects_empty_sensor_id():
    payload = (
        b'{"coordinator": {"coordinator_id": 1, "sensor_readings": [{"sensor_id": "", "battery_voltage": 1,'
        b' "sensor_temperature": 400, "moisture": 3, "sendcounter": 1}]}}'
    )
    with pytest.raises(MissingSensorID):
        decode_v3(payload)


def test_every_version_has_a_decoder():
    assert set(DECODERS) == set(FormatVersion)
