import struct

import pytest
from bleak.exc import BleakError

from flowercare_exporter.domain.interfaces import ProtocolError, TransportError
from flowercare_exporter.drivers import miflora_ble
from flowercare_exporter.drivers.miflora_ble import (
    FIRMWARE_CHAR_UUID,
    MODE_CHANGE_CHAR_UUID,
    MODE_CHANGE_LIVE_DATA,
    SENSOR_DATA_CHAR_UUID,
    MiFloraConfig,
    MiFloraReader,
    parse_firmware,
    parse_sensors,
)

FIRMWARE_RAW = bytes([80, 0x13]) + b"3.2.2"
# 22.5 °C, light 1200, moisture 30, conductivity 350, padding
SENSORS_RAW = struct.pack("<hxIBH", 225, 1200, 30, 350) + bytes(6)


def test_parse_firmware():
    fw = parse_firmware(FIRMWARE_RAW)
    assert fw.version == "3.2.2"
    assert fw.battery == 80


def test_parse_firmware_strips_padding():
    assert parse_firmware(bytes([99, 0]) + b"2.7.0\x00\x00").version == "2.7.0"


@pytest.mark.parametrize("payload", [b"", b"\x50", b"\x50\x13", b"\x50\x13\x00\x00"])
def test_parse_firmware_rejects_short_or_empty(payload):
    with pytest.raises(ProtocolError):
        parse_firmware(payload)


def test_parse_sensors():
    s = parse_sensors(SENSORS_RAW)
    assert s.temperature == 22.5
    assert s.light == 1200
    assert s.moisture == 30
    assert s.conductivity == 350


def test_parse_sensors_negative_temperature():
    raw = struct.pack("<hxIBH", -45, 0, 0, 0)
    assert parse_sensors(raw).temperature == -4.5


def test_parse_sensors_rejects_short_payload():
    with pytest.raises(ProtocolError):
        parse_sensors(SENSORS_RAW[:9])


def test_parse_sensors_rejects_mode_not_switched():
    raw = bytes([0xAA, 0xBB, 0xCC, 0xDD, 0xEE, 0xFF, 0x99, 0x88, 0x77, 0x66, 0, 0, 0, 0, 0, 0])
    with pytest.raises(ProtocolError):
        parse_sensors(raw)


class FakeBleakClient:
    instances = []
    fail_with = None
    sensors_raw = SENSORS_RAW

    def __init__(self, address, timeout=10.0, **kwargs):
        self.address = address
        self.timeout = timeout
        self.kwargs = kwargs
        self.ops = []
        FakeBleakClient.instances.append(self)

    async def __aenter__(self):
        if FakeBleakClient.fail_with is not None:
            raise FakeBleakClient.fail_with
        return self

    async def __aexit__(self, *exc):
        return False

    async def read_gatt_char(self, uuid):
        self.ops.append(("read", uuid))
        if uuid == FIRMWARE_CHAR_UUID:
            return bytearray(FIRMWARE_RAW)
        return bytearray(FakeBleakClient.sensors_raw)

    async def write_gatt_char(self, uuid, data, response=False):
        self.ops.append(("write", uuid, bytes(data)))


@pytest.fixture
def fake_bleak(monkeypatch):
    FakeBleakClient.instances = []
    FakeBleakClient.fail_with = None
    FakeBleakClient.sensors_raw = SENSORS_RAW
    monkeypatch.setattr(miflora_ble, "BleakClient", FakeBleakClient)
    return FakeBleakClient


def test_fetch_reads_firmware_then_switches_mode(fake_bleak):
    reader = MiFloraReader(MiFloraConfig(timeout_s=5.0))
    r = reader.fetch("C4:7C:8D:6A:12:34", "hci1")

    assert r.firmware_version == "3.2.2"
    assert r.battery_percent == 80
    assert r.temperature_celsius == 22.5

    client = fake_bleak.instances[0]
    assert client.address == "C4:7C:8D:6A:12:34"
    assert client.timeout == 5.0
    assert client.kwargs["adapter"] == "hci1"
    assert client.ops == [
        ("read", FIRMWARE_CHAR_UUID),
        ("write", MODE_CHANGE_CHAR_UUID, MODE_CHANGE_LIVE_DATA),
        ("read", SENSOR_DATA_CHAR_UUID),
    ]


@pytest.mark.parametrize("exc", [BleakError("not found"), TimeoutError(), OSError("no adapter")])
def test_fetch_maps_connection_failures_to_transport_error(fake_bleak, exc):
    fake_bleak.fail_with = exc
    with pytest.raises(TransportError):
        MiFloraReader().fetch("C4:7C:8D:6A:12:34", "hci0")


def test_fetch_maps_bad_payload_to_protocol_error(fake_bleak):
    fake_bleak.sensors_raw = b"\x00\x01"
    with pytest.raises(ProtocolError):
        MiFloraReader().fetch("C4:7C:8D:6A:12:34", "hci0")
