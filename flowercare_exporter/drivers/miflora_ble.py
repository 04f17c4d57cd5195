from __future__ import annotations

import asyncio
import logging
import struct
from dataclasses import dataclass

from bleak import BleakClient
from bleak.exc import BleakError

from ..core.timeutil import now_utc
from ..domain.interfaces import ProtocolError, TransportError
from ..domain.models import Firmware, SensorReading, Sensors

logger = logging.getLogger(__name__)

MODE_CHANGE_CHAR_UUID = "00001a00-0000-1000-8000-00805f9b34fb"
SENSOR_DATA_CHAR_UUID = "00001a01-0000-1000-8000-00805f9b34fb"
FIRMWARE_CHAR_UUID = "00001a02-0000-1000-8000-00805f9b34fb"

# Switches the device into live-data mode (firmware >= 2.6.6)
MODE_CHANGE_LIVE_DATA = bytes([0xA0, 0x1F])

# Returned by the data characteristic when live-data mode is not active
_INVALID_DATA_PREFIX = bytes([0xAA, 0xBB, 0xCC, 0xDD, 0xEE, 0xFF, 0x99, 0x88, 0x77, 0x66])

# temperature int16 (0.1 °C), 1 unused byte, light uint32, moisture uint8, conductivity uint16
_SENSOR_LAYOUT = struct.Struct("<hxIBH")


def parse_firmware(payload: bytes) -> Firmware:
    """Decode the firmware characteristic: byte 0 battery, bytes 2.. ASCII version."""
    if len(payload) < 3:
        raise ProtocolError(f"can not read firmware: payload too short ({len(payload)} bytes)")

    version = bytes(payload[2:]).decode("ascii", errors="replace").strip("\x00 ")
    if not version:
        raise ProtocolError("can not read firmware: empty version string")

    return Firmware(version=version, battery=int(payload[0]))


def parse_sensors(payload: bytes) -> Sensors:
    if len(payload) < _SENSOR_LAYOUT.size:
        raise ProtocolError(f"can not read sensors: payload too short ({len(payload)} bytes)")
    if bytes(payload[: len(_INVALID_DATA_PREFIX)]) == _INVALID_DATA_PREFIX:
        raise ProtocolError("can not read sensors: device is not in live-data mode")

    temp_raw, light, moisture, conductivity = _SENSOR_LAYOUT.unpack_from(bytes(payload), 0)
    return Sensors(
        conductivity=conductivity,
        light=light,
        moisture=moisture,
        temperature=temp_raw / 10.0,
    )


@dataclass
class MiFloraConfig:
    timeout_s: float = 20.0  # connect timeout handed to bleak


class MiFloraReader:
    """
    Flower Care (Mi Flora) reader over BLE.
    Responsible for: one connection per fetch, firmware + live sensor reads.
    """

    def __init__(self, cfg: MiFloraConfig = MiFloraConfig()):
        self.cfg = cfg

    def fetch(self, device_address: str, adapter: str) -> SensorReading:
        """
        Blocking: runs one BLE transaction on a private event loop.
        Must not be called from a thread that already runs an event loop.
        """
        try:
            firmware_raw, sensors_raw = asyncio.run(self._read(device_address, adapter))
        except (BleakError, asyncio.TimeoutError, OSError) as e:
            raise TransportError(f"can not talk to {device_address} via {adapter}: {e}") from e

        firmware = parse_firmware(firmware_raw)
        sensors = parse_sensors(sensors_raw)

        logger.info(
            "Flower Care read: addr=%s fw=%s battery=%d%% temp=%.1f light=%d moisture=%d cond=%d",
            device_address, firmware.version, firmware.battery,
            sensors.temperature, sensors.light, sensors.moisture, sensors.conductivity,
        )
        return SensorReading(captured_at=now_utc(), firmware=firmware, sensors=sensors)

    async def _read(self, device_address: str, adapter: str) -> tuple[bytes, bytes]:
        async with BleakClient(device_address, timeout=self.cfg.timeout_s, adapter=adapter) as client:
            firmware_raw = await client.read_gatt_char(FIRMWARE_CHAR_UUID)
            await client.write_gatt_char(MODE_CHANGE_CHAR_UUID, MODE_CHANGE_LIVE_DATA, response=True)
            sensors_raw = await client.read_gatt_char(SENSOR_DATA_CHAR_UUID)
        return bytes(firmware_raw), bytes(sensors_raw)
