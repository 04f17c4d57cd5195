from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

DEFAULT_CACHE_DURATION = timedelta(minutes=2)


class ConfigurationError(ValueError):
    """Invalid startup configuration. Fatal: the exporter must not start serving."""


@dataclass(frozen=True)
class Firmware:
    version: str
    battery: int  # percent


@dataclass(frozen=True)
class Sensors:
    conductivity: int  # µS/cm
    light: int  # lux
    moisture: int  # percent
    temperature: float  # °C


@dataclass(frozen=True)
class SensorReading:
    captured_at: datetime
    firmware: Firmware
    sensors: Sensors

    @property
    def firmware_version(self) -> str:
        return self.firmware.version

    @property
    def battery_percent(self) -> int:
        return self.firmware.battery

    @property
    def conductivity(self) -> int:
        return self.sensors.conductivity

    @property
    def light(self) -> int:
        return self.sensors.light

    @property
    def moisture_percent(self) -> int:
        return self.sensors.moisture

    @property
    def temperature_celsius(self) -> float:
        return self.sensors.temperature


@dataclass(frozen=True)
class CacheRecord:
    reading: Optional[SensorReading] = None
    captured_at: Optional[datetime] = None  # None = never fetched

    def age(self, now: datetime) -> Optional[timedelta]:
        """Age of the cached reading, None when nothing was ever fetched."""
        if self.captured_at is None:
            return None
        return now - self.captured_at

    def is_stale(self, now: datetime, cache_duration: timedelta) -> bool:
        age = self.age(now)
        return age is None or age > cache_duration

    def is_fresh(self, now: datetime, cache_duration: timedelta) -> bool:
        age = self.age(now)
        return self.reading is not None and age is not None and age < cache_duration


@dataclass(frozen=True)
class CollectorConfig:
    device_address: str
    adapter: str
    cache_duration: timedelta = DEFAULT_CACHE_DURATION

    def __post_init__(self) -> None:
        if not self.device_address or not self.device_address.strip():
            raise ConfigurationError("need to provide a device address")
        if not self.adapter or not self.adapter.strip():
            raise ConfigurationError("need to provide a bluetooth adapter")

    @property
    def metric_label(self) -> str:
        return self.device_address.lower()
