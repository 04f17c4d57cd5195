from __future__ import annotations
from datetime import datetime
from threading import Lock
from typing import Callable, Optional

from ..core.timeutil import now_utc
from ..domain.interfaces import FetchError, ProtocolError, TransportError
from ..domain.models import Firmware, SensorReading, Sensors


class SimulatedFlowerCare:
    """In-process stand-in for a Flower Care device."""

    def __init__(self, clock: Callable[[], datetime] = now_utc) -> None:
        self._lock = Lock()
        self._clock = clock
        self._enabled = True
        self._firmware = Firmware(version="3.2.2", battery=100)
        self._sensors = Sensors(conductivity=350, light=1200, moisture=30, temperature=22.5)
        self._pending_failures: list[FetchError] = []
        self.fetch_count = 0

    def enable(self) -> None:
        with self._lock:
            self._enabled = True

    def disable(self) -> None:
        with self._lock:
            self._enabled = False

    def set_values(
        self,
        *,
        version: Optional[str] = None,
        battery: Optional[int] = None,
        conductivity: Optional[int] = None,
        light: Optional[int] = None,
        moisture: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> None:
        with self._lock:
            fw, s = self._firmware, self._sensors
            self._firmware = Firmware(
                version=fw.version if version is None else version,
                battery=fw.battery if battery is None else battery,
            )
            self._sensors = Sensors(
                conductivity=s.conductivity if conductivity is None else conductivity,
                light=s.light if light is None else light,
                moisture=s.moisture if moisture is None else moisture,
                temperature=s.temperature if temperature is None else temperature,
            )

    def fail_next(self, kind: str = "transport", times: int = 1) -> None:
        if kind == "transport":
            err: FetchError = TransportError("simulated transport failure")
        elif kind == "protocol":
            err = ProtocolError("simulated protocol failure")
        else:
            raise ValueError(f"Unsupported failure kind: {kind}")
        with self._lock:
            self._pending_failures.extend([err] * times)

    def status(self) -> dict:
        with self._lock:
            return {
                "enabled": self._enabled,
                "firmware": self._firmware.__dict__,
                "sensors": self._sensors.__dict__,
                "pending_failures": len(self._pending_failures),
                "fetch_count": self.fetch_count,
            }

    def fetch(self, device_address: str, adapter: str) -> SensorReading:
        with self._lock:
            self.fetch_count += 1
            if not self._enabled:
                raise TransportError(f"Simulated device {device_address} unreachable via {adapter}")
            if self._pending_failures:
                raise self._pending_failures.pop(0)
            return SensorReading(
                captured_at=self._clock(),
                firmware=self._firmware,
                sensors=self._sensors,
            )
