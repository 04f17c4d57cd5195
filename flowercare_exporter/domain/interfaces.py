from __future__ import annotations
from typing import Protocol, runtime_checkable
from .models import SensorReading


class FetchError(Exception):
    """A refresh attempt against the device failed."""

    kind = "fetch"


class TransportError(FetchError):
    """Connecting to or talking with the device failed."""

    kind = "transport"


class ProtocolError(FetchError):
    """The device answered with data that could not be decoded."""

    kind = "protocol"


@runtime_checkable
class DeviceReader(Protocol):
    def fetch(self, device_address: str, adapter: str) -> SensorReading:
        """Blocking read of firmware and sensor values. Raise FetchError on failure."""
        ...
