from datetime import datetime, timedelta, timezone

import pytest

from flowercare_exporter.domain.models import CollectorConfig, Firmware, SensorReading, Sensors

MAC = "C4:7C:8D:6A:12:34"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = EPOCH):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeReader:
    """Returns queued readings or raises queued exceptions, in order."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def push(self, *results):
        self.results.extend(results)

    def fetch(self, device_address, adapter):
        self.calls.append((device_address, adapter))
        if not self.results:
            raise AssertionError("unexpected device read")
        r = self.results.pop(0)
        if isinstance(r, BaseException):
            raise r
        return r


def make_reading(
    version="1.2",
    battery=80,
    conductivity=350,
    light=1200,
    moisture=30,
    temperature=22.5,
):
    return SensorReading(
        captured_at=EPOCH,
        firmware=Firmware(version=version, battery=battery),
        sensors=Sensors(conductivity=conductivity, light=light, moisture=moisture, temperature=temperature),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    return CollectorConfig(device_address=MAC, adapter="hci0", cache_duration=timedelta(minutes=2))


@pytest.fixture
def sample_values():
    """Flatten metric families into {sample_name: value}."""

    def _values(metrics):
        return {s.name: s.value for m in metrics for s in m.samples}

    return _values
