from __future__ import annotations
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from threading import Lock
from typing import Callable, Iterator, Optional

from prometheus_client.metrics_core import Metric
from prometheus_client.registry import Collector

from ..core.timeutil import now_utc
from ..domain.interfaces import DeviceReader, FetchError
from ..domain.models import CacheRecord, CollectorConfig, SensorReading
from .metric_set import describe_all, emit_reading, scrape_errors_metric, up_metric

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefreshResult:
    outcome: str  # "ok" | "transport" | "protocol" | "fetch" | "internal"
    reading: Optional[SensorReading] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome == "ok"


class FlowerCareCollector(Collector):
    """
    Caching Prometheus collector for a single Flower Care device.

    Every scrape refreshes the cached reading when it is older than the cache
    duration, then reports liveness, the error counter and (while the cache
    is fresh) the sensor values. Device failures never reach the scraper;
    they show up as up=0 and an incremented error counter.
    """

    def __init__(
        self,
        config: CollectorConfig,
        reader: DeviceReader,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.config = config
        self._reader = reader
        self._clock = clock
        self._label = config.metric_label

        self._lock = Lock()          # guards _cache, _up, _scrape_errors
        self._refresh_lock = Lock()  # one device transaction at a time

        self._cache = CacheRecord()
        self._up = 0.0
        self._scrape_errors = 0.0

    @property
    def cache(self) -> CacheRecord:
        with self._lock:
            return self._cache

    @property
    def up(self) -> float:
        with self._lock:
            return self._up

    @property
    def scrape_errors(self) -> float:
        with self._lock:
            return self._scrape_errors

    def describe(self) -> Iterator[Metric]:
        return iter(describe_all())

    def collect(self) -> Iterator[Metric]:
        return iter(self.snapshot())

    def snapshot(self) -> list[Metric]:
        self.refresh_if_stale()

        with self._lock:
            metrics: list[Metric] = [
                up_metric(self._label, self._up),
                scrape_errors_metric(self._label, self._scrape_errors),
            ]
            cache = self._cache

        if cache.is_fresh(self._clock(), self.config.cache_duration):
            data, err = emit_reading(cache.reading, self._label)
            metrics.extend(data)
            if err is not None:
                logger.error("Error collecting metrics: %s", err)

        return metrics

    def refresh_if_stale(self) -> Optional[RefreshResult]:
        """Refresh the cache when it has expired. Returns None when no refresh was needed."""
        duration = self.config.cache_duration
        if not self.cache.is_stale(self._clock(), duration):
            return None

        with self._refresh_lock:
            # a concurrent scrape may have refreshed while we waited
            if not self.cache.is_stale(self._clock(), duration):
                return None
            result = self._refresh()
            self._record(result)
            return result

    def _refresh(self) -> RefreshResult:
        try:
            reading = self._reader.fetch(self.config.device_address, self.config.adapter)
        except FetchError as e:
            return RefreshResult(outcome=e.kind, error=str(e))
        except Exception as e:
            logger.exception("Unexpected error from device reader: %s", e)
            return RefreshResult(outcome="internal", error=str(e))

        return RefreshResult(outcome="ok", reading=replace(reading, captured_at=self._clock()))

    def _record(self, result: RefreshResult) -> None:
        with self._lock:
            if result.ok and result.reading is not None:
                self._cache = CacheRecord(reading=result.reading, captured_at=result.reading.captured_at)
                self._up = 1.0
            else:
                self._scrape_errors += 1
                self._up = 0.0

        if result.ok:
            logger.info("Refreshed %s (fw=%s)", self._label, result.reading.firmware_version)
        else:
            logger.warning("Error during scrape (%s): %s", result.outcome, result.error)
