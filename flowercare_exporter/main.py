from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI
from prometheus_client import CollectorRegistry

from .core.config import Settings
from .core.timeutil import now_utc

from .api.routes import router as api_router
import flowercare_exporter.api.routes as routes_module

from .domain.interfaces import DeviceReader
from .domain.models import ConfigurationError
from .drivers.miflora_ble import MiFloraConfig, MiFloraReader
from .drivers.sensors_sim import SimulatedFlowerCare
from .services.collector import FlowerCareCollector


logger = logging.getLogger(__name__)


def build_reader(settings: Settings) -> DeviceReader:
    mode = settings.reader_mode.lower()

    if mode == "ble":
        return MiFloraReader(MiFloraConfig(timeout_s=settings.ble_timeout_seconds))

    if mode == "sim":
        return SimulatedFlowerCare()

    raise ConfigurationError(f"Unsupported reader mode: {settings.reader_mode!r}")


def create_app(
    settings: Settings,
    reader: Optional[DeviceReader] = None,
    registry: Optional[CollectorRegistry] = None,
    clock: Callable[[], datetime] = now_utc,
) -> FastAPI:
    """
    Validate the configuration, build the collector and register it once.
    Raises ConfigurationError before any device access.
    """
    config = settings.collector_config()
    if reader is None:
        reader = build_reader(settings)

    collector = FlowerCareCollector(config, reader, clock=clock)
    if registry is None:
        registry = CollectorRegistry()
    registry.register(collector)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Looking for %s via %s (mode=%s cache=%s)",
            config.device_address, config.adapter, settings.reader_mode, config.cache_duration,
        )
        try:
            yield
        finally:
            logger.info("Shutdown complete")

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.collector = collector
    app.state.reader = reader

    # Make the dependency functions in routes resolve to the real ones
    app.dependency_overrides[routes_module.get_registry] = lambda: registry

    app.include_router(api_router)
    return app
