from datetime import timedelta

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

from ..domain.models import CollectorConfig, DEFAULT_CACHE_DURATION


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="FLOWERCARE_", env_file=".env", extra="ignore")

    app_name: str = "Flower Care Exporter"

    # HTTP
    listen_addr: str = ":9294"

    # Device
    device_address: str = ""          # MAC address, e.g. "C4:7C:8D:6A:12:34"
    adapter: str = "hci0"

    # Results from the device are reused for this long
    cache_duration: timedelta = Field(default=DEFAULT_CACHE_DURATION)

    # Reader mode: "ble" for real hardware, "sim" for development
    reader_mode: str = "ble"
    ble_timeout_seconds: float = 20.0

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None

    def collector_config(self) -> CollectorConfig:
        return CollectorConfig(
            device_address=self.device_address,
            adapter=self.adapter,
            cache_duration=self.cache_duration,
        )
