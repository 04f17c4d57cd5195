#!/usr/bin/env python3
"""
Flower Care Prometheus exporter.

Reads a Xiaomi Flower Care (Mi Flora) plant sensor over Bluetooth LE and
serves its most recent values on /metrics.

Usage:
    flowercare-exporter -b C4:7C:8D:6A:12:34                # defaults
    flowercare-exporter -b C4:7C:8D:6A:12:34 -i hci1 -c 5m
    flowercare-exporter -b 00:00:00:00:00:00 --sim          # no hardware

Every option can also be set through FLOWERCARE_* environment variables.
"""

from __future__ import annotations

import argparse
import logging
import sys

import uvicorn
from pydantic import ValidationError

from .core.config import Settings
from .core.log import configure_logging
from .core.timeutil import parse_duration
from .domain.models import ConfigurationError
from .main import create_app

logger = logging.getLogger(__name__)


def parse_listen_addr(addr: str) -> tuple[str, int]:
    """":9294" -> ("0.0.0.0", 9294), "127.0.0.1:8080" -> ("127.0.0.1", 8080)"""
    host, sep, port_s = addr.rpartition(":")
    if not sep:
        raise ConfigurationError(f"Invalid listen address {addr!r}, expected [host]:port")

    try:
        port = int(port_s)
    except ValueError:
        raise ConfigurationError(f"Invalid port in listen address {addr!r}") from None
    if not 0 < port < 65536:
        raise ConfigurationError(f"Port out of range in listen address {addr!r}")

    return host.strip("[]") or "0.0.0.0", port


def _duration_arg(text: str):
    try:
        return parse_duration(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="flowercare-exporter",
        description="Prometheus exporter for Xiaomi Flower Care sensors.",
    )
    p.add_argument("-a", "--addr", dest="listen_addr",
                   help="Address to listen on for connections (default :9294).")
    p.add_argument("-b", "--device", dest="device_address",
                   help="MAC-Address of Flower Care device.")
    p.add_argument("-i", "--adapter", dest="adapter",
                   help="Bluetooth device to use for communication (default hci0).")
    p.add_argument("-c", "--cache-duration", dest="cache_duration", type=_duration_arg,
                   help="Interval during which the results from the Bluetooth device are cached (default 2m).")
    p.add_argument("--sim", dest="reader_mode", action="store_const", const="sim",
                   help="Use the built-in simulated device instead of Bluetooth.")
    p.add_argument("--log-level", dest="log_level",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    overrides = {k: v for k, v in vars(args).items() if v is not None}

    try:
        settings = Settings(**overrides)
    except ValidationError as e:
        configure_logging()
        logger.error("Error in configuration: %s", e)
        return 1

    configure_logging(settings.log_level, settings.log_file)

    try:
        host, port = parse_listen_addr(settings.listen_addr)
        app = create_app(settings)
    except ConfigurationError as e:
        logger.error("Error in configuration: %s", e)
        return 1

    logger.info("Listen on %s...", settings.listen_addr)
    uvicorn.run(app, host=host, port=port, log_config=None)
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
