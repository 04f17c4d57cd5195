from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from prometheus_client.core import CounterMetricFamily, GaugeMetricFamily

from ..domain.models import SensorReading

METRIC_PREFIX = "flowercare_"
CONST_LABEL = "macaddress"

# µS/cm -> S/m
FACTOR_CONDUCTIVITY = 0.0001


class MetricEmissionError(Exception):
    """A metric could not be built from the cached reading."""


@dataclass(frozen=True)
class GaugeSpec:
    suffix: str
    help: str
    value_of: Callable[[SensorReading], float]
    extra_labels: tuple[str, ...] = ()
    labels_of: Callable[[SensorReading], tuple[str, ...]] = lambda r: ()

    @property
    def name(self) -> str:
        return METRIC_PREFIX + self.suffix

    @property
    def label_names(self) -> list[str]:
        return [CONST_LABEL, *self.extra_labels]


UP_NAME = METRIC_PREFIX + "up"
UP_HELP = "Shows if data could be successfully retrieved by the collector."
SCRAPE_ERRORS_NAME = METRIC_PREFIX + "scrape_errors"  # exposed as ..._total
SCRAPE_ERRORS_HELP = "Counts the number of scrape errors by this collector."

SCRAPE_TIMESTAMP = GaugeSpec(
    "scrape_timestamp",
    "Contains the timestamp when the last communication with the Bluetooth device happened.",
    lambda r: int(r.captured_at.timestamp()),
)
INFO = GaugeSpec(
    "info",
    "Contains information about the Flower Care device.",
    lambda r: 1,
    extra_labels=("version",),
    labels_of=lambda r: (r.firmware_version,),
)

SENSOR_GAUGES: tuple[GaugeSpec, ...] = (
    GaugeSpec("battery_percent", "Battery level in percent.", lambda r: r.battery_percent),
    GaugeSpec(
        "conductivity_sm",
        "Soil conductivity in Siemens/meter.",
        lambda r: r.conductivity * FACTOR_CONDUCTIVITY,
    ),
    GaugeSpec("brightness_lux", "Ambient lighting in lux.", lambda r: r.light),
    GaugeSpec("moisture_percent", "Soil relative moisture in percent.", lambda r: r.moisture_percent),
    GaugeSpec("temperature_celsius", "Ambient temperature in celsius.", lambda r: r.temperature_celsius),
)

# Emission order for everything derived from a cached reading
DATA_METRICS: tuple[GaugeSpec, ...] = (SCRAPE_TIMESTAMP, INFO, *SENSOR_GAUGES)


def up_metric(const_label: str, value: float) -> GaugeMetricFamily:
    g = GaugeMetricFamily(UP_NAME, UP_HELP, labels=[CONST_LABEL])
    g.add_metric([const_label], value)
    return g


def scrape_errors_metric(const_label: str, value: float) -> CounterMetricFamily:
    c = CounterMetricFamily(SCRAPE_ERRORS_NAME, SCRAPE_ERRORS_HELP, labels=[CONST_LABEL])
    c.add_metric([const_label], value)
    return c


def describe_all() -> list:
    """Every family the collector can emit, without samples."""
    families: list = [
        GaugeMetricFamily(UP_NAME, UP_HELP, labels=[CONST_LABEL]),
        CounterMetricFamily(SCRAPE_ERRORS_NAME, SCRAPE_ERRORS_HELP, labels=[CONST_LABEL]),
    ]
    for spec in DATA_METRICS:
        families.append(GaugeMetricFamily(spec.name, spec.help, labels=spec.label_names))
    return families


def build_gauge(spec: GaugeSpec, value: object, label_values: Sequence[object]) -> GaugeMetricFamily:
    if len(label_values) != len(spec.label_names):
        raise MetricEmissionError(
            f"can not create metric {spec.name!r}: expected {len(spec.label_names)} "
            f"label values, got {len(label_values)}"
        )
    if not all(isinstance(v, str) for v in label_values):
        raise MetricEmissionError(f"can not create metric {spec.name!r}: label values must be strings")
    try:
        v = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as e:
        raise MetricEmissionError(f"can not create metric {spec.name!r}: {e}") from e

    g = GaugeMetricFamily(spec.name, spec.help, labels=spec.label_names)
    g.add_metric(list(label_values), v)
    return g


def emit_gauge(spec: GaugeSpec, reading: SensorReading, const_label: str) -> GaugeMetricFamily:
    try:
        value = spec.value_of(reading)
        extra = spec.labels_of(reading)
    except (AttributeError, TypeError, ValueError) as e:
        raise MetricEmissionError(f"can not create metric {spec.name!r}: {e}") from e
    return build_gauge(spec, value, (const_label, *extra))


def emit_reading(
    reading: SensorReading,
    const_label: str,
    specs: Sequence[GaugeSpec] = DATA_METRICS,
) -> tuple[list[GaugeMetricFamily], MetricEmissionError | None]:
    """
    Build the metrics derived from a reading, in table order.
    A failing entry stops the pass; whatever was built before it is returned
    together with the error.
    """
    metrics: list[GaugeMetricFamily] = []
    for spec in specs:
        try:
            metrics.append(emit_gauge(spec, reading, const_label))
        except MetricEmissionError as e:
            return metrics, e
    return metrics, None
