"""Prometheus collector that runs a probe on every scrape."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterator

from prometheus_client.core import GaugeMetricFamily
from prometheus_client.registry import Collector, CollectorRegistry

from dioprobe.utils.logging_config import LoggingContext, get_logger

if TYPE_CHECKING:
    from dioprobe.storage.probe import DirectIOProbe

METRIC_NAME = "dioprobe_block_duration_seconds"
METRIC_HELP = "Duration of the last direct I/O block operation in seconds"
OP_LABEL = "op"
# Scrapes slower than this are logged at WARNING
SLOW_SCRAPE_SECONDS = 1.0

logger = get_logger(__name__)


def _family() -> GaugeMetricFamily:
    return GaugeMetricFamily(METRIC_NAME, METRIC_HELP, labels=[OP_LABEL])


class ProbeCollector(Collector):
    """Publishes the durations of a fresh probe as two gauge samples.

    A failed probe is logged and published as zero for both operations so
    that the scrape itself always succeeds.
    """

    def __init__(self, probe: DirectIOProbe):
        """Initialize collector around an already configured probe."""
        self.probe = probe

    def describe(self) -> Iterator[GaugeMetricFamily]:
        """Describe the metric without touching the disk."""
        yield _family()

    def collect(self) -> Iterator[GaugeMetricFamily]:
        """Measure once and yield the read and write durations."""
        with LoggingContext(
            "scrape", slow_threshold=SLOW_SCRAPE_SECONDS, target=str(self.probe.target)
        ):
            sample, error = self.probe.measure_safely()
        if error is not None:
            logger.debug("Publishing zero durations after probe failure")

        family = _family()
        family.add_metric(["read"], sample.read_duration)
        family.add_metric(["write"], sample.write_duration)
        yield family


def create_registry(probe: DirectIOProbe) -> CollectorRegistry:
    """Create a registry that holds only the probe collector."""
    registry = CollectorRegistry(auto_describe=True)
    registry.register(ProbeCollector(probe))
    return registry
