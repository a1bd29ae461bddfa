"""Tests for the Prometheus probe collector."""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from prometheus_client import generate_latest

pytestmark = [pytest.mark.unit, pytest.mark.monitoring]

from dioprobe.models import ProbeConfig
from dioprobe.monitoring import collector as collector_module
from dioprobe.monitoring.collector import METRIC_NAME, ProbeCollector, create_registry
from dioprobe.storage.probe import DirectIOProbe, MeasurementSample
from dioprobe.utils import logging_config
from dioprobe.utils.exceptions import ProbeIOError


@pytest.fixture
def stub_probe():
    """Probe double returning a fixed sample."""
    probe = MagicMock(spec=DirectIOProbe)
    probe.target = Path("/var/run")
    probe.measure_safely.return_value = (
        MeasurementSample(read_duration=0.002, write_duration=0.005),
        None,
    )
    return probe


def _samples(families) -> dict[str, float]:
    return {
        sample.labels["op"]: sample.value
        for family in families
        for sample in family.samples
    }


class TestProbeCollector:
    """Test collector behaviour."""

    def test_collect_publishes_both_operations(self, stub_probe):
        """Each collection yields read and write gauges in seconds."""
        families = list(ProbeCollector(stub_probe).collect())

        assert len(families) == 1
        assert families[0].name == METRIC_NAME
        assert families[0].type == "gauge"
        assert _samples(families) == {"read": 0.002, "write": 0.005}
        stub_probe.measure_safely.assert_called_once_with()

    def test_collect_publishes_zero_on_failure(self, stub_probe):
        """A failed probe is published as zero for both operations."""
        stub_probe.measure_safely.return_value = (
            MeasurementSample.zero(),
            ProbeIOError("open /nowhere: No such file or directory"),
        )

        families = list(ProbeCollector(stub_probe).collect())

        assert _samples(families) == {"read": 0.0, "write": 0.0}

    def test_describe_does_not_probe(self, stub_probe):
        """Describing the metric never touches the disk."""
        families = list(ProbeCollector(stub_probe).describe())

        assert [f.name for f in families] == [METRIC_NAME]
        assert families[0].samples == []
        stub_probe.measure_safely.assert_not_called()

    def test_each_collection_probes_again(self, stub_probe):
        """Every pull runs a fresh measurement; nothing is cached."""
        collector = ProbeCollector(stub_probe)
        stub_probe.measure_safely.side_effect = [
            (MeasurementSample(read_duration=0.1, write_duration=0.2), None),
            (MeasurementSample(read_duration=0.3, write_duration=0.4), None),
        ]

        first = _samples(collector.collect())
        second = _samples(collector.collect())

        assert first == {"read": 0.1, "write": 0.2}
        assert second == {"read": 0.3, "write": 0.4}

    def test_scrape_is_timed_and_logged(self, stub_probe, caplog):
        """Each collection logs its completion under a fresh correlation ID."""
        collector = ProbeCollector(stub_probe)

        with caplog.at_level(logging.DEBUG, logger="dioprobe"), patch.object(
            logging_config, "set_correlation_id", wraps=logging_config.set_correlation_id
        ) as spy:
            list(collector.collect())
            list(collector.collect())

        completed = [r for r in caplog.records if r.getMessage().startswith("Completed scrape")]
        assert len(completed) == 2
        assert all(r.target == "/var/run" for r in completed)
        assert spy.call_count == 2

    def test_slow_scrape_is_a_warning(self, stub_probe, caplog, monkeypatch):
        """Scrapes slower than the threshold complete at WARNING."""
        monkeypatch.setattr(collector_module, "SLOW_SCRAPE_SECONDS", 0.0)

        with caplog.at_level(logging.DEBUG, logger="dioprobe"):
            list(ProbeCollector(stub_probe).collect())

        completed = [r for r in caplog.records if r.getMessage().startswith("Completed scrape")]
        assert completed[0].levelno == logging.WARNING


class TestCreateRegistry:
    """Test registry construction and exposition."""

    def test_registration_does_not_probe(self, stub_probe):
        """Registering the collector does not run a measurement."""
        create_registry(stub_probe)

        stub_probe.measure_safely.assert_not_called()

    def test_exposition_has_two_gauge_lines(self, stub_probe):
        """The text format contains one gauge with read and write samples."""
        output = generate_latest(create_registry(stub_probe)).decode()

        assert f"# TYPE {METRIC_NAME} gauge" in output
        assert f'{METRIC_NAME}{{op="read"}} 0.002' in output
        assert f'{METRIC_NAME}{{op="write"}} 0.005' in output

    def test_sample_values(self, stub_probe):
        """Registry lookups return the current probe durations."""
        registry = create_registry(stub_probe)

        assert registry.get_sample_value(METRIC_NAME, {"op": "write"}) == 0.005

    def test_real_probe_failure_is_contained(self, tmp_path, caplog):
        """A probe against a missing directory reports zeros and logs."""
        probe = DirectIOProbe(ProbeConfig(path=str(tmp_path / "missing")))
        registry = create_registry(probe)

        with caplog.at_level(logging.ERROR, logger="dioprobe"):
            output = generate_latest(registry).decode()

        assert f'{METRIC_NAME}{{op="read"}} 0.0' in output
        assert f'{METRIC_NAME}{{op="write"}} 0.0' in output
        assert "failed" in caplog.text
