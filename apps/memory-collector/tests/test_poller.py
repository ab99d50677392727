import threading
from unittest.mock import MagicMock

import pytest

from collector.config import Config
from collector.errors import UpstreamUnavailable
from collector.models import MemorySampleEvent
from collector.poller import SamplePoller


@pytest.fixture
def config():
    return Config(host_id="node-1", poll_interval_seconds=0.01)


@pytest.fixture
def event():
    return MemorySampleEvent(host="node-1", total=1024, available=512)


@pytest.fixture
def mock_reader(event):
    reader = MagicMock()
    reader.read = MagicMock(return_value=event)
    return reader


@pytest.fixture
def mock_producer():
    producer = MagicMock()
    producer.publish = MagicMock(return_value=True)
    return producer


@pytest.fixture
def poller(config, mock_reader, mock_producer):
    return SamplePoller(config, mock_reader, mock_producer)


class TestSamplePoller:
    def test_poll_once_publishes(self, poller, mock_producer, event):
        assert poller.poll_once() is True
        mock_producer.publish.assert_called_once_with(event)

    def test_upstream_unavailable_skips_tick(self, poller, mock_reader, mock_producer):
        mock_reader.read.side_effect = UpstreamUnavailable("cannot read /proc/meminfo")
        assert poller.poll_once() is False
        mock_producer.publish.assert_not_called()
        assert poller._skipped == 1

    def test_failed_publish_not_counted(self, poller, mock_producer):
        mock_producer.publish.return_value = False
        assert poller.poll_once() is False
        assert poller._published == 0

    def test_run_respects_stop_event(self, poller, mock_producer):
        stop = threading.Event()
        stop.set()  # Stop immediately
        poller.run(stop)
        mock_producer.publish.assert_not_called()

    def test_run_polls_until_stopped(self, poller, mock_producer):
        stop = threading.Event()

        def publish(event):
            if mock_producer.publish.call_count >= 3:
                stop.set()
            return True

        mock_producer.publish.side_effect = publish
        poller.run(stop)
        assert mock_producer.publish.call_count == 3

    def test_run_survives_unexpected_errors(self, poller, mock_reader, mock_producer, event):
        stop = threading.Event()
        mock_reader.read.side_effect = [RuntimeError("boom"), event]

        def publish(e):
            stop.set()
            return True

        mock_producer.publish.side_effect = publish
        poller.run(stop)
        mock_producer.publish.assert_called_once_with(event)
