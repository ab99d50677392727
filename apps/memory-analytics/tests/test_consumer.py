import json
from unittest.mock import MagicMock, patch

import pytest

from analytics.config import Config
from analytics.consumer import SampleConsumer, decode_sample
from analytics.service import AggregationService


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def service():
    return AggregationService()


@pytest.fixture
def mock_kafka_consumer():
    with patch("analytics.consumer.Consumer") as MockConsumer:
        mock = MockConsumer.return_value
        mock.subscribe = MagicMock()
        mock.poll = MagicMock(return_value=None)
        mock.commit = MagicMock()
        mock.close = MagicMock()
        yield mock


@pytest.fixture
def consumer(config, service, mock_kafka_consumer):
    with patch("analytics.consumer.Consumer", return_value=mock_kafka_consumer):
        return SampleConsumer(config, service)


def make_message(payload) -> MagicMock:
    msg = MagicMock()
    msg.error.return_value = None
    if isinstance(payload, bytes):
        msg.value.return_value = payload
    else:
        msg.value.return_value = json.dumps(payload).encode("utf-8")
    return msg


def sample_payload(**overrides) -> dict:
    payload = {
        "host": "node-1",
        "timestamp": "2024-05-01T12:00:00Z",
        "total": 16_000_000,
        "free": 1_000_000,
        "available": 2_000_000,
        "swap_total": 4_000_000,
        "swap_free": 200_000,
        "major_faults": 10,
        "minor_faults": 1_000,
    }
    payload.update(overrides)
    return payload


class TestDecodeSample:
    def test_decodes_host_sample_and_timestamp(self):
        host, sample, observed_at = decode_sample(json.dumps(sample_payload()).encode("utf-8"))
        assert host == "node-1"
        assert sample.total == 16_000_000
        assert observed_at == 1714564800.0

    def test_missing_timestamp_uses_receive_time(self):
        payload = sample_payload()
        del payload["timestamp"]
        with patch("analytics.consumer.time.time", return_value=42.0):
            _, _, observed_at = decode_sample(json.dumps(payload).encode("utf-8"))
        assert observed_at == 42.0

    def test_naive_timestamp_is_utc(self):
        payload = sample_payload(timestamp="2024-05-01T12:00:00")
        _, _, observed_at = decode_sample(json.dumps(payload).encode("utf-8"))
        assert observed_at == 1714564800.0

    def test_offset_timestamp_respected(self):
        payload = sample_payload(timestamp="2024-05-01T14:00:00+02:00")
        _, _, observed_at = decode_sample(json.dumps(payload).encode("utf-8"))
        assert observed_at == 1714564800.0

    def test_counter_beyond_u64_raises_value_error(self):
        with pytest.raises(ValueError):
            decode_sample(json.dumps(sample_payload(minor_faults=2**1100)).encode("utf-8"))

    def test_invalid_json_raises_value_error(self):
        with pytest.raises(ValueError):
            decode_sample(b"not-json")

    def test_non_object_payload_raises_value_error(self):
        with pytest.raises(ValueError):
            decode_sample(b"[1, 2, 3]")

    def test_invariant_violation_raises_value_error(self):
        with pytest.raises(ValueError):
            decode_sample(json.dumps(sample_payload(available=20_000_000)).encode("utf-8"))


class TestSampleConsumer:
    def test_start_subscribes_and_runs(self, consumer, mock_kafka_consumer):
        consumer.start()
        mock_kafka_consumer.subscribe.assert_called_once_with(["memory.samples"])
        assert consumer._running is True
        assert consumer._thread is not None
        consumer.stop()

    def test_stop_sets_flag_and_closes(self, consumer, mock_kafka_consumer):
        consumer.start()
        consumer.stop()
        assert consumer._running is False
        mock_kafka_consumer.close.assert_called_once()

    def test_process_valid_message_ingests(self, consumer, service):
        assert consumer._process_message(make_message(sample_payload())) is True
        assert service.has_data is True
        assert service.latest().fragmentation == pytest.approx(0.875)
        assert service.last_observed_at == 1714564800.0

    def test_invalid_json_is_skipped(self, consumer, service):
        assert consumer._process_message(make_message(b"not-json")) is False
        assert service.has_data is False

    def test_invalid_sample_is_skipped(self, consumer, service):
        msg = make_message(sample_payload(free=99_000_000))
        assert consumer._process_message(msg) is False
        assert service.has_data is False

    def test_empty_message_is_skipped(self, consumer, service):
        msg = MagicMock()
        msg.value.return_value = None
        assert consumer._process_message(msg) is False

    def test_source_host_filter(self, service, mock_kafka_consumer):
        with patch("analytics.consumer.Consumer", return_value=mock_kafka_consumer):
            filtered = SampleConsumer(Config(source_host="node-2"), service)
        assert filtered._process_message(make_message(sample_payload(host="node-1"))) is False
        assert filtered._process_message(make_message(sample_payload(host="node-2"))) is True
        assert service.ingested_count == 1

    def test_run_commits_after_processing(self, consumer, service, mock_kafka_consumer):
        msg = make_message(sample_payload())

        def poll_once(timeout):
            consumer._running = False
            return msg

        mock_kafka_consumer.poll.side_effect = poll_once
        consumer._running = True
        consumer._run()
        mock_kafka_consumer.commit.assert_called_once_with(asynchronous=False)
        assert service.ingested_count == 1

    def test_run_skips_consumer_errors(self, consumer, service, mock_kafka_consumer):
        msg = MagicMock()
        msg.error.return_value = MagicMock(code=MagicMock(return_value=-1))

        def poll_once(timeout):
            consumer._running = False
            return msg

        mock_kafka_consumer.poll.side_effect = poll_once
        consumer._running = True
        consumer._run()
        mock_kafka_consumer.commit.assert_not_called()
        assert service.has_data is False

    def feed(self, consumer, mock_kafka_consumer, messages):
        pending = iter(messages)

        def poll(timeout):
            msg = next(pending, None)
            if msg is None:
                consumer._running = False
            return msg

        mock_kafka_consumer.poll.side_effect = poll
        consumer._running = True
        consumer._run()

    def test_run_survives_failing_message(self, consumer, service, mock_kafka_consumer):
        messages = [
            make_message(sample_payload(timestamp="2024-05-01T12:00:00Z")),
            make_message(sample_payload(timestamp="2024-05-01T12:00:05Z")),
            make_message(sample_payload(timestamp="2024-05-01T12:00:10Z")),
        ]
        with patch(
            "analytics.consumer.record_derived_metrics",
            side_effect=[None, OverflowError("gauge out of range"), None],
        ):
            self.feed(consumer, mock_kafka_consumer, messages)
        assert service.ingested_count == 3
        assert service.last_observed_at == 1714564810.0
        # The failed message is not committed; the next commit covers it
        assert mock_kafka_consumer.commit.call_count == 2

    def test_run_survives_commit_failure(self, consumer, service, mock_kafka_consumer):
        mock_kafka_consumer.commit.side_effect = [RuntimeError("commit failed"), None]
        messages = [
            make_message(sample_payload(timestamp="2024-05-01T12:00:00Z")),
            make_message(sample_payload(timestamp="2024-05-01T12:00:05Z")),
        ]
        self.feed(consumer, mock_kafka_consumer, messages)
        assert service.ingested_count == 2
        assert mock_kafka_consumer.commit.call_count == 2

    def test_oversized_counter_is_rejected_and_run_continues(self, consumer, service, mock_kafka_consumer):
        messages = [
            make_message(sample_payload(timestamp="2024-05-01T12:00:00Z")),
            make_message(sample_payload(timestamp="2024-05-01T12:00:05Z", minor_faults=2**1100)),
            make_message(sample_payload(timestamp="2024-05-01T12:00:10Z")),
        ]
        self.feed(consumer, mock_kafka_consumer, messages)
        assert service.ingested_count == 2
        assert service.last_observed_at == 1714564810.0
