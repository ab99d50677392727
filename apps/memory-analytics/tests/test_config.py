from analytics.config import Config


class TestConfig:
    def test_defaults(self):
        config = Config()
        assert config.kafka_brokers == "kafka:9092"
        assert config.samples_topic == "memory.samples"
        assert config.consumer_group == "memory-analytics-group"
        assert config.consumer_timeout_ms == 1000
        assert config.source_host == ""
        assert config.window_capacity == 30
        assert config.fragmentation_threshold == 0.70
        assert config.pressure_threshold == 0.80
        assert config.swap_usage_threshold == 80.0
        assert config.pressure_memory_weight == 0.7
        assert config.pressure_swap_weight == 0.3
        assert config.stale_after_seconds == 15.0
        assert config.server_port == 8080

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("WINDOW_CAPACITY", "60")
        monkeypatch.setenv("PRESSURE_THRESHOLD", "0.9")
        monkeypatch.setenv("SAMPLES_TOPIC", "memory.samples.v2")
        config = Config()
        assert config.window_capacity == 60
        assert config.pressure_threshold == 0.9
        assert config.samples_topic == "memory.samples.v2"
