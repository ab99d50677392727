from pydantic_settings import BaseSettings
from pydantic import Field


class Config(BaseSettings):
    kafka_brokers: str = Field(default="kafka:9092", env="KAFKA_BROKERS")
    samples_topic: str = Field(default="memory.samples", env="SAMPLES_TOPIC")
    consumer_group: str = Field(default="memory-analytics-group", env="CONSUMER_GROUP")
    consumer_timeout_ms: int = Field(default=1000, env="CONSUMER_TIMEOUT_MS")
    source_host: str = Field(default="", env="SOURCE_HOST")  # "" accepts any host
    window_capacity: int = Field(default=30, ge=1, env="WINDOW_CAPACITY")
    fragmentation_threshold: float = Field(default=0.70, env="FRAGMENTATION_THRESHOLD")
    pressure_threshold: float = Field(default=0.80, env="PRESSURE_THRESHOLD")
    swap_usage_threshold: float = Field(default=80.0, env="SWAP_USAGE_THRESHOLD")
    pressure_memory_weight: float = Field(default=0.7, ge=0.0, env="PRESSURE_MEMORY_WEIGHT")
    pressure_swap_weight: float = Field(default=0.3, ge=0.0, env="PRESSURE_SWAP_WEIGHT")
    stale_after_seconds: float = Field(default=15.0, env="STALE_AFTER_SECONDS")
    server_host: str = Field(default="0.0.0.0", env="SERVER_HOST")
    server_port: int = Field(default=8080, env="SERVER_PORT")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
