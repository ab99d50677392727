import socket

from pydantic_settings import BaseSettings
from pydantic import Field


class Config(BaseSettings):
    kafka_brokers: str = Field(default="kafka:9092", env="KAFKA_BROKERS")
    samples_topic: str = Field(default="memory.samples", env="SAMPLES_TOPIC")
    host_id: str = Field(default_factory=socket.gethostname, env="HOST_ID")
    poll_interval_seconds: float = Field(default=5.0, gt=0, env="POLL_INTERVAL_SECONDS")
    meminfo_path: str = Field(default="/proc/meminfo", env="MEMINFO_PATH")
    vmstat_path: str = Field(default="/proc/vmstat", env="VMSTAT_PATH")
    producer_retry_max: int = Field(default=3, env="PRODUCER_RETRY_MAX")
    producer_flush_timeout: int = Field(default=10, env="PRODUCER_FLUSH_TIMEOUT")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
