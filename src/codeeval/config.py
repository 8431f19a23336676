"""Pydantic settings for the evaluation service."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = {"env_prefix": "EVAL_"}

    psk: str = ""
    request_timeout_seconds: float = 20.0
    python_image: str = "euank/python:3.6"
    memory_limit_mb: int = 50
    cpu_period: int = 100000
    cpu_quota: int = 50000  # half a CPU
    pids_limit: int = 100
    dns_servers: list[str] = ["8.8.8.8"]
    stop_grace_seconds: int = 5
    max_output_bytes: int = 1_048_576  # 1 MB per stream, 0 disables the cap
    max_code_size_bytes: int = 1_048_576  # 1 MB
    log_level: str = "INFO"
