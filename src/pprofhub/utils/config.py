from functools import lru_cache
from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PPROFHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_dir: str = "logs"
    log_level: str = "INFO"
    uploads_dir: str = "uploads"
    go_binary: str = "go"
    allowed_commands: List[str] = Field(default_factory=lambda: ["go", "pprof", "go-torch"])
    top_node_count: int = 20
    recent_limit: int = 10
    remote_cpu_seconds: int = 10
    fetch_timeout_sec: int = 60
    command_timeout_sec: int = 120

@lru_cache
def get_settings() -> Settings:
    return Settings()  # env vars automatically picked up
