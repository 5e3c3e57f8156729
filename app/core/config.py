from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Service configuration loaded from environment variables."""

    app_name: str = "Open Sensor Platform API"
    environment: str = "development"
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "osp:"
    listen_host: str = "0.0.0.0"
    v1_port: int = Field(default=8088, ge=0, le=65535)
    v2_port: int = Field(default=8090, ge=0, le=65535)
    v3_port: int = Field(default=18150, ge=0, le=65535)
    socket_timeout_seconds: float = 30
    read_chunk_size: int = Field(default=256, ge=2)
    log_capacity: int = Field(default=1000, ge=1)
    default_coordinator_id: str = "1"
    workdir: str = "."
    log_level: str = "INFO"
    admin_username: str = "foo"
    admin_password: str = "bar"

    model_config = SettingsConfigDict(env_prefix="OSP_", env_file=".env", extra="ignore")

    @property
    def logs_to_file(self) -> bool:
        return self.environment in ("staging", "production")


@lru_cache
def get_settings() -> Settings:
    return Settings()
