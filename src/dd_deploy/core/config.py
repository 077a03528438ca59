"""Configuration management for dd-deploy."""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseSettings):
    """Receiver (dd-server) configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="DD_SERVER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server configuration
    host: str = Field("0.0.0.0", description="Server host")
    port: int = Field(8080, description="Server port")
    reload: bool = Field(False, description="Enable auto-reload in development")

    # Storage
    deployments_dir: str = Field(
        "deployments",
        description="Directory holding one <service>/deploy.yml per service",
    )
    max_upload_size_mb: int = Field(
        4096,
        description="Maximum accepted upload size in MB",
    )

    # External tooling
    docker_bin: str = Field("docker", description="Container toolchain executable")
    command_timeout_seconds: float = Field(
        600.0,
        description="Upper bound for docker load / stack deploy",
    )

    # Observability
    log_level: str = Field("INFO")
    log_format: str = Field("json")
    metrics_enabled: bool = Field(True)

    @field_validator("command_timeout_seconds", "max_upload_size_mb")
    @classmethod
    def _positive(cls, v):
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


class ClientSettings(BaseSettings):
    """Client (dd) configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="DD_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    server_url: str = Field("http://localhost:8080", description="Receiver base URL")
    request_timeout_seconds: float = Field(
        600.0,
        description="Timeout for each HTTP round trip (image uploads can be large)",
    )

    # Build
    docker_bin: str = Field("docker")
    build_context: str = Field(".", description="Directory passed to docker build")
    dockerfile: Optional[str] = Field(None, description="Optional Dockerfile path (-f)")
    build_timeout_seconds: float = Field(1800.0)

    # Observability
    log_level: str = Field("INFO")
    log_format: str = Field("console")

    @field_validator("server_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("request_timeout_seconds", "build_timeout_seconds")
    @classmethod
    def _positive(cls, v):
        if v <= 0:
            raise ValueError("must be positive")
        return v
