"""Application settings — Pydantic-based configuration with YAML and env var support.

Configuration is loaded from (in order of precedence):
  1. Environment variables (SEARCHBRIDGE_ prefix)
  2. YAML config file (if specified)
  3. Default values
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class ElasticsearchSettings(BaseModel):
    """Connection and addressing options for one Elasticsearch adapter instance.

    Every recognized option is listed here with its default; the adapter
    never consults any other source of configuration.
    """

    hosts: list[str] = Field(default=["http://localhost:9200"], description="Elasticsearch node URLs")
    index: str = Field(default="fortune", description="Index holding every record type")
    log: Literal["debug", "trace", "info", "warning", "error"] = Field(
        default="error", description="Log level of this adapter's HTTP transport"
    )
    api_version: str = Field(default="2.4", description="Elasticsearch API version; selects the wire dialect")
    primary_key: str = Field(default="id", description="Primary key field of every record")
    discriminator: str = Field(
        default="record_type", description="Document field holding the record type on typeless versions"
    )
    username: str | None = Field(default=None, description="HTTP basic-auth username")
    password: str | None = Field(default=None, description="HTTP basic-auth password")
    timeout: float = Field(default=30.0, gt=0, description="HTTP request timeout in seconds")
    refresh: bool = Field(default=False, description="Refresh the index after each bulk call")

    @field_validator("hosts", mode="before")
    @classmethod
    def _parse_hosts(cls, v: Any) -> list[str]:
        """Parse hosts from JSON string (env var) or list."""
        if isinstance(v, str):
            import json

            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return [str(h) for h in parsed]
            except (json.JSONDecodeError, TypeError):
                pass
            # Single host as plain string
            return [v] if v else []
        return list(v)

    @field_validator("api_version")
    @classmethod
    def _check_api_version(cls, v: str) -> str:
        try:
            float(v)
        except ValueError as e:
            raise ValueError(f"api_version must be a decimal number, got {v!r}") from e
        return v


class ObservabilitySettings(BaseModel):
    """Observability configuration."""

    log_level: str = Field(default="info", description="Log level: debug, info, warning, error")
    log_format: str = Field(default="json", description="Log format: json, console")


class Settings(BaseSettings):
    """Root settings.

    Configuration is loaded from environment variables with the SEARCHBRIDGE_ prefix.
    Nested settings use double underscores: SEARCHBRIDGE_ELASTICSEARCH__INDEX=records

    Example:
        SEARCHBRIDGE_ELASTICSEARCH__HOSTS='["http://es1:9200", "http://es2:9200"]'
        SEARCHBRIDGE_ELASTICSEARCH__API_VERSION=7.10
        SEARCHBRIDGE_OBSERVABILITY__LOG_FORMAT=console
    """

    model_config = {
        "env_prefix": "SEARCHBRIDGE_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    elasticsearch: ElasticsearchSettings = Field(default_factory=ElasticsearchSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Settings:
        """Load settings from a YAML configuration file.

        Values from the YAML file are used as defaults; environment variables
        still take precedence.

        Args:
            path: Path to the YAML config file.

        Returns:
            Populated Settings instance.
        """
        import yaml  # type: ignore[import-untyped]

        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)
