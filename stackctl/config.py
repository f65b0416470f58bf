"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with sensible defaults.
"""

import re
from functools import lru_cache

from pydantic import ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stackctl.exceptions import ConfigurationError

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

_UNIT_SECONDS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

# Durations that must be strictly positive; the rest only non-negative
_POSITIVE_DURATIONS = frozenset({"poll_interval", "dispatch_attempt_timeout"})


def parse_duration(value: str) -> float:
    """
    Parse a Go-style duration string into seconds.

    Accepts sequences such as "300ms", "1.5h" or "2h45m". A bare "0" is
    allowed; every other number needs a unit.

    Args:
        value: The duration string.

    Returns:
        The duration in seconds.

    Raises:
        ConfigurationError: If the string is not a valid duration.
    """
    text = value.strip()
    if not text:
        raise ConfigurationError(f"invalid duration {value!r}")

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    if text == "0":
        return 0.0

    total = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None:
            raise ConfigurationError(f"invalid duration {value!r}")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()

    if pos == 0:
        raise ConfigurationError(f"invalid duration {value!r}")
    return sign * total


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Upstream queue service
    buildkite_agent_token: str = ""
    stack_key: str = "bk-sprites"
    queue: str = "default"
    poll_interval: str = "1s"
    stacks_api_url: str = "https://agent.buildkite.com/v3"
    stacks_page_size: int = 50
    stacks_request_timeout_seconds: float = 30.0
    reservation_expiry_seconds: int = 30

    # Ledger
    ledger_max_entries: int = 1000
    ledger_entry_ttl: str = "10m"

    # Compute nodes
    sprite_api_token: str | None = None
    sprites_api_url: str = "https://api.sprites.dev/v1"
    sprite_names: str = "bk-test-1"
    sprite_address_template: str = "{name}.sprites.app"
    node_selection: str = "single"
    node_health_port: str = "8080"
    node_health_path: str = "/health"
    node_health_timeout_seconds: float = 10.0
    agent_command: str = ".buildkite-agent/bin/buildkite-agent"

    # Dispatch
    dispatch_max_attempts: int = 3
    dispatch_retry_delay: str = "2s"
    dispatch_attempt_timeout: str = "5m"
    max_concurrent_dispatches: int = 8

    # Node agent
    node_agent_host: str = "0.0.0.0"
    node_agent_port: int = 8080
    node_agent_max_agents: int = 4

    # Observability
    otel_exporter_otlp_endpoint: str | None = None
    otel_service_name: str = "stackctl"
    prometheus_port: int = 9090
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    @field_validator(
        "poll_interval",
        "ledger_entry_ttl",
        "dispatch_retry_delay",
        "dispatch_attempt_timeout",
    )
    @classmethod
    def _validate_duration(cls, value: str, info: ValidationInfo) -> str:
        seconds = parse_duration(value)
        if info.field_name in _POSITIVE_DURATIONS and seconds <= 0:
            raise ConfigurationError(f"{info.field_name} must be positive, got {value!r}")
        if seconds < 0:
            raise ConfigurationError(f"{info.field_name} must not be negative, got {value!r}")
        return value

    @field_validator("node_selection")
    @classmethod
    def _validate_selection(cls, value: str) -> str:
        if value not in ("single", "round_robin"):
            raise ConfigurationError(f"unknown node selection strategy {value!r}")
        return value

    @property
    def poll_interval_seconds(self) -> float:
        return parse_duration(self.poll_interval)

    @property
    def ledger_entry_ttl_seconds(self) -> float:
        return parse_duration(self.ledger_entry_ttl)

    @property
    def dispatch_retry_delay_seconds(self) -> float:
        return parse_duration(self.dispatch_retry_delay)

    @property
    def dispatch_attempt_timeout_seconds(self) -> float:
        return parse_duration(self.dispatch_attempt_timeout)

    @property
    def sprite_name_list(self) -> list[str]:
        return [name.strip() for name in self.sprite_names.split(",") if name.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
