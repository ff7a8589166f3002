"""
Resolved application configuration.

Built once at process start from environment variables and passed into each
component constructor. Components never read the environment themselves.
"""

import os
from dataclasses import dataclass

from logpilot.utils.logger import get_logger

logger = get_logger("config")

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class ConfigurationError(Exception):
    """A required setting is missing or malformed."""


@dataclass(frozen=True)
class AppConfig:
    """Immutable runtime configuration.

    Credentials are plaintext and live only in memory.
    """
    # AWS / CloudWatch Logs
    aws_region: str = "us-east-1"
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_session_token: str = ""
    default_collection: str = ""
    max_results_per_page: int = 1000
    default_time_range_hours: int = 24

    # Which store backs the query service: "cloudwatch" or "memory"
    log_store: str = "cloudwatch"

    # LLM configuration
    llm_api_key: str = ""
    llm_model: str = DEFAULT_MODEL
    llm_temperature: float = 0.0
    llm_max_tokens: int = 2000
    agent_max_iterations: int = 8
    enable_ai_analysis: bool = True

    # Coarse wall-clock ceiling for one conversational turn
    turn_timeout_seconds: float = 300.0

    def is_aws_configured(self) -> bool:
        return bool(self.aws_access_key_id and self.aws_secret_access_key)

    def is_llm_configured(self) -> bool:
        return bool(self.llm_api_key)

    def require_default_collection(self) -> str:
        if not self.default_collection:
            raise ConfigurationError("AWS_LOG_GROUP_NAME environment variable is not set")
        return self.default_collection

    def validate(self) -> list[str]:
        """Return human-readable configuration problems (empty when usable)."""
        errors: list[str] = []
        if self.enable_ai_analysis and not self.is_llm_configured():
            errors.append("ANTHROPIC_API_KEY is required when ENABLE_AI_ANALYSIS is true")
        if self.log_store not in ("cloudwatch", "memory"):
            errors.append(f"LOG_STORE must be 'cloudwatch' or 'memory', got '{self.log_store}'")
        if self.max_results_per_page <= 0:
            errors.append("CLOUDWATCH_MAX_RESULTS must be positive")
        if self.default_time_range_hours <= 0:
            errors.append("CLOUDWATCH_DEFAULT_TIME_RANGE_HOURS must be positive")
        return errors


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'")


def config_from_env() -> AppConfig:
    """Build config from environment variables."""
    config = AppConfig(
        aws_region=os.getenv("AWS_REGION", "us-east-1"),
        aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID", ""),
        aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY", ""),
        aws_session_token=os.getenv("AWS_SESSION_TOKEN", ""),
        default_collection=os.getenv("AWS_LOG_GROUP_NAME", ""),
        max_results_per_page=_env_int("CLOUDWATCH_MAX_RESULTS", 1000),
        default_time_range_hours=_env_int("CLOUDWATCH_DEFAULT_TIME_RANGE_HOURS", 24),
        log_store=os.getenv("LOG_STORE", "cloudwatch").lower(),
        llm_api_key=os.getenv("ANTHROPIC_API_KEY", ""),
        llm_model=os.getenv("ANTHROPIC_MODEL", DEFAULT_MODEL),
        llm_temperature=_env_float("LLM_TEMPERATURE", 0.0),
        llm_max_tokens=_env_int("LLM_MAX_TOKENS", 2000),
        agent_max_iterations=_env_int("AGENT_MAX_ITERATIONS", 8),
        enable_ai_analysis=os.getenv("ENABLE_AI_ANALYSIS", "true").lower() != "false",
        turn_timeout_seconds=_env_float("TURN_TIMEOUT_SECONDS", 300.0),
    )
    logger.info("Configuration resolved", extra={
        "action": "config_resolved",
        "extra": {
            "region": config.aws_region,
            "aws_configured": config.is_aws_configured(),
            "log_store": config.log_store,
            "model": config.llm_model,
            "default_collection": config.default_collection or None,
        },
    })
    return config
