"""Configuration management for the e2e-replay runner."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Language model configuration (OpenAI-compatible endpoint)
    openrouter_api_key: str = Field(
        default="",
        description="API key for the OpenAI-compatible endpoint",
        validation_alias=AliasChoices(
            "openrouter_api_key", "OPENROUTER_API_KEY", "OPENAI_API_KEY"
        ),
    )
    llm_model: str = Field(
        default="qwen/qwen3-30b-a3b-thinking-2507",
        description="Model used for action proposals and verification patterns",
    )
    llm_base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="Base URL of the OpenAI-compatible API",
    )
    llm_temperature: float = Field(
        default=0.9, ge=0.0, le=2.0, description="Sampling temperature"
    )
    llm_max_tokens: int = Field(
        default=4096, ge=64, description="Maximum completion tokens per call"
    )
    llm_max_retries: int = Field(
        default=2, ge=0, description="Client-level API retry attempts"
    )
    llm_request_timeout_seconds: int = Field(
        default=120, ge=5, description="Request timeout for LLM calls in seconds"
    )
    llm_app_title: str = Field(
        default="E2E Test Runner", description="X-Title attribution header"
    )
    llm_app_referer: str = Field(
        default="https://github.com/e2e-replay/e2e-replay",
        description="HTTP-Referer attribution header",
    )

    # Browser automation (Playwright MCP servers, one per browser)
    mcp_url_browser_1: str = Field(
        default="http://localhost:8932/mcp", description="MCP endpoint for browser 1"
    )
    mcp_url_browser_2: str = Field(
        default="http://localhost:8933/mcp", description="MCP endpoint for browser 2"
    )
    navigation_settle_ms: int = Field(
        default=2000, ge=0, description="Wait after navigation and storage resets (ms)"
    )
    scroll_settle_ms: int = Field(
        default=500, ge=0, description="Wait after scrolling (ms)"
    )
    default_start_url: Optional[str] = Field(
        default=None, description="Starting URL when none is given on the command line"
    )

    # Execution configuration
    default_delay_ms: int = Field(
        default=200, ge=0, description="Default settle delay per instruction (ms)"
    )
    max_retries_per_step: int = Field(
        default=2, ge=0, description="Additional attempts for a failing step"
    )
    retry_backoff_ms: int = Field(
        default=1000, ge=0, description="Pause before each retry attempt (ms)"
    )
    step_recursion_limit: int = Field(
        default=25, ge=5, description="Per-step workflow transition budget"
    )
    extraction_excerpt_chars: int = Field(
        default=4000, ge=256, description="Page text budget for value extraction calls"
    )
    history_window: int = Field(
        default=10, ge=1, description="Executed actions kept in a step result"
    )

    # Storage configuration
    memory_file: Path = Field(
        default=Path(".memory-state.json"), description="Persistent memory document"
    )
    plans_dir: Path = Field(
        default=Path("plans"), description="Directory holding learned plans"
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: str = Field(
        default="text",
        description="Log format (json or text)",
    )
    log_file: Optional[str] = Field(
        default=None, description="Log file path"
    )
    sanitize_logs: bool = Field(
        default=True, description="Redact secrets from log output"
    )

    @field_validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("log_format")
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        if v not in ["json", "text"]:
            raise ValueError(f"Invalid log format: {v}")
        return v

    def mcp_url_for(self, browser_id: int) -> str:
        """Return the MCP endpoint serving the given browser."""
        urls = {1: self.mcp_url_browser_1, 2: self.mcp_url_browser_2}
        if browser_id not in urls:
            raise ValueError(f"Unknown browser id: {browser_id}")
        return urls[browser_id]

    def create_directories(self) -> None:
        """Create required directories if they don't exist."""
        for dir_path in [self.plans_dir, self.memory_file.parent]:
            dir_path.mkdir(parents=True, exist_ok=True)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    # Load .env file if it exists
    env_file = Path(".env")
    if env_file.exists():
        load_dotenv(env_file)

    settings = Settings()
    settings.create_directories()
    return settings
