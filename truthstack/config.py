"""Configuration settings for the TruthStack service."""

from typing import List, Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Generation backend (any OpenAI-compatible chat completions endpoint)
    LLM_API_KEY: str = ""
    LLM_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    LLM_TEMPERATURE: float = 0.2
    LLM_MAX_TOKENS: int = 4096
    LLM_TIMEOUT_SECONDS: float = 60.0

    # Model identifiers, most preferred first (comma-separated)
    MODEL_FALLBACK_CHAIN: str = (
        "gemini-2.0-flash,gemini-1.5-flash-002,gemini-1.5-pro-002,gemini-2.0-flash-exp"
    )
    DEBATE_MODEL_CHAIN: str = "gemini-2.0-flash"

    # Response contract
    PROMPT_CONTRACT: Literal["structured", "legacy"] = "structured"
    NO_SOURCE_CONFIDENCE_CAP: float = 0.35

    # Usage recording
    USAGE_RECORDER: Literal["memory", "jsonl", "none"] = "memory"
    USAGE_LOG_PATH: str = "data/usage.jsonl"

    # Presentation
    LOADING_MESSAGE_INTERVAL: float = 2.0  # Seconds between loading title changes

    # API Configuration
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # Security Configuration
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"  # Comma-separated list
    API_KEY: str = ""  # Optional API key for authentication
    RATE_LIMIT_REQUESTS: int = 30  # Requests per window
    RATE_LIMIT_WINDOW: int = 60  # Window in seconds
    MAX_TEXT_LENGTH: int = 5000  # Maximum claim length
    DEBUG_MODE: bool = False  # Set to True only in development

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    def analysis_models(self) -> List[str]:
        """Analysis model identifiers in priority order."""
        return split_chain(self.MODEL_FALLBACK_CHAIN)

    def debate_models(self) -> List[str]:
        """Debate model identifiers in priority order."""
        return split_chain(self.DEBATE_MODEL_CHAIN)


def split_chain(value: str) -> List[str]:
    """Split a comma-separated model list, dropping blanks."""
    return [item.strip() for item in value.split(",") if item.strip()]


# Global settings instance
settings = Settings()
