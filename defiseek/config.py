"""
DeFiSeek - Core Configuration Module

Centralized configuration management using Pydantic Settings.
Secrets (API keys) are read from the environment or a local .env file.
"""

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class UnleashConfig(BaseSettings):
    """bitsCrunch UnleashNFTs API configuration."""

    model_config = SettingsConfigDict(env_prefix="UNLEASHNFTS_")

    api_key: str = Field(default="", description="UnleashNFTs API key")
    base_url: str = Field(
        default="https://api.unleashnfts.com/api/v2",
        description="UnleashNFTs REST API endpoint",
    )
    timeout_seconds: float = Field(
        default=15.0,
        description="Per-request HTTP timeout",
    )
    chain_cache_ttl_seconds: float = Field(
        default=300.0,
        description="Freshness window for the supported-chains cache",
    )
    mock_wallet_risk: bool = Field(
        default=False,
        description="Register the deterministic mock wallet-risk agent (demos only)",
    )


class LLMConfig(BaseSettings):
    """Language model provider configuration."""

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True)

    google_api_key: str = Field(default="", alias="GOOGLE_GENERATIVE_AI_API_KEY")
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    deepseek_api_key: str = Field(default="", alias="DEEPSEEK_API_KEY")
    groq_api_key: str = Field(default="", alias="GROQ_API_KEY")

    default_model: str = Field(
        default="gemini-1.5-flash-latest",
        alias="DEFISEEK_DEFAULT_MODEL",
    )
    router_temperature: float = Field(default=0.1, alias="DEFISEEK_ROUTER_TEMPERATURE")
    synthesis_temperature: float = Field(default=0.3, alias="DEFISEEK_SYNTHESIS_TEMPERATURE")
    chat_temperature: float = Field(default=0.7, alias="DEFISEEK_CHAT_TEMPERATURE")
    title_temperature: float = Field(default=0.5, alias="DEFISEEK_TITLE_TEMPERATURE")
    max_steps: int = Field(
        default=2,
        alias="DEFISEEK_MAX_STEPS",
        description="Tool-calling rounds allowed in the direct chat path",
    )


class APIConfig(BaseSettings):
    """REST API configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = Field(default="0.0.0.0", description="API host")
    port: int = Field(default=8000, description="API port")
    workers: int = Field(default=4, description="Number of workers")
    reload: bool = Field(default=True, description="Enable auto-reload")
    api_keys: Annotated[list[str], NoDecode] = Field(
        default=[],
        description="Valid bearer keys for authentication",
    )
    max_duration_seconds: float = Field(
        default=60.0,
        description="Wall-clock ceiling for one chat generation",
    )
    cors_origins: Annotated[list[str], NoDecode] = Field(default=["*"])

    @field_validator("api_keys", "cors_origins", mode="before")
    @classmethod
    def parse_csv(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [key.strip() for key in v.split(",") if key.strip()]
        return v


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    env: Literal["development", "staging", "production"] = Field(
        default="development",
        alias="DEFISEEK_ENV",
    )
    debug: bool = Field(default=True, alias="DEFISEEK_DEBUG")
    log_level: str = Field(default="INFO", alias="DEFISEEK_LOG_LEVEL")

    # Sub-configurations
    unleash: UnleashConfig = Field(default_factory=UnleashConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    api: APIConfig = Field(default_factory=APIConfig)

    @property
    def is_local(self) -> bool:
        """Check if running in local development mode."""
        return self.env == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience alias
settings = get_settings()
