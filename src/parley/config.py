"""
Configuration management for Parley.

This module provides a Settings class that loads configuration from environment
variables (prefixed ``PARLEY_``) and an optional ``.env`` file.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from parley.conversation.models import (
    AgentConfig,
    AgentType,
    EnhancedAgentConfig,
    Personality,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Provider settings
    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-3.5-turbo"

    # Agent settings
    agent_type: AgentType = AgentType.ASSISTANT
    system_prompt: str = ""  # empty = archetype default
    temperature: float = 0.7
    max_tokens: int = 1000
    provider_timeout: float = 60.0

    # Function calling
    enable_function_calling: bool = True
    max_function_calls_per_message: int = Field(default=5, ge=0)
    function_timeout: float = 30.0

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8765

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="PARLEY_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    def agent_config(self) -> AgentConfig:
        """Build a plain `AgentConfig` from these settings."""
        return AgentConfig(
            agent_type=self.agent_type,
            system_prompt=self.system_prompt,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            model=self.model,
            provider_timeout=self.provider_timeout,
        )

    def enhanced_agent_config(self, personality: Personality | None = None) -> EnhancedAgentConfig:
        """Build an `EnhancedAgentConfig` from these settings."""
        return EnhancedAgentConfig(
            agent_type=self.agent_type,
            system_prompt=self.system_prompt,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            model=self.model,
            provider_timeout=self.provider_timeout,
            personality=personality,
            enable_function_calling=self.enable_function_calling,
            max_function_calls_per_message=self.max_function_calls_per_message,
            function_timeout=self.function_timeout,
        )


def get_settings() -> Settings:
    """Get the application settings instance."""
    return Settings()
