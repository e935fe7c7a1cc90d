"""
Configuration management for AI Builder.

Uses Pydantic settings for environment variable support.
"""

from pydantic_settings import BaseSettings
from pydantic import Field
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "AI Builder Orchestrator"
    APP_VERSION: str = "0.4.0"
    DEBUG: bool = False
    API_PREFIX: str = "/api"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # CORS
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        *[f"http://localhost:{port}" for port in range(5173, 5200)],
    ]

    # Backend completion service
    BACKEND_BASE_URL: str = "http://localhost:8080"
    LLM_API_KEY: Optional[str] = Field(
        default=None,
        description="Bearer token sent to the completion service"
    )
    HTTP_TIMEOUT: float = 300.0
    AI_BUILDER_PATH: str = "/api/ai-builder"

    # Summarizer stage
    SUMMARIZER_AGENT_ID: str = "professional-writing"
    SUMMARIZER_TIMEOUT: float = 60.0

    # Image stage
    IMAGE_AGENT_ID: str = "image-generator"
    IMAGE_TIMEOUT: float = 60.0
    IMAGE_OUTPUT_FORMAT: str = "png"

    # Search stage
    SEARCH_PATH: str = "/api/ai-builder/search"
    SEARCH_TIMEOUT: float = 60.0
    SEARCH_MAX_RETRIES: int = 3
    SEARCH_RETRY_BASE_DELAY: float = 1.0
    SEARCH_DEFAULT_MAX_RESULTS: int = 5

    # History
    HISTORY_PATH: str = "/api/ai-prompts"
    HISTORY_USERNAME: str = "anonymous"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def agent_path(self, agent_id: str) -> str:
        """Path of the completion endpoint for an agent."""
        return f"{self.AI_BUILDER_PATH.rstrip('/')}/{agent_id}"


# Global settings instance
settings = Settings()
