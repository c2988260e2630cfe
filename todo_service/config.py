"""Configuration settings using Pydantic BaseSettings."""

from pathlib import Path
from typing import List, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Configuration
    app_host: str = Field(default="0.0.0.0", description="FastAPI host")
    app_port: int = Field(default=3001, description="FastAPI port")
    debug: bool = Field(default=False, description="Enable debug mode")
    environment: str = Field(default="production", description="Deployment environment (development, production, test)")
    cors_origins: List[str] = Field(
        default=["http://localhost:5173", "http://127.0.0.1:5173"],
        description="Origins allowed by the CORS middleware"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: Path = Field(default=Path("logs"), description="Directory for rotating log files")
    log_to_file: bool = Field(default=True, description="Write rotating log files in addition to the console")

    # Storage Configuration
    storage_backend: str = Field(default="file", description="Persistence slot backend (file or memory)")
    storage_path: Path = Field(default=Path("data/storage.json"), description="File backing the persistence slot")
    storage_key: str = Field(default="glassmorphism_todos", description="Slot key holding the serialized collection")
    seed_defaults: bool = Field(default=True, description="Seed example todos when the slot is empty")

    # Todo Field Configuration
    priorities: List[str] = Field(default=["low", "medium", "high"], description="Allowed priority values")
    default_priority: str = Field(default="medium", description="Priority assigned when none is given")
    categories: Optional[List[str]] = Field(default=None, description="Allowed categories (None allows free-form)")
    default_category: str = Field(default="general", description="Category assigned when none is given")
    category_max_length: int = Field(default=50, description="Maximum length of a free-form category")
    text_max_length: int = Field(default=200, description="Maximum length of todo text")
    description_max_length: int = Field(default=1000, description="Maximum length of todo description")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def check_defaults_allowed(self) -> "Settings":
        if self.default_priority not in self.priorities:
            raise ValueError(
                f"default_priority '{self.default_priority}' must be one of: {', '.join(self.priorities)}"
            )
        if self.categories is not None and self.default_category not in self.categories:
            raise ValueError(
                f"default_category '{self.default_category}' must be one of: {', '.join(self.categories)}"
            )
        return self

    @property
    def is_development(self) -> bool:
        """Whether error details may be exposed to API clients."""
        return self.debug or self.environment.lower() == "development"


# Global settings instance
settings = Settings()
