"""
Application Configuration

Uses Pydantic Settings for type-safe configuration.
"""

from pathlib import Path
from typing import Literal, Optional

from pydantic import ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with validation."""

    # === Core ===
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # === Document store ===
    document_backend: Literal["memory", "sql"] = Field(
        default="memory",
        description="Backend for the document store"
    )
    database_url: str = Field(
        default="sqlite:///./fitconnect.db",
        description="Database connection URL (sql backend only)"
    )

    # === Onboarding / auth ===
    default_role: str = Field(
        default="client",
        description="Role used when login is entered without a chosen role"
    )
    skip_seen_onboarding: bool = Field(
        default=False,
        description="Go from splash straight to role selection once onboarding was seen"
    )
    onboarding_state_path: Optional[Path] = Field(
        default=None,
        description="JSON file for the onboarding-seen flag (in memory if unset)"
    )
    password_hash_iterations: int = Field(default=100_000, ge=1)

    @field_validator('database_url')
    @classmethod
    def fix_postgres_url(cls, v: str) -> str:
        """Fix Render/Railway postgres:// URL to postgresql://"""
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @field_validator('default_role')
    @classmethod
    def check_default_role(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("client", "dietitian"):
            raise ValueError(f"Unknown role: {v}")
        return v

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FITCONNECT_",
        case_sensitive=False,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
