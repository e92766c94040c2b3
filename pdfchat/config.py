"""
Configuration management for the PDF Chat History Service.
Handles environment variables and application settings.
"""

from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Ignore extra fields from environment
    )

    # API Configuration
    app_name: str = Field(default="PDF Chat History Service")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    cors_origins: List[str] = Field(
        default=["http://localhost:5173", "http://localhost:3000"]
    )

    # Database Configuration
    database_url: str = Field(default="sqlite:///./pdfchat.db")

    # Security Configuration
    secret_key: str = Field(default="change-me")
    jwt_algorithm: str = Field(default="HS256")
    auth_jwks_url: Optional[str] = Field(default=None)
    auth_issuer: Optional[str] = Field(default=None)

    # Chat Configuration
    chat_name_max_length: int = Field(default=50, ge=1)


# Global settings instance
settings = Settings()


def validate_required_settings() -> None:
    """Validate that all required settings are present."""
    required_settings = [
        ("database_url", settings.database_url),
        ("secret_key", settings.secret_key),
    ]

    missing_settings = []
    for setting_name, setting_value in required_settings:
        if not setting_value:
            missing_settings.append(setting_name)

    if missing_settings:
        raise ValueError(
            f"Missing required environment variables: {', '.join(s.upper() for s in missing_settings)}. "
            "Please check your .env file."
        )
