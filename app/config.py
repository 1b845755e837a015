"""
Application configuration
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # API
    API_TITLE: str = "API Check"
    API_VERSION: str = "0.1.0"

    # Workers
    ARTIFACTS_PATH: str = "/files/artifacts"

    # Listing defaults
    EXCLUDE_INTERNAL_NAMESPACES: bool = False

    # Installer defaults
    DOTNET_INSTALL_SCRIPT: str = "/files/tools/dotnet-install.sh"
    DOTNET_HOME: str | None = None
    DEFAULT_INSTALL_TIMEOUT: int = 240  # seconds, per asset

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
