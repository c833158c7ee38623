"""Configuration module for Care Sync Service.

This module provides configuration settings using Pydantic Settings.
Environment variables can be used to override default values.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings for Care Sync Service.

    All settings can be overridden via environment variables.
    Example: export SUPABASE_URL="https://xyz.supabase.co"
    """

    # Local Record Store
    DATABASE_URL: str = "sqlite:///./care_sync.db"
    """Local store connection URL. Default: SQLite file in current directory"""

    # API Server Configuration
    API_HOST: str = "0.0.0.0"
    """API server host address"""

    API_PORT: int = 8010
    """API server port"""

    # Remote Table Configuration
    SUPABASE_URL: str = ""
    """Base URL of the Supabase project. Empty disables the remote leg"""

    SUPABASE_KEY: str = ""
    """API key sent as both apikey and bearer token"""

    REMOTE_TIMEOUT: float = 15.0
    """Timeout in seconds for a single remote table request"""

    OWNER_ID_FIELD: str = "user_id"
    """Column used to filter remote rows by owner"""

    TASKS_TABLE: str = "tasks"
    DIARY_TABLE: str = "diary_entries"

    # Sync Configuration
    SYNC_ENABLED: bool = True
    """Kill-switch: when False, full sync and pushes are no-ops"""

    PUSH_DEBOUNCE_SECONDS: float = 1.5
    """Quiet period before a scheduled push fires"""

    TASKS_STORAGE_KEY: str = "tasks_v1"
    DIARY_STORAGE_KEY: str = "diary_v1"

    class Config:
        """Pydantic config"""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()
