"""
Configuration management for Smart Voyage.
Supports the Supabase platform (auth + edge functions) or local mock collaborators.
"""
from pydantic_settings import BaseSettings
from typing import Literal, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Collaborators
    auth_provider: Literal["supabase", "mock"] = "mock"
    functions_provider: Literal["supabase", "mock"] = "mock"

    # Supabase Configuration
    supabase_url: str = "http://localhost:54321"
    supabase_anon_key: str = ""
    site_url: str = "http://127.0.0.1:8000"  # Signup confirmation redirect target

    # Local Storage
    storage_db: str = ""  # SQLite file; takes precedence over storage_dir
    storage_dir: str = ""  # Empty keeps everything in memory
    history_limit: int = 50

    # Clients unused this long are closed; 0 keeps them until deleted
    client_idle_minutes: int = 60

    # No timeout unless explicitly configured
    request_timeout: Optional[float] = None

    # Server Configuration
    host: str = "127.0.0.1"
    port: int = 8000
    debug: bool = True
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()


def get_supabase_config() -> dict:
    """Get Supabase client configuration."""
    base_url = settings.supabase_url.rstrip("/")
    return {
        "auth_url": f"{base_url}/auth/v1",
        "functions_url": f"{base_url}/functions/v1",
        "anon_key": settings.supabase_anon_key,
        "redirect_to": settings.site_url.rstrip("/") + "/",
        "timeout": settings.request_timeout,
    }
