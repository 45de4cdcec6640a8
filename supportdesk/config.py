"""
Application Configuration
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # MongoDB Configuration
    mongodb_uri: str
    database_name: str = "support_desk"

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = True
    environment: str = "development"

    # Allowed frontend origin(s), comma separated
    frontend_url: str = "http://localhost:3000"

    # JWT (tokens are issued by the auth service)
    jwt_secret_key: str = "change-me"
    jwt_algorithm: str = "HS256"

    # Attachments
    upload_dir: str = "uploads"
    upload_url_prefix: str = "/uploads"
    upload_max_bytes: int = 20 * 1024 * 1024
    upload_allowed_types: List[str] = ["image/jpeg", "image/png", "application/pdf"]

    # Real-time rooms: seconds a member may take to accept one event
    realtime_send_timeout: float = 5.0

    # Monitoring
    sentry_dsn: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"

    @property
    def cors_allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.frontend_url.split(",") if origin.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
