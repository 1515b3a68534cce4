"""Application configuration loaded from environment variables."""

import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


@dataclass
class Config:
    """Application configuration."""
    
    # Remote generation service
    api_base_url: str
    api_token: str
    request_timeout: float
    
    # Job polling
    poll_interval_seconds: float
    poll_timeout_seconds: float
    poll_max_check_failures: int
    
    # Session persistence: "memory" | "redis" | "database"
    session_storage: str
    
    # Redis
    redis_url: str
    
    # Database
    database_url: str
    
    # App settings
    log_level: str


def load_config() -> Config:
    """Load configuration from environment variables."""
    return Config(
        api_base_url=os.getenv("API_BASE_URL", "http://localhost:8000"),
        api_token=os.getenv("API_TOKEN", ""),
        request_timeout=float(os.getenv("REQUEST_TIMEOUT", "60")),
        poll_interval_seconds=float(os.getenv("POLL_INTERVAL_SECONDS", "2")),
        poll_timeout_seconds=float(os.getenv("POLL_TIMEOUT_SECONDS", "120")),
        poll_max_check_failures=int(os.getenv("POLL_MAX_CHECK_FAILURES", "3")),
        session_storage=os.getenv("SESSION_STORAGE", "memory"),
        redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        database_url=os.getenv("DATABASE_URL", ""),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


# Global config instance
config = load_config()
