"""Application Settings - Central Configuration"""
from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Storage
    storage_backend: str = "mongo"  # "mongo" or "memory"
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "docflow_dev"

    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"
    log_file_enabled: bool = True

    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"

    # Business calendar used for business-hours SLAs
    business_timezone: str = "UTC"
    business_day_start_hour: int = 9
    business_day_end_hour: int = 17

    # Dynamic assignment presets
    amount_high_threshold: float = 10000
    amount_very_high_threshold: float = 50000

    # Collections that carry workflows (used by SLA sweeps and delete guards)
    workflow_collections: str = "blogs,contracts"

    # Status snapshot
    status_log_limit: int = 20

    # Notifications
    notification_sender: str = "workflow@docflow.local"
    notification_webhook_url: Optional[str] = None
    notification_timeout_seconds: float = 10.0

    # SLA scheduler (off by default, SLA state is computed on demand)
    sla_scheduler_enabled: bool = False
    sla_check_interval_seconds: int = 300

    # Environment
    environment: str = "development"
    debug: bool = True

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def workflow_collections_list(self) -> List[str]:
        """Parse workflow collections string to list"""
        return [c.strip() for c in self.workflow_collections.split(",") if c.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
