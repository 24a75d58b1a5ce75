from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # FastAPI
    API_VERSION: str = "v1"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DB_URL: str = "sqlite:///./internship_grades.db"

    # Grading workflow
    DEFAULT_ENGAGEMENT_DAYS: int = 90
    MAX_MILESTONE_DOCUMENTS: int = 10
    STATISTICS_MAX_PAGE_SIZE: int = 100

    # Notifications
    NOTIFICATION_WEBHOOK_URL: Optional[str] = None
    NOTIFICATION_TIMEOUT: float = 5.0

    model_config = SettingsConfigDict(env_file=".env")


settings = Settings()
