from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # Database
    MONGODB_URL: str = "mongodb://localhost:27017"
    DB_NAME: str = "expense_approvals"

    # App
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Workflow tunables (product sign-off pending on the first two)
    PARALLEL_AUTO_CLOSE_RATIO: float = 0.6
    ESCALATED_STEPS_DECIDABLE: bool = True
    FALLBACK_APPROVER_ROLE: str = "manager"
    FALLBACK_SLA_HOURS: int = 24
    MAX_COMMIT_RETRIES: int = 3

    # Escalation monitor
    ESCALATION_SWEEP_ENABLED: bool = True
    ESCALATION_SWEEP_INTERVAL_SECONDS: int = 300

settings = Settings()
