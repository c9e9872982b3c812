from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    timezone: str = "Europe/Moscow"
    sqlite_path: str = "data/app.db"
    log_path: str = "logs/app.log"
    log_level: str = "INFO"
    generation_days_ahead: int = 60
    cleanup_max_age_days: int = 90
    rules_key: str = "recurringEvents"
    instances_key: str = "calendarInstances"
    archive_key: str = "taskManager_archive"


settings = Settings()
