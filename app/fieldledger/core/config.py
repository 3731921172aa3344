from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "FIELDLEDGER"
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    DATABASE_URL: str = "sqlite+pysqlite:///./fieldledger.db"
    LOG_LEVEL: str = "INFO"
    METRICS_ENABLED: bool = True
    MANAGER_ROLES: list[str] = ["ADMIN", "CEO", "GENERAL_MANAGER", "EXECUTIVE_MANAGER"]
    DEFAULT_MODULE_KEY: str = "daily_report"
    AGGREGATE_MODULE_KEY: str = "aggregated"
    NOTE_SEPARATOR: str = " | "
    AUTOSAVE_DEBOUNCE_SECONDS: float = 2.0
    REFETCH_DEBOUNCE_SECONDS: float = 2.0
    SCRATCH_STORAGE_PATH: str = "./scratch_storage"
    SCRATCH_RESTORE_WINDOW_SECONDS: int = 60
    REPORT_DELETE_REQUIRES_APPROVAL: bool = False


settings = Settings()
