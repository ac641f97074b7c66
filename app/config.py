"""Application settings loaded from environment variables / .env file."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    DATA_DIR: Path = BASE_DIR / "data"
    DATABASE_URL: str = f"sqlite+aiosqlite:///{BASE_DIR / 'data' / 'tutorscore.db'}"

    # Global switch; when off every scoring event is a no-op
    SCORING_ENABLED: bool = True
    # Catalog version whose lesson order defines streak adjacency
    CURRICULUM_VERSION: str = "v1"
    # True: ledger append and score write share one transaction.
    # False: score commits first, ledger failures are logged and dropped.
    LEDGER_STRICT: bool = True
    SCORE_MAX_RETRIES: int = 3


settings = Settings()
