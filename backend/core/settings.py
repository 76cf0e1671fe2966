# core/settings.py
from pathlib import Path

from pydantic_settings import BaseSettings

BACKEND_DIR = Path(__file__).resolve().parent.parent

class Settings(BaseSettings):
    # Storage
    DATA_ROOT: str = str(BACKEND_DIR.parent / "data")

    # Logging
    LOG_DIR: str = "logs"   # relative to the working directory
    LOG_LEVEL: str = "INFO"

    # Exchange (public candle endpoint only)
    EXCHANGE_BASE_URL: str = "https://api.upbit.com/v1"
    EXCHANGE_TIMEOUT: float = 10.0

    # Historical collection
    COLLECT_BATCH_SIZE: int = 200
    COLLECT_BATCH_DELAY: float = 0.3  # seconds between paged requests

    # Backtesting defaults
    LOOKBACK_WINDOW: int = 100
    DEFAULT_INITIAL_CAPITAL: float = 1_000_000.0
    DEFAULT_COMMISSION_RATE: float = 0.0005
    MAX_FINISHED_RUNS: int = 200  # finished runs kept in memory by the service

    # API
    FRONTEND_ORIGIN: str = "http://localhost:3000"

    class Config:
        env_file = BACKEND_DIR.parent / ".env"
        case_sensitive = True
        extra = "allow"

settings = Settings()
