from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Base
    APP_ENV: str = "dev"  # dev | staging | prod
    APP_NAME: str = "Card Store API"
    APP_VERSION: str = "0.1.0"

    # Serveur
    HOST: str = "127.0.0.1"
    PORT: int = 3002

    # CORS (vide = toutes origines)
    ALLOW_ORIGIN: str = ""

    # Security
    WRITE_TOKEN: str = ""

    # Routes
    API_PREFIX: str = ""
    PUBLIC_DIR: str = "./public"
    MAX_BODY_MB: int = 1

    # Storage
    DATA_DIR: str = "./data"
    STORE_FILENAME: str = "cards.json"
    STORE_ON_PARSE_FAILURE: str = "reset_to_empty"  # reset_to_empty | backup_and_reset | fail_fast

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def store_path(self) -> Path:
        return Path(self.DATA_DIR) / self.STORE_FILENAME

    @property
    def allowed_origins(self) -> list[str]:
        return [o.strip() for o in self.ALLOW_ORIGIN.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
