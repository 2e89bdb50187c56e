# config.py – Chargement des paramètres via pydantic-settings

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # ── API Keys ──
    RIOT_API_KEY: str = ""

    # ── Database & Cache ──
    DB_URL: str = "sqlite:///data/grieta.db"
    REDIS_URL: str = "redis://localhost:6379/0"

    # ── Riot API Configuration ──
    DEFAULT_REGION: str = "la1"   # Région par défaut des profils
    WINRATE_REGION: str = "la1"   # Ladder échantillonné pour les winrates agrégés
    WINRATE_TIMEOUT_S: float = 6.0  # la tier list n'attend pas plus longtemps les winrates

    # ── Data Dragon ──
    DDRAGON_LOCALE: str = "es_MX"
    DDRAGON_REFRESH_S: int = 3600

    # ── Web ──
    LOG_LEVEL: Optional[str] = None
    CORS_ORIGINS: str = "*"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

settings = Settings()
