# zusplus/core/config.py
from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,  # .env keys dürfen groß/klein geschrieben sein
        extra="ignore",
    )

    # ------------------------------------------------------------
    # 🧭 Allgemeine App-Einstellungen
    # ------------------------------------------------------------
    APP_NAME: str = "ZUSPlus"
    APP_ENV: str = "development"
    SECRET_KEY: str = Field(..., min_length=16)
    LOG_LEVEL: str = "INFO"

    # Cookies nur über HTTPS ausliefern (PROD: True)
    COOKIE_SECURE: bool = False

    # ------------------------------------------------------------
    # 🗄️ Datenbank (lokaler Identity-Provider)
    # ------------------------------------------------------------
    DB_URL: str = "sqlite:///./zusplus.db"

    # ------------------------------------------------------------
    # 🔐 Identity-Provider / MFA
    # ------------------------------------------------------------
    IDENTITY_BACKEND: Literal["local", "supabase"] = "local"
    SESSION_TOKEN_EXPIRE_MINUTES: int = 60

    SUPABASE_URL: Optional[str] = None
    SUPABASE_ANON_KEY: Optional[str] = None

    MFA_ISSUER: str = "ZUSPlus"
    MFA_FRIENDLY_NAME: str = "Admin Authenticator"
    MFA_CHALLENGE_TTL_SECONDS: int = 300
    MFA_FLOW_TTL_SECONDS: int = 600

    # Fernet-Key (BASE64) für TOTP-Secrets in der DB; leer = Klartext
    TOTP_SECRET_FERNET_KEY: Optional[str] = None

    # ------------------------------------------------------------
    # 📈 Externe Dienste
    # ------------------------------------------------------------
    PENSION_API_URL: str = "http://127.0.0.1:8001"
    PENSION_API_TIMEOUT_SECONDS: float = 20.0

    AI_GATEWAY_URL: str = "https://ai.gateway.lovable.dev"
    AI_GATEWAY_API_KEY: Optional[str] = None
    AI_MODEL: str = "google/gemini-2.5-flash"
    AI_TIMEOUT_SECONDS: float = 60.0


@lru_cache
def get_settings() -> Settings:
    return Settings()
