import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv

# -------------------------------------------------------------------
# Env config, read once per process
# -------------------------------------------------------------------
load_dotenv()

DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://frontend:3000"


def _optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///advisor.db"
    uploads_dir: str = "uploads"
    cors_origins: List[str] = field(default_factory=lambda: DEFAULT_CORS_ORIGINS.split(","))
    jwt_secret: str = "advisor-dev-secret"
    token_ttl_days: int = 7
    openrouter_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None
    aionet_api_key: Optional[str] = None
    hf_api_key: Optional[str] = None
    model_timeout: float = 60.0
    log_level: str = "INFO"

    @property
    def has_model_credentials(self) -> bool:
        return any(
            (self.openrouter_api_key, self.groq_api_key, self.aionet_api_key, self.hf_api_key)
        )


def load_settings() -> Settings:
    origins = os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///advisor.db"),
        uploads_dir=os.getenv("UPLOADS_DIR", "uploads"),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        jwt_secret=os.getenv("JWT_SECRET", "advisor-dev-secret"),
        token_ttl_days=int(os.getenv("TOKEN_TTL_DAYS", "7")),
        openrouter_api_key=_optional("OPENROUTER_API_KEY"),
        groq_api_key=_optional("GROQ_API_KEY"),
        aionet_api_key=_optional("AIONET_API_KEY"),
        hf_api_key=_optional("HF_API_KEY"),
        model_timeout=float(os.getenv("MODEL_TIMEOUT", "60")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
