# ecommerce_api/config.py
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)


def _normalize_database_url(raw_url: str) -> str:
    """
    Provedores fornecem DATABASE_URL tipo:
      - postgres://...  (precisa trocar para postgresql+psycopg://)
    Em produção no Render, força SSL.
    """
    if not raw_url:
        # SQLite local padrão (arquivo em ecommerce_api/database/app.db)
        return f"sqlite:///{os.path.join(os.path.dirname(__file__), 'database', 'app.db')}"
    url = raw_url
    if url.startswith("postgres://"):
        url = "postgresql+psycopg://" + url[len("postgres://"):]
    elif url.startswith("postgresql://"):
        url = "postgresql+psycopg://" + url[len("postgresql://"):]
    if os.getenv("RENDER") and url.startswith("postgresql+psycopg://") and "sslmode=" not in url:
        sep = "&" if "?" in url else "?"
        url = f"{url}{sep}sslmode=require"
    return url


def _split_csv(raw: str):
    return [v.strip() for v in (raw or "").split(",") if v.strip()]


class Config:
    """Lido do ambiente no momento em que create_app roda."""

    def __init__(self):
        self.SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
        self.SQLALCHEMY_DATABASE_URI = _normalize_database_url(os.getenv("DATABASE_URL", ""))
        self.SQLALCHEMY_TRACK_MODIFICATIONS = False
        self.SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
        self.CORS_ORIGINS = _split_csv(os.getenv("CORS_ORIGINS", "http://localhost:3000"))
        self.STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
        self.STRIPE_API_BASE = os.getenv("STRIPE_API_BASE", "https://api.stripe.com/v1")
        self.STRIPE_TIMEOUT = int(os.getenv("STRIPE_TIMEOUT", "30"))
        self.DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "usd").lower()
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    def as_dict(self):
        return {k: v for k, v in vars(self).items() if k.isupper()}
