import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _seconds(name: str) -> Optional[float]:
    raw = os.environ.get(name, "").strip()
    return float(raw) if raw else None


class Config:
    """Base configuration class"""

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key")

    # exported tables (Su Answer.json, MetaSuChoices.json, ...)
    DATA_DIR = os.environ.get("DATA_DIR", "data")
    SURVEY_ID = int(os.environ.get("SURVEY_ID", 1))

    # empty = keep results for the life of the process
    CACHE_TTL_SECONDS = _seconds("CACHE_TTL_SECONDS")

    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*").split(",")
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class DevelopmentConfig(Config):
    DEBUG = True
    TESTING = False


class ProductionConfig(Config):
    DEBUG = False
    TESTING = False


class TestingConfig(Config):
    TESTING = True
    LOG_LEVEL = "WARNING"
    CACHE_TTL_SECONDS = None


config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}
