# backend/posledger/config.py
from __future__ import annotations
import os


def _csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/posledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///posledger.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Checkout
    PAYMENT_METHODS = _csv(os.environ.get("PAYMENT_METHODS", "cash,qris"))
    PRICE_TOLERANCE = os.environ.get("PRICE_TOLERANCE", "0.01")
    QRIS_IMAGE_PATH = os.environ.get("QRIS_IMAGE_PATH", "/pictures/qris/qris.png")

    # Reports / restock
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "15"))
    RESTOCK_AVG_DAYS = os.environ.get("RESTOCK_AVG_DAYS", "7")
    DEFAULT_PRODUCT_IMAGE = "/img/default-product.png"

    CORS_ALLOWED_ORIGINS = set(_csv(os.environ.get(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
    )))


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LOG_LEVEL = "WARNING"
    BCRYPT_ROUNDS = 4
    RESTOCK_AVG_DAYS = "7"
