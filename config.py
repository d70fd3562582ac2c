from __future__ import annotations
import os
from pathlib import Path

def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")

class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    BASE_DIR = Path(__file__).resolve().parent
    # SQLite-файл в корне проекта
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'app.db'}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # часовой пояс кофейни: все pickup_time хранятся как локальное naive-время
    SHOP_TIMEZONE = os.getenv("SHOP_TIMEZONE", "Asia/Kolkata")

    # платёжный шлюз
    RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID", "")
    RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET", "")
    RAZORPAY_API_URL = os.getenv("RAZORPAY_API_URL", "")   # пусто: адрес по умолчанию из SDK
    PAYMENT_CURRENCY = "INR"

    OTP_TTL_MINUTES = 10
    OTP_ECHO = _env_bool("OTP_ECHO", False)

    AUTH_RL_MAX = int(os.getenv("AUTH_RL_MAX", "5"))
    AUTH_RL_WINDOW = int(os.getenv("AUTH_RL_WINDOW", "300"))

    # через сколько минут неоплаченный заказ освобождает слот
    ORDER_HOLD_MINUTES = int(os.getenv("ORDER_HOLD_MINUTES", "30"))

    WTF_CSRF_TIME_LIMIT = None
    WTF_CSRF_HEADERS = ["X-CSRF-Token", "X-CSRFToken"]

class DevConfig(BaseConfig):
    DEBUG = True
    OTP_ECHO = _env_bool("OTP_ECHO", True)
    SEED_TEST_DATA = True
    DEFAULT_USERS = [
        {"username": "admin", "password": "admin123", "role": "ADMIN"},
        {"username": "counter", "password": "counter123", "role": "STAFF"},
    ]

class ProdConfig(BaseConfig):
    DEBUG = False
    JSON_SORT_KEYS = False
    SEED_TEST_DATA = False
    DEFAULT_USERS = []
    SESSION_COOKIE_SECURE = True

config_map = {
    "dev": DevConfig,
    "prod": ProdConfig,
    "default": DevConfig,
}
