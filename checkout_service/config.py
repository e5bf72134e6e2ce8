# checkout_service/config.py
import os
from dotenv import load_dotenv

load_dotenv()


def _database_url() -> str:
    url = os.getenv("CHECKOUT_DATABASE_URL")
    if url:
        return url
    return (
        f"postgresql+asyncpg://{os.getenv('CHECKOUT_DB_USER', 'postgres')}:{os.getenv('CHECKOUT_DB_PASSWORD', 'postgres')}"
        f"@{os.getenv('CHECKOUT_DB_HOST', 'localhost')}:{os.getenv('CHECKOUT_DB_PORT', '5432')}/{os.getenv('CHECKOUT_DB_NAME', 'checkout')}"
    )


DATABASE_URL = _database_url()
DATABASE_ECHO = os.getenv("CHECKOUT_DB_ECHO", "false").lower() in ("1", "true", "yes")

SECRET_KEY = os.getenv("SECRET_KEY", "your_secret_key")
ALGORITHM = os.getenv("ALGORITHM", "HS256")

CART_STORAGE_PATH = os.getenv("CART_STORAGE_PATH", ".cart.json")
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]
