from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # App
    APP_ENV: str = "dev"
    SECRET_KEY: str
    JWT_EXPIRES_MIN: int = 1440
    LOG_LEVEL: str = "INFO"

    # DB
    DB_URL: str = "sqlite:///./spiral.db"

    # Checkout
    TAX_RATE: Decimal = Decimal("0.08")  # applied after the discount
    ORDER_NUMBER_PREFIX: str = "ORD"
    ORDER_NUMBER_ATTEMPTS: int = 5

    # Catalog defaults
    DEFAULT_SONG_PRICE: Decimal = Decimal("0.99")
    DEFAULT_STOCK: int = 12


settings = Settings()
