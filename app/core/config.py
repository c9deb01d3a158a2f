from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = Field(default="POS Caja", alias="APP_NAME")
    app_env: str = Field(default="dev", alias="APP_ENV")
    app_version: str = Field(default="0.2.0", alias="APP_VERSION")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    database_url: str = Field(default="sqlite:///./caja.db", alias="DB_URL")
    store_name: str = Field(default="Tienda Principal", alias="STORE_NAME")
    currency_symbol: str = Field(default="S/.", alias="CURRENCY_SYMBOL")

    # Día de negocio: medianoche en hora de Perú
    timezone: str = Field(default="America/Lima", alias="POS_TIMEZONE")

    promo_threshold: int = Field(default=10, alias="POS_PROMO_THRESHOLD")
    consistency_retries: int = Field(default=3, alias="POS_CONSISTENCY_RETRIES")

    sale_rate_max: int = Field(default=30, alias="POS_SALE_RATE_MAX")
    sale_rate_window_seconds: float = Field(default=60.0, alias="POS_SALE_RATE_WINDOW_SECONDS")
    products_cache_ttl: float = Field(default=30.0, alias="POS_PRODUCTS_CACHE_TTL")

    ticket_width: int = Field(default=32, alias="TICKET_WIDTH")

    offline_queue_path: str = Field(default="data/offline_sales.json", alias="OFFLINE_QUEUE_PATH")
    offline_max_ops: int = Field(default=500, alias="OFFLINE_MAX_OPS")
    offline_max_hours: int = Field(default=48, alias="OFFLINE_MAX_HOURS")
    offline_soft_ops: int = Field(default=400, alias="OFFLINE_SOFT_OPS")
    offline_soft_hours: int = Field(default=36, alias="OFFLINE_SOFT_HOURS")

    model_config = {"env_file": ".env", "populate_by_name": True, "extra": "ignore"}


settings = Settings()
