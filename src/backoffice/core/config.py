import os

# In a real deployment, load these from environment variables or a secrets store
SECRET_KEY: str = os.getenv(
    "SECRET_KEY", "your-secret-key-for-jwt-!ChangeMe!"
)  # TODO: Fail fast at startup when SECRET_KEY is left at this default
ALGORITHM: str = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite://./backoffice.sqlite3")
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# Report engine
REPORT_CACHE_MAX_ENTRIES: int = int(os.getenv("REPORT_CACHE_MAX_ENTRIES", "100"))
LOW_STOCK_THRESHOLD: int = int(os.getenv("LOW_STOCK_THRESHOLD", "5"))
LOW_STOCK_PAGE_SIZE: int = int(os.getenv("LOW_STOCK_PAGE_SIZE", "10"))

MODEL_MODULES: list[str] = [
    "backoffice.features.auth.models",
    "backoffice.features.inventory.models",
    "backoffice.features.orders.models",
    "backoffice.features.payments.models",
    "backoffice.features.reports.models",
    "aerich.models",  # For Aerich migrations
]

TORTOISE_ORM_CONFIG = {
    "connections": {"default": DATABASE_URL},
    "apps": {
        "models": {  # This is an app label, can be anything
            "models": MODEL_MODULES,
            "default_connection": "default",
        }
    },
}
