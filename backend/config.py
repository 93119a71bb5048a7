"""Application configuration management."""

import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class Settings(BaseModel):
    """Runtime configuration, read from the environment (and a .env file)."""

    app_name: str = Field(default="Kintree")
    data_dir: str = Field(default="./data", description="Directory holding the JSON tree store")
    log_level: str = Field(default="INFO")
    cors_origins: list[str] = Field(
        default=["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"]
    )
    default_tree_name: str = Field(default="My First Tree")


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""
    load_dotenv()

    values = {
        "app_name": os.getenv("KINTREE_APP_NAME"),
        "data_dir": os.getenv("KINTREE_DATA_DIR"),
        "log_level": os.getenv("KINTREE_LOG_LEVEL"),
        "default_tree_name": os.getenv("KINTREE_DEFAULT_TREE_NAME"),
    }
    origins = os.getenv("KINTREE_CORS_ORIGINS")
    if origins:
        values["cors_origins"] = [origin.strip() for origin in origins.split(",") if origin.strip()]

    return Settings(**{key: value for key, value in values.items() if value})
