"""Configuration management for the hazard reporting backend."""
import os
from typing import Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    """Application settings."""

    # Storage backend: "memory" or "elasticsearch"
    STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "memory")

    # Elasticsearch
    ES_HOST: str = os.getenv("ES_HOST", "localhost")
    ES_PORT: int = int(os.getenv("ES_PORT", "9200"))
    ES_USE_SSL: bool = os.getenv("ES_USE_SSL", "false").lower() == "true"
    ES_USERNAME: Optional[str] = os.getenv("ES_USERNAME")
    ES_PASSWORD: Optional[str] = os.getenv("ES_PASSWORD")
    ES_INDEX_PREFIX: str = os.getenv("ES_INDEX_PREFIX", "hazardwatch")

    # Redis
    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_DB: int = int(os.getenv("REDIS_DB", "0"))
    DEDUPE_TTL_SEC: int = int(os.getenv("DEDUPE_TTL_SEC", "86400"))
    # Deduplicate posts submitted through the API (the worker always does)
    REDIS_ENABLED: bool = os.getenv("REDIS_ENABLED", "false").lower() == "true"

    # Ingestion worker
    INGEST_QUEUE: str = os.getenv("INGEST_QUEUE", "raw_social_posts")

    # Realtime updates
    STATS_PUSH_INTERVAL_SEC: float = float(os.getenv("STATS_PUSH_INTERVAL_SEC", "10"))
    HEARTBEAT_INTERVAL_SEC: float = float(os.getenv("HEARTBEAT_INTERVAL_SEC", "30"))
    ACTIVITY_SNAPSHOT_LIMIT: int = int(os.getenv("ACTIVITY_SNAPSHOT_LIMIT", "5"))

    # API
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))
    API_TOKEN: str = os.getenv("API_TOKEN", "dev-token-change-in-prod")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
