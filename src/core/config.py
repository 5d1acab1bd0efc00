"""
Centralized configuration using Pydantic Settings.

Organized into nested models for better structure and type safety.
"""
from typing import Dict, List
from functools import lru_cache
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseModel):
    host: str = "localhost"
    port: int = 6380
    db: int = 0
    username: str | None = None
    password: str | None = None
    ssl: bool = False

    @property
    def url(self) -> str:
        scheme = "rediss" if self.ssl else "redis"
        if self.username and self.password:
            return f"{scheme}://{self.username}:{self.password}@{self.host}:{self.port}/{self.db}"
        return f"{scheme}://{self.host}:{self.port}/{self.db}"


class MongoSettings(BaseModel):
    url: str = "mongodb://localhost:27017/"
    db_name: str = "InspectFlow"
    sessions_collection: str = "sessions"
    documents_collection: str = "documents"
    profiles_collection: str = "user_profiles"
    username: str | None = None
    password: str | None = None
    authentication_source: str = "admin"

    @property
    def connection_url(self) -> str:
        """
        Constructs the connection URL with credentials if provided.
        """
        if self.username and self.password:
            # Assuming format: mongodb://host:port/ or mongodb://host:port
            base = self.url.replace("mongodb://", "")
            if base.endswith("/"):
                base = base[:-1]

            return f"mongodb://{self.username}:{self.password}@{base}/?authSource={self.authentication_source}"
        return self.url


class ExtractionSettings(BaseModel):
    """Knobs of the extraction lifecycle and the dispatch policy."""
    max_attempts: int = 3
    manual_priority: int = 100
    max_concurrent_per_session: int = 2
    retry_cooldown_seconds: int = 60
    dispatch_batch_size: int = 20
    dispatch_interval_seconds: float = 5.0
    extraction_timeout_seconds: int = 300
    # Tokens that must still be available before a document may start
    token_reservation: int = 1
    max_write_retries: int = 5


class PlanLimits(BaseModel):
    max_documents: int
    max_tokens: int


class QuotaSettings(BaseModel):
    default_plan: str = "free"
    plans: Dict[str, PlanLimits] = {
        "free": PlanLimits(max_documents=15, max_tokens=100),
        "pro": PlanLimits(max_documents=100, max_tokens=1000),
        "premium": PlanLimits(max_documents=500, max_tokens=5000),
    }

    def limits_for(self, plan_type: str | None) -> PlanLimits:
        if plan_type and plan_type in self.plans:
            return self.plans[plan_type]
        return self.plans[self.default_plan]


class ExtractorSettings(BaseModel):
    """External extraction service (content analysis happens there)."""
    api_url: str = "http://localhost:8009/v1/extract"
    api_key: str = ""
    timeout: int = 120


class StorageSettings(BaseModel):
    root_dir: str = "assets/files"
    public_base_url: str = "http://localhost:8007/files"


class EventSettings(BaseModel):
    enabled: bool = True
    channel_prefix: str = "inspectflow"


class FileSettings(BaseModel):
    allowed_types: str = "pdf,png,jpg,jpeg,webp,tiff"
    max_size: int = 20 * 1024 * 1024  # 20MB

    @property
    def allowed_types_list(self) -> List[str]:
        return [ext.strip() for ext in self.allowed_types.split(",")]


class WorkerSettings(BaseModel):
    concurrency: int = 4
    track_started: bool = True
    serializer: str = "json"
    soft_time_limit: int = 600
    time_limit: int = 660
    acks_late: bool = True
    reject_on_worker_lost: bool = True
    queue: str = "extraction_queue"
    # Shared secret for out-of-process workers calling the extraction routes
    api_token: str = ""
    watchdog_interval_seconds: float = 60.0


class Settings(BaseSettings):
    """
    Main application settings.
    To override nested settings via env vars, use double underscores:
    e.g. EXTRACTION__RETRY_COOLDOWN_SECONDS=30
    """
    app_name: str = "InspectFlow"
    app_version: str = "1.0.0"

    # Nested configurations
    mongo: MongoSettings = MongoSettings()
    redis: RedisSettings = RedisSettings()
    extraction: ExtractionSettings = ExtractionSettings()
    quota: QuotaSettings = QuotaSettings()
    extractor: ExtractorSettings = ExtractorSettings()
    storage: StorageSettings = StorageSettings()
    events: EventSettings = EventSettings()
    file: FileSettings = FileSettings()
    worker: WorkerSettings = WorkerSettings()

    # Logging
    log_level: str = "INFO"
    log_json: bool = True
    log_file: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_nested_delimiter="__",
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
