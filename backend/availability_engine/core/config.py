# backend/availability_engine/core/config.py
from datetime import date
import logging
import os
from pathlib import Path
from typing import List, Optional, Tuple

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: str = Field(default="development", description="Deployment environment name")

    database_url: str = Field(
        default="sqlite+pysqlite:///./availability_engine.db",
        description="SQLAlchemy URL for the rule and slot store",
    )

    # Local wall-clock time + this offset = UTC. 300 means local time is UTC-5.
    local_to_utc_offset_minutes: int = Field(
        default=300,
        ge=-14 * 60,
        le=14 * 60,
        description="Minutes added to local rule times to obtain UTC instants",
    )
    min_slot_duration_minutes: int = Field(default=15, ge=1)
    effective_to_sentinel: date = Field(
        default=date(2099, 12, 31),
        description="Upper bound used when a rule has no effective_to date",
    )

    # Rule mutation locking
    rule_lock_redis_url: Optional[str] = Field(
        default=None,
        description="Redis URL for cross-process rule mutation locks (in-process only when unset)",
    )
    rule_lock_timeout_seconds: float = Field(default=5.0, gt=0)
    rule_lock_ttl_seconds: int = Field(default=30, gt=0)
    rule_lock_namespace: str = Field(default="availability")

    # Celery
    redis_url: Optional[str] = Field(default=None)
    slot_generation_lookahead_days: int = Field(default=14, ge=1, le=366)
    # "profile_id:service_id" pairs, comma separated, generated daily by Celery beat
    slot_generation_targets: str = Field(default="")
    slot_generation_cron: str = Field(
        default="0 0 * * *", description="Five-field cron for the daily generation fan-out"
    )

    slow_operation_threshold_seconds: float = Field(default=1.0, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("rule_lock_redis_url", "redis_url", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("slot_generation_targets")
    @classmethod
    def _validate_targets(cls, value: str) -> str:
        entries = [entry.strip() for entry in value.split(",") if entry.strip()]
        for entry in entries:
            profile_id, sep, service_id = entry.partition(":")
            if not sep or not profile_id.strip() or not service_id.strip():
                raise ValueError(
                    f"SLOT_GENERATION_TARGETS entry '{entry}' must look like profile_id:service_id"
                )
        return ",".join(entries)

    @field_validator("environment", mode="before")
    @classmethod
    def _normalize_environment(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower() or "development"
        return value

    @property
    def is_production(self) -> bool:
        return self.environment in {"prod", "production"}

    @property
    def slot_generation_target_pairs(self) -> List[Tuple[str, str]]:
        pairs = []
        for entry in self.slot_generation_targets.split(","):
            profile_id, _, service_id = entry.strip().partition(":")
            if not profile_id:
                continue
            pairs.append((profile_id.strip(), service_id.strip()))
        return pairs


settings = Settings()
