"""Runtime configuration for the natural-language query pipeline."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field

DEFAULT_DATABASE_URL = "sqlite:///./cncquery.db"


def get_database_url(url: str | None = None) -> str:
    """Resolve database URL from argument, environment variable, or default.

    Priority:
    1. Explicit URL argument
    2. CNCQUERY_DATABASE_URL environment variable
    3. Default: sqlite:///./cncquery.db
    """
    if url:
        return url
    if env_url := os.getenv("CNCQUERY_DATABASE_URL"):
        return env_url
    return DEFAULT_DATABASE_URL


class NLQueryConfig(BaseModel):
    """Thresholds, bounds and timeouts for the query pipeline."""

    # Input bounds
    min_question_length: int = 3
    max_question_length: int = 500
    max_history_turns: int = Field(default=10, ge=0)

    # Safety
    safety_threshold: int = Field(default=50, ge=0, le=100)
    safer_reprompt: bool = True  # One bounded re-prompt after UNSAFE_SQL / LOW_SAFETY_SCORE

    # Generative-text provider
    model: str = "gpt-4o-mini"
    generation_timeout_s: float = 30.0
    explanation_timeout_s: float = 20.0
    generation_retries: int = Field(default=2, ge=0)  # Transient failures only

    # Execution
    execution_retries: int = Field(default=2, ge=0)  # Transient disconnects only
    statement_timeout_ms: int = 10_000
    max_rows: int = 1000

    # Cache
    cache_ttl_seconds: int = 24 * 60 * 60

    # Audit trail
    audit_enabled: bool = True
    audit_retention_days: int = 30

    @classmethod
    def from_env(cls) -> NLQueryConfig:
        """Build a config from CNCQUERY_* environment variables.

        Unset variables fall back to the field defaults.
        """
        env_map = {
            "CNCQUERY_MODEL": "model",
            "CNCQUERY_SAFETY_THRESHOLD": "safety_threshold",
            "CNCQUERY_MAX_HISTORY_TURNS": "max_history_turns",
            "CNCQUERY_GENERATION_TIMEOUT": "generation_timeout_s",
            "CNCQUERY_EXPLANATION_TIMEOUT": "explanation_timeout_s",
            "CNCQUERY_GENERATION_RETRIES": "generation_retries",
            "CNCQUERY_EXECUTION_RETRIES": "execution_retries",
            "CNCQUERY_STATEMENT_TIMEOUT_MS": "statement_timeout_ms",
            "CNCQUERY_MAX_ROWS": "max_rows",
            "CNCQUERY_CACHE_TTL_SECONDS": "cache_ttl_seconds",
            "CNCQUERY_AUDIT_ENABLED": "audit_enabled",
            "CNCQUERY_AUDIT_RETENTION_DAYS": "audit_retention_days",
        }
        values = {
            field_name: os.environ[env_name]
            for env_name, field_name in env_map.items()
            if os.environ.get(env_name)
        }
        # pydantic coerces the strings ("0.5", "false", ...) to field types
        return cls.model_validate(values)
