"""Per-invocation state shared by CLI commands."""

from dataclasses import dataclass, field
from typing import Any

from cncquery import CNCQuery
from cncquery.core.config import NLQueryConfig, get_database_url

__all__ = ["CLIContext", "get_database_url"]


@dataclass
class CLIContext:
    """Global options plus the lazily opened engine.

    ``model`` and ``safety_threshold`` override the matching CNCQUERY_*
    environment variables for this invocation only.
    """

    database_url: str
    echo: bool = False
    json_output: bool = False
    model: str | None = None
    safety_threshold: int | None = None
    _db: CNCQuery | None = field(default=None, init=False, repr=False)

    def build_config(self) -> NLQueryConfig:
        overrides: dict[str, Any] = {}
        if self.model:
            overrides["model"] = self.model
        if self.safety_threshold is not None:
            overrides["safety_threshold"] = self.safety_threshold
        config = NLQueryConfig.from_env()
        if not overrides:
            return config
        return NLQueryConfig.model_validate({**config.model_dump(), **overrides})

    def get_db(self) -> CNCQuery:
        """Open the engine on first use; commands that never call this touch no database."""
        if self._db is None:
            self._db = CNCQuery(self.database_url, echo=self.echo, config=self.build_config())
        return self._db

    def close(self) -> None:
        if self._db is not None:
            self._db.close()
            self._db = None
