"""Core components for CNCQuery."""

from cncquery.core.config import NLQueryConfig, get_database_url
from cncquery.core.connection import DatabaseConnection
from cncquery.core.types import (
    CacheEntry,
    CacheStats,
    CandidateQuery,
    ConversationTurn,
    QueryPreview,
    QueryResult,
    ValidationVerdict,
    bound_history,
)

__all__ = [
    "DatabaseConnection",
    "NLQueryConfig",
    "get_database_url",
    "ConversationTurn",
    "CandidateQuery",
    "ValidationVerdict",
    "CacheEntry",
    "CacheStats",
    "QueryResult",
    "QueryPreview",
    "bound_history",
]
