"""Natural-language query pipeline for CNCQuery.

Architecture:
    1. Schema Context - Prompt text and allow-lists from the static schema
    2. Generator - Question -> raw SQL via the text provider
    3. Sanitizer - Raw text -> one candidate statement
    4. Validator + Scorer - Allow-list rules and a 0..100 cost score
    5. Executor - Read-only execution with bounded retries
    6. Synthesizer - Rows -> prose answer
    7. Orchestrator - Cache, stages and error taxonomy

Example:
    verdict = SQLValidator({"equipment"}).check("SELECT model FROM equipment LIMIT 5")
"""

from cncquery.query.context import SchemaContext, SchemaContextProvider
from cncquery.query.orchestrator import PipelineState, QueryOrchestrator
from cncquery.query.sanitizer import sanitize_sql
from cncquery.query.scorer import SafetyScorer
from cncquery.query.validator import Rule, SQLValidator

__all__ = [
    "SchemaContext",
    "SchemaContextProvider",
    "sanitize_sql",
    "SQLValidator",
    "Rule",
    "SafetyScorer",
    "QueryOrchestrator",
    "PipelineState",
]
