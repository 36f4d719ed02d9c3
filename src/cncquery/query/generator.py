"""Natural-language question -> raw SQL text, via the text provider."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cncquery.core.types import ConversationTurn
    from cncquery.llm.provider import TextGenerationProvider
    from cncquery.query.context import SchemaContext

logger = logging.getLogger(__name__)

FORBIDDEN_VERBS_TEXT = "INSERT, UPDATE, DELETE, DROP, ALTER, TRUNCATE, CREATE, GRANT, COPY"

PROMPT_TEMPLATE = """You are a {dialect} expert. Translate the operator's question into one {dialect} query.

## Database schema
{schema}

## Rules
1. Write exactly one SELECT statement (WITH ... SELECT is allowed).
2. Never use {forbidden}, or any other statement that changes data or settings.
3. Use only the tables and columns listed in the schema above. Never touch system catalogs.
4. Filter large tables by date or add a LIMIT.
5. Use {dialect} date functions (NOW(), INTERVAL, ...) for relative dates.
6. Match stored Korean values exactly (for example change_reason = '파손').
7. Use ILIKE for case-insensitive matching of codes, categories and model names.
8. Return only the SQL: no comments, no explanation, no code fences, no "SQL:" label.
{stricter}
## Question
{question}

SQL:"""

STRICTER_INSTRUCTION = """
## Your previous answer was rejected as unsafe or too expensive
Be safer: select named columns instead of *, add a WHERE clause with a date range,
add a LIMIT, avoid functions outside the usual aggregates and date helpers, and
read only from the listed tables.
"""


class SQLGenerator:
    """Asks the text provider for SQL. One round trip per call, no retries.

    The output is untrusted text: it goes through the sanitizer and the
    validator before anything executes it.
    """

    def __init__(self, provider: TextGenerationProvider, timeout_s: float | None = 30.0) -> None:
        self._provider = provider
        self._timeout_s = timeout_s

    def build_prompt(
        self,
        question: str,
        schema_context: SchemaContext,
        stricter: bool = False,
    ) -> str:
        return PROMPT_TEMPLATE.format(
            dialect="SQLite" if schema_context.dialect == "sqlite" else "PostgreSQL",
            schema=schema_context.text,
            forbidden=FORBIDDEN_VERBS_TEXT,
            stricter=STRICTER_INSTRUCTION if stricter else "",
            question=question,
        )

    def generate(
        self,
        question: str,
        schema_context: SchemaContext,
        history: Sequence[ConversationTurn] = (),
        stricter: bool = False,
    ) -> str:
        """Generate raw SQL text for a question.

        Args:
            question: The operator's question
            schema_context: Current schema context
            history: Bounded prior turns, oldest first
            stricter: Append the "be safer" instruction (used for the re-prompt)

        Returns:
            Raw provider output, not yet sanitized

        Raises:
            ProviderError: If the provider call fails or times out
        """
        prompt = self.build_prompt(question, schema_context, stricter)
        logger.debug("Generating SQL (stricter=%s, history=%d)", stricter, len(history))
        if history:
            # Prior turns go in as chat messages so references resolve naturally
            return self._provider.chat(history, prompt, timeout=self._timeout_s)
        return self._provider.generate_text(prompt, timeout=self._timeout_s)
