"""Result rows -> natural-language answer."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from cncquery.exceptions import ExplanationFailedError, ProviderError

if TYPE_CHECKING:
    from cncquery.llm.provider import TextGenerationProvider

logger = logging.getLogger(__name__)

NO_DATA_ANSWER = "해당 조건에 맞는 데이터가 없습니다."

# Rows beyond this are summarized by count only
MAX_PROMPT_ROWS = 50

PROMPT_TEMPLATE = """You are a data analyst for a CNC machining plant.
Answer the operator's question using the query result below.

## Question
{question}

## Query result ({total} rows{truncated})
{data}

## Answer rules
1. Answer the question directly, in the language the question was asked in.
2. Highlight the key numbers.
3. Add a short insight or suggestion when the data supports one.
4. Keep it to two or three sentences.

Answer:"""


class AnswerSynthesizer:
    """Explains result rows in prose."""

    def __init__(self, provider: TextGenerationProvider, timeout_s: float | None = 20.0) -> None:
        self._provider = provider
        self._timeout_s = timeout_s

    def explain(self, question: str, rows: list[dict[str, Any]]) -> str:
        """Explain rows as an answer to the question.

        An empty result returns ``NO_DATA_ANSWER`` without calling the provider.

        Raises:
            ExplanationFailedError: If the provider fails or times out
        """
        if not rows:
            return NO_DATA_ANSWER

        sample = rows[:MAX_PROMPT_ROWS]
        prompt = PROMPT_TEMPLATE.format(
            question=question,
            total=len(rows),
            truncated=f", first {len(sample)} shown" if len(sample) < len(rows) else "",
            data=json.dumps(sample, ensure_ascii=False, indent=2, default=str),
        )
        try:
            answer = self._provider.generate_text(prompt, timeout=self._timeout_s)
        except ProviderError as e:
            raise ExplanationFailedError(
                f"Explanation failed: {e.message}",
                question=question,
                context={"transient": e.transient, "row_count": len(rows)},
            ) from e
        return answer.strip()

    def fallback(self, question: str, rows: list[dict[str, Any]]) -> str:
        """Templated answer used when explanation is unavailable."""
        if not rows:
            return NO_DATA_ANSWER
        first = ", ".join(f"{key}: {value}" for key, value in list(rows[0].items())[:5])
        if len(rows) == 1:
            return f"조회 결과 1건: {first}"
        return f"조회 결과 {len(rows)}건이 있습니다. 첫 번째 결과: {first}"
