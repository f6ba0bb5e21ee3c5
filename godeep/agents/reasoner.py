from __future__ import annotations

import json

from loguru import logger
from pydantic import ValidationError

from godeep.llm_client import client as llm_client, get_reasoning_model
from godeep.models.research import ReasoningResult
from godeep.models.schemas import ReasoningOutput
from godeep.services.prompt_store import render_prompt


PROCESSING_ERROR = "Processing error: Unable to process this sub-query due to an error."


def parse_reasoning(sub_query: str, text: str) -> ReasoningResult:
    """Validate the ``{"reasoning", "answer"}`` contract; fall back to the raw text as the answer."""
    try:
        output = ReasoningOutput.model_validate(json.loads(text))
    except (json.JSONDecodeError, ValidationError, TypeError):
        return ReasoningResult(sub_query=sub_query, reasoning_text="", answer_text=text)
    if not output.answer.strip():
        return ReasoningResult(sub_query=sub_query, reasoning_text=output.reasoning, answer_text=text)
    return ReasoningResult(
        sub_query=sub_query,
        reasoning_text=output.reasoning.strip(),
        answer_text=output.answer.strip(),
    )


class Reasoner:
    """Reasons over one sub-query's graph and web evidence."""

    def __init__(self, model: str | None = None):
        self.model = model or get_reasoning_model()
        self.client = None

    async def reason(
        self,
        sub_query: str,
        graph_context: str,
        web_context: str,
        original_query: str,
        current_step: int,
        total_steps: int,
    ) -> ReasoningResult:
        """Never raises; an API failure yields the processing-error placeholder."""
        active_client = self.client or llm_client()
        try:
            completion = await active_client.complete(
                model=self.model,
                system=render_prompt(
                    "reasoner.system",
                    current_step=current_step,
                    total_steps=total_steps,
                ),
                user=render_prompt(
                    "reasoner.user",
                    original_query=original_query,
                    sub_query=sub_query,
                    graph_context=graph_context,
                    web_context=web_context,
                ),
                json_mode=True,
                caller="reasoner.reason",
            )
        except Exception as e:
            logger.error(f"Reasoning failed for sub-query '{sub_query[:80]}': {e}")
            return ReasoningResult(sub_query=sub_query, reasoning_text="", answer_text=PROCESSING_ERROR)

        return parse_reasoning(sub_query, completion.text)
