"""Tests for per-sub-query reasoning."""
import json

import pytest

from godeep.agents.reasoner import PROCESSING_ERROR, Reasoner, parse_reasoning


class TestParseReasoning:
    def test_valid_contract(self):
        text = json.dumps({"reasoning": "Step 1\n\nStep 2", "answer": " X is a fruit. "})
        result = parse_reasoning("What is X?", text)
        assert result.sub_query == "What is X?"
        assert result.reasoning_text == "Step 1\n\nStep 2"
        assert result.answer_text == "X is a fruit."

    def test_plain_text_becomes_answer(self):
        result = parse_reasoning("q", "Just prose.")
        assert result.reasoning_text == ""
        assert result.answer_text == "Just prose."

    def test_missing_answer_field_becomes_answer(self):
        text = json.dumps({"reasoning": "only reasoning"})
        result = parse_reasoning("q", text)
        assert result.answer_text == text

    def test_blank_answer_keeps_raw_text(self):
        text = json.dumps({"reasoning": "r", "answer": "  "})
        result = parse_reasoning("q", text)
        assert result.reasoning_text == "r"
        assert result.answer_text == text


class TestReasoner:
    @pytest.mark.asyncio
    async def test_reason_passes_both_contexts(self, llm_factory):
        reasoner = Reasoner(model="o3-mini")
        reasoner.client = llm_factory(complete_texts=[json.dumps({"reasoning": "r", "answer": "a"})])

        result = await reasoner.reason(
            sub_query="What is X?",
            graph_context="GRAPH-CONTEXT",
            web_context="WEB-CONTEXT",
            original_query="Compare X and Y",
            current_step=2,
            total_steps=3,
        )

        assert result.answer_text == "a"
        kwargs = reasoner.client.complete.await_args.kwargs
        assert kwargs["model"] == "o3-mini"
        assert "GRAPH-CONTEXT" in kwargs["user"]
        assert "WEB-CONTEXT" in kwargs["user"]
        assert "step 2 of 3" in kwargs["system"]

    @pytest.mark.asyncio
    async def test_reason_failure_placeholder(self, llm_factory):
        reasoner = Reasoner(model="gpt-4o")
        reasoner.client = llm_factory(complete_error=RuntimeError("timeout"))

        result = await reasoner.reason("What is X?", "g", "w", "Q", 1, 1)

        assert result.sub_query == "What is X?"
        assert result.reasoning_text == ""
        assert result.answer_text == PROCESSING_ERROR
