"""Tests for writing reasoning chains into the knowledge graph."""
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from godeep.graph.reasoning_ingest import (
    ReasoningIngestor,
    extract_conclusion,
    ingest_in_background,
    parse_steps,
    step_type,
)

REASONING = (
    "Fusion requires confining plasma at very high temperatures.\n\n"
    "According to recent research, tokamaks have reached record confinement times.\n\n"
    "However, net energy gain at plant scale has not been demonstrated yet.\n\n"
    "Therefore, commercial fusion is likely still more than a decade away."
)


@pytest.fixture
def graph():
    embedder = MagicMock()
    embedder.embed = AsyncMock(return_value=[0.1, 0.2])
    with patch("godeep.graph.reasoning_ingest.run_query", new=AsyncMock(return_value=[])) as mock_run, patch(
        "godeep.graph.reasoning_ingest.get_embedding_client", return_value=embedder
    ):
        yield mock_run


def _operations(mock_run) -> list[str]:
    return [call.kwargs["operation"] for call in mock_run.await_args_list]


class TestParsing:
    def test_paragraph_steps(self):
        assert len(parse_steps(REASONING)) == 4

    def test_numbered_fallback(self):
        assert parse_steps("1. First idea\n2. Second idea\n3) Third idea") == [
            "First idea",
            "Second idea",
            "Third idea",
        ]

    def test_step_types(self):
        steps = parse_steps(REASONING)
        types = [step_type(s, i, len(steps)) for i, s in enumerate(steps)]
        assert types == ["premise", "evidence", "counterargument", "conclusion"]

    def test_middle_step_without_markers_is_inference(self):
        assert step_type("Plasma is hot.", 1, 3) == "inference"

    def test_conclusion_from_marker(self):
        conclusion = extract_conclusion(REASONING, parse_steps(REASONING))
        assert conclusion.startswith("Therefore, commercial fusion")

    def test_conclusion_defaults_to_last_step(self):
        assert extract_conclusion("a\n\nb", ["a", "b"]) == "b"


class TestReasoningIngestor:
    @pytest.mark.asyncio
    async def test_ingest_writes_chain_steps_links_and_proposition(self, graph, llm_factory):
        ingestor = ReasoningIngestor(model="gpt-4o")
        ingestor.client = llm_factory(
            complete_texts=[
                json.dumps(
                    {
                        "concepts": [{"name": "Plasma confinement", "definition": "Holding plasma in place"}],
                        "entities": [{"name": "ITER", "type": "organization"}, {"name": ""}],
                    }
                )
            ]
        )

        result = await ingestor.ingest(REASONING, message_id="m1", query_context="When will fusion work?")

        assert result.chain_id == "reasoning-m1"
        assert result.nodes_created == {
            "ReasoningChain": 1,
            "ReasoningStep": 4,
            "Concept": 1,
            "Entity": 1,
            "Proposition": 1,
        }
        assert _operations(graph) == [
            "ingest.chain",
            "ingest.step",
            "ingest.step",
            "ingest.precedes",
            "ingest.step",
            "ingest.precedes",
            "ingest.step",
            "ingest.precedes",
            "ingest.concept",
            "ingest.entity",
            "ingest.proposition",
        ]
        chain_params = graph.await_args_list[0].args[1]
        assert chain_params["name"] == "Reasoning about: When will fusion work?"
        assert chain_params["embedding"] == [0.1, 0.2]
        step_params = graph.await_args_list[1].args[1]
        assert step_params["s_stepType"] == "premise"
        assert step_params["r_id"] == "reasoning-m1"

    @pytest.mark.asyncio
    async def test_short_reasoning_skips_proposition(self, graph, llm_factory):
        ingestor = ReasoningIngestor(model="gpt-4o")
        ingestor.client = llm_factory(complete_texts=['{"concepts": [], "entities": []}'])

        result = await ingestor.ingest("Short thought.", message_id="m2")

        assert "Proposition" not in result.nodes_created
        assert "ingest.proposition" not in _operations(graph)

    @pytest.mark.asyncio
    async def test_extraction_failure_still_stores_chain(self, graph, llm_factory):
        ingestor = ReasoningIngestor(model="gpt-4o")
        ingestor.client = llm_factory(complete_texts=["not json"])

        result = await ingestor.ingest(REASONING, message_id="m3")

        assert result.nodes_created["Concept"] == 0
        assert result.nodes_created["Entity"] == 0
        assert result.nodes_created["ReasoningStep"] == 4

    @pytest.mark.asyncio
    async def test_empty_reasoning_is_noop(self, graph):
        result = await ReasoningIngestor(model="gpt-4o").ingest("   ")

        assert result.chain_id is None
        graph.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_background_failure_is_logged(self):
        ingestor = MagicMock()
        ingestor.ingest = AsyncMock(side_effect=RuntimeError("neo4j down"))

        task = ingest_in_background("text", message_id="m4", ingestor=ingestor)
        await task

        assert task.exception() is None
        ingestor.ingest.assert_awaited_once_with("text", message_id="m4", query_context=None)
