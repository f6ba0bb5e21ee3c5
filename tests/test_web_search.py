"""Tests for web evidence gathering and citation formatting."""
from datetime import date

import pytest

from godeep.llm_client import WebSearchResponse, WebSource
from godeep.tools import web_utils
from godeep.tools.web_search import (
    NO_CITATIONS,
    WebSearchWorker,
    format_citations,
    render_evidence,
)

DAY = date(2025, 3, 4)


def _response() -> WebSearchResponse:
    return WebSearchResponse(
        text="Fusion output records were set in 2024.",
        sources=[
            WebSource(title="Fusion record", url="https://www.nature.com/articles/1"),
            WebSource(title="Bad link", url="not a url"),
            WebSource(title="ITER update", url="https://iter.org/news"),
        ],
    )


class TestWebUtils:
    def test_extract_domain_strips_www(self):
        assert web_utils.extract_domain("https://www.example.com/a") == "example.com"

    def test_retrieved_on(self):
        assert web_utils.retrieved_on(DAY) == "2025, March 4"

    def test_is_valid_url(self):
        assert web_utils.is_valid_url("https://example.com")
        assert not web_utils.is_valid_url("ftp://example.com")
        assert not web_utils.is_valid_url("example")


class TestFormatting:
    def test_citation_line_format(self):
        text = format_citations([WebSource(title="Fusion record", url="https://www.nature.com/articles/1")], DAY)
        assert text == (
            "[1] Fusion record. (Retrieved 2025, March 4). Nature.com. URL: https://www.nature.com/articles/1"
        )

    def test_no_sources_placeholder(self):
        assert format_citations([], DAY) == NO_CITATIONS

    def test_render_evidence_sections(self):
        text = render_evidence("Summary", [WebSource(title="T", url="https://a.com")], DAY, "Deep dive")
        assert text.index("=== Search Results ===") < text.index("=== Sources ===")
        assert text.index("=== Sources ===") < text.index("=== Citation References ===")
        assert text.rstrip().endswith("=== Detailed Content ===\nDeep dive")

    def test_render_evidence_without_detail(self):
        text = render_evidence("", [], DAY)
        assert "No search results found." in text
        assert "=== Detailed Content ===" not in text


class TestWebSearchWorker:
    @pytest.mark.asyncio
    async def test_search_filters_invalid_urls_and_caps(self, llm_factory):
        worker = WebSearchWorker(model="gpt-4o-mini", detail_model="gpt-4o")
        worker.client = llm_factory(web_response=_response())

        evidence = await worker.search("fusion progress", max_results=5, detailed=False, today=DAY)

        assert evidence.ok
        assert [c.url for c in evidence.citations] == ["https://www.nature.com/articles/1", "https://iter.org/news"]
        assert "[2] ITER update. (Retrieved 2025, March 4). Iter.org." in evidence.content
        worker.client.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_search_respects_max_results(self, llm_factory):
        worker = WebSearchWorker(model="gpt-4o-mini", detail_model="gpt-4o")
        worker.client = llm_factory(web_response=_response())

        evidence = await worker.search("fusion progress", max_results=1, detailed=False, today=DAY)

        assert len(evidence.citations) == 1

    @pytest.mark.asyncio
    async def test_zero_max_results_is_clamped_to_one(self, llm_factory):
        worker = WebSearchWorker(model="gpt-4o-mini", detail_model="gpt-4o")
        worker.client = llm_factory(web_response=_response())

        evidence = await worker.search("fusion progress", max_results=0, detailed=False, today=DAY)

        assert [c.url for c in evidence.citations] == ["https://www.nature.com/articles/1"]

    @pytest.mark.asyncio
    async def test_detailed_content_appended(self, llm_factory):
        worker = WebSearchWorker(model="gpt-4o-mini", detail_model="gpt-4o")
        worker.client = llm_factory(complete_texts=["Key facts: Q>1"], web_response=_response())

        evidence = await worker.search("fusion progress", detailed=True, today=DAY)

        assert "=== Detailed Content ===\nKey facts: Q>1" in evidence.content
        assert worker.client.complete.await_args.kwargs["model"] == "gpt-4o"

    @pytest.mark.asyncio
    async def test_detail_failure_is_inlined(self, llm_factory):
        worker = WebSearchWorker(model="gpt-4o-mini", detail_model="gpt-4o")
        worker.client = llm_factory(complete_error=RuntimeError("boom"), web_response=_response())

        evidence = await worker.search("fusion progress", detailed=True, today=DAY)

        assert evidence.ok
        assert "Analysis error: boom" in evidence.content

    @pytest.mark.asyncio
    async def test_search_failure_placeholder(self, llm_factory):
        worker = WebSearchWorker(model="gpt-4o-mini", detail_model="gpt-4o")
        worker.client = llm_factory(web_error=RuntimeError("timeout"))

        evidence = await worker.search("fusion progress", today=DAY)

        assert not evidence.ok
        assert evidence.content == "Web search error: timeout"
        assert evidence.citations == []
