from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from loguru import logger

from godeep.config import settings
from godeep.llm_client import WebSource, client as llm_client, get_model
from godeep.models.research import Citation
from godeep.services.prompt_store import render_prompt
from godeep.tools import web_utils


NO_RESULTS = "No search results found."
NO_SOURCES = "No sources found."
NO_CITATIONS = "No citation references available."


@dataclass
class WebEvidence:
    """Rendered web evidence block plus the citations behind it."""

    content: str
    citations: list[Citation] = field(default_factory=list)
    ok: bool = True


def format_sources(sources: list[WebSource]) -> str:
    if not sources:
        return NO_SOURCES
    return "\n\n".join(
        f"[{i}] {source.title or 'No title'}\nURL: {source.url}"
        for i, source in enumerate(sources, start=1)
    )


def format_citations(sources: list[WebSource], day: date) -> str:
    """Academic-style reference lines, one per source, separated by blank lines."""
    if not sources:
        return NO_CITATIONS
    stamp = web_utils.retrieved_on(day)
    lines = []
    for i, source in enumerate(sources, start=1):
        domain = web_utils.extract_domain(source.url)
        publisher = domain[:1].upper() + domain[1:]
        lines.append(
            f"[{i}] {source.title or 'Untitled'}. (Retrieved {stamp}). {publisher}. URL: {source.url}"
        )
    return "\n\n".join(lines)


def render_evidence(text: str, sources: list[WebSource], day: date, detailed_content: str = "") -> str:
    sections = [
        f"=== Search Results ===\n{text.strip() or NO_RESULTS}",
        f"=== Sources ===\n{format_sources(sources)}",
        f"=== Citation References ===\n{format_citations(sources, day)}",
    ]
    if detailed_content:
        sections.append(f"=== Detailed Content ===\n{detailed_content.strip()}")
    return "\n\n".join(sections)


class WebSearchWorker:
    """Web evidence for a sub-query via the hosted web search tool."""

    def __init__(self, model: str | None = None, detail_model: str | None = None):
        self.model = model or settings.web_search_model
        self.detail_model = detail_model or get_model()
        self.client = None

    async def _detailed_content(self, query: str, summary: str, sources: list[WebSource]) -> str:
        active_client = self.client or llm_client()
        try:
            completion = await active_client.complete(
                model=self.detail_model,
                system=render_prompt("web_search.detail_system"),
                user=render_prompt(
                    "web_search.detail_user",
                    query=query,
                    summary=web_utils.truncate(summary, 4000),
                    sources=format_sources(sources),
                ),
                caller="web_search.detail",
            )
        except Exception as e:
            logger.warning(f"Detailed content analysis failed: {e}")
            return f"Analysis error: {e}"
        return completion.text or "No detailed analysis could be generated."

    async def search(
        self,
        query: str,
        max_results: int | None = None,
        detailed: bool | None = None,
        today: date | None = None,
    ) -> WebEvidence:
        """Search the web for ``query``. Never raises; failures become a placeholder."""
        limit = max(int(settings.web_max_results if max_results is None else max_results), 1)
        want_detail = settings.web_detailed_content if detailed is None else detailed
        day = today or date.today()
        active_client = self.client or llm_client()

        try:
            response = await active_client.web_search(
                model=self.model,
                query=render_prompt("web_search.query", query=query),
                instructions=render_prompt("web_search.instructions", today_iso=day.isoformat()),
                caller="web_search.search",
            )
            sources = [s for s in response.sources if web_utils.is_valid_url(s.url)][:limit]

            detailed_content = ""
            if want_detail and sources:
                detailed_content = await self._detailed_content(query, response.text, sources[:2])

            content = render_evidence(response.text, sources, day, detailed_content)
        except Exception as e:
            logger.error(f"Web search failed for '{query[:80]}': {e}")
            return WebEvidence(content=f"Web search error: {e}", citations=[], ok=False)

        return WebEvidence(
            content=content,
            citations=[Citation(title=s.title, url=s.url) for s in sources],
        )
