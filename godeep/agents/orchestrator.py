from __future__ import annotations

import time
from uuid import uuid4

from loguru import logger

from godeep.agents.planner import SubQueryPlanner
from godeep.agents.reasoner import Reasoner
from godeep.agents.synthesizer import Synthesizer
from godeep.config import settings
from godeep.graph import queries as graph_queries
from godeep.graph.reasoning_ingest import ingest_in_background
from godeep.models.events import ProgressStatus
from godeep.models.research import (
    Citation,
    EvidenceItem,
    FinalReport,
    ResearchOutcome,
    ResearchRequest,
    SourceKind,
)
from godeep.services import logger as log_service
from godeep.services.progress import ProgressChannel
from godeep.tools.web_search import WebSearchWorker


FAILURE_REPORT = (
    "I'm sorry, but I encountered an error while researching this question. "
    "Please try again in a moment."
)


def _preview(text: str, limit: int = 50) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


class ResearchOrchestrator:
    """Runs the deep research pipeline for one request.

    Flow:
      1. Plan sub-queries
      2. For each sub-query, in order: graph evidence, web evidence, reasoning
      3. Synthesize the final report

    Progress is reported on the optional channel passed to ``run``.
    """

    def __init__(
        self,
        planner: SubQueryPlanner | None = None,
        web_search: WebSearchWorker | None = None,
        reasoner: Reasoner | None = None,
        synthesizer: Synthesizer | None = None,
    ):
        self.planner = planner or SubQueryPlanner()
        self.web_search = web_search or WebSearchWorker()
        self.reasoner = reasoner or Reasoner()
        self.synthesizer = synthesizer or Synthesizer()
        self.graph_node_types = settings.graph_node_type_list
        self.graph_limit = settings.graph_result_limit
        self.web_max_results = settings.web_max_results
        self.web_detailed = settings.web_detailed_content
        self.ingest_reasoning = settings.reasoning_ingest_enabled

    async def _graph_evidence(self, sub_query: str) -> str:
        return await graph_queries.graph_evidence(
            sub_query,
            node_types=self.graph_node_types,
            limit=self.graph_limit,
        )

    async def run(self, request: ResearchRequest, progress: ProgressChannel | None = None) -> ResearchOutcome:
        """Never raises; unexpected errors produce an outcome with ``error`` set."""
        outcome = ResearchOutcome(request=request)
        t0 = time.monotonic()

        def emit(status: ProgressStatus, step: int, total: int, message: str) -> None:
            if progress is not None:
                progress.emit(status, step, total, message)

        try:
            await self._run(request, outcome, emit)
        except Exception as e:
            logger.exception(f"Deep research failed: {e}")
            log_service.log_research_step(request.chat_id, "research", "error", {"error": str(e)})
            outcome.error = str(e)
            outcome.report = FinalReport(text=FAILURE_REPORT)
            last_step = len(outcome.reasoning)
            total = len(outcome.sub_queries) or request.max_sub_queries
            if progress is not None and not progress.finished:
                progress.emit(ProgressStatus.ERROR, last_step, total, f"Research error: {e}")
            return outcome

        log_service.log_research_step(
            request.chat_id,
            "research",
            "complete",
            {
                "sub_queries": len(outcome.sub_queries),
                "citations": len(outcome.report.citations) if outcome.report else 0,
                "runtime_ms": int((time.monotonic() - t0) * 1000),
            },
        )
        return outcome

    async def _run(self, request: ResearchRequest, outcome: ResearchOutcome, emit) -> None:
        query = request.query
        emit(ProgressStatus.STARTING, 0, request.max_sub_queries, "Initializing deep research")
        emit(
            ProgressStatus.GENERATING_QUERIES,
            0,
            request.max_sub_queries,
            "Breaking down research into manageable questions",
        )

        outcome.sub_queries = await self.planner.plan(query, request.max_sub_queries)
        total = len(outcome.sub_queries)
        log_service.log_research_step(request.chat_id, "plan", "complete", {"sub_queries": outcome.sub_queries})

        for i, sub_query in enumerate(outcome.sub_queries):
            emit(ProgressStatus.PROCESSING_QUERY, i + 1, total, f"Researching: {_preview(sub_query)}")

            graph_text = await self._graph_evidence(sub_query)
            outcome.evidence.append(
                EvidenceItem(source_kind=SourceKind.GRAPH, sub_query=sub_query, content=graph_text)
            )

            web = await self.web_search.search(
                sub_query,
                max_results=self.web_max_results,
                detailed=self.web_detailed,
            )
            outcome.evidence.append(
                EvidenceItem(
                    source_kind=SourceKind.WEB,
                    sub_query=sub_query,
                    content=web.content,
                    citations=tuple(Citation(title=c.title, url=c.url) for c in web.citations),
                )
            )

            result = await self.reasoner.reason(
                sub_query,
                graph_text,
                web.content,
                query,
                i + 1,
                total,
            )
            outcome.reasoning.append(result)
            log_service.log_research_step(
                request.chat_id,
                "sub_query",
                "complete",
                {"index": i + 1, "web_ok": web.ok, "answer_chars": len(result.answer_text)},
            )

            if self.ingest_reasoning and result.reasoning_text:
                ingest_in_background(
                    result.reasoning_text,
                    message_id=uuid4().hex,
                    query_context=sub_query,
                )

        emit(ProgressStatus.FINALIZING, total, total, "Synthesizing final answer")
        outcome.report = await self.synthesizer.synthesize(query, outcome.reasoning, outcome.evidence)
        emit(ProgressStatus.COMPLETE, total, total, "Research complete")
