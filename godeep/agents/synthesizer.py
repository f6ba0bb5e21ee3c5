from __future__ import annotations

import re

from loguru import logger

from godeep.config import settings
from godeep.llm_client import client as llm_client, get_model
from godeep.models.research import EvidenceItem, FinalReport, ReasoningResult, SourceKind
from godeep.services.prompt_store import render_prompt
from godeep.tools.web_search import NO_CITATIONS
from godeep.tools.web_utils import truncate


CITATION_SECTION_RE = re.compile(r"=== Citation References ===\s*([\s\S]*?)(?=\s*===|$)")

KEY_POINTS_ERROR = "Error extracting key points from reasoning chains."
INSIGHTS_ERROR = "Failed to extract key insights from search results."

CHAIN_EXCERPT_CHARS = 1500
INSIGHTS_INPUT_CHARS = 20000

_SOURCE_LABELS = {
    SourceKind.GRAPH: "Knowledge Graph",
    SourceKind.WEB: "Web Search",
}


def extract_references(evidence: list[EvidenceItem]) -> list[str]:
    """Citation lines from every web item's reference section, de-duplicated in order."""
    references: list[str] = []
    seen: set[str] = set()
    for item in evidence:
        if item.source_kind is not SourceKind.WEB:
            continue
        match = CITATION_SECTION_RE.search(item.content)
        if not match:
            continue
        section = match.group(1).strip()
        if not section or section == NO_CITATIONS:
            continue
        for ref in section.split("\n\n"):
            ref = ref.strip()
            if ref and ref not in seen:
                seen.add(ref)
                references.append(ref)
    return references


def append_references(text: str, references: list[str]) -> str:
    if not references:
        return text
    return f"{text.rstrip()}\n\n## References\n\n" + "\n\n".join(references)


def build_evidence_context(evidence: list[EvidenceItem], item_chars: int) -> str:
    # Graph findings first, then web, each in sub-query order.
    ordered = [e for e in evidence if e.source_kind is SourceKind.GRAPH] + [
        e for e in evidence if e.source_kind is SourceKind.WEB
    ]
    return "\n\n---\n\n".join(
        f"SOURCE: {_SOURCE_LABELS[item.source_kind]}\n"
        f'SUB-QUESTION: "{item.sub_query}"\n'
        f"FINDINGS: {truncate(item.content, item_chars)}"
        for item in ordered
    )


def build_findings(reasoning: list[ReasoningResult]) -> str:
    return "\n\n".join(
        f"Sub-question {i}: {result.sub_query}\n{result.answer_text}"
        for i, result in enumerate(reasoning, start=1)
    )


def fallback_report(query: str, reasoning: list[ReasoningResult], references: list[str]) -> str:
    """Plain concatenation of partial answers, used when synthesis fails."""
    parts = [
        f"# Research Findings on: {query}",
        f'I investigated "{query}" but encountered an error synthesizing the final result. '
        "Here are the partial findings:",
    ]
    for i, result in enumerate(reasoning, start=1):
        parts.append(f"## Finding {i}: {result.sub_query}\n\n{result.answer_text}")
    return append_references("\n\n".join(parts), references)


class Synthesizer:
    """Merges partial answers, reasoning and evidence into the final report."""

    def __init__(self, model: str | None = None):
        self.model = model or get_model()
        self.client = None
        self.reasoning_threshold = settings.reasoning_summary_threshold
        self.reasoning_chars = settings.reasoning_context_chars
        self.evidence_threshold = settings.evidence_summary_threshold
        self.evidence_item_chars = settings.evidence_item_chars

    async def _reasoning_context(self, reasoning: list[ReasoningResult]) -> str:
        chains = [r.reasoning_text for r in reasoning if r.reasoning_text]
        joined = "\n\n".join(chains)
        if len(joined) <= self.reasoning_threshold:
            return truncate(joined, self.reasoning_chars)

        active_client = self.client or llm_client()
        excerpts = "\n\n---\n\n".join(chain[:CHAIN_EXCERPT_CHARS] for chain in chains)
        try:
            completion = await active_client.complete(
                model=self.model,
                system=render_prompt("synthesizer.key_points_system"),
                user=render_prompt("synthesizer.key_points_user", chains=excerpts),
                caller="synthesizer.key_points",
            )
        except Exception as e:
            logger.warning(f"Key point extraction failed: {e}")
            return KEY_POINTS_ERROR
        return completion.text

    async def _evidence_context(self, query: str, evidence: list[EvidenceItem]) -> str:
        structured = build_evidence_context(evidence, self.evidence_item_chars)
        if len(structured) <= self.evidence_threshold:
            return structured

        active_client = self.client or llm_client()
        try:
            completion = await active_client.complete(
                model=self.model,
                system=render_prompt("synthesizer.insights_system"),
                user=render_prompt(
                    "synthesizer.insights_user",
                    query=query,
                    evidence=structured[:INSIGHTS_INPUT_CHARS],
                ),
                caller="synthesizer.insights",
            )
        except Exception as e:
            logger.warning(f"Search insight extraction failed: {e}")
            return INSIGHTS_ERROR
        return completion.text

    async def synthesize(
        self,
        query: str,
        reasoning: list[ReasoningResult],
        evidence: list[EvidenceItem],
    ) -> FinalReport:
        """Never raises; falls back to concatenating partial answers."""
        references = extract_references(evidence)
        try:
            reasoning_context = await self._reasoning_context(reasoning)
            evidence_context = await self._evidence_context(query, evidence)
            active_client = self.client or llm_client()
            completion = await active_client.complete(
                model=self.model,
                system=render_prompt("synthesizer.system"),
                user=render_prompt(
                    "synthesizer.user",
                    query=query,
                    findings=build_findings(reasoning),
                    reasoning=reasoning_context,
                    evidence=evidence_context,
                    references="\n\n".join(references) or NO_CITATIONS,
                ),
                caller="synthesizer.synthesize",
            )
            body = completion.text.strip()
            if not body:
                raise ValueError("empty synthesis response")
        except Exception as e:
            logger.error(f"Synthesis failed, using fallback report: {e}")
            return FinalReport(text=fallback_report(query, reasoning, references), citations=references)

        return FinalReport(text=append_references(body, references), citations=references)
