from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SourceKind(str, Enum):
    GRAPH = "graph"
    WEB = "web"


@dataclass(frozen=True)
class Citation:
    title: str
    url: str

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "url": self.url}


@dataclass(frozen=True)
class EvidenceItem:
    """One source's findings for one sub-query."""

    source_kind: SourceKind
    sub_query: str
    content: str
    citations: tuple[Citation, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_kind": self.source_kind.value,
            "sub_query": self.sub_query,
            "content": self.content,
            "citations": [c.to_dict() for c in self.citations],
        }


@dataclass
class ReasoningResult:
    sub_query: str
    reasoning_text: str
    answer_text: str


@dataclass
class ResearchRequest:
    query: str
    max_sub_queries: int = 10
    chat_id: str | None = None


@dataclass
class FinalReport:
    text: str
    citations: list[str] = field(default_factory=list)


@dataclass
class ResearchOutcome:
    """Everything a research run produced, handed back to its caller."""

    request: ResearchRequest
    sub_queries: list[str] = field(default_factory=list)
    evidence: list[EvidenceItem] = field(default_factory=list)
    reasoning: list[ReasoningResult] = field(default_factory=list)
    report: FinalReport | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.report is not None
