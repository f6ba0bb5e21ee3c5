from __future__ import annotations

import json
from datetime import date
from typing import Any

from loguru import logger

from godeep.config import settings
from godeep.llm_client import client as llm_client, get_model
from godeep.services.prompt_store import render_prompt
from godeep.tools.web_utils import collapse_whitespace


# Field names the planner prompt asks for, in order of preference.
SUB_QUERY_FIELDS = ("sub_questions", "subQueries")


def _strings(values: list[Any]) -> list[str]:
    return [v for v in values if isinstance(v, str)]


def parse_sub_queries(text: str) -> list[str]:
    """Pull sub-questions out of model output; returns [] when nothing usable is found."""
    text = (text or "").strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.startswith("json"):
            text = text[4:]
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return []

    if isinstance(parsed, list):
        candidates = _strings(parsed)
    elif isinstance(parsed, dict):
        candidates = []
        for name in SUB_QUERY_FIELDS:
            if isinstance(parsed.get(name), list):
                candidates = _strings(parsed[name])
                if candidates:
                    break
        if not candidates:
            for value in parsed.values():
                if isinstance(value, list):
                    candidates.extend(_strings(value))
    else:
        return []

    seen: set[str] = set()
    sub_queries: list[str] = []
    for candidate in candidates:
        cleaned = collapse_whitespace(candidate)
        key = cleaned.casefold()
        if cleaned and key not in seen:
            seen.add(key)
            sub_queries.append(cleaned)
    return sub_queries


class SubQueryPlanner:
    """Splits a research question into focused sub-questions."""

    def __init__(self, model: str | None = None):
        self.model = model or get_model()
        self.client = None

    async def plan(self, query: str, max_sub_queries: int | None = None) -> list[str]:
        """Never returns an empty list; any failure falls back to ``[query]``."""
        requested = settings.research_max_sub_queries if max_sub_queries is None else max_sub_queries
        limit = max(int(requested), 1)
        active_client = self.client or llm_client()
        try:
            completion = await active_client.complete(
                model=self.model,
                system=render_prompt(
                    "planner.system",
                    today_iso=date.today().isoformat(),
                    max_sub_queries=limit,
                ),
                user=render_prompt("planner.user", query=query),
                json_mode=True,
                caller="planner.plan",
            )
        except Exception as e:
            logger.warning(f"Sub-query generation failed, using original query: {e}")
            return [query]

        sub_queries = parse_sub_queries(completion.text)
        if not sub_queries:
            logger.warning("Planner returned no usable sub-queries, using original query")
            return [query]
        return sub_queries[:limit]
