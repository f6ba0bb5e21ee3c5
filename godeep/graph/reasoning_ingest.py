"""Write reasoning text into the knowledge graph as a ReasoningChain with steps."""

from __future__ import annotations

import asyncio
import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from loguru import logger

from godeep.graph import cypher
from godeep.graph.driver import run_query
from godeep.llm_client import client as llm_client, get_model
from godeep.services.embeddings import get_embedding_client
from godeep.services.prompt_store import render_prompt


CONCLUSION_MARKERS = ("in conclusion", "to conclude", "therefore", "thus", "in summary", "overall")
EVIDENCE_MARKERS = ("evidence", "according to", "research shows")
COUNTER_MARKERS = ("however", "on the other hand", "counter")

PROPOSITION_MIN_CHARS = 200
EXTRACTION_INPUT_CHARS = 4000

_NUMBERED_ITEM_RE = re.compile(r"^\s*\d+[.)]\s*", re.MULTILINE)


def _short(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def parse_steps(reasoning: str) -> list[str]:
    """Split on blank lines; fall back to numbered items when that yields fewer than three."""
    steps = [part.strip() for part in reasoning.split("\n\n") if part.strip()]
    if len(steps) < 3:
        numbered = [part.strip() for part in _NUMBERED_ITEM_RE.split(reasoning) if part.strip()]
        if len(numbered) > len(steps):
            steps = numbered
    return steps


def step_type(content: str, index: int, total: int) -> str:
    if index == 0:
        return "premise"
    if index == total - 1:
        return "conclusion"
    lowered = content.lower()
    if any(marker in lowered for marker in EVIDENCE_MARKERS):
        return "evidence"
    if any(marker in lowered for marker in COUNTER_MARKERS):
        return "counterargument"
    return "inference"


def extract_conclusion(reasoning: str, steps: list[str]) -> str:
    lowered = reasoning.lower()
    for marker in CONCLUSION_MARKERS:
        idx = lowered.find(marker)
        if idx >= 0:
            return reasoning[idx:].strip()
    return steps[-1] if steps else ""


@dataclass
class IngestResult:
    chain_id: str | None
    nodes_created: dict[str, int] = field(default_factory=dict)


class ReasoningIngestor:
    def __init__(self, model: str | None = None):
        self.model = model or get_model()
        self.client = None

    async def _extract_concepts_and_entities(self, reasoning: str) -> tuple[list[dict], list[dict]]:
        active_client = self.client or llm_client()
        try:
            completion = await active_client.complete(
                model=self.model,
                system=render_prompt("ingest.system"),
                user=render_prompt("ingest.user", reasoning=reasoning[:EXTRACTION_INPUT_CHARS]),
                json_mode=True,
                caller="ingest.extract",
            )
            data = json.loads(completion.text or "{}")
        except Exception as e:
            logger.warning(f"Concept/entity extraction failed: {e}")
            return [], []
        if not isinstance(data, dict):
            return [], []

        def named(items: Any) -> list[dict]:
            if not isinstance(items, list):
                return []
            return [i for i in items if isinstance(i, dict) and isinstance(i.get("name"), str) and i["name"].strip()]

        return named(data.get("concepts")), named(data.get("entities"))

    async def _create_steps(self, chain_id: str, steps: list[str]) -> None:
        for i, content in enumerate(steps):
            props = {
                "id": f"{chain_id}-step-{i + 1}",
                "name": f"Step {i + 1}",
                "content": content,
                "stepType": step_type(content, i, len(steps)),
                "order": i + 1,
                "chainId": chain_id,
                "createdAt": datetime.now(timezone.utc),
            }
            await run_query(
                cypher.build_query([
                    cypher.match_node("ReasoningChain", {"id": chain_id}, "r"),
                    cypher.create_node("ReasoningStep", props, "s"),
                    cypher.create_relationship("r", "HAS_STEP", "s", rel_var="h"),
                ]),
                cypher.merge_params(
                    cypher.node_params({"id": chain_id}, "r"),
                    cypher.node_params(props, "s"),
                ),
                write=True,
                operation="ingest.step",
            )
            if i > 0:
                await run_query(
                    """
                    MATCH (prev:ReasoningStep {id: $prev_id})
                    MATCH (curr:ReasoningStep {id: $curr_id})
                    MERGE (prev)-[:PRECEDES]->(curr)
                    """,
                    {"prev_id": f"{chain_id}-step-{i}", "curr_id": props["id"]},
                    write=True,
                    operation="ingest.precedes",
                )

    async def _link_concepts(self, chain_id: str, concepts: list[dict]) -> int:
        count = 0
        for concept in concepts:
            try:
                await run_query(
                    """
                    MATCH (r:ReasoningChain {id: $chain_id})
                    MERGE (c:Concept {name: $name})
                    ON CREATE SET c.id = $id, c.definition = $definition,
                                  c.domain = $domain, c.createdAt = datetime()
                    ON MATCH SET c.definition = CASE WHEN c.definition IS NULL
                                     OR size(c.definition) < size($definition)
                                     THEN $definition ELSE c.definition END,
                                 c.domain = coalesce(c.domain, $domain)
                    CREATE (r)-[:REFERENCES]->(c)
                    """,
                    {
                        "chain_id": chain_id,
                        "id": f"concept-{uuid4().hex[:10]}",
                        "name": concept["name"].strip(),
                        "definition": str(concept.get("definition") or ""),
                        "domain": concept.get("domain"),
                    },
                    write=True,
                    operation="ingest.concept",
                )
                count += 1
            except Exception as e:
                logger.warning(f"Failed to create concept {concept['name']!r}: {e}")
        return count

    async def _link_entities(self, chain_id: str, entities: list[dict]) -> int:
        count = 0
        for entity in entities:
            try:
                await run_query(
                    """
                    MATCH (r:ReasoningChain {id: $chain_id})
                    MERGE (e:Entity {name: $name})
                    ON CREATE SET e.id = $id, e.type = $type,
                                  e.description = $description, e.createdAt = datetime()
                    ON MATCH SET e.type = coalesce(e.type, $type),
                                 e.description = CASE WHEN e.description IS NULL
                                     OR size(e.description) < size($description)
                                     THEN $description ELSE e.description END
                    CREATE (r)-[:MENTIONS]->(e)
                    """,
                    {
                        "chain_id": chain_id,
                        "id": f"entity-{uuid4().hex[:10]}",
                        "name": entity["name"].strip(),
                        "type": str(entity.get("type") or "other"),
                        "description": str(entity.get("description") or ""),
                    },
                    write=True,
                    operation="ingest.entity",
                )
                count += 1
            except Exception as e:
                logger.warning(f"Failed to create entity {entity['name']!r}: {e}")
        return count

    async def ingest(
        self,
        reasoning: str,
        message_id: str | None = None,
        query_context: str | None = None,
    ) -> IngestResult:
        """Store ``reasoning`` as a ReasoningChain plus steps, concepts, entities and conclusion."""
        if not reasoning or not reasoning.strip():
            return IngestResult(chain_id=None)

        chain_id = f"reasoning-{message_id or uuid4().hex[:10]}"
        name = f"Reasoning about: {_short(query_context, 50)}" if query_context else f"Reasoning chain {chain_id}"
        embedding = await get_embedding_client().embed(reasoning)

        await run_query(
            """
            MERGE (r:ReasoningChain {id: $id})
            SET r.name = $name,
                r.description = $description,
                r.embedding = $embedding,
                r.messageId = $message_id,
                r.createdAt = datetime()
            """,
            {
                "id": chain_id,
                "name": name,
                "description": _short(reasoning, 200),
                "embedding": embedding,
                "message_id": message_id,
            },
            write=True,
            operation="ingest.chain",
        )
        created = {"ReasoningChain": 1}

        steps = parse_steps(reasoning)
        await self._create_steps(chain_id, steps)
        created["ReasoningStep"] = len(steps)

        concepts, entities = await self._extract_concepts_and_entities(reasoning)
        created["Concept"] = await self._link_concepts(chain_id, concepts)
        created["Entity"] = await self._link_entities(chain_id, entities)

        if len(reasoning) > PROPOSITION_MIN_CHARS:
            conclusion = extract_conclusion(reasoning, steps)
            if conclusion:
                await run_query(
                    """
                    MATCH (r:ReasoningChain {id: $chain_id})
                    CREATE (p:Proposition {id: $id, name: $name, statement: $statement,
                                           status: 'derived', confidence: 0.8, createdAt: datetime()})
                    CREATE (r)-[:SUPPORTS]->(p)
                    """,
                    {
                        "chain_id": chain_id,
                        "id": f"proposition-{uuid4().hex[:10]}",
                        "name": _short(conclusion, 50),
                        "statement": conclusion,
                    },
                    write=True,
                    operation="ingest.proposition",
                )
                created["Proposition"] = 1

        logger.info(f"Ingested reasoning chain {chain_id}: {created}")
        return IngestResult(chain_id=chain_id, nodes_created=created)


_background_tasks: set[asyncio.Task] = set()


def ingest_in_background(
    reasoning: str,
    message_id: str | None = None,
    query_context: str | None = None,
    ingestor: ReasoningIngestor | None = None,
) -> asyncio.Task:
    """Schedule an ingest on the running loop; failures are logged, not raised."""
    active = ingestor or ReasoningIngestor()

    async def _run() -> None:
        try:
            await active.ingest(reasoning, message_id=message_id, query_context=query_context)
        except Exception as e:
            logger.error(f"Background reasoning ingest failed: {e}")

    task = asyncio.create_task(_run())
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task
