"""Read-side knowledge graph queries: vector retrieval and reasoning lookups."""

from __future__ import annotations

import math
from typing import Any

from loguru import logger

from godeep.config import settings
from godeep.graph.driver import run_query
from godeep.graph.serializer import serialize
from godeep.services.embeddings import get_embedding_client


# Searchable labels and their vector index names.
NODE_TYPE_TO_INDEX: dict[str, str] = {
    "Concept": "concept-embeddings",
    "Entity": "entity-embeddings",
    "Person": "person-embeddings",
    "Proposition": "proposition-embeddings",
    "ReasoningChain": "reasoningchain-embeddings",
    "Thought": "thought-embeddings",
}

NO_GRAPH_RESULTS = "No relevant information found in the knowledge graph."
GRAPH_FAILURE = "Failed to retrieve information from the knowledge graph."

SIMILARITY_THRESHOLD = 0.7

# First non-empty field wins when rendering a hit for a prompt.
_SUMMARY_FIELDS = ("description", "definition", "statement", "thoughtContent", "conclusion")


def build_semantic_query(node_types: list[str]) -> str:
    """UNION ALL one vector-index lookup per label, then rank the union by score."""
    parts = []
    for node_type in node_types:
        index_name = NODE_TYPE_TO_INDEX[node_type]
        parts.append(
            f"CALL db.index.vector.queryNodes('{index_name}', $per_index_limit, $embedding)\n"
            f"YIELD node, score\n"
            f"RETURN node, score, '{node_type}' AS node_type"
        )
    union = "\nUNION ALL\n".join(parts)
    return (
        "CALL {\n"
        f"{union}\n"
        "}\n"
        "RETURN node, score, node_type\n"
        "ORDER BY score DESC\n"
        "LIMIT $final_limit"
    )


def _valid_node_types(node_types: list[str] | None) -> list[str]:
    requested = list(node_types) if node_types else settings.graph_node_type_list
    valid = [t for t in requested if t in NODE_TYPE_TO_INDEX]
    unknown = [t for t in requested if t not in NODE_TYPE_TO_INDEX]
    if unknown:
        logger.warning(f"Ignoring node types without a vector index: {unknown}")
    if not valid:
        raise ValueError("No valid node types specified for semantic search")
    return valid


async def semantic_search(
    query_text: str,
    node_types: list[str] | None = None,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """Nearest-neighbour lookup across the vector indexes of ``node_types``.

    Returns plain dicts of node properties (``embedding`` removed) with
    ``node_type`` and ``similarity_score`` attached, best first.
    """
    types = _valid_node_types(node_types)
    final_limit = max(int(settings.graph_result_limit if limit is None else limit), 1)
    embedding = await get_embedding_client().embed(query_text)

    records = await run_query(
        build_semantic_query(types),
        {
            "embedding": embedding,
            "per_index_limit": math.ceil(final_limit / len(types)),
            "final_limit": final_limit,
        },
        operation="semantic_search",
    )

    hits: list[dict[str, Any]] = []
    for record in records:
        node = serialize(record["node"])
        node.pop("embedding", None)
        node["node_type"] = record["node_type"]
        node["similarity_score"] = record["score"]
        hits.append(node)
    hits.sort(key=lambda hit: hit["similarity_score"] or 0.0, reverse=True)
    return hits[:final_limit]


def format_hit(hit: dict[str, Any]) -> str:
    summary = next((hit[f] for f in _SUMMARY_FIELDS if hit.get(f)), "")
    return f'{hit.get("node_type", "Node")} "{hit.get("name", "")}": {summary}'


async def graph_evidence(
    query_text: str,
    node_types: list[str] | None = None,
    limit: int | None = None,
) -> str:
    """Render graph hits as prompt text. Never raises."""
    try:
        hits = await semantic_search(query_text, node_types=node_types, limit=limit)
    except Exception as e:
        logger.error(f"Knowledge graph query failed: {e}")
        return GRAPH_FAILURE
    if not hits:
        return NO_GRAPH_RESULTS
    return "\n\n".join(format_hit(hit) for hit in hits)


async def reasoning_for_message(message_id: str) -> dict[str, Any] | None:
    """Return the reasoning chain stored for a message with its steps in order."""
    records = await run_query(
        """
        MATCH (rc:ReasoningChain {messageId: $message_id})
        OPTIONAL MATCH (rc)-[:HAS_STEP]->(rs:ReasoningStep)
        RETURN rc, rs
        ORDER BY rs.order
        """,
        {"message_id": message_id},
        operation="reasoning_for_message",
    )
    if not records:
        return None

    chain = serialize(records[0]["rc"])
    steps = [serialize(record["rs"]) for record in records if record["rs"] is not None]
    return {
        "id": chain.get("id"),
        "name": chain.get("name"),
        "description": chain.get("description"),
        "steps": [
            {
                "id": step.get("id"),
                "content": step.get("content"),
                "stepType": step.get("stepType"),
                "order": step.get("order"),
            }
            for step in steps
        ],
    }


_SIMILAR_CHAINS = """
MATCH (rc:ReasoningChain)
WHERE rc.embedding IS NOT NULL
WITH rc, vector.similarity.cosine(rc.embedding, $embedding) AS score
WHERE score > $threshold
"""


async def similar_reasoning_chains(query: str, limit: int = 5) -> list[dict[str, Any]]:
    embedding = await get_embedding_client().embed(query)
    records = await run_query(
        _SIMILAR_CHAINS + "RETURN rc, score\nORDER BY score DESC\nLIMIT $limit",
        {"embedding": embedding, "threshold": SIMILARITY_THRESHOLD, "limit": int(limit)},
        operation="similar_reasoning_chains",
    )
    chains = []
    for record in records:
        chain = serialize(record["rc"])
        chain.pop("embedding", None)
        chain["score"] = record["score"]
        chains.append(chain)
    return chains


async def _related(query: str, rel_type: str, label: str, limit: int) -> list[dict[str, Any]]:
    embedding = await get_embedding_client().embed(query)
    records = await run_query(
        _SIMILAR_CHAINS
        + f"MATCH (rc)-[:{rel_type}]->(n:{label})\n"
        + "RETURN n, count(n) AS frequency, max(score) AS relevance\n"
        + "ORDER BY frequency DESC, relevance DESC\nLIMIT $limit",
        {"embedding": embedding, "threshold": SIMILARITY_THRESHOLD, "limit": int(limit)},
        operation=f"related_{label.lower()}",
    )
    related = []
    for record in records:
        node = serialize(record["n"])
        node.pop("embedding", None)
        node["frequency"] = record["frequency"]
        node["relevance"] = record["relevance"]
        related.append(node)
    return related


async def related_concepts(query: str, limit: int = 10) -> list[dict[str, Any]]:
    """Concepts referenced by reasoning chains similar to ``query``."""
    return await _related(query, "REFERENCES", "Concept", limit)


async def related_entities(query: str, limit: int = 10) -> list[dict[str, Any]]:
    """Entities mentioned by reasoning chains similar to ``query``."""
    return await _related(query, "MENTIONS", "Entity", limit)
