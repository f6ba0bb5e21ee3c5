"""Graph schema bootstrap: id constraints, vector indexes and name text indexes."""

from __future__ import annotations

from loguru import logger

from godeep.config import settings
from godeep.graph.driver import run_query
from godeep.graph.queries import NODE_TYPE_TO_INDEX


CONSTRAINED_LABELS = (
    "Entity",
    "Person",
    "Event",
    "Concept",
    "Attribute",
    "Proposition",
    "Thought",
    "ReasoningChain",
    "ReasoningStep",
)


def constraint_statements() -> list[str]:
    return [
        f"CREATE CONSTRAINT IF NOT EXISTS FOR (n:{label}) REQUIRE n.id IS UNIQUE"
        for label in CONSTRAINED_LABELS
    ]


def vector_index_statements(dimensions: int | None = None) -> list[str]:
    dims = int(dimensions or settings.embedding_dimensions)
    return [
        f"CREATE VECTOR INDEX `{index_name}` IF NOT EXISTS\n"
        f"FOR (n:{label}) ON (n.embedding)\n"
        "OPTIONS {indexConfig: {"
        f"`vector.dimensions`: {dims}, `vector.similarity_function`: 'cosine'"
        "}}"
        for label, index_name in NODE_TYPE_TO_INDEX.items()
    ]


def text_index_statements() -> list[str]:
    return [
        f"CREATE TEXT INDEX IF NOT EXISTS FOR (n:{label}) ON (n.name)"
        for label in CONSTRAINED_LABELS
    ]


def schema_statements(dimensions: int | None = None) -> list[str]:
    return constraint_statements() + vector_index_statements(dimensions) + text_index_statements()


async def init_schema(dimensions: int | None = None) -> dict[str, int]:
    """Apply every schema statement; a failing statement is logged and skipped."""
    applied = 0
    failed = 0
    for statement in schema_statements(dimensions):
        try:
            await run_query(statement, write=True, operation="init_schema")
            applied += 1
        except Exception as e:
            failed += 1
            logger.error(f"Schema statement failed: {statement.splitlines()[0]} ({e})")
    logger.info(f"Schema initialization complete: {applied} applied, {failed} failed")
    return {"applied": applied, "failed": failed}
