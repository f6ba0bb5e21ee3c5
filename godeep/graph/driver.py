"""Neo4j async driver singleton and query helper."""

from __future__ import annotations

import time
from typing import Any

from neo4j import AsyncDriver, AsyncGraphDatabase, READ_ACCESS, WRITE_ACCESS, Record

from godeep.config import settings
from godeep.services import logger as log_service


_driver: AsyncDriver | None = None


def get_driver() -> AsyncDriver:
    """Get or create the shared Neo4j driver."""
    global _driver
    if _driver is None:
        _driver = AsyncGraphDatabase.driver(
            settings.neo4j_uri,
            auth=(settings.neo4j_username, settings.neo4j_password),
            max_connection_lifetime=settings.neo4j_max_connection_lifetime,
            max_connection_pool_size=settings.neo4j_max_pool_size,
            connection_acquisition_timeout=settings.neo4j_acquisition_timeout,
        )
    return _driver


async def close_driver() -> None:
    """Close the shared Neo4j driver."""
    global _driver
    if _driver is not None:
        await _driver.close()
        _driver = None


def session_kwargs(write: bool = False) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"default_access_mode": WRITE_ACCESS if write else READ_ACCESS}
    if settings.neo4j_database:
        kwargs["database"] = settings.neo4j_database
    return kwargs


async def run_query(
    cypher: str,
    params: dict[str, Any] | None = None,
    *,
    write: bool = False,
    operation: str = "query",
) -> list[Record]:
    """Run one Cypher statement in its own session and return every record."""
    t0 = time.monotonic()
    try:
        async with get_driver().session(**session_kwargs(write)) as session:
            result = await session.run(cypher, params or {})
            records = [record async for record in result]
    except Exception as e:
        log_service.log_graph_query(
            operation=operation,
            status="error",
            duration_ms=int((time.monotonic() - t0) * 1000),
            error=str(e),
        )
        raise

    log_service.log_graph_query(
        operation=operation,
        status="success",
        rows=len(records),
        duration_ms=int((time.monotonic() - t0) * 1000),
    )
    return records
