"""Document (artifact) storage: in-process or PostgreSQL via asyncpg."""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Protocol
from uuid import uuid4

import asyncpg

from godeep.config import settings


@dataclass(frozen=True)
class Document:
    id: str
    title: str
    content: str
    kind: str
    user_id: str | None
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class DocumentStore(Protocol):
    async def create(self, title: str, content: str, kind: str = "text", user_id: str | None = None) -> Document: ...
    async def get(self, document_id: str) -> Document | None: ...


class MemoryDocumentStore:
    """Process-local store; documents are lost on restart."""

    def __init__(self):
        self._documents: dict[str, Document] = {}

    async def create(self, title: str, content: str, kind: str = "text", user_id: str | None = None) -> Document:
        document = Document(
            id=str(uuid4()),
            title=title,
            content=content,
            kind=kind,
            user_id=user_id,
            created_at=datetime.now(timezone.utc),
        )
        self._documents[document.id] = document
        return document

    async def get(self, document_id: str) -> Document | None:
        return self._documents.get(document_id)


CREATE_DOCUMENTS_TABLE = """
CREATE TABLE IF NOT EXISTS documents (
    id UUID PRIMARY KEY,
    title TEXT NOT NULL,
    content TEXT NOT NULL,
    kind TEXT NOT NULL DEFAULT 'text',
    user_id TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
)
"""


class PostgresDocumentStore:
    """Stores documents in a ``documents`` table."""

    def __init__(self, database_url: str):
        if not database_url:
            raise RuntimeError("Database not configured. Set DATABASE_URL in .env")
        self.database_url = database_url
        self._pool: asyncpg.Pool | None = None
        self._pool_lock = asyncio.Lock()

    async def _get_pool(self) -> asyncpg.Pool:
        if self._pool is not None:
            return self._pool
        async with self._pool_lock:
            if self._pool is None:
                pool = await asyncpg.create_pool(self.database_url, min_size=1, max_size=10)
                try:
                    async with pool.acquire() as conn:
                        await conn.execute(CREATE_DOCUMENTS_TABLE)
                except Exception:
                    await pool.close()
                    raise
                self._pool = pool
        return self._pool

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    @staticmethod
    def _to_document(row: Any) -> Document:
        return Document(
            id=str(row["id"]),
            title=row["title"],
            content=row["content"],
            kind=row["kind"],
            user_id=row["user_id"],
            created_at=row["created_at"],
        )

    async def create(self, title: str, content: str, kind: str = "text", user_id: str | None = None) -> Document:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO documents (id, title, content, kind, user_id)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING id, title, content, kind, user_id, created_at
                """,
                uuid4(),
                title,
                content,
                kind,
                user_id,
            )
        return self._to_document(row)

    async def get(self, document_id: str) -> Document | None:
        pool = await self._get_pool()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT id, title, content, kind, user_id, created_at FROM documents WHERE id::text = $1",
                document_id,
            )
        return self._to_document(row) if row else None


_store: DocumentStore | None = None


def get_document_store() -> DocumentStore:
    global _store
    if _store is None:
        backend = settings.document_backend.lower().strip()
        if backend == "memory":
            _store = MemoryDocumentStore()
        elif backend == "postgres":
            _store = PostgresDocumentStore(settings.database_url)
        else:
            raise ValueError(f"Unsupported DOCUMENT_BACKEND: {settings.document_backend}")
    return _store


async def close_document_store() -> None:
    global _store
    if isinstance(_store, PostgresDocumentStore):
        await _store.close()
    _store = None
