"""Embedding client with a bounded LRU cache keyed by normalized text."""
from __future__ import annotations

import math
import re
from collections import OrderedDict

from loguru import logger

from godeep.config import settings
from godeep.llm_client import client as llm_client

_WHITESPACE_RE = re.compile(r"\s+")


def prepare_text(text: str, max_chars: int | None = None) -> str:
    """Collapse whitespace and truncate to the embedding input budget."""
    if not text or not text.strip():
        return ""
    cleaned = _WHITESPACE_RE.sub(" ", text.strip())
    limit = max_chars if max_chars is not None else settings.embedding_max_chars
    if limit > 0 and len(cleaned) > limit:
        cleaned = cleaned[:limit]
    return cleaned


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if len(a) != len(b):
        raise ValueError("Embeddings must have the same dimensions")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class EmbeddingClient:
    """Embeds text through the hosted API, caching up to ``capacity`` vectors.

    Keys are ``(normalized_text, dimensions)``. A hit moves the key to the
    most-recently-used end; inserting past capacity evicts the oldest key.
    """

    def __init__(
        self,
        model: str | None = None,
        dimensions: int | None = None,
        capacity: int | None = None,
        max_chars: int | None = None,
    ):
        self.model = model or settings.embedding_model
        self.dimensions = dimensions or settings.embedding_dimensions
        self.capacity = max(int(capacity if capacity is not None else settings.embedding_cache_size), 0)
        self.max_chars = max_chars if max_chars is not None else settings.embedding_max_chars
        self.client = None
        self._cache: OrderedDict[tuple[str, int], list[float]] = OrderedDict()

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        self._cache.clear()

    def _cache_get(self, key: tuple[str, int]) -> list[float] | None:
        vector = self._cache.get(key)
        if vector is not None:
            self._cache.move_to_end(key)
        return vector

    def _cache_put(self, key: tuple[str, int], vector: list[float]) -> None:
        if self.capacity == 0:
            return
        self._cache[key] = vector
        self._cache.move_to_end(key)
        while len(self._cache) > self.capacity:
            evicted, _ = self._cache.popitem(last=False)
            logger.debug(f"Embedding cache evicted key ({len(evicted[0])} chars)")

    async def embed(self, text: str, use_cache: bool = True) -> list[float]:
        """Embed one text, consulting the cache first."""
        cleaned = prepare_text(text, self.max_chars)
        if not cleaned:
            raise ValueError("Cannot embed empty text")

        key = (cleaned, self.dimensions)
        if use_cache:
            cached = self._cache_get(key)
            if cached is not None:
                return cached

        active_client = self.client or llm_client()
        vectors = await active_client.embed(
            model=self.model,
            inputs=[cleaned],
            dimensions=self.dimensions,
            caller="embeddings.embed",
        )
        vector = vectors[0]
        if use_cache:
            self._cache_put(key, vector)
        return vector

    async def embed_many(self, texts: list[str], batch_size: int | None = None) -> list[list[float]]:
        """Embed several texts; cache misses are sent to the API in batches."""
        size = max(int(batch_size or settings.embedding_batch_size), 1)
        cleaned = [prepare_text(t, self.max_chars) for t in texts]
        if any(not c for c in cleaned):
            raise ValueError("Cannot embed empty text")

        results: list[list[float] | None] = [None] * len(cleaned)
        missing: list[int] = []
        for idx, text in enumerate(cleaned):
            cached = self._cache_get((text, self.dimensions))
            if cached is None:
                missing.append(idx)
            else:
                results[idx] = cached

        active_client = self.client or llm_client()
        for start in range(0, len(missing), size):
            batch = missing[start:start + size]
            vectors = await active_client.embed(
                model=self.model,
                inputs=[cleaned[i] for i in batch],
                dimensions=self.dimensions,
                caller="embeddings.embed_many",
            )
            for idx, vector in zip(batch, vectors):
                results[idx] = vector
                self._cache_put((cleaned[idx], self.dimensions), vector)

        return [r for r in results if r is not None]


_embedding_client: EmbeddingClient | None = None


def get_embedding_client() -> EmbeddingClient:
    """Get or create the process-wide embedding client."""
    global _embedding_client
    if _embedding_client is None:
        _embedding_client = EmbeddingClient()
    return _embedding_client
