"""Shared test setup: settings env defaults and fake LLM clients."""
import os
import tempfile
from unittest.mock import AsyncMock, MagicMock

import pytest

# Settings() is instantiated at import time; give it what it needs.
os.environ.setdefault("OPENAI_API_KEY", "sk-test")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="godeep-logs-"))
os.environ.setdefault("DOCUMENT_BACKEND", "memory")
os.environ.setdefault("REASONING_INGEST_ENABLED", "false")

from godeep.llm_client import Completion, WebSearchResponse  # noqa: E402


def make_llm_client(
    complete_texts: list[str] | None = None,
    complete_error: Exception | None = None,
    web_response: WebSearchResponse | None = None,
    web_error: Exception | None = None,
) -> MagicMock:
    """LLMClient stand-in with AsyncMock methods."""
    fake = MagicMock()
    if complete_error is not None:
        fake.complete = AsyncMock(side_effect=complete_error)
    else:
        fake.complete = AsyncMock(side_effect=[Completion(text=t) for t in (complete_texts or [])])
    if web_error is not None:
        fake.web_search = AsyncMock(side_effect=web_error)
    else:
        fake.web_search = AsyncMock(return_value=web_response or WebSearchResponse(text=""))
    fake.embed = AsyncMock(return_value=[[0.1, 0.2, 0.3]])
    return fake


@pytest.fixture
def llm_factory():
    return make_llm_client
