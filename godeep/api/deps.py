from __future__ import annotations

from godeep.config import settings


DEFAULT_CHAT_MODE = "wander-mode"


def get_chat_modes() -> list[dict[str, str]]:
    """Return the chat modes offered to clients."""
    return [
        {
            "id": "wander-mode",
            "name": "Wander",
            "description": f"Quick exploration with efficient responses ({settings.chat_model}).",
        },
        {
            "id": "deep-research-mode",
            "name": "Go Deep",
            "description": (
                "Comprehensive multi-step research with reasoning over the knowledge graph "
                f"and the web, up to {settings.deep_mode_max_sub_queries} sub-questions."
            ),
        },
    ]
