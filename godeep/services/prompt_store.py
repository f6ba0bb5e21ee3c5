"""Prompt templates loaded from a JSON catalog and rendered with ``string.Template``.

The catalog nests prompts by component (``{"planner": {"system": ...}}``) and is
addressed with dotted keys (``planner.system``). A prompt is either a string or
a list of lines. The file is re-read when its mtime changes.
"""
from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any

from godeep.config import settings


DEFAULT_PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"

_templates: dict[str, str] | None = None
_loaded_from: tuple[Path, int] | None = None


def prompts_path() -> Path:
    return Path(settings.prompts_path) if settings.prompts_path else DEFAULT_PROMPTS_PATH


def _flatten(node: Any, prefix: str, out: dict[str, str]) -> None:
    if isinstance(node, dict):
        for name, child in node.items():
            _flatten(child, f"{prefix}.{name}" if prefix else name, out)
    elif isinstance(node, str):
        out[prefix] = node
    elif isinstance(node, list) and all(isinstance(line, str) for line in node):
        out[prefix] = "\n".join(node)
    else:
        raise ValueError(f"Prompt '{prefix}' must be a string or a list of strings")


def _catalog() -> dict[str, str]:
    global _templates, _loaded_from
    path = prompts_path()
    stamp = (path, path.stat().st_mtime_ns)
    if _templates is not None and _loaded_from == stamp:
        return _templates

    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"Prompt catalog must be a JSON object: {path}")
    templates: dict[str, str] = {}
    _flatten(payload, "", templates)
    _templates = templates
    _loaded_from = stamp
    return templates


def prompt_keys() -> list[str]:
    return sorted(_catalog())


def render_prompt(key: str, **values: Any) -> str:
    """Render the prompt at ``key``; every ``$name`` placeholder must be supplied."""
    try:
        template = _catalog()[key]
    except KeyError:
        raise KeyError(f"Prompt key not found: {key}") from None
    try:
        return Template(template).substitute(**values)
    except KeyError as exc:
        raise KeyError(f"Missing template value '{exc.args[0]}' for prompt '{key}'") from exc


def clear_prompt_cache() -> None:
    global _templates, _loaded_from
    _templates = None
    _loaded_from = None
