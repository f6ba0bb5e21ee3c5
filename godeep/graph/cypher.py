"""Small builders for parameterized Cypher clauses.

Property maps become ``{key: $<var>_<key>}`` placeholders; the matching
parameter dicts come from :func:`node_params`.
"""

from __future__ import annotations

from typing import Any


def _label(label: str | None) -> str:
    return f":{label}" if label else ""


def _props(properties: dict[str, Any] | None, variable: str) -> str:
    if not properties:
        return ""
    pairs = ", ".join(f"{key}: ${variable}_{key}" for key in properties)
    return f" {{{pairs}}}"


def node_params(properties: dict[str, Any] | None, variable: str = "n") -> dict[str, Any]:
    """Build the parameter dict matching a clause built for ``variable``."""
    if not properties:
        return {}
    return {f"{variable}_{key}": value for key, value in properties.items()}


def match_node(label: str | None, properties: dict[str, Any] | None = None, variable: str = "n") -> str:
    return f"MATCH ({variable}{_label(label)}{_props(properties, variable)})"


def create_node(label: str | None, properties: dict[str, Any] | None, variable: str = "n") -> str:
    return f"CREATE ({variable}{_label(label)}{_props(properties, variable)})"


def merge_node(label: str | None, properties: dict[str, Any] | None, variable: str = "n") -> str:
    return f"MERGE ({variable}{_label(label)}{_props(properties, variable)})"


def match_relationship(
    start_label: str | None,
    rel_type: str | None,
    end_label: str | None,
    direction: str | None = ">",
    start_var: str = "a",
    rel_var: str = "r",
    end_var: str = "b",
) -> str:
    start = f"({start_var}{_label(start_label)})"
    end = f"({end_var}{_label(end_label)})"
    rel = f"[{rel_var}{_label(rel_type)}]"
    if direction == ">":
        return f"MATCH {start}-{rel}->{end}"
    if direction == "<":
        return f"MATCH {start}<-{rel}-{end}"
    if direction is None:
        return f"MATCH {start}-{rel}-{end}"
    raise ValueError(f"Unsupported relationship direction: {direction!r}")


def create_relationship(
    start_var: str,
    rel_type: str,
    end_var: str,
    properties: dict[str, Any] | None = None,
    rel_var: str = "r",
) -> str:
    return f"CREATE ({start_var})-[{rel_var}{_label(rel_type)}{_props(properties, rel_var)}]->({end_var})"


def paginate(skip: int | None = None, limit: int | None = None) -> str:
    parts = []
    if skip is not None:
        parts.append(f"SKIP {int(skip)}")
    if limit is not None:
        parts.append(f"LIMIT {int(limit)}")
    return " ".join(parts)


def build_query(clauses: list[str], terminator: str = "") -> str:
    return "\n".join(clause for clause in clauses if clause) + terminator


def merge_params(*params: dict[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for item in params:
        merged.update(item)
    return merged
