"""Convert Neo4j driver values into JSON-compatible Python structures."""

from __future__ import annotations

from typing import Any, Callable

from neo4j import Record
from neo4j.graph import Node, Path, Relationship
from neo4j.time import Date, DateTime, Duration, Time


_TEMPORAL_TYPES = (DateTime, Date, Time, Duration)


def serialize(value: Any) -> Any:
    """Recursively serialize a driver value (node, relationship, path, record, temporal)."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value

    if isinstance(value, _TEMPORAL_TYPES):
        return value.iso_format()

    if isinstance(value, Node):
        return {
            "_id": value.element_id,
            "_labels": sorted(value.labels),
            **{key: serialize(val) for key, val in value.items()},
        }

    if isinstance(value, Relationship):
        return {
            "_id": value.element_id,
            "_type": value.type,
            "_start_node_id": value.start_node.element_id if value.start_node is not None else None,
            "_end_node_id": value.end_node.element_id if value.end_node is not None else None,
            **{key: serialize(val) for key, val in value.items()},
        }

    if isinstance(value, Path):
        return {
            "segments": [
                {
                    "start": serialize(rel.start_node),
                    "relationship": serialize(rel),
                    "end": serialize(rel.end_node),
                }
                for rel in value.relationships
            ]
        }

    if isinstance(value, Record):
        return {key: serialize(val) for key, val in value.items()}

    if isinstance(value, dict):
        return {key: serialize(val) for key, val in value.items()}

    if isinstance(value, (list, tuple)):
        return [serialize(item) for item in value]

    return value


def serialize_records(records: list[Record]) -> list[dict[str, Any]]:
    return [serialize(record) for record in records]


def _properties(node: Any) -> dict[str, Any]:
    if isinstance(node, Node):
        return dict(node.items())
    if isinstance(node, dict):
        return node
    return {}


def _pick(*fields: str) -> Callable[[Any], dict[str, Any]]:
    def serializer(node: Any) -> dict[str, Any]:
        props = _properties(node)
        return {field: serialize(props.get(field)) for field in fields}

    return serializer


# Compact per-label views used when handing nodes to prompts or API callers.
NODE_SERIALIZERS: dict[str, Callable[[Any], dict[str, Any]]] = {
    "Thought": _pick("id", "name", "thoughtContent", "confidence", "createdAt", "updatedAt"),
    "ReasoningChain": _pick("id", "name", "description", "conclusion", "steps", "createdAt"),
    "Person": _pick("id", "name", "biography", "domain"),
    "Concept": _pick("id", "name", "definition", "domain"),
    "Entity": _pick("id", "name", "type", "description"),
    "Proposition": _pick("id", "name", "statement", "status", "confidence"),
    "ReasoningStep": _pick("id", "name", "content", "stepType", "order", "chainId"),
}


def serialize_node(node: Any, label: str | None = None) -> dict[str, Any]:
    """Serialize a node with the compact view for its (first) label, if one exists."""
    if label is None and isinstance(node, Node) and node.labels:
        label = sorted(node.labels)[0]
    serializer = NODE_SERIALIZERS.get(label or "")
    if serializer is None:
        return serialize(node)
    return serializer(node)
