"""Tests for Neo4j value serialization."""
from unittest.mock import MagicMock

from neo4j import Record
from neo4j.graph import Node, Path, Relationship
from neo4j.time import DateTime

from godeep.graph.serializer import serialize, serialize_node


def _node(element_id: str, labels: set[str], props: dict) -> MagicMock:
    node = MagicMock(spec=Node)
    node.element_id = element_id
    node.labels = frozenset(labels)
    node.items.return_value = list(props.items())
    return node


def _relationship(element_id: str, rel_type: str, start, end, props: dict | None = None) -> MagicMock:
    rel = MagicMock(spec=Relationship)
    rel.element_id = element_id
    rel.type = rel_type
    rel.start_node = start
    rel.end_node = end
    rel.items.return_value = list((props or {}).items())
    return rel


class TestSerialize:
    def test_primitives_pass_through(self):
        assert serialize(None) is None
        assert serialize(3) == 3
        assert serialize("x") == "x"

    def test_nested_containers(self):
        assert serialize({"a": [1, {"b": (2, 3)}]}) == {"a": [1, {"b": [2, 3]}]}

    def test_temporal_to_iso_string(self):
        value = DateTime(2025, 3, 4, 10, 30, 0)
        assert serialize(value).startswith("2025-03-04T10:30:00")

    def test_node(self):
        node = _node("4:abc:1", {"Concept"}, {"name": "Entropy", "weight": 2})
        assert serialize(node) == {
            "_id": "4:abc:1",
            "_labels": ["Concept"],
            "name": "Entropy",
            "weight": 2,
        }

    def test_relationship(self):
        a = _node("n1", {"ReasoningChain"}, {})
        b = _node("n2", {"Concept"}, {})
        rel = _relationship("r1", "REFERENCES", a, b, {"weight": 0.5})
        assert serialize(rel) == {
            "_id": "r1",
            "_type": "REFERENCES",
            "_start_node_id": "n1",
            "_end_node_id": "n2",
            "weight": 0.5,
        }

    def test_path_segments(self):
        a = _node("n1", {"ReasoningStep"}, {"order": 1})
        b = _node("n2", {"ReasoningStep"}, {"order": 2})
        rel = _relationship("r1", "PRECEDES", a, b)
        path = MagicMock(spec=Path)
        path.relationships = (rel,)

        result = serialize(path)

        assert len(result["segments"]) == 1
        segment = result["segments"][0]
        assert segment["start"]["order"] == 1
        assert segment["relationship"]["_type"] == "PRECEDES"
        assert segment["end"]["order"] == 2

    def test_record(self):
        node = _node("n1", {"Entity"}, {"name": "ACME"})
        record = Record({"node": node, "score": 0.9})
        assert serialize(record) == {
            "node": {"_id": "n1", "_labels": ["Entity"], "name": "ACME"},
            "score": 0.9,
        }


class TestSerializeNode:
    def test_label_specific_view(self):
        node = _node("n1", {"Concept"}, {"id": "c1", "name": "Entropy", "definition": "Disorder", "embedding": [0.1]})
        assert serialize_node(node) == {
            "id": "c1",
            "name": "Entropy",
            "definition": "Disorder",
            "domain": None,
        }

    def test_unknown_label_uses_default(self):
        node = _node("n1", {"Widget"}, {"name": "w"})
        assert serialize_node(node) == {"_id": "n1", "_labels": ["Widget"], "name": "w"}

    def test_plain_property_dict(self):
        assert serialize_node({"id": "p1", "name": "Ada", "domain": "math"}, label="Person") == {
            "id": "p1",
            "name": "Ada",
            "biography": None,
            "domain": "math",
        }
