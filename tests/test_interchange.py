# tests/test_interchange.py
"""
Tests for the JSON graph interchange format.
"""

import pytest

from hdlcheck.diagnostics import SourceSpan
from hdlcheck.errors import InterchangeError, MalformedGraphError
from hdlcheck.graph import OpKind
from hdlcheck.interchange import dump_graph, graph_from_dict, graph_to_dict, load_graph
from hdlcheck.interval import Interval
from hdlcheck.interval_analysis import infer
from tests.conftest import counter_document, make_counter, write_json


class TestDecode:

    def test_counter_document(self):
        graph = graph_from_dict(counter_document())
        assert len(graph) == 5
        assert graph.registers["count"].width == 8
        assert graph.kind(2) is OpKind.ADD
        assert graph.node(2).span == SourceSpan("counter.hdl", 4, 12)
        assert infer(graph).register_values["count"] == Interval(0, 255)

    def test_unknown_kind(self):
        doc = {"nodes": [{"id": 0, "kind": "fma"}]}
        with pytest.raises(InterchangeError, match="unknown kind 'fma'"):
            graph_from_dict(doc)

    def test_missing_id(self):
        with pytest.raises(InterchangeError, match="missing required key 'id'"):
            graph_from_dict({"nodes": [{"kind": "const", "value": 1}]})

    def test_bad_bounds(self):
        doc = {"nodes": [{"id": 0, "kind": "input", "bounds": [3]}]}
        with pytest.raises(InterchangeError):
            graph_from_dict(doc)

    def test_not_an_object(self):
        with pytest.raises(InterchangeError):
            graph_from_dict([1, 2, 3])

    def test_structural_problems_surface_on_validate(self):
        doc = {"nodes": [{"id": 0, "kind": "add", "operands": [0, 1]}]}
        graph = graph_from_dict(doc)
        with pytest.raises(MalformedGraphError):
            graph.validate()


class TestEncode:

    def test_encode_keeps_structure(self):
        b, r, nxt, w = make_counter(width=4)
        doc = graph_to_dict(b.graph)
        assert doc["registers"] == [{"name": "count", "init": 0, "width": 4, "signed": False}]
        kinds = [n["kind"] for n in doc["nodes"]]
        assert kinds == ["reg_read", "const", "add", "reg_write"]
        assert doc["nodes"][nxt]["operands"] == [r, 1]
        assert doc["nodes"][w]["register"] == "count"

    def test_decode_of_encoding_matches(self):
        original = graph_from_dict(counter_document())
        again = graph_from_dict(graph_to_dict(original))
        assert again.nodes == original.nodes
        assert again.registers == original.registers


class TestLoad:

    def test_load_graph(self, counter_file):
        graph = load_graph(counter_file)
        assert graph.register_write("count") == 3

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(InterchangeError, match="invalid JSON"):
            load_graph(path)

    def test_write_json_helper_output_loads(self, tmp_path):
        path = write_json(tmp_path / "g.json", {"nodes": [{"id": 0, "kind": "const", "value": 9}]})
        assert load_graph(path).node(0).value == 9

    def test_dump_graph_then_load(self, tmp_path):
        b, r, nxt, w = make_counter(width=4)
        path = tmp_path / "counter.json"
        dump_graph(b.graph, path)
        again = load_graph(path)
        assert again.nodes == b.graph.nodes
        assert again.registers == b.graph.registers
        assert infer(again).register_values["count"] == Interval(0, 15)
