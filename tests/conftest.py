# tests/conftest.py
"""
Shared graph builders and fixtures for the hdlcheck test-suite.
"""

import json

import pytest

from hdlcheck.graph import GraphBuilder


def make_counter(width=None, init=0, step=1):
    """``count := count + step``; returns (builder, read_id, add_id, write_id)."""
    b = GraphBuilder()
    b.register("count", init=init, width=width)
    r = b.reg_read("count")
    nxt = b.add(r, b.const(step))
    w = b.reg_write("count", nxt)
    return b, r, nxt, w


def make_mul_chain(muls, terminal="output"):
    """``in0 * in1 * ... `` with *muls* multiplies, then a compare.

    Returns (builder, compare_id, terminal_id).
    """
    b = GraphBuilder()
    acc = b.input("a", 0, 15)
    for i in range(muls):
        acc = b.mul(acc, b.input(f"m{i}", 0, 15))
    cmp_id = b.compare(acc, b.input("limit", 0, 255))
    if terminal == "output":
        end = b.output(cmp_id, "flag")
    else:
        b.register("flag", width=1)
        end = b.reg_write("flag", cmp_id)
    return b, cmp_id, end


def counter_document(width=8):
    return {
        "registers": [{"name": "count", "init": 0, "width": width}],
        "nodes": [
            {"id": 0, "kind": "reg_read", "register": "count"},
            {"id": 1, "kind": "const", "value": 1},
            {"id": 2, "kind": "add", "operands": [0, 1],
             "span": {"file": "counter.hdl", "line": 4, "column": 12}},
            {"id": 3, "kind": "reg_write", "register": "count", "operands": [2]},
            {"id": 4, "kind": "output", "name": "q", "operands": [0]},
        ],
    }


def deep_document(muls=13):
    """Interchange document whose single output path has depth ``2 * muls``."""
    nodes = [{"id": 0, "kind": "input", "name": "a", "bounds": [0, 3]}]
    acc = 0
    for _ in range(muls):
        nxt = len(nodes)
        nodes.append({"id": nxt, "kind": "input", "name": f"k{nxt}", "bounds": [0, 3]})
        nodes.append({"id": nxt + 1, "kind": "mul", "operands": [acc, nxt],
                      "span": {"file": "deep.hdl", "line": nxt, "column": 1}})
        acc = nxt + 1
    nodes.append({"id": len(nodes), "kind": "output", "name": "y", "operands": [acc]})
    return {"registers": [], "nodes": nodes}


def write_json(path, doc):
    path.write_text(json.dumps(doc), encoding="utf-8")
    return path


@pytest.fixture
def counter_file(tmp_path):
    return write_json(tmp_path / "counter.graph.json", counter_document())


@pytest.fixture
def deep_file(tmp_path):
    return write_json(tmp_path / "deep.graph.json", deep_document())
