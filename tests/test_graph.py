# tests/test_graph.py
"""
Tests for the dataflow graph model and its structural validation.
"""

import pytest

from hdlcheck.errors import MalformedGraphError
from hdlcheck.graph import DataflowGraph, GraphBuilder, OpKind, tarjan_scc
from tests.conftest import make_counter


class TestTarjan:

    def test_dependency_first_order(self):
        succ = {1: [2], 2: [3], 3: []}
        assert tarjan_scc([1, 2, 3], lambda v: succ[v]) == [[3], [2], [1]]

    def test_cycle_is_one_component(self):
        succ = {1: [2], 2: [1], 3: [1]}
        sccs = tarjan_scc([1, 2, 3], lambda v: succ[v])
        assert sorted(sccs[0]) == [1, 2]
        assert sccs[1] == [3]


class TestConstruction:

    def test_builder_assigns_sequential_ids(self):
        b = GraphBuilder()
        a = b.const(1)
        c = b.const(2)
        s = b.add(a, c)
        assert (a, c, s) == (0, 1, 2)
        assert b.graph.operands(s) == (0, 1)
        assert b.graph.consumers(a) == (s,)

    def test_duplicate_id_rejected(self):
        g = DataflowGraph()
        g.add_node(OpKind.CONST, value=1, node_id=5)
        with pytest.raises(MalformedGraphError):
            g.add_node(OpKind.CONST, value=2, node_id=5)

    def test_duplicate_register_rejected(self):
        g = DataflowGraph()
        g.declare_register("r")
        with pytest.raises(MalformedGraphError):
            g.declare_register("r")

    def test_forward_reference_allowed(self):
        g = DataflowGraph()
        g.add_node(OpKind.OUTPUT, [1], node_id=0)
        g.add_node(OpKind.CONST, value=3, node_id=1)
        assert g.validate().topological_order() == [1, 0]

    def test_terminals(self):
        b, r, nxt, w = make_counter(width=4)
        out = b.output(r)
        assert b.graph.terminals() == [w, out]


class TestValidation:

    def test_unknown_operand(self):
        g = DataflowGraph()
        g.add_node(OpKind.OUTPUT, [42])
        with pytest.raises(MalformedGraphError, match="unknown node n42"):
            g.validate()

    def test_wrong_arity(self):
        g = DataflowGraph()
        c = g.add_node(OpKind.CONST, value=1)
        g.add_node(OpKind.ADD, [c])
        with pytest.raises(MalformedGraphError, match="expected 2"):
            g.validate()

    def test_const_without_value(self):
        g = DataflowGraph()
        g.add_node(OpKind.CONST)
        with pytest.raises(MalformedGraphError, match="literal"):
            g.validate()

    def test_undeclared_register(self):
        b = GraphBuilder()
        b.reg_read("ghost")
        with pytest.raises(MalformedGraphError, match="undeclared register"):
            b.graph.validate()

    def test_two_writers(self):
        b = GraphBuilder()
        b.register("r")
        one = b.const(1)
        b.reg_write("r", one)
        b.reg_write("r", one)
        with pytest.raises(MalformedGraphError, match="2 writers") as exc:
            b.graph.validate()
        assert exc.value.chain == (1, 2)

    def test_init_must_fit_width(self):
        b = GraphBuilder()
        b.register("r", init=300, width=8)
        with pytest.raises(MalformedGraphError, match="does not fit"):
            b.graph.validate()

    def test_combinational_cycle_reports_chain(self):
        g = DataflowGraph()
        g.add_node(OpKind.CONST, value=1, node_id=0)
        g.add_node(OpKind.ADD, [0, 2], node_id=1)
        g.add_node(OpKind.BINDING, [1], node_id=2)
        with pytest.raises(MalformedGraphError, match="combinational cycle") as exc:
            g.validate()
        chain = exc.value.chain
        assert chain[0] == chain[-1]
        assert set(chain) == {1, 2}
        assert "add -> binding -> add" in exc.value.message

    def test_cycle_through_two_registers_rejected(self):
        b = GraphBuilder()
        b.register("a")
        b.register("b")
        ra = b.reg_read("a")
        rb = b.reg_read("b")
        to_b = b.binding(ra)
        wb = b.reg_write("b", to_b)
        to_a = b.binding(rb)
        wa = b.reg_write("a", to_a)
        with pytest.raises(MalformedGraphError, match="registers a, b") as exc:
            b.graph.validate()
        assert exc.value.chain == (ra, to_b, wb, rb, to_a, wa, ra)

    def test_registers_sharing_a_node_rejected(self):
        # x = r1 + r2; r1 := x; r2 := x
        b = GraphBuilder()
        b.register("r1", width=8)
        b.register("r2", width=8)
        r1 = b.reg_read("r1")
        r2 = b.reg_read("r2")
        x = b.add(r1, r2)
        w1 = b.reg_write("r1", x)
        w2 = b.reg_write("r2", x)
        with pytest.raises(MalformedGraphError, match="tied into one feedback component") as exc:
            b.graph.validate()
        chain = exc.value.chain
        assert chain == (r1, x, w2, r2, x, w1, r1)
        assert {r1, r2} <= set(chain)

    def test_validation_is_cached_until_mutation(self):
        b, *_ = make_counter()
        g = b.graph
        assert g.validate() is g
        assert g.is_validated
        b.const(7)
        assert not g.is_validated


class TestFeedbackComponents:

    def test_counter_forms_one_component(self):
        b, r, nxt, w = make_counter(width=8)
        comps = b.graph.feedback_components()
        assert len(comps) == 1
        comp = comps[0]
        assert comp.register == "count"
        assert comp.read_ids == (r,)
        assert comp.write_id == w
        assert set(comp.nodes) == {r, nxt, w}
        assert comp.nodes.index(r) < comp.nodes.index(nxt) < comp.nodes.index(w)

    def test_feedforward_register_is_not_a_cycle(self):
        b = GraphBuilder()
        b.register("delay")
        b.reg_write("delay", b.input("x", 0, 7))
        b.output(b.reg_read("delay"))
        assert b.graph.feedback_components() == []

    def test_register_read_depends_on_write(self):
        b, r, nxt, w = make_counter()
        assert b.graph.dependencies(r) == [w]

    def test_register_read_consumers(self):
        b, r, nxt, w = make_counter()
        assert b.graph.register_read_consumers("count") == [nxt]
        out = b.output(b.reg_read("count"))
        tap = b.output(r)
        assert b.graph.register_read_consumers("count") == [nxt, tap, out]
        assert b.graph.register_read_consumers("missing") == []


class TestDot:

    def test_dot_contains_nodes_and_register_edge(self):
        b, r, nxt, w = make_counter(width=8)
        dot = b.graph.to_dot(title="counter")
        assert dot.startswith("digraph Dataflow {")
        assert 'label="counter";' in dot
        assert f'n{r} [label="reg_read count"' in dot
        assert f"n{w} -> n{r} [style=dashed, color=blue];" in dot
        assert dot.rstrip().endswith("}")
