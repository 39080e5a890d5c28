"""
hdlcheck.graph
==============

The dataflow graph consumed by both analyses.

Nodes live in an arena addressed by integer id; edges are explicit operand
lists (node → the nodes it reads) with a reverse ``consumers`` index.  The
only legal cycle shape goes through a state register: a ``REG_WRITE``
node's operand may transitively depend on a ``REG_READ`` of the same
register.  Registers are not linked by operand edges; the analyses add the
implicit *read depends on write* edge themselves, which is what turns a
register into a feedback cycle.

Validation
----------
:meth:`DataflowGraph.validate` runs once per graph, before either analysis,
and raises :class:`~hdlcheck.errors.MalformedGraphError` for

* operands that reference unknown nodes, and arity violations,
* register nodes naming an undeclared register, or a register with more
  than one writer, or an initial value outside its declared width,
* a cycle over operand edges alone (a combinational loop),
* a strongly-connected component of the register-augmented dependency
  graph that does not contain exactly one register pair.

Public API
----------
    OpKind              - operation kind enumeration
    GraphNode           - one node in the arena
    RegisterDecl        - a declared state register
    FeedbackComponent   - one register-feedback SCC
    DataflowGraph       - the graph itself
    GraphBuilder        - fluent construction helpers
    tarjan_scc          - iterative Tarjan SCC over any successor function
"""

from __future__ import annotations

import enum
from collections import OrderedDict, defaultdict, deque
from dataclasses import dataclass
from typing import (
    Callable,
    Deque,
    Dict,
    FrozenSet,
    Hashable,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    TypeVar,
    cast,
)

from .diagnostics import SourceSpan
from .errors import MalformedGraphError

V = TypeVar("V", bound=Hashable)


# ---------------------------------------------------------------------------
# Operation kinds
# ---------------------------------------------------------------------------

class OpKind(enum.Enum):
    """Operation kind of a :class:`GraphNode`."""
    CONST = "const"
    INPUT = "input"
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    DIV = "div"
    COMPARE = "compare"
    MUX = "mux"
    VAR_REF = "var_ref"
    BINDING = "binding"
    FIELD_GET = "field_get"
    REG_READ = "reg_read"
    REG_WRITE = "reg_write"
    OUTPUT = "output"

    @property
    def is_terminal(self) -> bool:
        """Does a maximal path end at this kind of node?"""
        return self in (OpKind.REG_WRITE, OpKind.OUTPUT)

    @property
    def is_register(self) -> bool:
        return self in (OpKind.REG_READ, OpKind.REG_WRITE)


# (min operands, max operands); None means unbounded
_ARITY: Dict[OpKind, Tuple[int, Optional[int]]] = {
    OpKind.CONST: (0, 0),
    OpKind.INPUT: (0, 0),
    OpKind.REG_READ: (0, 0),
    OpKind.ADD: (2, 2),
    OpKind.SUB: (2, 2),
    OpKind.MUL: (2, 2),
    OpKind.DIV: (2, 2),
    OpKind.COMPARE: (2, 2),
    OpKind.MUX: (3, None),
    OpKind.VAR_REF: (1, 1),
    OpKind.BINDING: (1, 1),
    OpKind.FIELD_GET: (1, 1),
    OpKind.REG_WRITE: (1, 1),
    OpKind.OUTPUT: (1, 1),
}


# ---------------------------------------------------------------------------
# Nodes and registers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GraphNode:
    """One dataflow operation or terminal.

    Attributes
    ----------
    node_id : int
        Stable identifier, unique within the graph.
    kind : OpKind
    operands : tuple of int
        Ordered operand ids.  For ``MUX`` the first operand is the select.
    value : int, optional
        Literal value of a ``CONST`` node.
    register : str, optional
        Register name of a ``REG_READ`` / ``REG_WRITE`` node.
    bounds : (int, int), optional
        Declared inclusive range of an ``INPUT`` or ``FIELD_GET`` node.
    name : str, optional
        Display name (port, variable or field name, compare operator).
    span : SourceSpan, optional
        Opaque source span, used only for diagnostics.
    """
    node_id: int
    kind: OpKind
    operands: Tuple[int, ...] = ()
    value: Optional[int] = None
    register: Optional[str] = None
    bounds: Optional[Tuple[int, int]] = None
    name: Optional[str] = None
    span: Optional[SourceSpan] = None

    @property
    def label(self) -> str:
        if self.kind is OpKind.CONST:
            return f"const {self.value}"
        if self.register is not None:
            return f"{self.kind.value} {self.register}"
        if self.name:
            return f"{self.kind.value} {self.name}"
        return self.kind.value


@dataclass(frozen=True)
class RegisterDecl:
    """A state register.

    ``width`` gives the register a modulus: values written outside the
    declared range wrap around.  A register without a width is unbounded.
    """
    name: str
    init: int = 0
    width: Optional[int] = None
    signed: bool = False

    def value_range(self) -> Optional[Tuple[int, int]]:
        """Inclusive representable range, or ``None`` when unbounded."""
        if self.width is None:
            return None
        if self.signed:
            half = 1 << (self.width - 1)
            return (-half, half - 1)
        return (0, (1 << self.width) - 1)


@dataclass(frozen=True)
class FeedbackComponent:
    """A strongly-connected component closed by exactly one register.

    ``nodes`` are in operand-topological order; the register reads in the
    component act as the seeds of the convergence loop.
    """
    register: str
    nodes: Tuple[int, ...]
    read_ids: Tuple[int, ...]
    write_id: int


# ---------------------------------------------------------------------------
# SCC utility
# ---------------------------------------------------------------------------

def tarjan_scc(
    vertices: Iterable[V],
    successors: Callable[[V], Iterable[V]],
) -> List[List[V]]:
    """Strongly-connected components by Tarjan's algorithm.

    Uses an explicit stack instead of recursion so deep operand chains do
    not hit the interpreter's recursion limit.  Components are returned in
    reverse topological order of *successors*: every component appears
    after all components reachable from it.
    """
    index: Dict[V, int] = {}
    lowlink: Dict[V, int] = {}
    on_stack: Set[V] = set()
    stack: List[V] = []
    result: List[List[V]] = []
    counter = 0

    for root in vertices:
        if root in index:
            continue
        index[root] = lowlink[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        work: List[Tuple[V, Iterator[V]]] = [(root, iter(successors(root)))]

        while work:
            v, it = work[-1]
            descended = False
            for w in it:
                if w not in index:
                    index[w] = lowlink[w] = counter
                    counter += 1
                    stack.append(w)
                    on_stack.add(w)
                    work.append((w, iter(successors(w))))
                    descended = True
                    break
                if w in on_stack:
                    lowlink[v] = min(lowlink[v], index[w])
            if descended:
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[v])
            if lowlink[v] == index[v]:
                scc: List[V] = []
                while True:
                    w = stack.pop()
                    on_stack.discard(w)
                    scc.append(w)
                    if w == v:
                        break
                result.append(scc)

    return result


def _cycle_through(
    start: int,
    members: FrozenSet[int],
    successors: Callable[[int], Iterable[int]],
) -> List[int]:
    """Shortest cycle from *start* back to itself inside *members*.

    Returned in dataflow order (operand before consumer), closed, e.g.
    ``[3, 5, 3]``.
    """
    parent: Dict[int, int] = {}
    queue: Deque[int] = deque([start])
    seen: Set[int] = {start}
    while queue:
        u = queue.popleft()
        for w in successors(u):
            if w not in members:
                continue
            if w == start:
                # walking parents from u retraces the successor chain
                # backwards, which is dataflow order
                path = [u]
                while path[-1] != start:
                    path.append(parent[path[-1]])
                return [start] + path
            if w not in seen:
                seen.add(w)
                parent[w] = u
                queue.append(w)
    return [start]


def _shortest_path(
    src: int,
    dst: int,
    members: FrozenSet[int],
    successors: Callable[[int], Iterable[int]],
) -> List[int]:
    """Shortest path ``[src, ..., dst]`` inside *members*; *dst* must be reachable."""
    parent: Dict[int, int] = {src: src}
    queue: Deque[int] = deque([src])
    while queue and dst not in parent:
        u = queue.popleft()
        for w in successors(u):
            if w in members and w not in parent:
                parent[w] = u
                queue.append(w)
    path = [dst]
    while path[-1] != src:
        path.append(parent[path[-1]])
    path.reverse()
    return path


# ---------------------------------------------------------------------------
# The graph
# ---------------------------------------------------------------------------

class DataflowGraph:
    """Arena of :class:`GraphNode` with explicit adjacency lists.

    Attributes
    ----------
    registers : OrderedDict[str, RegisterDecl]
        Declared state registers, keyed by name.
    """

    def __init__(self) -> None:
        self._nodes: "OrderedDict[int, GraphNode]" = OrderedDict()
        self._consumers: Dict[int, List[int]] = defaultdict(list)
        self._reads: Dict[str, List[int]] = defaultdict(list)
        self._writes: Dict[str, List[int]] = defaultdict(list)
        self.registers: "OrderedDict[str, RegisterDecl]" = OrderedDict()
        self._next_id = 0
        self._validated = False
        self._topo: List[int] = []
        self._sccs: List[List[int]] = []
        self._feedback: List[FeedbackComponent] = []

    # ----- construction -----------------------------------------------------

    def declare_register(
        self,
        name: str,
        init: int = 0,
        width: Optional[int] = None,
        signed: bool = False,
    ) -> RegisterDecl:
        if name in self.registers:
            raise MalformedGraphError(f"register '{name}' declared twice")
        decl = RegisterDecl(name=name, init=init, width=width, signed=signed)
        self.registers[name] = decl
        self._validated = False
        return decl

    def add_node(
        self,
        kind: OpKind,
        operands: Sequence[int] = (),
        *,
        value: Optional[int] = None,
        register: Optional[str] = None,
        bounds: Optional[Tuple[int, int]] = None,
        name: Optional[str] = None,
        span: Optional[SourceSpan] = None,
        node_id: Optional[int] = None,
    ) -> int:
        """Append a node and return its id.

        Operands may reference nodes added later (interchange documents are
        not required to be ordered); unknown ids are reported by
        :meth:`validate`.
        """
        nid = self._next_id if node_id is None else node_id
        if nid in self._nodes:
            raise MalformedGraphError(f"duplicate node id n{nid}", chain=[nid])
        node = GraphNode(
            node_id=nid,
            kind=kind,
            operands=tuple(operands),
            value=value,
            register=register,
            bounds=tuple(bounds) if bounds is not None else None,  # type: ignore[arg-type]
            name=name,
            span=span,
        )
        self._nodes[nid] = node
        for op in node.operands:
            self._consumers[op].append(nid)
        if register is not None and kind is OpKind.REG_READ:
            self._reads[register].append(nid)
        elif register is not None and kind is OpKind.REG_WRITE:
            self._writes[register].append(nid)
        self._next_id = max(self._next_id, nid + 1)
        self._validated = False
        return nid

    # ----- read-only traversal ---------------------------------------------

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[int]:
        return iter(self._nodes)

    @property
    def nodes(self) -> List[GraphNode]:
        return list(self._nodes.values())

    def node(self, node_id: int) -> GraphNode:
        return self._nodes[node_id]

    def kind(self, node_id: int) -> OpKind:
        return self._nodes[node_id].kind

    def operands(self, node_id: int) -> Tuple[int, ...]:
        return self._nodes[node_id].operands

    def consumers(self, node_id: int) -> Tuple[int, ...]:
        return tuple(self._consumers.get(node_id, ()))

    def register_reads(self, name: str) -> List[int]:
        return list(self._reads.get(name, ()))

    def register_write(self, name: str) -> Optional[int]:
        writers = self._writes.get(name)
        return writers[0] if writers else None

    def register_read_consumers(self, name: str) -> List[int]:
        """Consumers of every read of register *name*, in node order."""
        out: List[int] = []
        for rid in self.register_reads(name):
            out.extend(self._consumers.get(rid, ()))
        return out

    def terminals(self) -> List[int]:
        """Register writes and outputs: where maximal paths end."""
        return [n.node_id for n in self._nodes.values() if n.kind.is_terminal]

    def dependencies(self, node_id: int) -> List[int]:
        """Operands plus, for a register read, the register's write.

        These are the edges of the register-augmented dependency graph.
        """
        node = self._nodes[node_id]
        deps = [op for op in node.operands if op in self._nodes]
        if node.kind is OpKind.REG_READ and node.register is not None:
            wid = self.register_write(node.register)
            if wid is not None:
                deps.append(wid)
        return deps

    # ----- validation --------------------------------------------------------

    @property
    def is_validated(self) -> bool:
        return self._validated

    def validate(self) -> "DataflowGraph":
        """Check structural invariants; cached until the graph changes."""
        if self._validated:
            return self
        self._check_nodes()
        self._check_registers()
        self._topo = self._operand_topological_order()
        self._sccs = tarjan_scc(list(self._nodes), self.dependencies)
        self._feedback = self._check_feedback_components()
        self._validated = True
        return self

    def _check_nodes(self) -> None:
        for node in self._nodes.values():
            nid = node.node_id
            for op in node.operands:
                if op not in self._nodes:
                    raise MalformedGraphError(
                        f"n{nid} ({node.kind.value}) references unknown node n{op}",
                        chain=[nid],
                    )
            lo, hi = _ARITY[node.kind]
            count = len(node.operands)
            if count < lo or (hi is not None and count > hi):
                expected = str(lo) if hi == lo else f"at least {lo}"
                raise MalformedGraphError(
                    f"n{nid} ({node.kind.value}) has {count} operand(s), "
                    f"expected {expected}",
                    chain=[nid],
                )
            if node.kind is OpKind.CONST and node.value is None:
                raise MalformedGraphError(
                    f"constant n{nid} has no literal value", chain=[nid]
                )
            if node.kind.is_register:
                if node.register is None or node.register not in self.registers:
                    raise MalformedGraphError(
                        f"n{nid} ({node.kind.value}) names undeclared register "
                        f"{node.register!r}",
                        chain=[nid],
                    )
            if node.bounds is not None and node.bounds[0] > node.bounds[1]:
                raise MalformedGraphError(
                    f"n{nid} declares empty bounds {list(node.bounds)}",
                    chain=[nid],
                )

    def _check_registers(self) -> None:
        for decl in self.registers.values():
            writers = self._writes.get(decl.name, [])
            if len(writers) > 1:
                raise MalformedGraphError(
                    f"register '{decl.name}' has {len(writers)} writers",
                    chain=writers,
                )
            if decl.width is not None and decl.width < 1:
                raise MalformedGraphError(
                    f"register '{decl.name}' declares width {decl.width}"
                )
            rng = decl.value_range()
            if rng is not None and not rng[0] <= decl.init <= rng[1]:
                raise MalformedGraphError(
                    f"register '{decl.name}' initial value {decl.init} does not "
                    f"fit its declared width {decl.width}"
                )

    def _operand_topological_order(self) -> List[int]:
        """Kahn's algorithm over operand edges; operands come first."""
        pending = {nid: len(n.operands) for nid, n in self._nodes.items()}
        ready: Deque[int] = deque(nid for nid, c in pending.items() if c == 0)
        order: List[int] = []
        while ready:
            nid = ready.popleft()
            order.append(nid)
            for consumer in self._consumers.get(nid, ()):
                pending[consumer] -= 1
                if pending[consumer] == 0:
                    ready.append(consumer)
        if len(order) == len(self._nodes):
            return order

        # Some node never became ready: there is a combinational loop.
        stuck = frozenset(nid for nid, c in pending.items() if c > 0)
        for scc in tarjan_scc(sorted(stuck), self.operands):
            members = frozenset(scc)
            start = min(members)
            if len(scc) > 1 or start in self._nodes[start].operands:
                chain = _cycle_through(start, members, self.operands)
                kinds = " -> ".join(self._nodes[i].kind.value for i in chain)
                raise MalformedGraphError(
                    "combinational cycle does not pass through a register: "
                    + kinds,
                    chain=chain,
                )
        raise MalformedGraphError("operand graph is not acyclic", chain=sorted(stuck))

    def _check_feedback_components(self) -> List[FeedbackComponent]:
        position = {nid: i for i, nid in enumerate(self._topo)}
        components: List[FeedbackComponent] = []
        for scc in self._sccs:
            if len(scc) == 1:
                # a lone register read whose write is itself cannot happen;
                # operand self-loops were rejected by the topological sort
                continue
            members = frozenset(scc)
            closing: Dict[str, int] = {}
            for nid in members:
                node = self._nodes[nid]
                if (node.kind is OpKind.REG_WRITE and node.register is not None
                        and any(r in members for r in self.register_reads(node.register))):
                    closing[node.register] = nid
            names = sorted(closing)
            if len(names) > 1:
                raise MalformedGraphError(
                    f"registers {', '.join(names)} are tied into one feedback "
                    f"component; each feedback cycle must pass through exactly "
                    f"one register pair",
                    chain=self._walk_through_registers(names[0], names[1], members),
                )
            if not names:
                raise MalformedGraphError(
                    "feedback cycle is not closed by a register",
                    chain=_cycle_through(min(members), members, self.dependencies),
                )
            reg = names[0]
            components.append(FeedbackComponent(
                register=reg,
                nodes=tuple(sorted(members, key=position.__getitem__)),
                read_ids=tuple(r for r in self.register_reads(reg) if r in members),
                write_id=closing[reg],
            ))
        return components

    def _flow_successors(self, node_id: int) -> List[int]:
        """Consumers plus, for a register write, the register's reads."""
        succ = list(self._consumers.get(node_id, ()))
        node = self._nodes[node_id]
        if node.kind is OpKind.REG_WRITE and node.register is not None:
            succ.extend(self.register_reads(node.register))
        return succ

    def _walk_through_registers(
        self, first: str, second: str, members: FrozenSet[int]
    ) -> List[int]:
        """Closed walk entering both registers, in dataflow order.

        read(first) .. write(second) -> read(second) .. write(first) -> read(first)
        """
        read_a = next(r for r in self.register_reads(first) if r in members)
        read_b = next(r for r in self.register_reads(second) if r in members)
        write_a = cast(int, self.register_write(first))
        write_b = cast(int, self.register_write(second))
        return (
            _shortest_path(read_a, write_b, members, self._flow_successors)
            + _shortest_path(read_b, write_a, members, self._flow_successors)
            + [read_a]
        )

    # ----- validated views ---------------------------------------------------

    def topological_order(self) -> List[int]:
        """Node ids with every operand before its consumers."""
        self.validate()
        return list(self._topo)

    def dependency_components(self) -> List[List[int]]:
        """SCCs of the register-augmented graph, dependencies first."""
        self.validate()
        return [list(scc) for scc in self._sccs]

    def feedback_components(self) -> List[FeedbackComponent]:
        """One entry per register-feedback cycle."""
        self.validate()
        return list(self._feedback)

    # ----- serialisation ----------------------------------------------------

    def to_dot(self, title: Optional[str] = None) -> str:
        """Return a Graphviz DOT representation.

        Register links are drawn dashed from the write to each read.
        """
        lines = ["digraph Dataflow {"]
        lines.append("  rankdir=LR;")
        if title:
            lines.append(f'  label="{title}";')
        lines.append('  node [shape=box, fontname="Helvetica", fontsize=10];')

        kind_attrs = {
            OpKind.CONST: 'shape=plaintext',
            OpKind.INPUT: 'style=filled, fillcolor="#ccffcc", shape=invhouse',
            OpKind.OUTPUT: 'style=filled, fillcolor="#ccffcc", shape=house',
            OpKind.REG_READ: 'style=filled, fillcolor="#ddeeff"',
            OpKind.REG_WRITE: 'style=filled, fillcolor="#ddeeff"',
            OpKind.MUX: 'shape=trapezium',
        }
        for n in self._nodes.values():
            attrs = kind_attrs.get(n.kind, "")
            escaped = n.label.replace('"', '\\"')
            sep = ", " if attrs else ""
            lines.append(f'  n{n.node_id} [label="{escaped}"{sep}{attrs}];')

        for n in self._nodes.values():
            for pos, op in enumerate(n.operands):
                elabel = ' [label="sel"]' if n.kind is OpKind.MUX and pos == 0 else ""
                lines.append(f"  n{op} -> n{n.node_id}{elabel};")
        for name in self.registers:
            wid = self.register_write(name)
            if wid is None:
                continue
            for rid in self.register_reads(name):
                lines.append(f"  n{wid} -> n{rid} [style=dashed, color=blue];")
        lines.append("}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"DataflowGraph(nodes={len(self._nodes)}, "
            f"registers={len(self.registers)})"
        )


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

class GraphBuilder:
    """Fluent helpers for building a :class:`DataflowGraph`.

    Every method returns the new node id::

        b = GraphBuilder()
        b.register("count", init=0, width=8)
        nxt = b.add(b.reg_read("count"), b.const(1))
        b.reg_write("count", nxt)
        graph = b.graph
    """

    def __init__(self, graph: Optional[DataflowGraph] = None) -> None:
        self.graph = graph if graph is not None else DataflowGraph()

    def register(
        self, name: str, init: int = 0, width: Optional[int] = None, signed: bool = False
    ) -> RegisterDecl:
        return self.graph.declare_register(name, init=init, width=width, signed=signed)

    def const(self, value: int, span: Optional[SourceSpan] = None) -> int:
        return self.graph.add_node(OpKind.CONST, value=value, span=span)

    def input(
        self,
        name: str,
        lo: Optional[int] = None,
        hi: Optional[int] = None,
        span: Optional[SourceSpan] = None,
    ) -> int:
        bounds = (lo, hi) if lo is not None and hi is not None else None
        return self.graph.add_node(OpKind.INPUT, name=name, bounds=bounds, span=span)

    def _binary(self, kind: OpKind, a: int, b: int, span, name=None) -> int:
        return self.graph.add_node(kind, (a, b), span=span, name=name)

    def add(self, a: int, b: int, span: Optional[SourceSpan] = None) -> int:
        return self._binary(OpKind.ADD, a, b, span)

    def sub(self, a: int, b: int, span: Optional[SourceSpan] = None) -> int:
        return self._binary(OpKind.SUB, a, b, span)

    def mul(self, a: int, b: int, span: Optional[SourceSpan] = None) -> int:
        return self._binary(OpKind.MUL, a, b, span)

    def div(self, a: int, b: int, span: Optional[SourceSpan] = None) -> int:
        return self._binary(OpKind.DIV, a, b, span)

    def compare(
        self, a: int, b: int, op: str = "<", span: Optional[SourceSpan] = None
    ) -> int:
        return self._binary(OpKind.COMPARE, a, b, span, name=op)

    def mux(self, select: int, *branches: int, span: Optional[SourceSpan] = None) -> int:
        return self.graph.add_node(OpKind.MUX, (select,) + branches, span=span)

    def var_ref(self, target: int, name: Optional[str] = None) -> int:
        return self.graph.add_node(OpKind.VAR_REF, (target,), name=name)

    def binding(self, value: int, name: Optional[str] = None) -> int:
        return self.graph.add_node(OpKind.BINDING, (value,), name=name)

    def field_get(
        self,
        record: int,
        name: str,
        lo: Optional[int] = None,
        hi: Optional[int] = None,
    ) -> int:
        bounds = (lo, hi) if lo is not None and hi is not None else None
        return self.graph.add_node(OpKind.FIELD_GET, (record,), name=name, bounds=bounds)

    def reg_read(self, register: str, span: Optional[SourceSpan] = None) -> int:
        return self.graph.add_node(OpKind.REG_READ, register=register, span=span)

    def reg_write(
        self, register: str, value: int, span: Optional[SourceSpan] = None
    ) -> int:
        return self.graph.add_node(OpKind.REG_WRITE, (value,), register=register, span=span)

    def output(self, value: int, name: str = "out", span: Optional[SourceSpan] = None) -> int:
        return self.graph.add_node(OpKind.OUTPUT, (value,), name=name, span=span)
