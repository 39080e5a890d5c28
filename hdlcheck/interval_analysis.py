"""
hdlcheck.interval_analysis
==========================

Bit-width inference by interval analysis over a :class:`DataflowGraph`.

Theory
------
The analysis is an abstract interpretation over the lattice of integer
intervals ordered by inclusion.  The acyclic part of the graph is a plain
topological evaluation.  A register whose write transitively depends on
one of its reads closes a feedback cycle; the cycle is solved by an
explicit fixpoint loop:

1.  Seed every read of the register with ``[init, init]``.
2.  Evaluate the cycle's nodes in operand order, reads fixed to the seed.
3.  If the write's interval is contained in the seed, stop (fixpoint).
    Otherwise replace the seed with the hull of both and go to 2.

Seeds only grow, so the loop is monotone and cannot oscillate.  After
``widening_delay`` iterations a register with a declared width widens
straight to its representable range (widening with thresholds); without
a declared width the seed keeps creeping and the iteration cap turns the
unbounded value into a :class:`~hdlcheck.errors.DivergenceError` instead
of a silently wrong finite width.

Literal constants are evaluated as point intervals on every pass; they are
never seeds and so never widen.

Independent feedback cycles are disjoint strongly-connected components of
the register-augmented graph; they are solved one after another in
dependency order, each with its own iteration count.

Public API
----------
    SeedPolicy          - iteration cap, widening delay, default input range
    IntervalResult      - Mapping[node id -> Interval] plus widths and traces
    IntervalAnalysis    - the engine
    infer               - convenience function
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Mapping, Optional, cast

from .errors import ConfigError, DivergenceError
from .graph import DataflowGraph, FeedbackComponent, GraphNode, OpKind
from .interval import BitWidth, Interval

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeedPolicy:
    """Tuning knobs for :func:`infer`.

    Parameters
    ----------
    max_iterations : int
        Iteration cap of each feedback cycle's convergence loop.
    widening_delay : int
        Iterations of plain hull growth before threshold widening kicks in.
    default_input_bits : int
        Width assumed for inputs without declared bounds.
    default_input_signed : bool
        Signedness assumed for inputs without declared bounds.
    """
    max_iterations: int = 256
    widening_delay: int = 3
    default_input_bits: int = 32
    default_input_signed: bool = False

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ConfigError("max_iterations must be at least 1")
        if self.widening_delay < 0:
            raise ConfigError("widening_delay must be non-negative")
        if self.default_input_bits < 1:
            raise ConfigError("default_input_bits must be at least 1")

    def input_interval(self) -> Interval:
        return Interval.of_width(self.default_input_bits, self.default_input_signed)


class IntervalResult(Mapping[int, Interval]):
    """Inferred interval per node id.

    Attributes
    ----------
    passes : int
        Evaluation passes of the slowest feedback cycle (1 when acyclic).
    iterations : dict
        Register name → iterations its feedback cycle took to stabilise.
    history : dict
        Register name → successive seed intervals (non-decreasing).
    register_values : dict
        Register name → interval of every value the register can hold.
    """

    def __init__(
        self,
        intervals: Dict[int, Interval],
        iterations: Dict[str, int],
        history: Dict[str, List[Interval]],
        register_values: Dict[str, Interval],
    ) -> None:
        self._intervals = dict(intervals)
        self.iterations = dict(iterations)
        self.history = {k: list(v) for k, v in history.items()}
        self.register_values = dict(register_values)
        self.passes = max(self.iterations.values(), default=1)

    def __getitem__(self, node_id: int) -> Interval:
        return self._intervals[node_id]

    def __iter__(self) -> Iterator[int]:
        return iter(self._intervals)

    def __len__(self) -> int:
        return len(self._intervals)

    def width(self, node_id: int) -> BitWidth:
        return self._intervals[node_id].width()

    @property
    def widths(self) -> Dict[int, BitWidth]:
        return {nid: iv.width() for nid, iv in self._intervals.items()}

    def register_width(self, name: str) -> BitWidth:
        return self.register_values[name].width()

    def __repr__(self) -> str:
        return f"IntervalResult(nodes={len(self)}, passes={self.passes})"


class IntervalAnalysis:
    """Interval inference engine.

    The graph is validated (once) before evaluation; a malformed graph
    raises :class:`~hdlcheck.errors.MalformedGraphError` before any
    interval is computed.
    """

    def __init__(self, graph: DataflowGraph, policy: Optional[SeedPolicy] = None) -> None:
        self.graph = graph
        self.policy = policy or SeedPolicy()

    def run(self) -> IntervalResult:
        graph = self.graph.validate()
        env: Dict[int, Interval] = {}
        values: Dict[str, Interval] = {}
        iterations: Dict[str, int] = {}
        history: Dict[str, List[Interval]] = {}

        component_of: Dict[int, FeedbackComponent] = {}
        for comp in graph.feedback_components():
            for nid in comp.nodes:
                component_of[nid] = comp

        for scc in graph.dependency_components():
            if len(scc) == 1:
                node = graph.node(scc[0])
                env[node.node_id] = self._transfer(node, env, values)
                continue
            comp = component_of[scc[0]]
            trace = self._solve_feedback(comp, env, values)
            iterations[comp.register] = len(trace)
            history[comp.register] = trace

        for name in graph.registers:
            if name not in values:
                values[name] = self._held_values(name, env)

        ordered = {nid: env[nid] for nid in graph}
        result = IntervalResult(ordered, iterations, history, values)
        logger.info(
            "interval analysis: %d nodes, %d feedback cycle(s), %d pass(es)",
            len(result), len(iterations), result.passes,
        )
        return result

    # ----- feedback cycles ---------------------------------------------------

    def _solve_feedback(
        self,
        comp: FeedbackComponent,
        env: Dict[int, Interval],
        values: Dict[str, Interval],
    ) -> List[Interval]:
        """Iterate one feedback cycle to its fixpoint; return the seed trace."""
        graph = self.graph
        decl = graph.registers[comp.register]
        rng = decl.value_range()
        thresholds = sorted(rng) if rng is not None else []
        reads = set(comp.read_ids)

        seed = Interval.point(decl.init)
        trace = [seed]
        for iteration in range(1, self.policy.max_iterations + 1):
            for nid in comp.nodes:
                if nid in reads:
                    env[nid] = seed
                else:
                    env[nid] = self._transfer(graph.node(nid), env, values)

            written = env[comp.write_id]
            if written.leq(seed):
                values[comp.register] = seed
                logger.debug(
                    "register %s stable at %s after %d iteration(s)",
                    comp.register, seed, iteration,
                )
                return trace

            if iteration > self.policy.widening_delay and thresholds:
                grown = seed.widen_with_thresholds(written, thresholds)
            else:
                grown = seed.join(written)
            logger.debug(
                "register %s iteration %d: %s -> %s", comp.register, iteration, seed, grown
            )
            seed = grown
            trace.append(seed)

        raise DivergenceError(
            register=comp.register,
            cycle=comp.nodes,
            previous=trace[-2],
            current=trace[-1],
            iterations=self.policy.max_iterations,
        )

    # ----- transfer functions -----------------------------------------------

    def _transfer(
        self,
        node: GraphNode,
        env: Dict[int, Interval],
        values: Dict[str, Interval],
    ) -> Interval:
        kind = node.kind
        ops = [env[o] for o in node.operands]

        if kind is OpKind.CONST:
            return Interval.point(cast(int, node.value))
        if kind is OpKind.INPUT:
            if node.bounds is not None:
                return Interval(*node.bounds)
            return self.policy.input_interval()
        if kind is OpKind.ADD:
            return ops[0].add(ops[1])
        if kind is OpKind.SUB:
            return ops[0].sub(ops[1])
        if kind is OpKind.MUL:
            return ops[0].mul(ops[1])
        if kind is OpKind.DIV:
            return ops[0].div(ops[1])
        if kind is OpKind.COMPARE:
            return ops[0].compare(ops[1])
        if kind is OpKind.MUX:
            return Interval.hull(ops[1:])
        if kind in (OpKind.VAR_REF, OpKind.BINDING, OpKind.OUTPUT):
            return ops[0]
        if kind is OpKind.FIELD_GET:
            if node.bounds is not None:
                return Interval(*node.bounds)
            return ops[0]
        if kind is OpKind.REG_WRITE:
            rng = self.graph.registers[cast(str, node.register)].value_range()
            return ops[0].wrap(*rng) if rng is not None else ops[0]
        if kind is OpKind.REG_READ:
            # a read outside any feedback cycle: its register was either
            # solved by a cycle already or is fed forward
            name = cast(str, node.register)
            if name not in values:
                values[name] = self._held_values(name, env)
            return values[name]
        raise AssertionError(f"unhandled operation kind {kind}")

    def _held_values(self, name: str, env: Dict[int, Interval]) -> Interval:
        """Initial value joined with whatever the register's write produces.

        The write, if any, was evaluated earlier in dependency order.
        """
        held = Interval.point(self.graph.registers[name].init)
        write_id = self.graph.register_write(name)
        if write_id is not None:
            held = held.join(env[write_id])
        return held


def infer(graph: DataflowGraph, seed_policy: Optional[SeedPolicy] = None) -> IntervalResult:
    """Infer an interval (and hence a bit width) for every node.

    Raises
    ------
    MalformedGraphError
        If the graph fails validation.
    DivergenceError
        If a feedback cycle does not stabilise within the iteration cap.
    """
    return IntervalAnalysis(graph, seed_policy).run()
