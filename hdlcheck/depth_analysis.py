"""
hdlcheck.depth_analysis
=======================

Structural combinational-depth analysis: a single bottom-up fold
(catamorphism) over the operand graph.

Every operation kind carries a non-negative integer weight.  The weighted
depth of a node is the deepest weighted depth among its operands plus its
own weight::

    depth(n) = max(depth(c) for c in operands(n)) + weight(kind(n))

A leaf's depth is its own weight.  Registers are hard boundaries: a
register read has no operands, so depth restarts there, and a register
write's depth is never carried into the next cycle.  No fixpoint is
needed; each node is visited exactly once after all of its operands.

Every maximal path ends at a register write (``FEEDBACK_TO_STATE``) or an
output (``FEEDFORWARD``).  A path deeper than the calibrated threshold
yields a ``depthThresholdExceeded`` diagnostic with the full operation
chain, so the author can see which chain of operations to split.

The pass is purely structural and deterministic; it knows nothing about
physical delay.

Public API
----------
    WeightTable     - weight per operation kind
    DepthRecord     - per-node depth and realizing chain
    PathReport      - one classified maximal path
    DepthResult     - everything the analyzer computed
    DepthAnalyzer   - the engine
    analyze         - convenience function returning (records, diagnostics)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Mapping, Optional, Set, Tuple

from .diagnostics import (
    DEPTH_THRESHOLD_EXCEEDED,
    Diagnostic,
    PathClassification,
    Severity,
    SourceSpan,
)
from .errors import ConfigError
from .graph import DataflowGraph, OpKind

logger = logging.getLogger(__name__)


# ===========================================================================
# WEIGHTS
# ===========================================================================

_DEFAULT_WEIGHTS: Dict[OpKind, int] = {
    OpKind.CONST: 0,
    OpKind.INPUT: 0,
    OpKind.ADD: 1,
    OpKind.SUB: 1,
    OpKind.MUL: 2,
    OpKind.DIV: 2,
    OpKind.COMPARE: 1,
    OpKind.MUX: 1,
    OpKind.VAR_REF: 0,
    OpKind.BINDING: 0,
    OpKind.FIELD_GET: 0,
    OpKind.REG_READ: 0,
    OpKind.REG_WRITE: 0,
    OpKind.OUTPUT: 0,
}


@dataclass(frozen=True)
class WeightTable:
    """Structural weight per operation kind."""
    weights: Mapping[OpKind, int] = field(default_factory=lambda: dict(_DEFAULT_WEIGHTS))

    def __post_init__(self) -> None:
        missing = [k.value for k in OpKind if k not in self.weights]
        if missing:
            raise ConfigError(f"weight table has no entry for: {', '.join(missing)}")
        negative = [k.value for k, w in self.weights.items() if w < 0]
        if negative:
            raise ConfigError(f"negative weight for: {', '.join(negative)}")

    @classmethod
    def default(cls) -> "WeightTable":
        return cls()

    def with_overrides(self, overrides: Mapping[OpKind, int]) -> "WeightTable":
        merged = dict(self.weights)
        merged.update(overrides)
        return WeightTable(merged)

    def __getitem__(self, kind: OpKind) -> int:
        return self.weights[kind]


# ===========================================================================
# RESULTS
# ===========================================================================

@dataclass(frozen=True)
class DepthRecord:
    """Weighted depth of a node and the id chain realizing it."""
    node_id: int
    weighted_depth: int
    chain: Tuple[int, ...]


@dataclass(frozen=True)
class PathReport:
    """A maximal path ending at a register write or an output."""
    terminal: int
    classification: PathClassification
    weighted_depth: int
    chain: Tuple[int, ...]
    kinds: Tuple[str, ...]

    def exceeds(self, threshold: int) -> bool:
        return self.weighted_depth > threshold


@dataclass
class DepthResult:
    """Container for depth analysis results.

    Attributes
    ----------
    records : dict
        Node id → :class:`DepthRecord`.
    paths : list
        One :class:`PathReport` per terminal, in node order.
    diagnostics : list
        Paths deeper than ``threshold``.
    classifications : dict
        Node id → classifications of the terminals the node reaches.  A
        node feeding both a register write and an output carries both.
    threshold : int
    """
    records: Dict[int, DepthRecord] = field(default_factory=dict)
    paths: List[PathReport] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    classifications: Dict[int, FrozenSet[PathClassification]] = field(default_factory=dict)
    threshold: int = 0

    def depth_of(self, node_id: int) -> int:
        return self.records[node_id].weighted_depth

    @property
    def worst_path(self) -> Optional[PathReport]:
        if not self.paths:
            return None
        return max(self.paths, key=lambda p: p.weighted_depth)


# ===========================================================================
# ANALYZER
# ===========================================================================

class DepthAnalyzer:
    """Bottom-up weighted depth fold with path classification.

    Parameters
    ----------
    graph : DataflowGraph
    weights : WeightTable, optional
        Defaults to :meth:`WeightTable.default`.
    threshold : int
        Depth above which a path is diagnosed.
    severity : Severity
        Severity of threshold diagnostics (INFO unless configured).
    """

    def __init__(
        self,
        graph: DataflowGraph,
        weights: Optional[WeightTable] = None,
        threshold: int = 0,
        severity: Severity = Severity.INFO,
    ) -> None:
        if threshold < 0:
            raise ConfigError(f"depth threshold must be non-negative, got {threshold}")
        self.graph = graph
        self.weights = weights or WeightTable.default()
        self.threshold = threshold
        self.severity = severity

    def run(self) -> DepthResult:
        graph = self.graph.validate()
        order = graph.topological_order()
        result = DepthResult(threshold=self.threshold)

        for nid in order:
            node = graph.node(nid)
            best: Optional[DepthRecord] = None
            for op in node.operands:
                rec = result.records[op]
                # strict '>' keeps the earliest operand on ties
                if best is None or rec.weighted_depth > best.weighted_depth:
                    best = rec
            base = best.weighted_depth if best is not None else 0
            chain = (best.chain if best is not None else ()) + (nid,)
            result.records[nid] = DepthRecord(
                node_id=nid,
                weighted_depth=base + self.weights[node.kind],
                chain=chain,
            )

        result.classifications = self._classify_nodes(order)

        for nid in graph.terminals():
            rec = result.records[nid]
            report = PathReport(
                terminal=nid,
                classification=self._terminal_class(nid),
                weighted_depth=rec.weighted_depth,
                chain=rec.chain,
                kinds=tuple(graph.kind(i).value for i in rec.chain),
            )
            result.paths.append(report)
            if report.exceeds(self.threshold):
                result.diagnostics.append(self._diagnose(report))

        logger.info(
            "depth analysis: %d path(s), %d over threshold %d",
            len(result.paths), len(result.diagnostics), self.threshold,
        )
        return result

    def _terminal_class(self, node_id: int) -> PathClassification:
        if self.graph.kind(node_id) is OpKind.REG_WRITE:
            return PathClassification.FEEDBACK_TO_STATE
        return PathClassification.FEEDFORWARD

    def _classify_nodes(self, order: List[int]) -> Dict[int, FrozenSet[PathClassification]]:
        """Propagate terminal classifications backwards along operand edges."""
        classes: Dict[int, Set[PathClassification]] = {nid: set() for nid in order}
        for nid in reversed(order):
            if self.graph.kind(nid).is_terminal:
                classes[nid].add(self._terminal_class(nid))
            for consumer in self.graph.consumers(nid):
                classes[nid] |= classes[consumer]
        return {nid: frozenset(c) for nid, c in classes.items()}

    def _flagged_span(self, chain: Tuple[int, ...]) -> Optional[SourceSpan]:
        """Span of the deepest node on the chain that has one."""
        for nid in reversed(chain):
            span = self.graph.node(nid).span
            if span is not None:
                return span
        return None

    def _diagnose(self, report: PathReport) -> Diagnostic:
        where = "register write" if report.classification is PathClassification.FEEDBACK_TO_STATE else "output"
        return Diagnostic(
            severity=self.severity,
            error_id=DEPTH_THRESHOLD_EXCEEDED,
            message=(
                f"combinational depth {report.weighted_depth} into {where} "
                f"n{report.terminal} exceeds threshold {self.threshold}"
            ),
            kind_chain=report.kinds,
            node_chain=report.chain,
            span=self._flagged_span(report.chain),
            weighted_depth=report.weighted_depth,
            threshold=self.threshold,
            classification=report.classification,
        )


def analyze(
    graph: DataflowGraph,
    weight_table: Optional[WeightTable] = None,
    threshold: int = 0,
) -> Tuple[Dict[int, DepthRecord], List[Diagnostic]]:
    """Weighted depth per node and the diagnostics for over-threshold paths."""
    result = DepthAnalyzer(graph, weight_table, threshold).run()
    return result.records, result.diagnostics
