"""
hdlcheck.pipeline
=================

Wires the analysis layers into the build flow::

    graph ──► validate ──► interval inference ──► depth analysis
                                                       │
                                        elevated violation? ── yes ──► BLOCK
                                                       │ no
                                                 synthesis oracle
                                                       │
                                                  Policy Gate ──► PROCEED / BLOCK

``run_layer1`` performs everything that needs no external tool and returns
a :class:`Layer1Report`.  ``gate`` consults the oracle only when Layer 1
did not already block.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .calibration import PlatformProfile
from .config import AnalysisConfig
from .depth_analysis import DepthAnalyzer, DepthResult
from .diagnostics import Diagnostic
from .graph import DataflowGraph
from .interval_analysis import IntervalResult, infer
from .oracle import SynthesisOracle
from .policy import GateDecision, Policy, decide, decide_layer1

logger = logging.getLogger(__name__)


@dataclass
class Layer1Report:
    """Structural analysis outcome, before any oracle run."""
    graph: DataflowGraph
    intervals: IntervalResult
    depth: DepthResult
    profile: PlatformProfile
    policy: Policy
    elevate: bool = False
    early_decision: Optional[GateDecision] = None
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return self.early_decision is not None and self.early_decision.blocked


def run_layer1(graph: DataflowGraph, config: Optional[AnalysisConfig] = None) -> Layer1Report:
    """Validate *graph*, infer widths, measure depth and apply the fail-fast gate.

    Raises :class:`MalformedGraphError` or :class:`DivergenceError`; both are
    fatal for the build.
    """
    config = config or AnalysisConfig()
    profile = config.profile()
    policy = config.gate_policy()
    logger.info("platform: %s; policy: %s", profile, policy)

    graph.validate()
    intervals = infer(graph, config.seed_policy())
    logger.info(
        "interval inference: %d node(s), %d register(s), %d pass(es)",
        len(intervals), len(intervals.register_values), intervals.passes,
    )

    depth = DepthAnalyzer(
        graph,
        weights=config.weight_table(),
        threshold=profile.threshold,
        severity=config.severity(),
    ).run()

    early = decide_layer1(depth.diagnostics, config.elevate)
    if early is not None:
        logger.warning("layer 1 blocks the build: %s", early.reason)

    return Layer1Report(
        graph=graph,
        intervals=intervals,
        depth=depth,
        profile=profile,
        policy=policy,
        elevate=config.elevate,
        early_decision=early,
        diagnostics=list(depth.diagnostics),
    )


def gate(report: Layer1Report, oracle: Optional[SynthesisOracle] = None) -> GateDecision:
    """Final Policy Gate decision for *report*.

    The oracle is never invoked when Layer 1 already blocked.
    """
    if report.early_decision is not None:
        return report.early_decision
    slack = oracle.slack_ns() if oracle is not None else None
    if slack is None:
        logger.warning("synthesis oracle unavailable; deciding on layer 1 alone")
    decision = decide(report.diagnostics, slack, report.policy, report.elevate)
    logger.info("gate: %s", decision)
    return decision
