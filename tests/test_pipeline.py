# tests/test_pipeline.py
"""
Tests for the Layer 1 run and the final gate.
"""

import pytest

from hdlcheck.config import AnalysisConfig
from hdlcheck.diagnostics import Severity
from hdlcheck.errors import DivergenceError
from hdlcheck.interchange import graph_from_dict
from hdlcheck.interval import Interval
from hdlcheck.pipeline import gate, run_layer1
from hdlcheck.policy import GateLayer, Verdict
from tests.conftest import counter_document, deep_document, make_counter


class _CountingOracle:

    def __init__(self, slack):
        self.slack = slack
        self.calls = 0

    def slack_ns(self):
        self.calls += 1
        return self.slack


class TestRunLayer1:

    def test_counter(self):
        report = run_layer1(graph_from_dict(counter_document()))
        assert report.profile.threshold == 25
        assert report.intervals.register_values["count"] == Interval(0, 255)
        assert report.diagnostics == []
        assert report.early_decision is None
        assert not report.blocked

    def test_deep_path_diagnosed(self):
        report = run_layer1(graph_from_dict(deep_document(13)))
        assert len(report.diagnostics) == 1
        assert report.diagnostics[0].weighted_depth == 26
        assert report.diagnostics[0].severity is Severity.INFO

    def test_elevation_blocks_early(self):
        config = AnalysisConfig(elevate=True)
        report = run_layer1(graph_from_dict(deep_document(13)), config)
        assert report.blocked
        assert report.early_decision.layer is GateLayer.STRUCTURAL
        assert report.diagnostics[0].severity is Severity.ERROR

    def test_divergence_is_fatal(self):
        b, *_ = make_counter(width=None)
        with pytest.raises(DivergenceError):
            run_layer1(b.graph, AnalysisConfig(max_iterations=8))


class TestGate:

    def test_oracle_skipped_when_layer1_blocks(self):
        report = run_layer1(graph_from_dict(deep_document(13)), AnalysisConfig(elevate=True))
        oracle = _CountingOracle(5.0)
        decision = gate(report, oracle)
        assert decision.blocked
        assert oracle.calls == 0

    def test_oracle_consulted_once(self):
        report = run_layer1(graph_from_dict(counter_document()), AnalysisConfig(policy="error"))
        oracle = _CountingOracle(-1.2)
        decision = gate(report, oracle)
        assert decision.verdict is Verdict.BLOCK
        assert decision.layer is GateLayer.ORACLE
        assert oracle.calls == 1

    def test_no_oracle(self):
        report = run_layer1(graph_from_dict(counter_document()))
        decision = gate(report)
        assert decision.verdict is Verdict.PROCEED
        assert decision.reduced_confidence

    def test_strict_margin(self):
        config = AnalysisConfig(policy="strict", margin_ns=0.5)
        report = run_layer1(graph_from_dict(counter_document()), config)
        assert gate(report, _CountingOracle(0.3)).blocked
        assert not gate(report, _CountingOracle(0.6)).blocked
