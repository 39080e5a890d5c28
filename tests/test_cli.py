# tests/test_cli.py
"""
Tests for the hdlcheck command-line interface.
"""

import json

from hdlcheck.main import EXIT_BLOCKED, EXIT_ERROR, EXIT_INFRA, EXIT_OK, main
from tests.conftest import write_json

# r := r + 1 with no declared width: no modulus, so intervals never settle
FREE_RUNNING = {
    "registers": [{"name": "r"}],
    "nodes": [
        {"id": 0, "kind": "reg_read", "register": "r"},
        {"id": 1, "kind": "const", "value": 1},
        {"id": 2, "kind": "add", "operands": [0, 1]},
        {"id": 3, "kind": "reg_write", "register": "r", "operands": [2]},
    ],
}


class TestAnalyze:

    def test_clean_graph_proceeds(self, counter_file, capsys):
        assert main(["analyze", str(counter_file)]) == EXIT_OK
        out = capsys.readouterr().out
        assert "verdict: proceed" in out
        assert "reduced confidence" in out

    def test_deep_graph_reports_diagnostic(self, deep_file, capsys):
        assert main(["analyze", str(deep_file)]) == EXIT_OK
        out = capsys.readouterr().out
        assert "depthThresholdExceeded" in out
        assert "deep.hdl:" in out

    def test_warnaserror_blocks(self, deep_file, capsys):
        assert main(["analyze", str(deep_file), "--warnaserror"]) == EXIT_BLOCKED
        assert "verdict: block" in capsys.readouterr().out

    def test_slack_under_error_policy_blocks(self, counter_file, capsys):
        code = main(["analyze", str(counter_file), "--policy", "error", "--slack", "-1.2"])
        assert code == EXIT_BLOCKED

    def test_strict_needs_margin(self, counter_file, capsys):
        assert main(["analyze", str(counter_file), "--policy", "strict"]) == EXIT_INFRA

    def test_timing_report(self, counter_file, tmp_path, capsys):
        rpt = tmp_path / "timing.rpt"
        rpt.write_text("Slack (MET) : 1.500ns\n", encoding="utf-8")
        code = main([
            "analyze", str(counter_file), "--policy", "strict", "--margin", "0.5",
            "--timing-report", str(rpt), "-f", "json",
        ])
        assert code == EXIT_OK
        doc = json.loads(capsys.readouterr().out)
        assert doc["verdict"] == "proceed"
        assert doc["oracleAvailable"] is True
        assert doc["slackNs"] == 1.5
        assert doc["threshold"] == 25

    def test_config_file(self, deep_file, tmp_path, capsys):
        cfg = write_json(tmp_path / "board.json", {"clock_mhz": 10, "ns_per_weight_unit": 1.6})
        assert main(["analyze", str(deep_file), "-c", str(cfg), "-f", "json"]) == EXIT_OK
        doc = json.loads(capsys.readouterr().out)
        assert doc["threshold"] == 62
        assert doc["diagnostics"] == []

    def test_clock_flag_overrides_config(self, deep_file, tmp_path, capsys):
        cfg = write_json(tmp_path / "board.json", {"clock_mhz": 10})
        main(["analyze", str(deep_file), "-c", str(cfg), "--clock-mhz", "25", "-f", "json"])
        doc = json.loads(capsys.readouterr().out)
        assert doc["threshold"] == 25


class TestErrors:

    def test_missing_graph(self, tmp_path):
        assert main(["analyze", str(tmp_path / "missing.json")]) == EXIT_INFRA

    def test_bad_interchange(self, tmp_path):
        path = write_json(tmp_path / "bad.json", {"nodes": [{"id": 0, "kind": "fma"}]})
        assert main(["widths", str(path)]) == EXIT_INFRA

    def test_malformed_graph(self, tmp_path):
        path = write_json(tmp_path / "cyc.json", {"nodes": [
            {"id": 0, "kind": "binding", "operands": [1]},
            {"id": 1, "kind": "binding", "operands": [0]},
        ]})
        assert main(["dot", str(path)]) == EXIT_ERROR

    def test_divergence(self, tmp_path):
        path = write_json(tmp_path / "free.json", FREE_RUNNING)
        assert main(["widths", str(path), "--max-iterations", "10"]) == EXIT_ERROR

    def test_mistyped_config_value(self, counter_file, tmp_path, capsys):
        cfg = write_json(tmp_path / "board.json", {"clock_mhz": "25"})
        assert main(["analyze", str(counter_file), "-c", str(cfg)]) == EXIT_INFRA
        err = capsys.readouterr().err
        assert "'clock_mhz' must be int or float" in err
        assert "Unhandled exception" not in err

    def test_no_command(self, capsys):
        assert main([]) == EXIT_INFRA


class TestReports:

    def test_widths_json(self, counter_file, capsys):
        assert main(["widths", str(counter_file), "-f", "json"]) == EXIT_OK
        doc = json.loads(capsys.readouterr().out)
        assert doc["registers"]["count"] == {"interval": [0, 255], "width": "u8"}
        assert doc["nodes"]["1"]["width"] == "u1"

    def test_widths_text(self, counter_file, capsys):
        main(["widths", str(counter_file)])
        out = capsys.readouterr().out
        assert "reg count" in out
        assert "u8" in out

    def test_depth(self, deep_file, capsys):
        assert main(["depth", str(deep_file), "-f", "summary"]) == EXIT_OK
        out = capsys.readouterr().out
        assert out.startswith("!")
        assert "1 over threshold 25" in out

    def test_depth_without_width_inference(self, tmp_path, capsys):
        path = write_json(tmp_path / "free.json", FREE_RUNNING)
        assert main(["depth", str(path), "--max-iterations", "10"]) == EXIT_OK
        out = capsys.readouterr().out
        assert "feedback-to-state" in out
        assert "reg_read -> add -> reg_write" in out

    def test_dot_to_file(self, counter_file, tmp_path):
        dest = tmp_path / "out" / "counter.dot"
        assert main(["dot", str(counter_file), "-o", str(dest)]) == EXIT_OK
        text = dest.read_text(encoding="utf-8")
        assert text.startswith("digraph Dataflow {")
        assert 'label="counter.graph";' in text
