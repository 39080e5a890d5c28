# tests/test_config.py
"""
Tests for analysis configuration loading and factories.
"""

import json

import pytest

from hdlcheck.config import AnalysisConfig, load_config
from hdlcheck.diagnostics import Severity
from hdlcheck.errors import ConfigError
from hdlcheck.graph import OpKind
from hdlcheck.policy import Policy


class TestAnalysisConfig:

    def test_defaults_are_valid(self):
        config = AnalysisConfig()
        assert config.validate() == []
        assert config.profile().threshold == 25
        assert config.gate_policy() == Policy.warn()
        assert config.seed_policy().max_iterations == 256
        assert config.severity() is Severity.INFO

    def test_validate_reports_problems(self):
        config = AnalysisConfig(
            clock_mhz=0, widening_delay=-1, weights={"bogus": 1}, margin_ns=0.5
        )
        warnings = config.validate()
        assert "clock_mhz must be positive" in warnings
        assert "widening_delay must be non-negative" in warnings
        assert "unknown operation kind in weights: 'bogus'" in warnings
        assert any("margin_ns is ignored" in w for w in warnings)

    def test_strict_policy(self):
        config = AnalysisConfig(policy="strict", margin_ns=0.5)
        assert config.gate_policy() == Policy.strict(0.5)

    def test_weight_overrides(self):
        table = AnalysisConfig(weights={"mul": 3}).weight_table()
        assert table[OpKind.MUL] == 3
        assert table[OpKind.ADD] == 1

    def test_unknown_weight_kind_fails_in_factory(self):
        with pytest.raises(ConfigError):
            AnalysisConfig(weights={"fma": 2}).weight_table()

    def test_elevation_forces_error_severity(self):
        assert AnalysisConfig(elevate=True).severity() is Severity.ERROR

    def test_merged_skips_none(self):
        base = AnalysisConfig(clock_mhz=50)
        merged = base.merged(clock_mhz=None, policy="error")
        assert merged.clock_mhz == 50
        assert merged.policy == "error"
        assert base.policy == "warn"


class TestLoadConfig:

    def test_load(self, tmp_path):
        path = tmp_path / "board.json"
        path.write_text(json.dumps({
            "clock_mhz": 100,
            "ns_per_weight_unit": 0.5,
            "policy": "error",
            "weights": {"div": 4},
        }), encoding="utf-8")
        config = load_config(path)
        assert config.profile().threshold == 20
        assert config.gate_policy() == Policy.error()
        assert config.weight_table()[OpKind.DIV] == 4

    def test_unknown_key(self, tmp_path):
        path = tmp_path / "board.json"
        path.write_text('{"clock": 25}', encoding="utf-8")
        with pytest.raises(ConfigError, match="unknown configuration key"):
            load_config(path)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "board.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="invalid JSON"):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="cannot read"):
            load_config(tmp_path / "absent.json")

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "board.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_config(path)


class TestFromDict:

    def test_string_clock_rejected(self):
        with pytest.raises(ConfigError, match="'clock_mhz' must be int or float, got str"):
            AnalysisConfig.from_dict({"clock_mhz": "25"})

    def test_string_flag_rejected(self):
        with pytest.raises(ConfigError, match="'elevate' must be bool"):
            AnalysisConfig.from_dict({"elevate": "false"})

    def test_bool_is_not_a_number(self):
        with pytest.raises(ConfigError, match="'max_iterations' must be int, got bool"):
            AnalysisConfig.from_dict({"max_iterations": True})

    def test_float_is_not_an_iteration_count(self):
        with pytest.raises(ConfigError, match="'widening_delay' must be int"):
            AnalysisConfig.from_dict({"widening_delay": 2.5})

    def test_weight_values_must_be_integers(self):
        with pytest.raises(ConfigError, match="'weights.mul' must be int"):
            AnalysisConfig.from_dict({"weights": {"mul": "3"}})

    def test_null_margin_allowed(self):
        config = AnalysisConfig.from_dict({"margin_ns": None, "clock_mhz": 100})
        assert config.margin_ns is None
        assert config.clock_mhz == 100

    def test_well_typed_document(self):
        config = AnalysisConfig.from_dict({
            "ns_per_weight_unit": 2,
            "policy": "strict",
            "margin_ns": 0.25,
            "elevate": False,
            "depth_severity": "warning",
            "default_input_signed": True,
            "weights": {"mux": 2},
        })
        assert config.gate_policy() == Policy.strict(0.25)
        assert config.severity() is Severity.WARNING
        assert config.weight_table()[OpKind.MUX] == 2
