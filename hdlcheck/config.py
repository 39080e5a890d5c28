"""
hdlcheck.config
===============

Analysis configuration: the project/board settings one build runs under.

A configuration file is a flat JSON object; every key is optional::

    {
      "clock_mhz": 25,
      "ns_per_weight_unit": 1.6,
      "policy": "strict",
      "margin_ns": 0.5,
      "elevate": false,
      "depth_severity": "warning",
      "max_iterations": 256,
      "widening_delay": 3,
      "default_input_bits": 32,
      "default_input_signed": false,
      "weights": {"mul": 3, "div": 4}
    }

Command-line flags override file values through :meth:`AnalysisConfig.merged`.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .calibration import PlatformProfile
from .depth_analysis import WeightTable
from .diagnostics import Severity
from .errors import ConfigError
from .graph import OpKind
from .interval_analysis import SeedPolicy
from .policy import Policy

logger = logging.getLogger(__name__)


# JSON types accepted per key; bool is never accepted as a number
_KEY_TYPES: Dict[str, Tuple[type, ...]] = {
    "clock_mhz": (int, float),
    "ns_per_weight_unit": (int, float),
    "policy": (str,),
    "margin_ns": (int, float, type(None)),
    "elevate": (bool,),
    "depth_severity": (str,),
    "max_iterations": (int,),
    "widening_delay": (int,),
    "default_input_bits": (int,),
    "default_input_signed": (bool,),
}


def _check_type(key: str, value: Any, expected: Tuple[type, ...]) -> None:
    if (isinstance(value, bool) and bool not in expected) or not isinstance(value, expected):
        names = " or ".join("null" if t is type(None) else t.__name__ for t in expected)
        raise ConfigError(
            f"'{key}' must be {names}, got {type(value).__name__} {value!r}"
        )


@dataclass
class AnalysisConfig:
    """Tuning knobs and platform constants for one analysis run."""
    clock_mhz: float = 25.0
    ns_per_weight_unit: float = 1.6
    policy: str = "warn"
    margin_ns: Optional[float] = None
    elevate: bool = False
    depth_severity: str = "info"
    max_iterations: int = 256
    widening_delay: int = 3
    default_input_bits: int = 32
    default_input_signed: bool = False
    weights: Dict[str, int] = field(default_factory=dict)

    def validate(self) -> List[str]:
        """Return a list of validation warnings (empty if valid)."""
        warnings: List[str] = []
        if self.clock_mhz <= 0:
            warnings.append("clock_mhz must be positive")
        if self.ns_per_weight_unit <= 0:
            warnings.append("ns_per_weight_unit must be positive")
        if self.max_iterations < 1:
            warnings.append("max_iterations must be at least 1")
        if self.widening_delay < 0:
            warnings.append("widening_delay must be non-negative")
        if self.widening_delay >= self.max_iterations:
            warnings.append("widening_delay >= max_iterations: widening never applies")
        if self.margin_ns is not None and self.policy != "strict":
            warnings.append(f"margin_ns is ignored under policy '{self.policy}'")
        known = {k.value for k in OpKind}
        for name, weight in self.weights.items():
            if name not in known:
                warnings.append(f"unknown operation kind in weights: '{name}'")
            elif weight < 0:
                warnings.append(f"weight for '{name}' must be non-negative")
        if self.depth_severity not in {s.value for s in Severity}:
            warnings.append(f"unknown depth_severity '{self.depth_severity}'")
        return warnings

    # -- factories ----------------------------------------------------------

    def profile(self) -> PlatformProfile:
        return PlatformProfile.from_clock_mhz(self.clock_mhz, self.ns_per_weight_unit)

    def gate_policy(self) -> Policy:
        margin = self.margin_ns if self.policy == "strict" else None
        return Policy.parse(self.policy, margin)

    def seed_policy(self) -> SeedPolicy:
        return SeedPolicy(
            max_iterations=self.max_iterations,
            widening_delay=self.widening_delay,
            default_input_bits=self.default_input_bits,
            default_input_signed=self.default_input_signed,
        )

    def weight_table(self) -> WeightTable:
        overrides: Dict[OpKind, int] = {}
        for name, weight in self.weights.items():
            try:
                overrides[OpKind(name)] = int(weight)
            except ValueError:
                raise ConfigError(f"unknown operation kind in weights: '{name}'") from None
        return WeightTable.default().with_overrides(overrides)

    def severity(self) -> Severity:
        """Severity of depth diagnostics; elevation forces ERROR."""
        if self.elevate:
            return Severity.ERROR
        try:
            return Severity(self.depth_severity)
        except ValueError:
            raise ConfigError(f"unknown depth_severity '{self.depth_severity}'") from None

    def merged(self, **overrides: Any) -> "AnalysisConfig":
        """Copy with every non-``None`` override applied."""
        return dataclasses.replace(
            self, **{k: v for k, v in overrides.items() if v is not None}
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AnalysisConfig":
        names = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - names)
        if unknown:
            raise ConfigError(f"unknown configuration key(s): {', '.join(unknown)}")
        for key, expected in _KEY_TYPES.items():
            if key in data:
                _check_type(key, data[key], expected)
        weights = data.get("weights", {})
        if not isinstance(weights, Mapping):
            raise ConfigError("'weights' must be an object mapping kind to weight")
        for name, weight in weights.items():
            _check_type(f"weights.{name}", weight, (int,))
        return cls(**{**data, "weights": {str(k): v for k, v in weights.items()}})


def load_config(path: Union[str, Path]) -> AnalysisConfig:
    """Load an :class:`AnalysisConfig` from a JSON file.

    Raises :class:`ConfigError` when the file is unreadable or malformed.
    Validation warnings are logged, not raised.
    """
    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"cannot read configuration {p}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{p}: invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{p}: configuration must be a JSON object")
    config = AnalysisConfig.from_dict(data)
    for warning in config.validate():
        logger.warning("%s: %s", p, warning)
    return config
