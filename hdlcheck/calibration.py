"""
hdlcheck.calibration
====================

Per-platform constants that turn the clock period into a structural depth
threshold.

    threshold = floor(clock_period_ns / ns_per_weight_unit)

``ns_per_weight_unit`` is a calibrated ratio between one unit of structural
weight and physical time on a given device family.  It is a fixed input of
an analysis run; refining it from historical oracle results happens between
builds, outside this package.

The division is done on the decimal values as written (``Fraction`` of the
string form) so that ``floor(40 / 1.6)`` is exactly 25 and never 24 through
binary rounding.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Union

from .errors import ConfigError

Number = Union[int, float, str]


def _exact(value: Number) -> Fraction:
    try:
        return Fraction(str(value))
    except (ValueError, ZeroDivisionError) as exc:
        raise ConfigError(f"not a number: {value!r}") from exc


@dataclass(frozen=True)
class PlatformProfile:
    """Immutable per-target timing constants.

    Parameters
    ----------
    ns_per_weight_unit : float
        Calibrated structural-weight-to-time ratio, in ns per weight unit.
    clock_period_ns : float
        Target clock period in ns.

    Attributes
    ----------
    threshold : int
        Maximum weighted depth that fits one clock period; computed once.
    """
    ns_per_weight_unit: float
    clock_period_ns: float
    threshold: int = field(init=False)

    def __post_init__(self) -> None:
        ratio = _exact(self.ns_per_weight_unit)
        period = _exact(self.clock_period_ns)
        if ratio <= 0:
            raise ConfigError(
                f"ns_per_weight_unit must be positive, got {self.ns_per_weight_unit}"
            )
        if period <= 0:
            raise ConfigError(
                f"clock_period_ns must be positive, got {self.clock_period_ns}"
            )
        object.__setattr__(self, "threshold", math.floor(period / ratio))

    @classmethod
    def from_clock_mhz(cls, clock_mhz: Number, ns_per_weight_unit: Number) -> "PlatformProfile":
        """Profile for a clock given in MHz (25 MHz → 40 ns period)."""
        freq = _exact(clock_mhz)
        if freq <= 0:
            raise ConfigError(f"clock frequency must be positive, got {clock_mhz}")
        return cls(
            ns_per_weight_unit=float(_exact(ns_per_weight_unit)),
            clock_period_ns=float(Fraction(1000) / freq),
        )

    def __str__(self) -> str:
        return (
            f"clock {self.clock_period_ns:g} ns / {self.ns_per_weight_unit:g} ns "
            f"per unit -> threshold {self.threshold}"
        )
