"""
hdlcheck.policy
===============

The Policy Gate: a pure decision function that combines Layer 1
(structural depth diagnostics) and Layer 2 (slack reported by an external
synthesis oracle) under a configured policy.

Decision table
--------------

==========  ===============  ===================  ====================
elevate     L1 violation     oracle slack         verdict
==========  ===============  ===================  ====================
yes         yes              any / absent         BLOCK (layer 1)
any         any              absent               PROCEED, reduced
                                                  confidence
any         no / not elev.   WARN: any            PROCEED
any         no / not elev.   ERROR: < 0           BLOCK (layer 2)
any         no / not elev.   ERROR: >= 0          PROCEED
any         no / not elev.   STRICT(m): < m       BLOCK (layer 2)
any         no / not elev.   STRICT(m): >= m      PROCEED
==========  ===============  ===================  ====================

Elevation ("treat structural warnings as build errors") lets Layer 1 alone
block before any oracle run, whichever policy governs Layer 2.  The gate
performs no I/O.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .diagnostics import Diagnostic
from .errors import ConfigError


class PolicyKind(enum.Enum):
    WARN = "warn"
    ERROR = "error"
    STRICT = "strict"


@dataclass(frozen=True)
class Policy:
    """Build policy for Layer 2 results; immutable for a build.

    ``margin_ns`` is only meaningful for ``STRICT`` and must be positive.
    """
    kind: PolicyKind
    margin_ns: float = 0.0

    def __post_init__(self) -> None:
        if self.kind is PolicyKind.STRICT and not self.margin_ns > 0:
            raise ConfigError(
                f"strict policy needs a positive margin, got {self.margin_ns}"
            )
        if self.kind is not PolicyKind.STRICT and self.margin_ns:
            raise ConfigError(f"margin only applies to the strict policy, not {self.kind.value}")

    @classmethod
    def warn(cls) -> "Policy":
        return cls(PolicyKind.WARN)

    @classmethod
    def error(cls) -> "Policy":
        return cls(PolicyKind.ERROR)

    @classmethod
    def strict(cls, margin_ns: float) -> "Policy":
        return cls(PolicyKind.STRICT, margin_ns)

    @classmethod
    def parse(cls, name: str, margin_ns: Optional[float] = None) -> "Policy":
        """Policy from its configuration name (``warn``, ``error``, ``strict``)."""
        try:
            kind = PolicyKind(name.strip().lower())
        except ValueError:
            choices = ", ".join(k.value for k in PolicyKind)
            raise ConfigError(f"unknown policy {name!r} (expected one of: {choices})") from None
        if kind is PolicyKind.STRICT:
            if margin_ns is None:
                raise ConfigError("strict policy needs a margin")
            return cls.strict(margin_ns)
        return cls(kind)

    @property
    def required_slack_ns(self) -> Optional[float]:
        """Minimum slack that passes, or ``None`` when slack never blocks."""
        if self.kind is PolicyKind.WARN:
            return None
        if self.kind is PolicyKind.ERROR:
            return 0.0
        return self.margin_ns

    def __str__(self) -> str:
        if self.kind is PolicyKind.STRICT:
            return f"strict(margin={self.margin_ns:g}ns)"
        return self.kind.value


class Verdict(enum.Enum):
    PROCEED = "proceed"
    BLOCK = "block"


class GateLayer(enum.Enum):
    """Which layer the decision rests on."""
    STRUCTURAL = "layer1"
    ORACLE = "layer2"


@dataclass(frozen=True)
class GateDecision:
    """Outcome of :func:`decide`.

    Attributes
    ----------
    verdict : Verdict
    reason : str
        Human-readable explanation, including the offending chain when
        Layer 1 blocks.
    layer : GateLayer
        The layer the decision rests on.
    oracle_available : bool
        ``False`` when no oracle slack was available; the decision is then
        Layer-1-only and of reduced confidence.
    slack_ns : float, optional
    """
    verdict: Verdict
    reason: str
    layer: GateLayer
    oracle_available: bool
    slack_ns: Optional[float] = None

    @property
    def blocked(self) -> bool:
        return self.verdict is Verdict.BLOCK

    @property
    def reduced_confidence(self) -> bool:
        return not self.oracle_available

    def __str__(self) -> str:
        return f"{self.verdict.value}: {self.reason}"


def _violations(diagnostics: Iterable[Diagnostic]) -> List[Diagnostic]:
    return [d for d in diagnostics if d.is_depth_violation]


def decide_layer1(
    layer1_diagnostics: Iterable[Diagnostic],
    elevate_layer1: bool,
) -> Optional[GateDecision]:
    """Fail-fast gate run before any oracle invocation.

    Returns a BLOCK decision when elevation is set and a depth violation
    exists, otherwise ``None`` (Layer 1 does not decide).
    """
    violations = _violations(layer1_diagnostics)
    if not (elevate_layer1 and violations):
        return None
    first = violations[0]
    more = f" (+{len(violations) - 1} more)" if len(violations) > 1 else ""
    return GateDecision(
        verdict=Verdict.BLOCK,
        reason=f"structural depth violation treated as error: {first.describe()}{more}",
        layer=GateLayer.STRUCTURAL,
        oracle_available=False,
    )


def decide(
    layer1_diagnostics: Iterable[Diagnostic],
    layer2_slack_ns: Optional[float],
    policy: Policy,
    elevate_layer1: bool = False,
) -> GateDecision:
    """Decide whether artifact emission may proceed."""
    diagnostics = list(layer1_diagnostics)
    oracle_available = layer2_slack_ns is not None

    blocked = decide_layer1(diagnostics, elevate_layer1)
    if blocked is not None:
        return GateDecision(
            verdict=blocked.verdict,
            reason=blocked.reason,
            layer=blocked.layer,
            oracle_available=oracle_available,
            slack_ns=layer2_slack_ns,
        )

    violations = len(_violations(diagnostics))
    advisory = f"; {violations} structural warning(s)" if violations else ""

    if layer2_slack_ns is None:
        return GateDecision(
            verdict=Verdict.PROCEED,
            reason=f"oracle unavailable, layer-1 only decision{advisory}",
            layer=GateLayer.STRUCTURAL,
            oracle_available=False,
        )

    slack = layer2_slack_ns
    required = policy.required_slack_ns
    if required is None:
        note = "timing violated" if slack < 0 else "timing met"
        return GateDecision(
            verdict=Verdict.PROCEED,
            reason=f"{note} (slack {slack:+g} ns), policy {policy} never blocks{advisory}",
            layer=GateLayer.ORACLE,
            oracle_available=True,
            slack_ns=slack,
        )
    if slack < required:
        return GateDecision(
            verdict=Verdict.BLOCK,
            reason=(
                f"oracle timing violation: slack {slack:+g} ns below "
                f"required {required:g} ns under policy {policy}"
            ),
            layer=GateLayer.ORACLE,
            oracle_available=True,
            slack_ns=slack,
        )
    return GateDecision(
        verdict=Verdict.PROCEED,
        reason=f"slack {slack:+g} ns meets policy {policy}{advisory}",
        layer=GateLayer.ORACLE,
        oracle_available=True,
        slack_ns=slack,
    )
