"""
hdlcheck/diagnostics.py
═══════════════════════

Diagnostic model shared by the depth analysis, the policy gate and the CLI.

A ``Diagnostic`` is created by the Depth Analysis Engine and consumed by a
reporting collaborator and by the Policy Gate when elevation is configured.
Each record keeps enough structure to render the exact operation chain and
the numeric depth-vs-threshold comparison, e.g.::

    top.hdl:12:5: info: combinational depth 26 exceeds threshold 25
        [depthThresholdExceeded] input -> mul -> mul -> ... -> compare
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple


# ═════════════════════════════════════════════════════════════════════════
#  PART 1: SEVERITY, SPANS, CLASSIFICATION
# ═════════════════════════════════════════════════════════════════════════

class Severity(Enum):
    """Diagnostic severity, ordered ``INFO < WARNING < ERROR``."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other: "Severity") -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank


_SEVERITY_RANK = {Severity.INFO: 0, Severity.WARNING: 1, Severity.ERROR: 2}


@dataclass(frozen=True)
class SourceSpan:
    """Source location of the expression a node was lowered from.

    Opaque to the analyses; carried through for diagnostics only.
    """
    file: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.column:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"


class PathClassification(Enum):
    """Classification of a maximal path by its terminal node."""
    FEEDFORWARD = "feedforward"
    FEEDBACK_TO_STATE = "feedback-to-state"


# ═════════════════════════════════════════════════════════════════════════
#  PART 2: DIAGNOSTIC
# ═════════════════════════════════════════════════════════════════════════

DEPTH_THRESHOLD_EXCEEDED = "depthThresholdExceeded"


@dataclass(frozen=True)
class Diagnostic:
    """
    A single structural finding.

    Attributes
    ----------
    severity       : Severity
    error_id       : Stable identifier (e.g. ``"depthThresholdExceeded"``)
    message        : Human-readable description
    kind_chain     : Operation-kind names along the flagged path
    node_chain     : Node ids along the flagged path
    span           : Source span of the flagged expression, if known
    weighted_depth : Weighted combinational depth of the path
    threshold      : Threshold the depth was compared against
    classification : Path classification of the flagged path
    """
    severity: Severity
    error_id: str
    message: str
    kind_chain: Tuple[str, ...] = ()
    node_chain: Tuple[int, ...] = ()
    span: Optional[SourceSpan] = None
    weighted_depth: int = 0
    threshold: int = 0
    classification: Optional[PathClassification] = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_depth_violation(self) -> bool:
        return self.error_id == DEPTH_THRESHOLD_EXCEEDED

    def chain_text(self) -> str:
        return " -> ".join(self.kind_chain)

    def describe(self) -> str:
        """One-line explanation: chain plus the numeric comparison."""
        text = f"{self.chain_text()} (weighted depth {self.weighted_depth}"
        text += f" > threshold {self.threshold})"
        if self.classification is not None:
            text += f" [{self.classification.value}]"
        return text

    def to_json_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "severity": self.severity.value,
            "errorId": self.error_id,
            "message": self.message,
            "chain": list(self.kind_chain),
            "nodes": list(self.node_chain),
            "weightedDepth": self.weighted_depth,
            "threshold": self.threshold,
        }
        if self.classification is not None:
            result["classification"] = self.classification.value
        if self.span is not None:
            result["file"] = self.span.file
            result["linenr"] = self.span.line
            result["column"] = self.span.column
        return result

    def to_json_str(self) -> str:
        return json.dumps(self.to_json_dict())

    def to_gcc_format(self) -> str:
        """GCC-style string: ``file:line:col: severity: message [id] chain``."""
        where = str(self.span) if self.span is not None else "<graph>"
        return (
            f"{where}: {self.severity.value}: {self.message} "
            f"[{self.error_id}] {self.chain_text()}"
        )

    def __str__(self) -> str:
        return self.to_gcc_format()


def max_severity(diagnostics: Iterable[Diagnostic]) -> Optional[Severity]:
    """Highest severity among *diagnostics*, or ``None`` if empty."""
    worst: Optional[Severity] = None
    for d in diagnostics:
        if worst is None or worst < d.severity:
            worst = d.severity
    return worst


def format_diagnostics(diagnostics: Iterable[Diagnostic], fmt: str = "gcc") -> str:
    """Render diagnostics as ``gcc`` lines or a ``json`` array."""
    diags: List[Diagnostic] = list(diagnostics)
    if fmt == "json":
        return json.dumps([d.to_json_dict() for d in diags], indent=2)
    return "\n".join(d.to_gcc_format() for d in diags)
