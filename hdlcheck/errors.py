"""
hdlcheck/errors.py
══════════════════

Exception hierarchy for the hdlcheck analysis core.

Every exception carries a stable error code (``HDL-Exxx``), a message and
an optional list of notes, so that the CLI and any reporting collaborator
can render the offending node chain or cycle instead of a bare failure.

    HdlcheckError
      ├── MalformedGraphError   HDL-E001  fatal, graph validation
      ├── DivergenceError       HDL-E002  fatal, interval convergence loop
      ├── ConfigError           HDL-E003  bad profile / policy / config
      └── InterchangeError      HDL-E004  bad graph interchange document
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from .interval import Interval


@dataclass(frozen=True)
class ErrorCode:
    """A structured error code such as ``HDL-E001``."""
    code: str
    title: str

    def __str__(self) -> str:
        return self.code


class ErrorCodes:
    MALFORMED_GRAPH = ErrorCode("HDL-E001", "malformed dataflow graph")
    DIVERGENCE = ErrorCode("HDL-E002", "interval analysis diverged")
    CONFIG = ErrorCode("HDL-E003", "invalid configuration")
    INTERCHANGE = ErrorCode("HDL-E004", "invalid graph interchange document")


# ═══════════════════════════════════════════════════════════════════════════
# EXCEPTION CLASSES
# ═══════════════════════════════════════════════════════════════════════════

class HdlcheckError(Exception):
    """Base exception for all hdlcheck errors."""

    default_code: ErrorCode = ErrorCodes.CONFIG

    def __init__(
        self,
        message: str,
        code: Optional[ErrorCode] = None,
        notes: Optional[List[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.notes: List[str] = list(notes or [])

    def add_note(self, note: str) -> "HdlcheckError":
        self.notes.append(note)
        return self

    def format(self) -> str:
        """Render as ``error[HDL-Exxx]: message`` followed by indented notes."""
        lines = [f"error[{self.code}]: {self.message}"]
        lines.extend(f"  note: {n}" for n in self.notes)
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.format()


class MalformedGraphError(HdlcheckError):
    """The dataflow graph violates a structural invariant.

    ``chain`` holds the offending node ids in order; for cycles it is the
    cycle itself, starting and ending at the same node.
    """

    default_code = ErrorCodes.MALFORMED_GRAPH

    def __init__(
        self,
        message: str,
        chain: Sequence[int] = (),
        notes: Optional[List[str]] = None,
    ) -> None:
        self.chain: Tuple[int, ...] = tuple(chain)
        if self.chain:
            notes = list(notes or [])
            notes.insert(0, "chain: " + " -> ".join(f"n{i}" for i in self.chain))
        super().__init__(message, notes=notes)


class DivergenceError(HdlcheckError):
    """A feedback cycle's interval did not stabilise within the iteration cap.

    This is a property of the source graph (a value with no modulus or
    bound, e.g. a free-running counter), not a failure of the analysis.
    """

    default_code = ErrorCodes.DIVERGENCE

    def __init__(
        self,
        register: str,
        cycle: Sequence[int],
        previous: "Interval",
        current: "Interval",
        iterations: int,
    ) -> None:
        self.register = register
        self.cycle: Tuple[int, ...] = tuple(cycle)
        self.previous = previous
        self.current = current
        self.iterations = iterations
        super().__init__(
            f"interval of register '{register}' did not stabilise "
            f"after {iterations} iterations",
            notes=[
                "cycle: " + ", ".join(f"n{i}" for i in self.cycle),
                f"last estimates: {previous} -> {current}",
                "declare a register width or bound the value to give it a modulus",
            ],
        )


class ConfigError(HdlcheckError):
    """Invalid platform profile, policy or analysis configuration."""

    default_code = ErrorCodes.CONFIG


class InterchangeError(HdlcheckError):
    """A graph interchange document could not be decoded."""

    default_code = ErrorCodes.INTERCHANGE
