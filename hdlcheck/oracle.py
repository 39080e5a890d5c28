"""
hdlcheck.oracle
===============

Adapters for the external synthesis/timing oracle (Layer 2).

The oracle is an expensive, authoritative external process.  The core
only needs one number from it: the worst negative slack (WNS) in
nanoseconds, or nothing at all when the oracle did not run.  An absent
result is not an error; the Policy Gate falls back to Layer-1-only
decisions.

Adapters
--------
``FixedOracle``
    A slack value already known to the caller (or ``None``).
``ReportOracle``
    Reads a Vivado ``report_timing_summary`` file.
``CommandOracle``
    Runs a synthesis command once (synchronous, never retried), then reads
    the report it produced.  Cancelling a long run is the caller's job.

Report parsing
--------------
The *Design Timing Summary* table is preferred::

        WNS(ns)      TNS(ns)  TNS Failing Endpoints  ...
        -------      -------  ---------------------  ...
         -1.234      -10.456                     12  ...

When the table is missing, the worst per-path ``Slack (MET|VIOLATED)``
line is used instead.
"""

from __future__ import annotations

import logging
import re
import subprocess
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Union, runtime_checkable

logger = logging.getLogger(__name__)

_SUMMARY_HEADER = re.compile(r"^\s*WNS\(ns\)\s+TNS\(ns\)")
_NUMBER = re.compile(r"^-?\d+(?:\.\d+)?$")
_PATH_SLACK = re.compile(
    r"^\s*slack\s*\((?:MET|VIOLATED)\)\s*:?\s*(-?\d+(?:\.\d+)?)",
    re.IGNORECASE | re.MULTILINE,
)


def parse_wns(text: str) -> Optional[float]:
    """Extract the worst negative slack (ns) from a timing report.

    Returns ``None`` when the report holds no usable slack (for example an
    unconstrained design, where Vivado prints ``inf`` or ``NA``).
    """
    lines = text.splitlines()
    for i, line in enumerate(lines):
        if not _SUMMARY_HEADER.match(line):
            continue
        for row in lines[i + 1:]:
            fields = row.split()
            if not fields or set(fields[0]) == {"-"}:
                continue
            if _NUMBER.match(fields[0]):
                return float(fields[0])
            break

    slacks: List[float] = [float(m) for m in _PATH_SLACK.findall(text)]
    if slacks:
        return min(slacks)
    return None


@runtime_checkable
class SynthesisOracle(Protocol):
    """Anything that can report a final slack value, or ``None``."""

    def slack_ns(self) -> Optional[float]:
        ...


class FixedOracle:
    """An oracle whose answer is already known."""

    def __init__(self, slack: Optional[float]) -> None:
        self._slack = slack

    def slack_ns(self) -> Optional[float]:
        return self._slack


class ReportOracle:
    """Reads WNS from a timing summary report written by the synthesis tool."""

    def __init__(self, report_path: Union[str, Path]) -> None:
        self.report_path = Path(report_path)

    def slack_ns(self) -> Optional[float]:
        if not self.report_path.is_file():
            logger.warning("timing report not found: %s", self.report_path)
            return None
        text = self.report_path.read_text(encoding="utf-8", errors="ignore")
        slack = parse_wns(text)
        if slack is None:
            logger.warning("no slack found in timing report %s", self.report_path)
        else:
            logger.info("oracle slack from %s: %+g ns", self.report_path, slack)
        return slack


class CommandOracle:
    """Runs the synthesis command once, then reads its timing report.

    Parameters
    ----------
    command : sequence of str
        Argument vector, e.g. ``["vivado", "-mode", "batch", "-source",
        "synth.tcl"]``.
    report_path : path
        Timing summary the command writes.
    cwd : path, optional
        Working directory for the command.
    """

    def __init__(
        self,
        command: Sequence[str],
        report_path: Union[str, Path],
        cwd: Optional[Union[str, Path]] = None,
    ) -> None:
        if not command:
            raise ValueError("oracle command must not be empty")
        self.command = list(command)
        self.report_path = Path(report_path)
        self.cwd = Path(cwd) if cwd is not None else None

    def slack_ns(self) -> Optional[float]:
        logger.info("running synthesis oracle: %s", " ".join(self.command))
        try:
            proc = subprocess.run(
                self.command,
                cwd=self.cwd,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            logger.warning("synthesis oracle could not be started: %s", exc)
            return None
        if proc.returncode != 0:
            tail = (proc.stderr or proc.stdout or "").strip().splitlines()[-5:]
            logger.warning(
                "synthesis oracle exited with status %d%s",
                proc.returncode,
                (": " + " | ".join(tail)) if tail else "",
            )
            return None
        report = self.report_path
        if self.cwd is not None and not report.is_absolute():
            report = self.cwd / report
        return ReportOracle(report).slack_ns()
