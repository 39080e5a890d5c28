#!/usr/bin/env python3
"""hdlcheck/main.py: CLI entry-point for the hdlcheck analyzer.

Usage examples
--------------
    # Layer 1 only: widths, depth diagnostics and a reduced-confidence verdict
    hdlcheck analyze counter.graph.json --clock-mhz 25 --ns-per-weight 1.6

    # Full gate with a timing report written by the synthesis flow
    hdlcheck analyze top.graph.json --policy strict --margin 0.5 \\
        --timing-report build/timing_summary.rpt

    # Run the synthesis flow as the oracle
    hdlcheck analyze top.graph.json --policy error \\
        --oracle-cmd "vivado -mode batch -source synth.tcl" \\
        --report build/timing_summary.rpt

    # Inferred bit widths, weighted depths, Graphviz export
    hdlcheck widths top.graph.json -f json
    hdlcheck depth  top.graph.json
    hdlcheck dot    top.graph.json -o top.dot

Exit codes
----------
    0   Proceed (artifact emission allowed).
    1   Fatal analysis error (malformed graph, interval divergence).
    2   Infrastructure failure (missing file, bad config or interchange).
    3   Build blocked by the Policy Gate.

The module doubles as ``python -m hdlcheck`` via ``hdlcheck/__main__.py``.
"""

from __future__ import annotations

import argparse
import json
import logging
import shlex
import sys
import textwrap
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, TextIO

from . import __version__
from .config import AnalysisConfig, load_config
from .depth_analysis import DepthAnalyzer
from .diagnostics import format_diagnostics
from .errors import (
    ConfigError,
    DivergenceError,
    HdlcheckError,
    InterchangeError,
    MalformedGraphError,
)
from .graph import DataflowGraph
from .interchange import load_graph
from .interval_analysis import infer
from .oracle import CommandOracle, FixedOracle, ReportOracle, SynthesisOracle
from .pipeline import Layer1Report, gate, run_layer1

_log = logging.getLogger("hdlcheck")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_ERROR: int = 1
EXIT_INFRA: int = 2
EXIT_BLOCKED: int = 3


# ===========================================================================
# Helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``hdlcheck`` logger.

    Parameters
    ----------
    verbosity:
        0 → WARNING, 1 → INFO, 2+ → DEBUG.
    """
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    root = logging.getLogger("hdlcheck")
    root.setLevel(level)
    # replace the handler of an earlier call; sys.stderr may have changed
    for old in [h for h in root.handlers if getattr(h, "_hdlcheck", False)]:
        root.removeHandler(old)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    handler._hdlcheck = True  # type: ignore[attr-defined]
    root.addHandler(handler)


def _open_output(dest: Optional[str]) -> TextIO:
    """``None`` or ``"-"`` → stdout; otherwise open *dest* for writing."""
    if dest is None or dest == "-":
        return sys.stdout
    p = Path(dest).expanduser().resolve()
    p.parent.mkdir(parents=True, exist_ok=True)
    return open(p, "w", encoding="utf-8")


def _write(args: argparse.Namespace, text: str) -> None:
    stream = _open_output(args.output)
    try:
        stream.write(text)
        if text and not text.endswith("\n"):
            stream.write("\n")
    finally:
        if stream is not sys.stdout:
            stream.close()


def _load_graph(args: argparse.Namespace) -> DataflowGraph:
    path = Path(args.graph).expanduser()
    if not path.is_file():
        raise InterchangeError(f"graph file not found: {path}")
    _log.info("Loading graph: %s", path)
    return load_graph(path)


def _build_config(args: argparse.Namespace) -> AnalysisConfig:
    """File configuration (if any) with command-line overrides applied."""
    config = load_config(args.config) if args.config else AnalysisConfig()
    overrides: Dict[str, Any] = {
        "clock_mhz": args.clock_mhz,
        "ns_per_weight_unit": args.ns_per_weight,
        "policy": args.policy,
        "margin_ns": args.margin,
        "max_iterations": args.max_iterations,
        "widening_delay": args.widening_delay,
    }
    if args.warnaserror:
        overrides["elevate"] = True
    config = config.merged(**overrides)
    for warning in config.validate():
        _log.warning("config: %s", warning)
    return config


def _build_oracle(args: argparse.Namespace) -> Optional[SynthesisOracle]:
    if args.slack is not None:
        return FixedOracle(args.slack)
    if args.oracle_cmd:
        if not args.report:
            raise ConfigError("--oracle-cmd needs --report to locate the timing summary")
        return CommandOracle(shlex.split(args.oracle_cmd), args.report)
    if args.timing_report:
        return ReportOracle(args.timing_report)
    return None


def _summary(report: Layer1Report) -> List[str]:
    lines = [f"platform: {report.profile}", f"policy: {report.policy}"]
    worst = report.depth.worst_path
    if worst is not None:
        lines.append(
            f"worst path: depth {worst.weighted_depth} into n{worst.terminal} "
            f"({worst.classification.value})"
        )
    lines.append(f"interval passes: {report.intervals.passes}")
    return lines


# ===========================================================================
# Sub-command implementations
# ===========================================================================

def cmd_analyze(args: argparse.Namespace) -> int:
    """Run both layers and the Policy Gate on an interchange graph."""
    config = _build_config(args)
    graph = _load_graph(args)
    report = run_layer1(graph, config)
    decision = gate(report, None if report.blocked else _build_oracle(args))

    if args.format == "json":
        doc = {
            "diagnostics": [d.to_json_dict() for d in report.diagnostics],
            "threshold": report.profile.threshold,
            "verdict": decision.verdict.value,
            "layer": decision.layer.value,
            "reason": decision.reason,
            "oracleAvailable": decision.oracle_available,
            "slackNs": decision.slack_ns,
        }
        _write(args, json.dumps(doc, indent=2))
    else:
        lines: List[str] = []
        if report.diagnostics:
            lines.append(format_diagnostics(report.diagnostics, "gcc"))
        if args.format == "summary":
            lines.extend(_summary(report))
            lines.append(f"--- {len(report.diagnostics)} diagnostic(s) ---")
        confidence = "" if decision.oracle_available else " (reduced confidence)"
        lines.append(f"verdict: {decision}{confidence}")
        _write(args, "\n".join(lines))

    return EXIT_BLOCKED if decision.blocked else EXIT_OK


def cmd_widths(args: argparse.Namespace) -> int:
    """Print the inferred interval and bit width of every node and register."""
    config = _build_config(args)
    graph = _load_graph(args).validate()

    result = infer(graph, config.seed_policy())
    if args.format == "json":
        doc = {
            "passes": result.passes,
            "registers": {
                name: {"interval": [iv.lo, iv.hi], "width": str(iv.width())}
                for name, iv in result.register_values.items()
            },
            "nodes": {
                str(nid): {"interval": [iv.lo, iv.hi], "width": str(iv.width())}
                for nid, iv in result.items()
            },
        }
        _write(args, json.dumps(doc, indent=2))
        return EXIT_OK

    lines = [f"{'reg ' + name:<24} {str(iv):<28} {iv.width()}"
             for name, iv in result.register_values.items()]
    for nid in graph.topological_order():
        iv = result[nid]
        lines.append(f"{'n' + str(nid) + ' ' + graph.node(nid).label:<24} {str(iv):<28} {iv.width()}")
    if args.format == "summary":
        lines.append(f"--- {len(result)} node(s), {result.passes} pass(es) ---")
    _write(args, "\n".join(lines))
    return EXIT_OK


def cmd_depth(args: argparse.Namespace) -> int:
    """Print the weighted depth of every maximal path.

    Depth does not depend on widths, so no interval inference runs here.
    """
    config = _build_config(args)
    graph = _load_graph(args).validate()
    depth = DepthAnalyzer(
        graph,
        weights=config.weight_table(),
        threshold=config.profile().threshold,
        severity=config.severity(),
    ).run()
    if args.format == "json":
        doc = {
            "threshold": depth.threshold,
            "paths": [
                {
                    "terminal": p.terminal,
                    "classification": p.classification.value,
                    "weightedDepth": p.weighted_depth,
                    "chain": list(p.kinds),
                    "nodes": list(p.chain),
                }
                for p in depth.paths
            ],
        }
        _write(args, json.dumps(doc, indent=2))
        return EXIT_OK

    lines = []
    for p in depth.paths:
        mark = "!" if p.exceeds(depth.threshold) else " "
        lines.append(
            f"{mark} n{p.terminal:<5} {p.weighted_depth:>4}  "
            f"{p.classification.value:<18} {' -> '.join(p.kinds)}"
        )
    if args.format == "summary":
        lines.append(
            f"--- {len(depth.paths)} path(s), {len(depth.diagnostics)} over "
            f"threshold {depth.threshold} ---"
        )
    _write(args, "\n".join(lines))
    return EXIT_OK


def cmd_dot(args: argparse.Namespace) -> int:
    """Export the validated graph in Graphviz DOT format."""
    graph = _load_graph(args).validate()
    _write(args, graph.to_dot(title=Path(args.graph).stem))
    return EXIT_OK


# ===========================================================================
# Argument parser
# ===========================================================================

def _build_parser() -> argparse.ArgumentParser:
    """Construct the full CLI argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="hdlcheck",
        description=(
            "hdlcheck: structural width and combinational-depth analysis\n"
            "for synchronous dataflow graphs, with a timing Policy Gate."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              hdlcheck analyze top.graph.json --clock-mhz 25 --ns-per-weight 1.6
              hdlcheck analyze top.graph.json --policy error --timing-report timing.rpt
              hdlcheck widths  top.graph.json -f json
              hdlcheck dot     top.graph.json -o top.dot
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    def _add_common_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("graph", metavar="GRAPH", help="Graph interchange file (.json).")
        p.add_argument(
            "-o", "--output",
            default=None,
            metavar="FILE",
            help='Output file ("-" or omit for stdout).',
        )
        p.add_argument(
            "-f", "--format",
            choices=["gcc", "json", "summary"],
            default="gcc",
            help="Output format (default: gcc).",
        )

    def _add_config_args(p: argparse.ArgumentParser) -> None:
        g = p.add_argument_group("configuration")
        g.add_argument("-c", "--config", metavar="FILE", default=None,
                       help="JSON configuration file.")
        g.add_argument("--clock-mhz", type=float, default=None, metavar="MHZ",
                       help="Target clock frequency.")
        g.add_argument("--ns-per-weight", type=float, default=None, metavar="NS",
                       help="Calibrated ns per structural weight unit.")
        g.add_argument("--policy", choices=["warn", "error", "strict"], default=None,
                       help="Build policy applied to oracle slack.")
        g.add_argument("--margin", type=float, default=None, metavar="NS",
                       help="Required positive slack under the strict policy.")
        g.add_argument("--warnaserror", action="store_true",
                       help="Treat structural depth warnings as build errors.")
        g.add_argument("--max-iterations", type=int, default=None, metavar="N",
                       help="Iteration cap per feedback cycle (default: 256).")
        g.add_argument("--widening-delay", type=int, default=None, metavar="N",
                       help="Iterations before threshold widening (default: 3).")

    # --- analyze -----------------------------------------------------------
    p_analyze = subparsers.add_parser(
        "analyze",
        aliases=["analyse"],
        help="Run the analysis and the Policy Gate.",
    )
    _add_common_args(p_analyze)
    _add_config_args(p_analyze)
    g = p_analyze.add_argument_group("synthesis oracle")
    src = g.add_mutually_exclusive_group()
    src.add_argument("--slack", type=float, default=None, metavar="NS",
                     help="Known worst negative slack.")
    src.add_argument("--timing-report", metavar="FILE", default=None,
                     help="Timing summary report to read.")
    src.add_argument("--oracle-cmd", metavar="CMD", default=None,
                     help="Synthesis command to run once before reading --report.")
    g.add_argument("--report", metavar="FILE", default=None,
                   help="Timing summary written by --oracle-cmd.")
    p_analyze.set_defaults(func=cmd_analyze)

    # --- widths ------------------------------------------------------------
    p_widths = subparsers.add_parser("widths", help="Show inferred bit widths.")
    _add_common_args(p_widths)
    _add_config_args(p_widths)
    p_widths.set_defaults(func=cmd_widths)

    # --- depth -------------------------------------------------------------
    p_depth = subparsers.add_parser("depth", help="Show weighted path depths.")
    _add_common_args(p_depth)
    _add_config_args(p_depth)
    p_depth.set_defaults(func=cmd_depth)

    # --- dot ---------------------------------------------------------------
    p_dot = subparsers.add_parser("dot", help="Export the graph as Graphviz DOT.")
    _add_common_args(p_dot)
    p_dot.set_defaults(func=cmd_dot)

    return parser


# ===========================================================================
# Main entry-point
# ===========================================================================

def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the hdlcheck CLI.

    Parameters
    ----------
    argv:
        Command-line arguments.  ``None`` → ``sys.argv[1:]``.

    Returns
    -------
    int
        Exit code (see module docstring for semantics).
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    _configure_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help(sys.stderr)
        return EXIT_INFRA

    try:
        return args.func(args)
    except (MalformedGraphError, DivergenceError) as exc:
        _log.error("%s", exc)
        return EXIT_ERROR
    except HdlcheckError as exc:
        _log.error("%s", exc)
        return EXIT_INFRA
    except OSError as exc:
        _log.error("I/O error: %s", exc)
        return EXIT_INFRA
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    except Exception as exc:
        _log.error("Unhandled exception: %s", exc, exc_info=True)
        return EXIT_INFRA


if __name__ == "__main__":
    raise SystemExit(main())
