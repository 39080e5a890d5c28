"""
hdlcheck: Width and Timing Analysis for Synchronous Dataflow Graphs
===================================================================

Static analysis core of a hardware description compiler front end.  Given
a validated dataflow graph of a synchronous design, it infers a sound
integer interval (and therefore a minimal bit width) for every value,
measures the weighted combinational depth of every path between state
elements, and decides through a Policy Gate whether a build may proceed.

Core modules
------------
graph
    Dataflow graph, register pairs, validation and feedback components.
interval
    Integer interval domain with widening and bit-width derivation.
interval_analysis
    Fixpoint interval inference over feedback cycles.
depth_analysis
    Weighted combinational depth fold and path classification.
calibration
    Platform profile: clock period to depth threshold.
policy
    Policy Gate decision function.
oracle
    Synthesis oracle adapters (timing report parsing, tool invocation).
interchange
    JSON graph interchange.
config
    Analysis configuration.
pipeline
    Layer 1 run and final gate.

Quick start
-----------
>>> from hdlcheck import GraphBuilder, infer
>>> b = GraphBuilder()
>>> _ = b.register("count", init=0, width=8)
>>> r = b.reg_read("count")
>>> w = b.reg_write("count", b.add(r, b.const(1)))
>>> print(infer(b.graph).register_values["count"])
[0, 255]
"""

from __future__ import annotations

import importlib
import logging
import sys
from typing import List

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "0.1.0"
__all__: List[str] = []          # populated below

_log = logging.getLogger(__name__)
_log.addHandler(logging.NullHandler())

# ---------------------------------------------------------------------------
# Internal registry: module name → names re-exported at package level
# ---------------------------------------------------------------------------

_CORE_MODULES = {
    "errors": [
        "HdlcheckError",
        "MalformedGraphError",
        "DivergenceError",
        "ConfigError",
        "InterchangeError",
    ],
    "diagnostics": [
        "Diagnostic",
        "Severity",
        "SourceSpan",
        "PathClassification",
    ],
    "graph": [
        "OpKind",
        "GraphNode",
        "RegisterDecl",
        "DataflowGraph",
        "GraphBuilder",
        "tarjan_scc",
    ],
    "interval": [
        "Interval",
        "BitWidth",
    ],
    "interval_analysis": [
        "SeedPolicy",
        "IntervalResult",
        "IntervalAnalysis",
        "infer",
    ],
    "depth_analysis": [
        "WeightTable",
        "DepthRecord",
        "DepthAnalyzer",
        "analyze",
    ],
    "calibration": [
        "PlatformProfile",
    ],
    "policy": [
        "Policy",
        "PolicyKind",
        "Verdict",
        "GateDecision",
        "decide",
    ],
    "oracle": [
        "SynthesisOracle",
        "FixedOracle",
        "ReportOracle",
        "CommandOracle",
        "parse_wns",
    ],
    "interchange": [
        "graph_from_dict",
        "graph_to_dict",
        "load_graph",
    ],
    "config": [
        "AnalysisConfig",
        "load_config",
    ],
    "pipeline": [
        "Layer1Report",
        "run_layer1",
        "gate",
    ],
}


def _import_names(module_rel_name: str, names: List[str]) -> None:
    """Import *names* from a submodule and bind them in the package namespace."""
    fq_name = f"{__name__}.{module_rel_name}"
    try:
        mod = importlib.import_module(fq_name)
    except ImportError as exc:
        raise ImportError(
            f"hdlcheck: required submodule '{module_rel_name}' failed to import: {exc}"
        ) from exc

    current_module = sys.modules[__name__]
    for name in names:
        if not hasattr(mod, name):
            raise AttributeError(f"hdlcheck.{module_rel_name} does not export '{name}'")
        setattr(current_module, name, getattr(mod, name))
        __all__.append(name)

    setattr(current_module, module_rel_name, mod)
    if module_rel_name not in __all__:
        __all__.append(module_rel_name)


for _mod, _names in _CORE_MODULES.items():
    _import_names(_mod, _names)

del _mod, _names
