"""
hdlcheck.interchange
====================

JSON interchange format for handing a graph snapshot across a process
boundary (front end → analysis core).

Document layout::

    {
      "registers": [
        {"name": "count", "init": 0, "width": 8, "signed": false}
      ],
      "nodes": [
        {"id": 0, "kind": "reg_read", "register": "count"},
        {"id": 1, "kind": "const", "value": 1},
        {"id": 2, "kind": "add", "operands": [0, 1],
         "span": {"file": "counter.hdl", "line": 4, "column": 12}},
        {"id": 3, "kind": "reg_write", "register": "count", "operands": [2]},
        {"id": 4, "kind": "input", "name": "en", "bounds": [0, 1]}
      ]
    }

Only ``id`` and ``kind`` are required per node.  Structural validation is
left to :meth:`DataflowGraph.validate`; this module only rejects documents
it cannot decode.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union

from .diagnostics import SourceSpan
from .errors import InterchangeError
from .graph import DataflowGraph, OpKind

FORMAT_VERSION = 1


def _require(entry: Mapping[str, Any], key: str, where: str) -> Any:
    if key not in entry:
        raise InterchangeError(f"{where}: missing required key '{key}'")
    return entry[key]


def _span_from(raw: Any, where: str) -> SourceSpan:
    if not isinstance(raw, Mapping):
        raise InterchangeError(f"{where}: span must be an object")
    return SourceSpan(
        file=str(raw.get("file", "")),
        line=int(raw.get("line", 0)),
        column=int(raw.get("column", 0)),
    )


def graph_from_dict(doc: Mapping[str, Any]) -> DataflowGraph:
    """Build a :class:`DataflowGraph` from a decoded interchange document."""
    if not isinstance(doc, Mapping):
        raise InterchangeError("interchange document must be a JSON object")
    graph = DataflowGraph()

    for i, reg in enumerate(doc.get("registers", [])):
        where = f"registers[{i}]"
        if not isinstance(reg, Mapping):
            raise InterchangeError(f"{where}: expected an object")
        width = reg.get("width")
        try:
            graph.declare_register(
                str(_require(reg, "name", where)),
                init=int(reg.get("init", 0)),
                width=int(width) if width is not None else None,
                signed=bool(reg.get("signed", False)),
            )
        except (TypeError, ValueError) as exc:
            raise InterchangeError(f"{where}: {exc}") from exc

    for i, entry in enumerate(doc.get("nodes", [])):
        where = f"nodes[{i}]"
        if not isinstance(entry, Mapping):
            raise InterchangeError(f"{where}: expected an object")
        raw_kind = _require(entry, "kind", where)
        try:
            kind = OpKind(raw_kind)
        except ValueError:
            raise InterchangeError(f"{where}: unknown kind {raw_kind!r}") from None
        try:
            node_id = int(_require(entry, "id", where))
            operands = [int(o) for o in entry.get("operands", [])]
            value = entry.get("value")
            bounds = entry.get("bounds")
            graph.add_node(
                kind,
                operands,
                value=int(value) if value is not None else None,
                register=entry.get("register"),
                bounds=(int(bounds[0]), int(bounds[1])) if bounds is not None else None,
                name=entry.get("name"),
                span=_span_from(entry["span"], where) if "span" in entry else None,
                node_id=node_id,
            )
        except (TypeError, ValueError, IndexError) as exc:
            raise InterchangeError(f"{where}: {exc}") from exc

    return graph


def graph_to_dict(graph: DataflowGraph) -> Dict[str, Any]:
    """Encode *graph* as an interchange document."""
    registers: List[Dict[str, Any]] = []
    for decl in graph.registers.values():
        reg: Dict[str, Any] = {"name": decl.name, "init": decl.init}
        if decl.width is not None:
            reg["width"] = decl.width
            reg["signed"] = decl.signed
        registers.append(reg)

    nodes: List[Dict[str, Any]] = []
    for n in graph.nodes:
        entry: Dict[str, Any] = {"id": n.node_id, "kind": n.kind.value}
        if n.operands:
            entry["operands"] = list(n.operands)
        if n.value is not None:
            entry["value"] = n.value
        if n.register is not None:
            entry["register"] = n.register
        if n.bounds is not None:
            entry["bounds"] = list(n.bounds)
        if n.name is not None:
            entry["name"] = n.name
        if n.span is not None:
            entry["span"] = {"file": n.span.file, "line": n.span.line, "column": n.span.column}
        nodes.append(entry)

    return {"version": FORMAT_VERSION, "registers": registers, "nodes": nodes}


def load_graph(path: Union[str, Path]) -> DataflowGraph:
    """Read an interchange document from *path*."""
    p = Path(path)
    try:
        doc = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise InterchangeError(f"{p}: invalid JSON: {exc}") from exc
    return graph_from_dict(doc)


def dump_graph(graph: DataflowGraph, path: Union[str, Path]) -> None:
    Path(path).write_text(json.dumps(graph_to_dict(graph), indent=2), encoding="utf-8")
