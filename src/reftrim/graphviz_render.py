from __future__ import annotations

import os
from typing import Dict, List, Set, Tuple

from graphviz import Digraph
from graphviz.backend import ExecutableNotFound

from .unit_types import Diagnostic, DiagnosticKind, UnitDescriptor


def _get_short_name(unit_path: str) -> str:
    """Project file name without directory."""
    return unit_path.replace("\\", "/").rsplit("/", 1)[-1] or unit_path


def _collect_units(units: List[UnitDescriptor]) -> Dict[str, UnitDescriptor]:
    # include referenced units outside the scanned list
    seen: Dict[str, UnitDescriptor] = {}
    stack = list(units)
    while stack:
        unit = stack.pop()
        if unit.path in seen:
            continue
        seen[unit.path] = unit
        stack.extend(ref.unit for ref in unit.project_references)
    return seen


def render_unit_graph(
    units: List[UnitDescriptor],
    diagnostics: List[Diagnostic],
    output_base: str,
    fmt: str = "svg",
) -> Tuple[str, str]:
    """
    Render the project reference graph: green = used, red dashed = removable.
    Node labels carry the count of removable Reference/PackageReference items.
    """
    dot = Digraph(
        "reftrim",
        graph_attr={
            "rankdir": "TB",
            "splines": "spline",
            "label": "Project References",
            "labelloc": "t",
        },
        node_attr={"shape": "box", "style": "rounded,filled", "fontname": "Helvetica"},
        edge_attr={"arrowhead": "vee"},
    )

    unused_edges: Set[Tuple[str, str]] = set()
    unused_items: Dict[str, int] = {}
    for d in diagnostics:
        if d.kind is DiagnosticKind.PROJECT_REFERENCE:
            unused_edges.add((d.unit_path, d.item))
        else:
            unused_items[d.unit_path] = unused_items.get(d.unit_path, 0) + 1

    all_units = _collect_units(units)
    # graphviz reads ":" in an edge endpoint as a port, so paths cannot be ids
    node_ids = {path: f"u{i}" for i, path in enumerate(sorted(all_units))}
    for path, unit in sorted(all_units.items()):
        n_unused = unused_items.get(path, 0)
        label = f"{_get_short_name(path)}\n{unit.identity}"
        if n_unused:
            label += f"\n{n_unused} removable"
        dot.node(
            node_ids[path],
            label=label,
            tooltip=path.replace("\\", "/"),
            fillcolor="#FFC107" if n_unused else "#FFFFFF",
        )

    for path, unit in sorted(all_units.items()):
        for ref in unit.project_references:
            if (path, ref.include) in unused_edges:
                dot.edge(node_ids[path], node_ids[ref.unit.path], color="#F44336", style="dashed", penwidth="2")
            else:
                dot.edge(node_ids[path], node_ids[ref.unit.path], color="#4CAF50", style="solid", penwidth="1")

    out_dir = os.path.dirname(output_base)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    dot_path = f"{output_base}.dot"
    svg_path = f"{output_base}.{fmt}"
    dot.save(dot_path)

    try:
        dot.render(output_base, format=fmt, cleanup=True)
    except ExecutableNotFound:
        # Only DOT written; caller should inform user
        svg_path = ""
    return dot_path, svg_path
