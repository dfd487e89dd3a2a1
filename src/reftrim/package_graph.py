"""
Package dependency graph and binary closure.

A package "provides" every assembly it contributes directly plus every
assembly contributed by any package it depends on, directly or transitively.
We compute this by walking the reversed graph (dependency -> dependents)
outward from each contributing package.

Packages that neither contribute assemblies nor depend on a contributor are
left out of the result entirely. The analyzer uses that absence to tell
"provides nothing to check" (analyzers, build tooling) apart from
"provides something unused".
"""
from __future__ import annotations

from collections import deque
from typing import Dict, Iterable, List, Set

from .unit_types import PackageNode, fold


def build_dependents(nodes: Iterable[PackageNode]) -> Dict[str, Set[str]]:
    """Reverse the dependency edges: folded dependency id -> folded dependent ids."""
    dependents: Dict[str, Set[str]] = {}
    for node in nodes:
        for dep in node.dependencies:
            dependents.setdefault(fold(dep), set()).add(fold(node.id))
    return dependents


def build_closure(nodes: Iterable[PackageNode]) -> Dict[str, Set[str]]:
    """Map each package id to the assemblies reachable through it.

    One breadth-first walk per contributing package, each with its own
    visited set, so cycles terminate and a package reached from several
    contributors accumulates all of their assemblies.
    """
    node_list: List[PackageNode] = list(nodes)
    # first spelling wins for output keys
    display: Dict[str, str] = {}
    for node in node_list:
        display.setdefault(fold(node.id), node.id)

    dependents = build_dependents(node_list)
    closure: Dict[str, Set[str]] = {}

    for node in node_list:
        if not node.binaries:
            continue
        start = fold(node.id)
        seen: Set[str] = {start}
        queue = deque([start])
        while queue:
            current = queue.popleft()
            closure.setdefault(current, set()).update(node.binaries)
            for dependent in dependents.get(current, ()):
                if dependent not in seen:
                    seen.add(dependent)
                    queue.append(dependent)

    return {display.get(key, key): binaries for key, binaries in closure.items()}
