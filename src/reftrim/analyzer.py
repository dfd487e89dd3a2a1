"""
Unused-dependency rules.

Each declared item is checked against the unit's binary reference set:

  - Reference:        its simple assembly name must be referenced
  - ProjectReference: the target unit's identity must be referenced
  - PackageReference: at least one assembly the package provides must be
                      referenced; packages that provide no assemblies at all
                      (analyzers, build tooling) are not checked
"""
from __future__ import annotations

from typing import List

from .unit_types import Diagnostic, DiagnosticKind, UnitDescriptor


def simple_name(include: str) -> str:
    """'Foo, Version=1.0.0.0, Culture=neutral' -> 'Foo'."""
    return include.split(",", 1)[0].strip()


def unused_references(unit: UnitDescriptor) -> List[str]:
    return [r for r in unit.references if not unit.references_binary(simple_name(r))]


def unused_project_references(unit: UnitDescriptor) -> List[str]:
    return [
        ref.include
        for ref in unit.project_references
        if not unit.references_binary(ref.unit.identity)
    ]


def unused_package_references(unit: UnitDescriptor) -> List[str]:
    unused: List[str] = []
    for package in unit.package_references:
        binaries = unit.binaries_for_package(package)
        if binaries is None:
            continue
        if not any(unit.references_binary(b) for b in binaries):
            unused.append(package)
    return unused


def analyze(unit: UnitDescriptor) -> List[Diagnostic]:
    diagnostics: List[Diagnostic] = []
    for item in unused_references(unit):
        diagnostics.append(Diagnostic(unit.path, DiagnosticKind.REFERENCE, item))
    for item in unused_project_references(unit):
        diagnostics.append(Diagnostic(unit.path, DiagnosticKind.PROJECT_REFERENCE, item))
    for item in unused_package_references(unit):
        diagnostics.append(Diagnostic(unit.path, DiagnosticKind.PACKAGE_REFERENCE, item))
    return diagnostics
