from __future__ import annotations

import fnmatch
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .analyzer import analyze
from .binary_refs import BinaryInspector, DnfileInspector
from .config_loader import ReftrimConfig
from .orchestrator import BuildOrchestrator, DotnetOrchestrator
from .resolver import ResolverOptions, UnitResolver
from .unit_types import Diagnostic, Resolution, SkipReason, UnitDescriptor

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    root: str
    units: List[UnitDescriptor] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    skipped: List[Resolution] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": "1.0",
            "root": self.root,
            "summary": {
                "units_analyzed": len(self.units),
                "units_skipped": len(self.skipped),
                "unused": len(self.diagnostics),
            },
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "skipped": [
                {"unit": r.path, "reason": r.reason.value if r.reason else None, "message": r.message}
                for r in self.skipped
            ],
        }


def _matches(rel: str, patterns: List[str]) -> bool:
    # "**/x/**" should also match "x/..." at the root
    for pat in patterns:
        if fnmatch.fnmatch(rel, pat):
            return True
        if pat.startswith("**/") and fnmatch.fnmatch(rel, pat[3:]):
            return True
    return False


def discover_projects(root: str, include: List[str], exclude: List[str]) -> List[str]:
    """Recursively collect project files under root, sorted by path."""
    base = Path(root)
    collected: List[str] = []
    for dirpath, dirnames, filenames in os.walk(base):
        # prune excluded dirs
        for d in list(dirnames):
            rel = (Path(dirpath) / d).relative_to(base).as_posix()
            if _matches(rel + "/", exclude) or _matches(rel, exclude):
                dirnames.remove(d)
        for fn in filenames:
            rel = (Path(dirpath) / fn).relative_to(base).as_posix()
            if _matches(rel, exclude):
                continue
            if any(fnmatch.fnmatch(fn, pat) or fnmatch.fnmatch(rel, pat) for pat in include):
                collected.append(os.path.abspath(os.path.join(dirpath, fn)))
    return sorted(collected)


def run(
    config: ReftrimConfig,
    inspector: Optional[BinaryInspector] = None,
    orchestrator: Optional[BuildOrchestrator] = None,
) -> RunResult:
    root = os.path.abspath(config.root)
    if inspector is None:
        inspector = DnfileInspector()
    if orchestrator is None and (config.compile_if_needed or config.restore_if_needed):
        orchestrator = DotnetOrchestrator(
            dotnet=config.dotnet,
            configuration=config.configuration,
            timeout=config.build_timeout,
            binlog_dir=config.binlog,
        )

    resolver = UnitResolver(
        inspector,
        orchestrator,
        ResolverOptions(
            compile_if_needed=config.compile_if_needed,
            restore_if_needed=config.restore_if_needed,
            configuration=config.configuration,
            transitive_output_types=list(config.transitive_output_types),
            root=root,
        ),
    )

    result = RunResult(root=root)
    projects = discover_projects(root, config.include, config.exclude)
    logger.info("Found %d project files under %s", len(projects), root)

    for project_path in projects:
        resolution = resolver.resolve(project_path)
        if resolution.unit is None:
            continue
        result.units.append(resolution.unit)
        result.diagnostics.extend(analyze(resolution.unit))

    # referenced units outside the scanned tree or failed ones show up here too
    result.skipped = [
        r for r in resolver.resolutions
        if not r.ok and r.reason is not SkipReason.NO_OUTPUT_ARTIFACT
    ]
    return result


def save_json_report(result: RunResult, output_path: Path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as f:
        json.dump(result.to_dict(), f, indent=2, ensure_ascii=False)
    return output_path
