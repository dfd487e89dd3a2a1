"""
Build-unit resolution with per-run memoization.

``UnitResolver.resolve`` turns a project file into a ``UnitDescriptor`` or a
tagged failure. Each canonical path is resolved at most once per resolver;
failures are memoized as well, so a broken project referenced from many
places is reported (and restored/compiled) only once.

Every failure stays at the unit boundary: a unit that cannot be resolved is
simply dropped from the project references of the units that point at it.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, List, Optional, Set

from .binary_refs import BinaryInspector
from .errors import InvalidManifestError, NotABinaryModuleError
from .manifest import load_manifest, package_nodes
from .orchestrator import BuildOrchestrator
from .package_graph import build_closure
from .project_file import ProjectFile, load_project
from .unit_types import ProjectReference, Resolution, SkipReason, UnitDescriptor, fold

logger = logging.getLogger(__name__)


@dataclass
class ResolverOptions:
    compile_if_needed: bool = False
    restore_if_needed: bool = False
    configuration: str = "Debug"
    # output types whose artifact carries its dependencies' binaries
    transitive_output_types: List[str] = field(default_factory=lambda: ["Exe"])
    # base directory for shorter log messages
    root: Optional[str] = None


class _UnitFailure(Exception):
    def __init__(self, reason: SkipReason, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message


def canonical_path(path: str) -> str:
    return os.path.normcase(os.path.abspath(path))


class UnitResolver:
    def __init__(
        self,
        inspector: BinaryInspector,
        orchestrator: Optional[BuildOrchestrator] = None,
        options: Optional[ResolverOptions] = None,
        loader: Callable[..., ProjectFile] = load_project,
    ):
        self.inspector = inspector
        self.orchestrator = orchestrator
        self.options = options or ResolverOptions()
        self.loader = loader
        self._cache: Dict[str, Resolution] = {}
        self._in_progress: Set[str] = set()

    # ---- public API ----
    def resolve(self, path: str) -> Resolution:
        key = canonical_path(path)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        full = os.path.abspath(path)
        if key in self._in_progress:
            msg = f"Project reference cycle through {self._rel(full)}"
            logger.error(msg)
            return Resolution.failure(full, SkipReason.CYCLE, msg)

        self._in_progress.add(key)
        try:
            result = self._resolve_uncached(full)
        finally:
            self._in_progress.discard(key)
        self._cache[key] = result
        return result

    def get(self, path: str) -> Optional[UnitDescriptor]:
        return self.resolve(path).unit

    @property
    def resolutions(self) -> List[Resolution]:
        return list(self._cache.values())

    # ---- internals ----
    def _resolve_uncached(self, path: str) -> Resolution:
        rel = self._rel(path)
        try:
            return Resolution.success(self._build(path))
        except _UnitFailure as e:
            if e.reason is SkipReason.NO_OUTPUT_ARTIFACT:
                logger.debug("%s: %s", rel, e.message)
            else:
                logger.error(e.message)
            return Resolution.failure(path, e.reason, e.message)
        except Exception as e:  # unit boundary
            msg = f"Exception while trying to load: {rel}. Exception: {e!r}"
            logger.error(msg)
            logger.debug("traceback for %s", rel, exc_info=True)
            return Resolution.failure(path, SkipReason.UNEXPECTED, msg)

    def _build(self, path: str) -> UnitDescriptor:
        opts = self.options
        rel = self._rel(path)
        project = self.loader(path, configuration=opts.configuration)

        assembly_path = project.intermediate_assembly()
        if not assembly_path:
            raise _UnitFailure(SkipReason.NO_OUTPUT_ARTIFACT, f"{rel} produces no assembly, skipping")
        self._ensure_assembly(project, assembly_path)

        try:
            info = self.inspector.inspect(assembly_path)
        except NotABinaryModuleError as e:
            raise _UnitFailure(SkipReason.NOT_A_BINARY_MODULE, f"{self._rel(assembly_path)} is not an assembly: {e}") from e
        binary_refs: Set[str] = set(info.references)

        references = tuple(r.include for r in project.references if not r.implicit)

        project_refs: List[ProjectReference] = []
        for item in project.project_references:
            target = self.resolve(item.path).unit
            if target is not None:
                project_refs.append(ProjectReference(unit=target, include=item.include))

        package_refs = tuple(project.package_references)

        if self._needs_transitive_binaries(project.output_type):
            for ref in project_refs:
                binary_refs.update(ref.unit.binary_references)

        package_binaries: Dict[str, FrozenSet[str]] = {}
        if package_refs:
            package_binaries = self._package_binaries(project)

        return UnitDescriptor(
            path=path,
            identity=info.identity,
            binary_references=frozenset(binary_refs),
            references=references,
            project_references=tuple(project_refs),
            package_references=package_refs,
            package_binaries=package_binaries,
            output_type=project.output_type,
        )

    def _ensure_assembly(self, project: ProjectFile, assembly_path: str) -> None:
        if os.path.isfile(assembly_path):
            return
        rel = self._rel(project.path)
        asm_rel = self._rel(assembly_path)
        if not self.options.compile_if_needed or self.orchestrator is None:
            raise _UnitFailure(
                SkipReason.ARTIFACT_MISSING,
                f"Assembly {asm_rel} did not exist. Ensure you've previously built it, "
                f"or set --compile-if-needed. Project: {rel}",
            )

        logger.info("Assembly %s does not exist. Compiling %s...", asm_rel, rel)
        # compile usually needs a restore first
        if self.options.restore_if_needed and not self.orchestrator.restore(project.path):
            raise _UnitFailure(SkipReason.RESTORE_FAILED, f"Project failed to restore: {rel}")
        if not self.orchestrator.compile(project.path):
            raise _UnitFailure(SkipReason.COMPILE_FAILED, f"Project failed to compile: {rel}")
        if not os.path.isfile(assembly_path):
            raise _UnitFailure(SkipReason.ARTIFACT_MISSING, f"Assembly {asm_rel} still missing after compile. Project: {rel}")

    def _package_binaries(self, project: ProjectFile) -> Dict[str, FrozenSet[str]]:
        rel = self._rel(project.path)
        assets = project.assets_file()
        assets_rel = self._rel(assets)
        if not os.path.isfile(assets):
            if not self.options.restore_if_needed or self.orchestrator is None:
                raise _UnitFailure(
                    SkipReason.MANIFEST_MISSING,
                    f"ProjectAssetsFile {assets_rel} did not exist. Ensure you've previously built it, "
                    f"or set --restore-if-needed. Project: {rel}",
                )
            logger.info("ProjectAssetsFile %s did not exist. Restoring %s...", assets_rel, rel)
            if not self.orchestrator.restore(project.path):
                raise _UnitFailure(SkipReason.RESTORE_FAILED, f"Project failed to restore: {rel}")
            if not os.path.isfile(assets):
                raise _UnitFailure(SkipReason.MANIFEST_MISSING, f"ProjectAssetsFile {assets_rel} still missing after restore. Project: {rel}")

        try:
            manifest = load_manifest(assets)
            packages = manifest.select_target(project.target_framework, project.runtime_identifier)
        except InvalidManifestError as e:
            raise _UnitFailure(SkipReason.INVALID_MANIFEST, f"{assets_rel} is not a valid assets file for {rel}: {e}") from e

        nodes = package_nodes(manifest, packages, lambda p: self.inspector.inspect(p).identity)
        closure = build_closure(nodes)
        logger.debug("%s: %d packages, %d provide assemblies", rel, len(nodes), len(closure))
        return {pkg: frozenset(bins) for pkg, bins in closure.items()}

    def _needs_transitive_binaries(self, output_type: str) -> bool:
        return fold(output_type) in {fold(t) for t in self.options.transitive_output_types}

    def _rel(self, path: str) -> str:
        root = self.options.root
        if not root:
            return path
        base = os.path.abspath(root).rstrip(os.sep) + os.sep
        if os.path.normcase(path).startswith(os.path.normcase(base)):
            return path[len(base):]
        return path
