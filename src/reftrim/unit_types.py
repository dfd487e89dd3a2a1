from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Tuple


def fold(name: str) -> str:
    """Normalize an assembly or package name for case-insensitive comparison."""
    return name.casefold()


def fold_all(names: Iterable[str]) -> FrozenSet[str]:
    return frozenset(fold(n) for n in names)


class SkipReason(Enum):
    NO_OUTPUT_ARTIFACT = "no_output_artifact"
    ARTIFACT_MISSING = "artifact_missing"
    RESTORE_FAILED = "restore_failed"
    COMPILE_FAILED = "compile_failed"
    NOT_A_BINARY_MODULE = "not_a_binary_module"
    MANIFEST_MISSING = "manifest_missing"
    INVALID_MANIFEST = "invalid_manifest"
    CYCLE = "cycle"
    UNEXPECTED = "unexpected"


class DiagnosticKind(Enum):
    REFERENCE = "Reference"
    PROJECT_REFERENCE = "ProjectReference"
    PACKAGE_REFERENCE = "PackageReference"


@dataclass(frozen=True)
class BinaryInfo:
    """Identity and referenced assembly names of one compiled artifact."""

    identity: str
    references: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class PackageNode:
    id: str
    version: str
    binaries: FrozenSet[str] = frozenset()  # direct compile-time assembly names
    dependencies: Tuple[str, ...] = ()  # direct dependency ids


@dataclass(frozen=True)
class ProjectReference:
    unit: "UnitDescriptor"
    include: str  # as written in the project file


@dataclass(frozen=True, eq=False)
class UnitDescriptor:
    """Resolved, immutable view of one build unit.

    ``binary_references`` already includes the transitive merge for output
    types that carry their dependencies' binaries (see the resolver).
    Lookups through ``references_binary`` and ``binaries_for_package`` are
    case-insensitive.
    """

    path: str
    identity: str
    binary_references: FrozenSet[str]
    references: Tuple[str, ...] = ()
    project_references: Tuple[ProjectReference, ...] = ()
    package_references: Tuple[str, ...] = ()
    package_binaries: Mapping[str, FrozenSet[str]] = field(default_factory=dict)
    output_type: str = "Library"
    _folded_refs: FrozenSet[str] = field(init=False, repr=False)
    _folded_pkgs: Dict[str, FrozenSet[str]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_folded_refs", fold_all(self.binary_references))
        object.__setattr__(
            self,
            "_folded_pkgs",
            {fold(k): frozenset(v) for k, v in self.package_binaries.items()},
        )

    def references_binary(self, name: str) -> bool:
        return fold(name) in self._folded_refs

    def binaries_for_package(self, package_id: str) -> Optional[FrozenSet[str]]:
        """Return the package's transitive binaries, or None when it provides none."""
        return self._folded_pkgs.get(fold(package_id))


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one build unit: a descriptor or a tagged failure."""

    path: str
    unit: Optional[UnitDescriptor] = None
    reason: Optional[SkipReason] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.unit is not None

    @classmethod
    def success(cls, unit: UnitDescriptor) -> "Resolution":
        return cls(path=unit.path, unit=unit)

    @classmethod
    def failure(cls, path: str, reason: SkipReason, message: str) -> "Resolution":
        return cls(path=path, reason=reason, message=message)


@dataclass(frozen=True)
class Diagnostic:
    unit_path: str
    kind: DiagnosticKind
    item: str

    @property
    def message(self) -> str:
        return f"{self.kind.value} {self.item} can be removed from {self.unit_path}"

    def to_dict(self) -> Dict[str, str]:
        return {"unit": self.unit_path, "kind": self.kind.value, "item": self.item}
