"""
Minimal MSBuild project reader.

This is not an MSBuild evaluator. It reads the handful of properties and
items the resolver needs straight out of the project XML:

  - PropertyGroup properties, with ``$(Name)`` expansion
  - Reference / ProjectReference / PackageReference item includes
  - simple ``'a' == 'b'`` / ``'a' != 'b'`` conditions

Imports (Directory.Build.props, SDK targets) are not followed; SDK defaults
that matter for locating outputs are filled in here instead.
"""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional
from xml.etree import ElementTree as ET

from .errors import ProjectFileError

logger = logging.getLogger(__name__)

_PROPERTY_RE = re.compile(r"\$\(([A-Za-z_][A-Za-z0-9_.\-]*)\)")
_CONDITION_RE = re.compile(r"^\s*'([^']*)'\s*(==|!=)\s*'([^']*)'\s*$")

# SDKs that build nothing to trim
_NO_OUTPUT_SDKS = ("microsoft.build.notargets", "microsoft.build.traversal")


@dataclass
class ReferenceItem:
    include: str  # as written
    implicit: bool = False  # item-list expansion injected by the SDK, e.g. @(_SDKImplicitReference)


@dataclass
class ProjectReferenceItem:
    include: str  # as written
    path: str  # absolute path of the referenced project


@dataclass
class ProjectFile:
    path: str
    properties: Dict[str, str] = field(default_factory=dict)
    references: List[ReferenceItem] = field(default_factory=list)
    project_references: List[ProjectReferenceItem] = field(default_factory=list)
    package_references: List[str] = field(default_factory=list)
    sdk: str = ""

    @property
    def directory(self) -> str:
        return os.path.dirname(self.path)

    @property
    def name(self) -> str:
        return Path(self.path).stem

    def get_property(self, name: str, default: str = "") -> str:
        # MSBuild property names are case-insensitive
        return self.properties.get(name.lower(), default)

    @property
    def output_type(self) -> str:
        return self.get_property("OutputType", "Library") or "Library"

    @property
    def target_framework(self) -> str:
        tfm = self.get_property("TargetFramework")
        if tfm:
            return tfm
        legacy = self.get_property("TargetFrameworkVersion")  # e.g. v4.7.2
        if legacy:
            return "net" + legacy.lstrip("vV").replace(".", "")
        return ""

    @property
    def runtime_identifier(self) -> str:
        return self.get_property("RuntimeIdentifier")

    @property
    def is_sdk_style(self) -> bool:
        return bool(self.sdk)

    def intermediate_assembly(self) -> Optional[str]:
        """Absolute path of obj/<Configuration>/<TFM>/<AssemblyName><ext>, or None."""
        if self.sdk.lower().split("/")[0] in _NO_OUTPUT_SDKS:
            return None
        if self.output_type.lower() == "none":
            return None
        if not self.is_sdk_style and not self.get_property("AssemblyName") and not self.get_property("OutputType"):
            # plain .proj files: traversal/dirs projects
            return None

        assembly_name = self.get_property("AssemblyName") or self.name
        ext = self.get_property("TargetExt") or self._default_target_ext()
        intermediate = self.get_property("IntermediateOutputPath")
        if not intermediate:
            base = self.get_property("BaseIntermediateOutputPath") or "obj"
            configuration = self.get_property("Configuration") or "Debug"
            parts = [base, configuration]
            if self.is_sdk_style and self.target_framework:
                parts.append(self.target_framework)
            if self.is_sdk_style and self.runtime_identifier:
                parts.append(self.runtime_identifier)
            intermediate = os.path.join(*parts)
        return os.path.normpath(os.path.join(self.directory, _native(intermediate), assembly_name + ext))

    def _default_target_ext(self) -> str:
        out = self.output_type.lower()
        if out in ("exe", "winexe") and (not self.is_sdk_style or self.target_framework.startswith("net4")):
            return ".exe"
        return ".dll"

    def assets_file(self) -> str:
        explicit = self.get_property("ProjectAssetsFile")
        if explicit:
            return os.path.normpath(os.path.join(self.directory, _native(explicit)))
        base = self.get_property("MSBuildProjectExtensionsPath") or self.get_property("BaseIntermediateOutputPath") or "obj"
        return os.path.normpath(os.path.join(self.directory, _native(base), "project.assets.json"))


def _native(path: str) -> str:
    return path.replace("\\", os.sep).replace("/", os.sep)


def _local(tag: str) -> str:
    # strip the legacy msbuild/2003 namespace
    return tag.rsplit("}", 1)[-1]


class _Evaluator:
    def __init__(self, properties: Dict[str, str]):
        self.properties = properties

    def expand(self, text: str) -> str:
        return _PROPERTY_RE.sub(lambda m: self.properties.get(m.group(1).lower(), ""), text or "")

    def condition(self, element: ET.Element) -> bool:
        cond = element.get("Condition")
        if not cond:
            return True
        m = _CONDITION_RE.match(self.expand(cond))
        if not m:
            logger.debug("unsupported condition treated as true: %s", cond)
            return True
        left, op, right = m.groups()
        equal = left.strip().lower() == right.strip().lower()
        return equal if op == "==" else not equal


def load_project(path: str, configuration: str = "Debug", global_properties: Optional[Dict[str, str]] = None) -> ProjectFile:
    """Read a project file. Raises ProjectFileError on unreadable XML.

    ``global_properties`` act like ``-p:Name=Value`` on the msbuild command
    line and cannot be overridden by the project; ``configuration`` is one of
    them. A multi-targeting project is read again with its first
    ``TargetFrameworks`` entry as the global ``TargetFramework``, the way the
    inner build sees it.
    """
    full = os.path.abspath(path)
    try:
        root = ET.parse(full).getroot()
    except (ET.ParseError, OSError) as e:
        raise ProjectFileError(f"cannot read project {full}: {e}") from e
    if _local(root.tag) != "Project":
        raise ProjectFileError(f"{full} is not an MSBuild project (root element {_local(root.tag)})")

    fixed = {"configuration": configuration}
    fixed.update({k.lower(): v for k, v in (global_properties or {}).items()})
    project = _evaluate(full, root, fixed)

    if not project.get_property("TargetFramework"):
        frameworks = [t.strip() for t in project.get_property("TargetFrameworks").split(";") if t.strip()]
        if frameworks:
            logger.debug("%s targets %s, reading it for %s", full, ";".join(frameworks), frameworks[0])
            project = _evaluate(full, root, dict(fixed, targetframework=frameworks[0]))
    return project


def _evaluate(full: str, root: ET.Element, fixed: Dict[str, str]) -> ProjectFile:
    props: Dict[str, str] = {
        "msbuildprojectname": Path(full).stem,
        "msbuildprojectfile": os.path.basename(full),
        "msbuildprojectdirectory": os.path.dirname(full),
        "msbuildthisfiledirectory": os.path.dirname(full) + os.sep,
    }
    props.update(fixed)
    sdk = root.get("Sdk", "")
    if not sdk:
        for child in root:
            if _local(child.tag) == "Sdk" and child.get("Name"):
                sdk = child.get("Name", "")
                break

    ev = _Evaluator(props)
    project = ProjectFile(path=full, properties=props, sdk=sdk)

    for group in root:
        kind = _local(group.tag)
        if not ev.condition(group):
            continue
        if kind == "PropertyGroup":
            for prop in group:
                name = _local(prop.tag).lower()
                # global properties are not overridable by the project
                if name in fixed or not ev.condition(prop):
                    continue
                props[name] = ev.expand((prop.text or "").strip())
        elif kind == "ItemGroup":
            for item in group:
                if ev.condition(item):
                    _read_item(project, ev, _local(item.tag), item)

    return project


def _read_item(project: ProjectFile, ev: _Evaluator, tag: str, item: ET.Element) -> None:
    include = item.get("Include")
    if not include:
        # Update/Remove items do not declare anything new
        return
    if tag == "Reference":
        project.references.append(ReferenceItem(include=include, implicit=include.strip().startswith("@(")))
    elif tag == "ProjectReference":
        evaluated = _native(ev.expand(include))
        target = os.path.normpath(os.path.join(project.directory, evaluated))
        project.project_references.append(ProjectReferenceItem(include=include, path=target))
    elif tag == "PackageReference":
        project.package_references.append(ev.expand(include))
