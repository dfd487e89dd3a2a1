"""
project.assets.json reader.

Only the parts needed to build package nodes are read:

    targets:        { "<framework>[/<rid>]": { "<id>/<version>": {type, dependencies, compile} } }
    libraries:      { "<id>/<version>": {type, path} }
    packageFolders: { "<folder>": {} }
    project:        { "frameworks": { "<framework>": {targetAlias} } }
"""
from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .errors import InvalidManifestError
from .unit_types import PackageNode

logger = logging.getLogger(__name__)

PLACEHOLDER_FILE = "_._"

_SHORT_TFM_RE = re.compile(r"^(netcoreapp|netstandard|net)(\d+(?:\.\d+)*)(?:-.+)?$", re.IGNORECASE)


@dataclass
class ManifestPackage:
    id: str
    version: str
    type: str
    dependencies: List[str] = field(default_factory=list)
    compile: List[str] = field(default_factory=list)
    path: str = ""  # relative folder inside a package folder

    @property
    def is_package(self) -> bool:
        return self.type.lower() == "package"


@dataclass
class PackageManifest:
    path: str
    targets: Dict[str, List[ManifestPackage]] = field(default_factory=dict)
    package_folders: List[str] = field(default_factory=list)
    # targetAlias (as written in the project) -> framework key of the target
    aliases: Dict[str, str] = field(default_factory=dict)

    def select_target(self, framework: str, runtime: str = "") -> List[ManifestPackage]:
        """Return the packages of the target matching framework (+ runtime).

        ``framework`` may be a short TFM (``net8.0``), a full moniker
        (``.NETCoreApp,Version=v8.0``) or a target alias such as
        ``net8.0-windows``, which restore keys as ``net8.0-windows7.0``.
        With no framework given and a single runtime-agnostic target, that
        target is used.
        """
        wanted = {framework.lower()} if framework else set()
        moniker = framework_moniker(framework) if framework else None
        if moniker:
            wanted.add(moniker.lower())
        alias = self.aliases.get(framework.lower()) if framework else None
        if alias:
            wanted.add(alias.lower())

        candidates = [
            (key.partition("/")[0].lower(), packages)
            for key, packages in self.targets.items()
            if key.partition("/")[2].lower() == (runtime or "").lower()
        ]
        if wanted:
            for fw, packages in candidates:
                if fw in wanted:
                    return packages
            # older assets files without targetAlias: net8.0-windows -> net8.0-windows7.0
            versioned = re.compile(re.escape(framework.lower()) + r"\d+(?:\.\d+)*")
            for fw, packages in candidates:
                if "-" in framework and versioned.fullmatch(fw):
                    return packages
        elif len(candidates) == 1:
            return candidates[0][1]

        raise InvalidManifestError(
            f"{self.path} has no target for framework={framework or '?'} runtime={runtime or '-'}"
            f" (available: {', '.join(sorted(self.targets)) or 'none'})"
        )

    def locate(self, package: ManifestPackage, item: str) -> Optional[str]:
        rel = package.path or os.path.join(package.id.lower(), package.version.lower())
        for folder in self.package_folders:
            candidate = os.path.join(folder, rel, item)
            if os.path.isfile(candidate):
                return candidate
        return None


def framework_moniker(tfm: str) -> Optional[str]:
    """net8.0 -> .NETCoreApp,Version=v8.0; net472 -> .NETFramework,Version=v4.7.2."""
    m = _SHORT_TFM_RE.match(tfm.strip())
    if not m:
        return None
    family, version = m.group(1).lower(), m.group(2)
    if family == "netstandard":
        return f".NETStandard,Version=v{version}"
    if family == "netcoreapp":
        return f".NETCoreApp,Version=v{version}"
    if "." not in version:
        # net472 style: one digit per component
        return f".NETFramework,Version=v{'.'.join(version)}"
    return f".NETCoreApp,Version=v{version}"


def load_manifest(path: str) -> PackageManifest:
    """Parse project.assets.json. Raises InvalidManifestError when malformed."""
    try:
        with open(path, "r", encoding="utf-8-sig") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise InvalidManifestError(f"{path} is not a valid assets file: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("targets"), dict):
        raise InvalidManifestError(f"{path} is not a valid assets file: missing targets")

    libraries: Dict[str, Any] = data.get("libraries") or {}
    manifest = PackageManifest(
        path=path,
        package_folders=[str(p) for p in (data.get("packageFolders") or {})],
    )
    frameworks = (data.get("project") or {}).get("frameworks") or {}
    for key, body in frameworks.items():
        alias = (body or {}).get("targetAlias")
        if alias:
            manifest.aliases[str(alias).lower()] = key
    for target_key, entries in data["targets"].items():
        packages: List[ManifestPackage] = []
        for lib_key, body in (entries or {}).items():
            pkg_id, _, version = lib_key.partition("/")
            body = body or {}
            lib_info = libraries.get(lib_key) or {}
            packages.append(
                ManifestPackage(
                    id=pkg_id,
                    version=version,
                    type=str(body.get("type", lib_info.get("type", ""))),
                    dependencies=list((body.get("dependencies") or {}).keys()),
                    compile=list((body.get("compile") or {}).keys()),
                    path=str(lib_info.get("path", "")),
                )
            )
        manifest.targets[target_key] = packages
    return manifest


def is_placeholder(item: str) -> bool:
    return item.replace("\\", "/").rsplit("/", 1)[-1] == PLACEHOLDER_FILE


def package_nodes(
    manifest: PackageManifest,
    packages: List[ManifestPackage],
    identify: Callable[[str], str],
) -> List[PackageNode]:
    """Turn a target's packages into PackageNodes.

    ``identify`` maps a physical assembly path to its assembly name. Compile
    items that are not found in any package folder fall back to their file
    stem, which matches the assembly name for every normal package.
    """
    nodes: List[PackageNode] = []
    for pkg in packages:
        if not pkg.is_package:
            continue
        binaries = set()
        for item in pkg.compile:
            if is_placeholder(item):
                continue
            located = manifest.locate(pkg, item)
            if located is None:
                logger.debug("%s/%s: %s not found in package folders, using file name", pkg.id, pkg.version, item)
                binaries.add(Path(item.replace("\\", "/")).stem)
            else:
                binaries.add(identify(located))
        nodes.append(
            PackageNode(
                id=pkg.id,
                version=pkg.version,
                binaries=frozenset(binaries),
                dependencies=tuple(pkg.dependencies),
            )
        )
    return nodes
