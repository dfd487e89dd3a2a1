import json
import os
import sys
from pathlib import Path

import pytest

# Ensure repo_root/src is available on sys.path before any tests import project modules
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from reftrim.errors import NotABinaryModuleError
from reftrim.unit_types import BinaryInfo


def _key(path) -> str:
    return os.path.normcase(os.path.abspath(str(path)))


class FakeInspector:
    """Binary reference oracle answering from a table instead of reading PE files."""

    def __init__(self):
        self.infos = {}
        self.calls = []

    def register(self, path, identity, references=()):
        self.infos[_key(path)] = BinaryInfo(identity=identity, references=frozenset(references))

    def inspect(self, path):
        self.calls.append(_key(path))
        info = self.infos.get(_key(path))
        if info is None:
            raise NotABinaryModuleError(f"{path} is not an assembly")
        return info


class FakeOrchestrator:
    """Records restore/compile calls; on_compile/on_restore hooks simulate outputs."""

    def __init__(self, restore_ok=True, compile_ok=True):
        self.restore_ok = restore_ok
        self.compile_ok = compile_ok
        self.restored = []
        self.compiled = []
        self.on_restore = None
        self.on_compile = None

    def restore(self, project_path):
        self.restored.append(project_path)
        if self.restore_ok and self.on_restore:
            self.on_restore(project_path)
        return self.restore_ok

    def compile(self, project_path):
        self.compiled.append(project_path)
        if self.compile_ok and self.on_compile:
            self.on_compile(project_path)
        return self.compile_ok


class ProjectTree:
    """Writes SDK-style projects (and their fake outputs) under a temp root."""

    def __init__(self, root: Path, inspector: FakeInspector):
        self.root = root
        self.inspector = inspector
        self.package_folder = root / ".packages"

    def project_path(self, name: str) -> Path:
        return self.root / name / f"{name}.csproj"

    def assembly_path(self, name: str) -> Path:
        return self.root / name / "obj" / "Debug" / "net8.0" / f"{name}.dll"

    def assets_path(self, name: str) -> Path:
        return self.root / name / "obj" / "project.assets.json"

    def add(
        self,
        name,
        references=(),
        project_refs=(),
        packages=(),
        output_type=None,
        binary_refs=(),
        identity=None,
        build=True,
    ) -> Path:
        props = "<TargetFramework>net8.0</TargetFramework>"
        if output_type:
            props += f"<OutputType>{output_type}</OutputType>"
        items = []
        items += [f'<Reference Include="{r}" />' for r in references]
        items += [f'<ProjectReference Include="..\\{p}\\{p}.csproj" />' for p in project_refs]
        items += [f'<PackageReference Include="{p}" Version="1.0.0" />' for p in packages]
        xml = (
            '<Project Sdk="Microsoft.NET.Sdk">\n'
            f"  <PropertyGroup>{props}</PropertyGroup>\n"
            f"  <ItemGroup>{''.join(items)}</ItemGroup>\n"
            "</Project>\n"
        )
        path = self.project_path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(xml, encoding="utf-8")
        if build:
            self.build(name, identity=identity, binary_refs=binary_refs)
        else:
            self.inspector.register(self.assembly_path(name), identity or name, binary_refs)
        return path

    def build(self, name, identity=None, binary_refs=()):
        asm = self.assembly_path(name)
        asm.parent.mkdir(parents=True, exist_ok=True)
        asm.write_bytes(b"MZ")
        self.inspector.register(asm, identity or name, binary_refs)

    def write_assets(self, name, packages, framework="net8.0", place_files=False):
        """packages: {id: {"deps": [...], "compile": [...], "type": "package"}}"""
        target = {}
        libraries = {}
        for pkg_id, info in packages.items():
            key = f"{pkg_id}/1.0.0"
            target[key] = {
                "type": info.get("type", "package"),
                "dependencies": {d: "1.0.0" for d in info.get("deps", [])},
                "compile": {c: {} for c in info.get("compile", [])},
            }
            libraries[key] = {"type": info.get("type", "package"), "path": f"{pkg_id.lower()}/1.0.0"}
            if place_files:
                for c in info.get("compile", []):
                    f = self.package_folder / pkg_id.lower() / "1.0.0" / c
                    f.parent.mkdir(parents=True, exist_ok=True)
                    f.write_bytes(b"MZ")
        data = {
            "version": 3,
            "targets": {framework: target},
            "libraries": libraries,
            "packageFolders": {str(self.package_folder) + os.sep: {}},
        }
        path = self.assets_path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data), encoding="utf-8")
        return path


@pytest.fixture
def inspector():
    return FakeInspector()


@pytest.fixture
def orchestrator():
    return FakeOrchestrator()


@pytest.fixture
def tree(tmp_path, inspector):
    return ProjectTree(tmp_path, inspector)
