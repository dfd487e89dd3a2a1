from __future__ import annotations

import os
from pathlib import Path

import pytest

from reftrim.errors import ProjectFileError
from reftrim.project_file import load_project


def _w(p: Path, rel: str, content: str) -> Path:
    f = p / rel
    f.parent.mkdir(parents=True, exist_ok=True)
    f.write_text(content, encoding="utf-8")
    return f


SDK_PROJECT = """<Project Sdk="Microsoft.NET.Sdk">
  <PropertyGroup>
    <TargetFrameworks>net8.0;net48</TargetFrameworks>
    <AssemblyName>Contoso.$(MSBuildProjectName)</AssemblyName>
    <OutputType>Exe</OutputType>
  </PropertyGroup>
  <PropertyGroup Condition="'$(Configuration)' == 'Release'">
    <RuntimeIdentifier>win-x64</RuntimeIdentifier>
  </PropertyGroup>
  <ItemGroup>
    <Reference Include="System.Xml" />
    <Reference Include="@(_SDKImplicitReference)" />
    <ProjectReference Include="..\\Lib\\Lib.csproj" />
    <PackageReference Include="Newtonsoft.Json" Version="13.0.3" />
    <PackageReference Update="Ignored" Version="1.0.0" />
  </ItemGroup>
  <ItemGroup Condition="'$(Configuration)' != 'Debug'">
    <PackageReference Include="ReleaseOnly" Version="1.0.0" />
  </ItemGroup>
</Project>
"""


def test_sdk_project_items_and_output(tmp_path: Path) -> None:
    path = _w(tmp_path, "App/App.csproj", SDK_PROJECT)
    project = load_project(str(path))

    assert project.target_framework == "net8.0"
    assert project.output_type == "Exe"
    assert project.runtime_identifier == ""
    assert [r.include for r in project.references] == ["System.Xml", "@(_SDKImplicitReference)"]
    assert [r.implicit for r in project.references] == [False, True]
    assert project.package_references == ["Newtonsoft.Json"]
    assert project.project_references[0].include == "..\\Lib\\Lib.csproj"
    assert project.project_references[0].path == str(tmp_path / "Lib" / "Lib.csproj")
    assert project.intermediate_assembly() == str(tmp_path / "App" / "obj" / "Debug" / "net8.0" / "Contoso.App.dll")
    assert project.assets_file() == str(tmp_path / "App" / "obj" / "project.assets.json")


def test_conditions_follow_configuration(tmp_path: Path) -> None:
    path = _w(tmp_path, "App/App.csproj", SDK_PROJECT)
    project = load_project(str(path), configuration="Release")

    assert project.runtime_identifier == "win-x64"
    assert project.package_references == ["Newtonsoft.Json", "ReleaseOnly"]
    assert project.intermediate_assembly() == str(
        tmp_path / "App" / "obj" / "Release" / "net8.0" / "win-x64" / "Contoso.App.dll"
    )


def test_legacy_project_with_namespace(tmp_path: Path) -> None:
    path = _w(
        tmp_path,
        "Old/Old.csproj",
        """<?xml version="1.0" encoding="utf-8"?>
<Project ToolsVersion="15.0" xmlns="http://schemas.microsoft.com/developer/msbuild/2003">
  <PropertyGroup>
    <OutputType>WinExe</OutputType>
    <AssemblyName>OldApp</AssemblyName>
    <TargetFrameworkVersion>v4.7.2</TargetFrameworkVersion>
  </PropertyGroup>
  <ItemGroup>
    <Reference Include="System.Windows.Forms, Version=4.0.0.0, Culture=neutral" />
  </ItemGroup>
</Project>
""",
    )
    project = load_project(str(path))
    assert not project.is_sdk_style
    assert project.target_framework == "net472"
    assert project.references[0].include.startswith("System.Windows.Forms,")
    assert project.intermediate_assembly() == str(tmp_path / "Old" / "obj" / "Debug" / "OldApp.exe")


def test_explicit_assets_file_and_intermediate_path(tmp_path: Path) -> None:
    path = _w(
        tmp_path,
        "Lib/Lib.csproj",
        """<Project Sdk="Microsoft.NET.Sdk">
  <PropertyGroup>
    <TargetFramework>netstandard2.0</TargetFramework>
    <IntermediateOutputPath>..\\artifacts\\obj\\Lib\\</IntermediateOutputPath>
    <ProjectAssetsFile>..\\artifacts\\obj\\Lib\\project.assets.json</ProjectAssetsFile>
  </PropertyGroup>
</Project>
""",
    )
    project = load_project(str(path))
    expected_dir = tmp_path / "artifacts" / "obj" / "Lib"
    assert project.intermediate_assembly() == str(expected_dir / "Lib.dll")
    assert project.assets_file() == str(expected_dir / "project.assets.json")


@pytest.mark.parametrize(
    "xml",
    [
        '<Project Sdk="Microsoft.Build.NoTargets/3.7.0"><PropertyGroup><TargetFramework>net8.0</TargetFramework></PropertyGroup></Project>',
        "<Project><ItemGroup><ProjectReference Include=\"src\\A.csproj\" /></ItemGroup></Project>",
    ],
)
def test_projects_without_output(tmp_path: Path, xml: str) -> None:
    path = _w(tmp_path, "build/dirs.proj", xml)
    assert load_project(str(path)).intermediate_assembly() is None


def test_invalid_xml_raises(tmp_path: Path) -> None:
    path = _w(tmp_path, "Bad/Bad.csproj", "<Project><PropertyGroup>")
    with pytest.raises(ProjectFileError):
        load_project(str(path))


def test_not_a_project_root(tmp_path: Path) -> None:
    path = _w(tmp_path, "x.csproj", "<Solution />")
    with pytest.raises(ProjectFileError):
        load_project(str(path))


def test_properties_are_case_insensitive(tmp_path: Path) -> None:
    path = _w(
        tmp_path,
        "App/App.csproj",
        '<Project Sdk="Microsoft.NET.Sdk"><PropertyGroup><targetframework>net6.0</targetframework>'
        "<Suffix>$(TARGETFRAMEWORK)-x</Suffix></PropertyGroup></Project>",
    )
    project = load_project(str(path))
    assert project.get_property("TargetFramework") == "net6.0"
    assert project.get_property("suffix") == "net6.0-x"
    assert os.path.basename(project.path) == "App.csproj"


MULTI_TARGET_PROJECT = """<Project Sdk="Microsoft.NET.Sdk">
  <PropertyGroup>
    <TargetFrameworks>net8.0;net48</TargetFrameworks>
  </PropertyGroup>
  <PropertyGroup Condition="'$(TargetFramework)' == 'net8.0'">
    <OutputType>Exe</OutputType>
  </PropertyGroup>
  <ItemGroup Condition="'$(TargetFramework)' == 'net8.0'">
    <PackageReference Include="Foo" Version="1.0.0" />
    <ProjectReference Include="..\\Core\\Core.csproj" />
  </ItemGroup>
  <ItemGroup Condition="'$(TargetFramework)' == 'net48'">
    <Reference Include="System.Web" />
  </ItemGroup>
</Project>
"""


def test_multi_targeting_reads_items_for_first_framework(tmp_path: Path) -> None:
    path = _w(tmp_path, "App/App.csproj", MULTI_TARGET_PROJECT)
    project = load_project(str(path))

    assert project.target_framework == "net8.0"
    assert project.output_type == "Exe"
    assert project.package_references == ["Foo"]
    assert [p.path for p in project.project_references] == [str(tmp_path / "Core" / "Core.csproj")]
    assert project.references == []
    assert project.intermediate_assembly() == str(tmp_path / "App" / "obj" / "Debug" / "net8.0" / "App.dll")


def test_global_properties_cannot_be_overridden(tmp_path: Path) -> None:
    path = _w(tmp_path, "App/App.csproj", MULTI_TARGET_PROJECT)
    project = load_project(str(path), global_properties={"TargetFramework": "net48"})

    assert project.target_framework == "net48"
    assert project.output_type == "Library"
    assert project.package_references == []
    assert [r.include for r in project.references] == ["System.Web"]


def test_configuration_is_a_global_property(tmp_path: Path) -> None:
    path = _w(
        tmp_path,
        "App/App.csproj",
        '<Project Sdk="Microsoft.NET.Sdk"><PropertyGroup><TargetFramework>net8.0</TargetFramework>'
        "<Configuration>Debug</Configuration></PropertyGroup></Project>",
    )
    project = load_project(str(path), configuration="Release")
    assert project.get_property("Configuration") == "Release"
    assert project.intermediate_assembly() == str(tmp_path / "App" / "obj" / "Release" / "net8.0" / "App.dll")
