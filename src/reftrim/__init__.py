"""
reftrim - find .NET project dependencies the compiled assemblies do not use

Simple API:

    from reftrim import analyze_tree

    result = analyze_tree("path/to/repo")
    for d in result.diagnostics:
        print(d.message)   # "PackageReference Foo can be removed from ..."

    # Skipped units and why
    for r in result.skipped:
        print(r.path, r.reason)
"""


def analyze_tree(root=".", **kwargs):
    """Lazy wrapper around runner.run to avoid importing dnfile at package import time."""
    from .config_loader import ReftrimConfig
    from .runner import run

    inspector = kwargs.pop("inspector", None)
    orchestrator = kwargs.pop("orchestrator", None)
    config = ReftrimConfig(root=str(root), **kwargs)
    return run(config, inspector=inspector, orchestrator=orchestrator)


from .analyzer import analyze
from .package_graph import build_closure

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("reftrim")
except PackageNotFoundError:
    # Fallback for development/uninstalled package
    __version__ = "unknown"

__all__ = ["analyze_tree", "analyze", "build_closure", "__version__"]
