"""
Exception types raised inside a single unit's resolution.

The resolver catches all of these at the unit boundary and turns them into a
failed ``Resolution``; only ``ConfigError`` is expected to reach the CLI.
"""
from __future__ import annotations


class ReftrimError(Exception):
    """Base class for reftrim errors."""


class ProjectFileError(ReftrimError):
    """The build-unit file could not be read as MSBuild XML."""


class NotABinaryModuleError(ReftrimError):
    """The artifact is not a managed assembly (no CLR header or no Assembly row)."""


class InvalidManifestError(ReftrimError):
    """project.assets.json is malformed or has no target for the unit."""


class ConfigError(ReftrimError):
    """Invalid or unreadable configuration file."""
