"""
On-demand restore/compile through the dotnet CLI.

Restore runs with a fresh ``MSBuildRestoreSessionId`` so MSBuild re-evaluates
the project after restore instead of reusing a cached evaluation. With
``binlog_dir`` set, every call also writes an MSBuild binary log there.
"""
from __future__ import annotations

import logging
import os
import shutil
import subprocess
import uuid
from pathlib import Path
from typing import List, Optional, Protocol

logger = logging.getLogger(__name__)


class BuildOrchestrator(Protocol):
    def restore(self, project_path: str) -> bool:
        ...

    def compile(self, project_path: str) -> bool:
        ...


class DotnetOrchestrator:
    def __init__(
        self,
        dotnet: str = "dotnet",
        configuration: str = "Debug",
        timeout: Optional[float] = None,
        binlog_dir: Optional[str] = None,
    ):
        self.dotnet = dotnet
        self.configuration = configuration
        self.timeout = timeout
        self.binlog_dir = binlog_dir

    def restore(self, project_path: str) -> bool:
        session = str(uuid.uuid4())
        return self._msbuild(project_path, "Restore", [f"-p:MSBuildRestoreSessionId={session}"])

    def compile(self, project_path: str) -> bool:
        return self._msbuild(project_path, "Compile", [])

    def _binlog_arg(self, project_path: str, target: str) -> List[str]:
        if not self.binlog_dir:
            return []
        os.makedirs(self.binlog_dir, exist_ok=True)
        log = os.path.join(os.path.abspath(self.binlog_dir), f"{Path(project_path).stem}.{target.lower()}.binlog")
        return [f"-bl:{log}"]

    def _msbuild(self, project_path: str, target: str, args: List[str]) -> bool:
        exe = shutil.which(self.dotnet) or self.dotnet
        cmd = [
            exe, "msbuild", project_path, "-nologo", "-v:q",
            f"-t:{target}", f"-p:Configuration={self.configuration}",
            *args, *self._binlog_arg(project_path, target),
        ]
        logger.debug("running: %s", " ".join(cmd))
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError:
            logger.error("dotnet executable not found: %s", self.dotnet)
            return False
        except subprocess.TimeoutExpired:
            logger.error("%s timed out after %ss: %s", target, self.timeout, project_path)
            return False
        if proc.returncode != 0:
            tail = (proc.stdout or "").strip().splitlines()[-20:]
            logger.debug("msbuild output for %s:\n%s", project_path, "\n".join(tail))
            return False
        return True
