"""
Reading assembly identity and assembly references out of compiled artifacts.

``DnfileInspector`` parses the ECMA-335 metadata tables with dnfile:
the single ``Assembly`` row gives the identity and every ``AssemblyRef``
row gives one referenced assembly name.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Protocol, Union

import dnfile
import pefile

from .errors import NotABinaryModuleError
from .unit_types import BinaryInfo

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class BinaryInspector(Protocol):
    def inspect(self, path: PathLike) -> BinaryInfo:
        ...


def _text(value: Any) -> str:
    # newer dnfile wraps heap strings in HeapItemString
    raw = getattr(value, "value", value)
    if isinstance(raw, bytes):
        return raw.decode("utf-8", errors="replace")
    return "" if raw is None else str(raw)


class DnfileInspector:
    """Binary reference oracle backed by dnfile.

    Results are cached per resolved path; the same package assembly is often
    identified for several units in one run.
    """

    def __init__(self) -> None:
        self._cache: Dict[str, BinaryInfo] = {}

    def inspect(self, path: PathLike) -> BinaryInfo:
        key = str(Path(path).resolve())
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        info = self._read(key)
        self._cache[key] = info
        return info

    def _read(self, path: str) -> BinaryInfo:
        try:
            pe = dnfile.dnPE(path)
        except pefile.PEFormatError as e:
            raise NotABinaryModuleError(f"{path} is not a PE file: {e}") from e

        try:
            net = getattr(pe, "net", None)
            tables = getattr(net, "mdtables", None) if net is not None else None
            assembly = getattr(tables, "Assembly", None) if tables is not None else None
            if assembly is None or not assembly.rows:
                raise NotABinaryModuleError(f"{path} is not an assembly")

            identity = _text(assembly.rows[0].Name)
            references = set()
            assembly_refs = getattr(tables, "AssemblyRef", None)
            for row in (assembly_refs.rows if assembly_refs is not None else []):
                name = _text(row.Name)
                if name:
                    references.add(name)
        finally:
            pe.close()

        logger.debug("%s: identity=%s, %d assembly references", path, identity, len(references))
        return BinaryInfo(identity=identity, references=frozenset(references))
