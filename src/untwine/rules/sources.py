"""Finding, reading and atomically rewriting source files."""

from __future__ import annotations

import codecs
import fnmatch
import os
import shutil
import uuid
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path


@dataclass
class SourceText:
    """Decoded file contents plus what is needed to write them back
    byte-for-byte."""

    text: str
    bom: bool = False
    encoding: str = "utf-8"

    @property
    def newline(self) -> str:
        return "\r\n" if "\r\n" in self.text else "\n"


def iter_source_files(
    root: Path,
    patterns: Iterable[str] = ("*.cs",),
    exclude_dirs: Iterable[str] = (),
) -> Iterator[Path]:
    """Yield matching files under root in a stable order, without
    descending into excluded directory names."""
    patterns = list(patterns)
    excluded = set(exclude_dirs)
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in excluded)
        for name in sorted(filenames):
            if any(fnmatch.fnmatch(name, p) for p in patterns):
                yield Path(dirpath) / name


def read_source(path: Path, encoding: str = "utf-8") -> SourceText:
    """Read a source file, keeping line endings and noting a UTF-8
    byte order mark.

    Raises:
        OSError: If the file cannot be read
        UnicodeDecodeError: If it is not valid in `encoding`
    """
    data = path.read_bytes()
    bom = data.startswith(codecs.BOM_UTF8)
    if bom:
        data = data[len(codecs.BOM_UTF8):]
    return SourceText(data.decode(encoding), bom=bom, encoding=encoding)


def write_source(path: Path, source: SourceText) -> None:
    """Replace path with source through a temporary sibling file, so
    readers never see a half-written file. Permissions are kept."""
    data = source.text.encode(source.encoding)
    if source.bom:
        data = codecs.BOM_UTF8 + data

    temp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")
    try:
        with open(temp_path, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        shutil.copymode(path, temp_path)
        os.replace(temp_path, path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


__all__ = ["SourceText", "iter_source_files", "read_source", "write_source"]
