"""Collaborators shared by every node of a resolution run."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from untwine.backup.manager import BackupManager
from untwine.core.errors import OperationCancelled
from untwine.core.log import logger
from untwine.rules.resolver import AliasResolver
from untwine.runner.build import BuildValidator


@dataclass
class OrchestratorDeps:
    """Read-only run context handed to the graph as deps.

    Nodes never mutate it; everything a phase produces travels on the
    next node's fields.
    """

    project_root: Path
    resolvers: list[AliasResolver]
    validator: BuildValidator
    backups: BackupManager | None = None
    create_backup: bool = True
    configuration: str | None = None
    patterns: list[str] = field(default_factory=lambda: ["*.cs"])
    exclude_dirs: list[str] = field(
        default_factory=lambda: ["bin", "obj", ".git", ".vs", ".untwine"]
    )
    encoding: str = "utf-8"
    cancel: threading.Event | None = None
    started_at: datetime = field(default_factory=datetime.now)
    log: object = logger

    def check_cancelled(self, phase: str) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise OperationCancelled(f"Cancelled before {phase}")


__all__ = ["OrchestratorDeps"]
