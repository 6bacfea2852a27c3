"""CreateBackup node - snapshot implicated files before rewriting."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from pydantic_graph import BaseNode, GraphRunContext

from untwine.core.errors import BackupError
from untwine.core.result import (
    BuildValidationResult,
    ConflictRecord,
    OrchestrationResult,
)
from untwine.rules.categories import ConflictType
from untwine.workflow.deps import OrchestratorDeps


def implicated_files(conflicts: dict[ConflictType, list[ConflictRecord]]):
    """Distinct files with at least one conflict, sorted."""
    return sorted({
        record.file_path
        for records in conflicts.values()
        for record in records
        if record.file_path is not None
    })


@dataclass
class CreateBackup(BaseNode[None, OrchestratorDeps, OrchestrationResult]):
    """Back up every implicated file in one session.

    A BackupError propagates and stops the run before any file is
    rewritten.
    """

    initial_build: BuildValidationResult
    conflicts: dict[ConflictType, list[ConflictRecord]]

    async def run(
        self, ctx: GraphRunContext[None, OrchestratorDeps]
    ) -> ResolveConflicts:
        deps = ctx.deps
        files = implicated_files(self.conflicts)
        session = None

        if not deps.create_backup:
            deps.log.info("Backups disabled, rewriting in place")
        elif deps.backups is None:
            raise BackupError(
                "Backup requested but no BackupManager configured"
            )
        elif not files:
            deps.log.info("No implicated files to back up")
        else:
            deps.check_cancelled("backup")
            session = await asyncio.to_thread(
                deps.backups.create_backup,
                files,
                f"ConflictResolution_{deps.started_at:%Y%m%d_%H%M%S}",
            )

        from untwine.workflow.nodes.resolve import ResolveConflicts
        return ResolveConflicts(
            initial_build=self.initial_build,
            conflicts=self.conflicts,
            backup_session=session,
        )
