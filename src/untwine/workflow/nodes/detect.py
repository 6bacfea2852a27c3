"""DetectConflicts node - initial build and source scan."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime

from pydantic_graph import BaseNode, End, GraphRunContext

from untwine.core.result import OrchestrationResult
from untwine.workflow.deps import OrchestratorDeps


@dataclass
class DetectConflicts(BaseNode[None, OrchestratorDeps, OrchestrationResult]):
    """Build the project once and find ambiguous references in its
    sources."""

    async def run(
        self, ctx: GraphRunContext[None, OrchestratorDeps]
    ) -> CreateBackup | End[OrchestrationResult]:
        """Run the initial build, then detect per category.

        Returns:
            End: If the build could not be run, or it has no errors
            CreateBackup: Otherwise
        """
        deps = ctx.deps
        log = deps.log
        deps.check_cancelled("initial build")

        with log.span("Initial build validation"):
            initial = await asyncio.to_thread(
                deps.validator.validate, deps.configuration, deps.cancel
            )

        if initial.validation_errors:
            message = "Initial build could not be run: " + "; ".join(
                initial.validation_errors
            )
            log.error(message)
            return End(OrchestrationResult(
                project_path=deps.project_root,
                started_at=deps.started_at,
                finished_at=datetime.now(),
                success=False,
                error_message=message,
                initial_build=initial,
            ))

        if initial.error_count == 0:
            log.info("Initial build has no errors, nothing to resolve")
            return End(OrchestrationResult(
                project_path=deps.project_root,
                started_at=deps.started_at,
                finished_at=datetime.now(),
                success=True,
                initial_build=initial,
            ))

        log.info(
            f"Initial build: {initial.error_count} errors, "
            f"{initial.warning_count} warnings"
        )

        conflicts = {}
        with log.span("Detecting conflicts"):
            for resolver in deps.resolvers:
                deps.check_cancelled("conflict detection")
                records = await asyncio.to_thread(
                    resolver.detect_directory,
                    deps.project_root,
                    deps.patterns,
                    deps.exclude_dirs,
                    deps.encoding,
                )
                conflicts[resolver.category.key] = records
                log.info(
                    f"{resolver.category.title}: {len(records)} references "
                    f"in {len({r.file_path for r in records})} files"
                )

        from untwine.workflow.nodes.backup import CreateBackup
        return CreateBackup(initial_build=initial, conflicts=conflicts)
