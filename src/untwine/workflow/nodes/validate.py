"""ValidateBuild node - final build after all rewrites."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from pydantic_graph import BaseNode, GraphRunContext

from untwine.backup.manager import BackupSession
from untwine.core.errors import FinalValidationError
from untwine.core.result import (
    BuildValidationResult,
    ConflictRecord,
    OrchestrationResult,
    ResolutionStepResult,
)
from untwine.rules.categories import ConflictType
from untwine.workflow.deps import OrchestratorDeps


@dataclass
class ValidateBuild(BaseNode[None, OrchestratorDeps, OrchestrationResult]):
    """Run the final build. Failures to validate are not caught by the
    orchestrator."""

    initial_build: BuildValidationResult
    conflicts: dict[ConflictType, list[ConflictRecord]]
    backup_session: BackupSession | None = None
    steps: list[ResolutionStepResult] = field(default_factory=list)
    intermediate_builds: list[BuildValidationResult] = field(
        default_factory=list
    )

    async def run(
        self, ctx: GraphRunContext[None, OrchestratorDeps]
    ) -> FinalAnalysis:
        deps = ctx.deps
        try:
            with deps.log.span("Final build validation"):
                final = await asyncio.to_thread(
                    deps.validator.validate, deps.configuration, deps.cancel
                )
        except Exception as e:
            raise FinalValidationError(
                f"Final build validation failed: {e}"
            ) from e

        from untwine.workflow.nodes.analyze import FinalAnalysis
        return FinalAnalysis(
            initial_build=self.initial_build,
            conflicts=self.conflicts,
            backup_session=self.backup_session,
            steps=self.steps,
            intermediate_builds=self.intermediate_builds,
            final_build=final,
        )
