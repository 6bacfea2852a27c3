"""ResolveConflicts node - one rewrite step per category."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime

from pydantic_graph import BaseNode, GraphRunContext

from untwine.backup.manager import BackupSession
from untwine.core.errors import OperationCancelled
from untwine.core.result import (
    BuildValidationResult,
    ConflictRecord,
    OrchestrationResult,
    ResolutionStepResult,
)
from untwine.rules.categories import ConflictType
from untwine.rules.resolver import AliasResolver
from untwine.workflow.deps import OrchestratorDeps


def step_name(resolver: AliasResolver) -> str:
    title = resolver.category.title
    return f"{title[0].upper()}{title[1:]} Resolution"


@dataclass
class ResolveConflicts(BaseNode[None, OrchestratorDeps, OrchestrationResult]):
    """Run every resolver over the project in table order.

    Each step is recorded, including steps with nothing to do and
    steps that fail. Cancellation stops the run with the steps done
    so far kept on this node.
    """

    initial_build: BuildValidationResult
    conflicts: dict[ConflictType, list[ConflictRecord]]
    backup_session: BackupSession | None = None
    steps: list[ResolutionStepResult] = field(default_factory=list)
    intermediate_builds: list[BuildValidationResult] = field(
        default_factory=list
    )

    async def run(
        self, ctx: GraphRunContext[None, OrchestratorDeps]
    ) -> ValidateBuild:
        deps = ctx.deps
        for resolver in deps.resolvers:
            deps.check_cancelled(step_name(resolver))
            self.steps.append(await self._run_step(deps, resolver))

        # Progress check only; the final build decides success
        try:
            self.intermediate_builds.append(await asyncio.to_thread(
                deps.validator.validate, deps.configuration, deps.cancel
            ))
        except Exception as e:
            deps.log.warn(f"Intermediate build validation failed: {e}")

        from untwine.workflow.nodes.validate import ValidateBuild
        return ValidateBuild(
            initial_build=self.initial_build,
            conflicts=self.conflicts,
            backup_session=self.backup_session,
            steps=self.steps,
            intermediate_builds=self.intermediate_builds,
        )

    async def _run_step(
        self, deps: OrchestratorDeps, resolver: AliasResolver
    ) -> ResolutionStepResult:
        name = step_name(resolver)
        started = datetime.now()
        try:
            with deps.log.span(name):
                report = await asyncio.to_thread(
                    resolver.scan_directory,
                    deps.project_root,
                    deps.patterns,
                    deps.exclude_dirs,
                    deps.cancel,
                    deps.encoding,
                )
        except OperationCancelled as e:
            self.steps.append(ResolutionStepResult(
                step_name=name,
                category=resolver.category.key,
                started_at=started,
                finished_at=datetime.now(),
                success=False,
                error_message=str(e),
            ))
            raise
        except Exception as e:
            deps.log.error(f"{name} failed: {e}")
            return ResolutionStepResult(
                step_name=name,
                category=resolver.category.key,
                started_at=started,
                finished_at=datetime.now(),
                success=False,
                error_message=str(e),
            )

        error_message = None
        if report.failed:
            error_message = f"{len(report.failed)} files failed: " + "; ".join(
                f"{path}: {error}" for path, error in report.failed.items()
            )
        deps.log.info(
            f"{name}: {len(report.modified)} files modified, "
            f"{report.references_rewritten} references rewritten"
        )
        return ResolutionStepResult(
            step_name=name,
            category=resolver.category.key,
            started_at=started,
            finished_at=datetime.now(),
            success=not report.failed,
            error_message=error_message,
            files_modified=report.modified,
            files_failed=list(report.failed),
        )
