"""FinalAnalysis node - compare before and after."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from pydantic_graph import BaseNode, End, GraphRunContext

from untwine.backup.manager import BackupSession
from untwine.core.result import (
    BuildValidationResult,
    ConflictRecord,
    OrchestrationAnalysis,
    OrchestrationResult,
    ResolutionStepResult,
)
from untwine.rules.categories import ConflictType
from untwine.workflow.deps import OrchestratorDeps


def compute_analysis(
    initial_build: BuildValidationResult,
    final_build: BuildValidationResult,
    steps: list[ResolutionStepResult],
    backup_session: BackupSession | None = None,
) -> OrchestrationAnalysis:
    """Error delta, effectiveness and recommendations for a run.

    Effectiveness is 100 when the initial build had no errors.
    """
    initial = initial_build.error_count
    final = final_build.error_count
    resolved = max(0, initial - final)

    return OrchestrationAnalysis(
        initial_error_count=initial,
        final_error_count=final,
        errors_resolved=resolved,
        effectiveness_percent=resolved / initial * 100 if initial else 100.0,
        total_files_modified=len({
            path for step in steps for path in step.files_modified
        }),
        successful_steps=sum(step.success for step in steps),
        total_steps=len(steps),
        recommendations=_recommendations(final_build, steps, backup_session),
    )


def _recommendations(final_build, steps, backup_session) -> list[str]:
    if final_build.build_successful:
        recommendations = [
            "All namespace conflicts successfully resolved!",
            "Project builds without errors",
        ]
        if backup_session is not None:
            recommendations.append(f"Backup created: {backup_session.name}")
        return recommendations

    recommendations = []
    if final_build.error_count > 0:
        recommendations.append(
            f"{final_build.error_count} errors remain after resolution"
        )
        remaining = {k: v for k, v in final_build.conflict_counts.items() if v}
        if remaining:
            recommendations.append("Remaining conflicts by type:")
            recommendations.extend(
                f"  {key}: {count} conflicts" for key, count in remaining.items()
            )

    failed = [step for step in steps if not step.success]
    if failed:
        recommendations.append("Failed resolution steps:")
        recommendations.extend(
            f"  {step.step_name}: {step.error_message}" for step in failed
        )

    if backup_session is not None:
        recommendations.append(
            f"Consider rollback using session: {backup_session.id}"
        )
    return recommendations


@dataclass
class FinalAnalysis(BaseNode[None, OrchestratorDeps, OrchestrationResult]):
    """Assemble the result of the run."""

    initial_build: BuildValidationResult
    final_build: BuildValidationResult
    conflicts: dict[ConflictType, list[ConflictRecord]]
    backup_session: BackupSession | None = None
    steps: list[ResolutionStepResult] = field(default_factory=list)
    intermediate_builds: list[BuildValidationResult] = field(
        default_factory=list
    )

    async def run(
        self, ctx: GraphRunContext[None, OrchestratorDeps]
    ) -> End[OrchestrationResult]:
        deps = ctx.deps
        analysis = compute_analysis(
            self.initial_build, self.final_build, self.steps,
            self.backup_session,
        )
        deps.log.info(
            f"Analysis complete: {analysis.errors_resolved}/"
            f"{analysis.initial_error_count} errors resolved "
            f"({analysis.effectiveness_percent:.1f}% effectiveness)"
        )
        return End(OrchestrationResult(
            project_path=deps.project_root,
            started_at=deps.started_at,
            finished_at=datetime.now(),
            success=self.final_build.build_successful,
            initial_build=self.initial_build,
            conflicts=self.conflicts,
            backup_session=self.backup_session,
            steps=self.steps,
            intermediate_builds=self.intermediate_builds,
            final_build=self.final_build,
            analysis=analysis,
        ))
