"""Resolve command - full detect, backup, rewrite, validate run."""

from pathlib import Path

from pydantic import BaseModel, Field

from untwine.core.errors import FinalValidationError
from untwine.core.log import logger


class ResolveCommand(BaseModel):
    """Resolve namespace conflicts across the project.

    Builds the project, rewrites ambiguous type references to aliases
    (after backing up every file it will touch), builds again and
    prints a report.
    """

    no_backup: bool = Field(
        default=False,
        alias="no-backup",
        description="Rewrite files without taking a backup session first",
    )
    configuration: str | None = Field(
        default=None,
        description="Build configuration (defaults to config.build.configuration)",
    )
    report: Path | None = Field(
        default=None,
        description="Also write the report to this file",
    )

    async def run_workflow(self, state: "State") -> int:
        """Run the resolution workflow.

        Returns:
            Exit code (0=resolved, 1=not resolved, 2=final build could
            not be validated)
        """
        from untwine.workflow.orchestrator import (
            ConflictResolutionOrchestrator,
        )

        orchestrator = ConflictResolutionOrchestrator.from_config(state.config)
        try:
            result = await orchestrator.resolve_all(
                create_backup=False if self.no_backup else None,
                configuration=self.configuration,
            )
        except FinalValidationError as e:
            logger.error(str(e))
            return 2

        text = orchestrator.generate_report(result)
        print(text)
        if self.report is not None:
            self.report.parent.mkdir(parents=True, exist_ok=True)
            self.report.write_text(text + "\n", encoding="utf-8")
            logger.info(f"Report written to {self.report}")

        return 0 if result.success else 1
