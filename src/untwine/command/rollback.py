"""Rollback command - restore files from a backup session."""

from pydantic import BaseModel, Field

from untwine.core.log import logger


class RollbackCommand(BaseModel):
    """Restore the files of a backup session.

    Either --session or --latest is required; there is no implicit
    default session.
    """

    session: str | None = Field(
        default=None,
        description="Id of the session to restore",
    )
    latest: bool = Field(
        default=False,
        description="Restore the most recent session",
    )

    async def run_workflow(self, state: "State") -> int:
        from untwine.workflow.orchestrator import (
            ConflictResolutionOrchestrator,
        )

        orchestrator = ConflictResolutionOrchestrator.from_config(state.config)
        result = orchestrator.rollback(self.session, latest=self.latest)
        print(result.summary())
        if not result.success:
            logger.error(result.error_message or "Rollback failed")
            return 1
        return 0
