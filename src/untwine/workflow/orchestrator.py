"""Drives a full resolution run and exposes rollback and reporting."""

from __future__ import annotations

import threading
from datetime import UTC, datetime
from pathlib import Path

from untwine.backup.manager import BackupManager, RollbackResult
from untwine.core.errors import FinalValidationError
from untwine.core.log import logger
from untwine.core.result import OrchestrationResult
from untwine.rules.resolver import AliasResolver, default_resolvers
from untwine.runner.build import BuildValidator
from untwine.workflow.deps import OrchestratorDeps
from untwine.workflow.graph import create_workflow
from untwine.workflow.report import generate_report


class ConflictResolutionOrchestrator:
    """Detect → backup → resolve → validate → analyze over one
    project.

    Only FinalValidationError escapes resolve_all(); any other failure
    comes back as an unsuccessful result carrying whatever the run had
    gathered.
    """

    def __init__(
        self,
        project_root: Path,
        validator: BuildValidator,
        backups: BackupManager | None = None,
        resolvers: list[AliasResolver] | None = None,
        patterns: list[str] | None = None,
        exclude_dirs: list[str] | None = None,
        encoding: str = "utf-8",
        create_backup: bool = True,
        log=logger,
    ):
        self.project_root = Path(project_root)
        self.validator = validator
        self.backups = backups
        self.resolvers = (
            resolvers if resolvers is not None else default_resolvers(log)
        )
        self.patterns = patterns or ["*.cs"]
        self.exclude_dirs = (
            exclude_dirs if exclude_dirs is not None
            else ["bin", "obj", ".git", ".vs", ".untwine"]
        )
        self.encoding = encoding
        self.create_backup = create_backup
        self.log = log
        self.workflow = create_workflow()

    @classmethod
    def from_config(cls, config, log=logger) -> ConflictResolutionOrchestrator:
        project = config.project
        return cls(
            project_root=project.root,
            validator=BuildValidator.from_config(config, log=log),
            backups=BackupManager(
                config.backup.root,
                source_root=project.root,
                catalog_name=config.backup.catalog_name,
                log=log,
            ),
            resolvers=default_resolvers(log),
            patterns=project.source_patterns,
            exclude_dirs=project.exclude_dirs,
            encoding=project.encoding,
            create_backup=config.backup.enabled,
            log=log,
        )

    async def resolve_all(
        self,
        create_backup: bool | None = None,
        configuration: str | None = None,
        cancel: threading.Event | None = None,
    ) -> OrchestrationResult:
        """Run the whole workflow.

        Raises:
            FinalValidationError: If the final build could not be
                validated
        """
        from untwine.workflow.nodes.detect import DetectConflicts

        deps = OrchestratorDeps(
            project_root=self.project_root,
            resolvers=self.resolvers,
            validator=self.validator,
            backups=self.backups,
            create_backup=(
                self.create_backup if create_backup is None else create_backup
            ),
            configuration=configuration,
            patterns=self.patterns,
            exclude_dirs=self.exclude_dirs,
            encoding=self.encoding,
            cancel=cancel,
            log=self.log,
        )

        last_node = None
        with self.log.span(
            "Resolving namespace conflicts in {project}",
            project=str(self.project_root),
        ):
            try:
                async with self.workflow.iter(
                    DetectConflicts(), deps=deps
                ) as run:
                    async for node in run:
                        last_node = node
                result = run.result.output
            except FinalValidationError:
                raise
            except Exception as e:
                self.log.error(f"Conflict resolution failed: {e}")
                result = _partial_result(last_node, deps, str(e))

        self.log.info(
            f"Conflict resolution finished: {result.outcome} "
            f"in {result.duration:.1f}s"
        )
        return result

    def rollback(
        self, session_id: str | None = None, *, latest: bool = False
    ) -> RollbackResult:
        """Restore a backup session: the given one, or the most recent
        one when latest is set."""
        if self.backups is None:
            return _failed_rollback(session_id, "Backups are not configured")

        if session_id is None:
            if not latest:
                return _failed_rollback(
                    None, "No session given; pass a session id or latest"
                )
            try:
                session = self.backups.latest_session()
            except Exception as e:
                return _failed_rollback(None, f"Rollback failed: {e}")
            if session is None:
                return _failed_rollback(
                    None, "No backup session found for rollback"
                )
            session_id = session.id

        self.log.info(f"Rolling back changes using session: {session_id}")
        result = self.backups.rollback(session_id)
        self.log.info(f"Rollback completed. Success: {result.success}")
        return result

    def generate_report(self, result: OrchestrationResult) -> str:
        return generate_report(result)


def _failed_rollback(session_id, message) -> RollbackResult:
    now = datetime.now(UTC)
    return RollbackResult(
        session_id=session_id,
        success=False,
        error_message=message,
        started_at=now,
        finished_at=now,
    )


def _partial_result(node, deps: OrchestratorDeps, message: str):
    """Result of an interrupted run, built from the fields of the last
    node reached."""
    return OrchestrationResult(
        project_path=deps.project_root,
        started_at=deps.started_at,
        finished_at=datetime.now(),
        success=False,
        error_message=message,
        initial_build=getattr(node, "initial_build", None),
        conflicts=getattr(node, "conflicts", None) or {},
        backup_session=getattr(node, "backup_session", None),
        steps=list(getattr(node, "steps", [])),
        intermediate_builds=list(getattr(node, "intermediate_builds", [])),
        final_build=getattr(node, "final_build", None),
    )


__all__ = ["ConflictResolutionOrchestrator"]
