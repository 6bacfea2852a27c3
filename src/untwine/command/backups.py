"""Backups and cleanup commands - inspect and prune the catalog."""

from datetime import timedelta

from pydantic import BaseModel, Field

from untwine.backup.manager import BackupManager


def _manager(config) -> BackupManager:
    return BackupManager(
        config.backup.root,
        source_root=config.project.root,
        catalog_name=config.backup.catalog_name,
    )


class BackupsCommand(BaseModel):
    """List backup sessions, oldest first."""

    async def run_workflow(self, state: "State") -> int:
        manager = _manager(state.config)
        sessions = manager.list_sessions()
        if not sessions:
            print("No backup sessions.")
            return 0

        for session in sessions:
            print(
                f"{session.id}  {session.created_at.astimezone():%Y-%m-%d %H:%M:%S}  "
                f"{session.file_count:>4} files  {session.name}"
            )
        print(f"Total size: {manager.total_backup_size()} bytes")
        return 0


class CleanupCommand(BaseModel):
    """Delete backup sessions older than a number of days."""

    max_age_days: int | None = Field(
        default=None,
        alias="max-age-days",
        description="Age limit in days (defaults to config.backup.max_age_days)",
    )

    async def run_workflow(self, state: "State") -> int:
        days = (
            self.max_age_days if self.max_age_days is not None
            else state.config.backup.max_age_days
        )
        removed = _manager(state.config).cleanup_older_than(
            timedelta(days=days)
        )
        print(f"Removed {removed} backup sessions older than {days} days.")
        return 0
