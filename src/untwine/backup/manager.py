"""File-level backup sessions with a JSON catalog and rollback."""

from __future__ import annotations

import contextlib
import os
import shutil
import uuid
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from pathlib import Path

from filelock import FileLock
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from untwine.core.errors import BackupError, CatalogError
from untwine.core.log import logger

BACKUP_SUFFIX = ".backup"


class _CatalogModel(BaseModel):
    """Catalog entries are stored with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class BackupFileInfo(_CatalogModel):
    original_path: Path
    backup_path: Path
    file_size: int
    last_modified: datetime
    backup_created: datetime


class BackupSession(_CatalogModel):
    """One snapshot of a set of files."""

    id: str
    name: str
    created_at: datetime
    backup_directory: Path
    backed_up_files: list[BackupFileInfo] = Field(default_factory=list)

    @property
    def file_count(self) -> int:
        return len(self.backed_up_files)


class BackupCatalog(_CatalogModel):
    sessions: list[BackupSession] = Field(default_factory=list)


class RollbackResult(BaseModel):
    """Outcome of restoring a session."""

    session_id: str | None
    success: bool = False
    error_message: str | None = None
    started_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    finished_at: datetime | None = None
    restored_files: list[Path] = Field(default_factory=list)
    failed_files: list[str] = Field(default_factory=list)

    def summary(self) -> str:
        finished = self.finished_at or self.started_at
        lines = [
            f"Rollback Summary for Session: {self.session_id or '(none)'}",
            f"Status: {'SUCCESS' if self.success else 'FAILED'}",
            "Duration: "
            f"{(finished - self.started_at).total_seconds():.2f} seconds",
            f"Restored Files: {len(self.restored_files)}",
        ]
        if self.failed_files:
            lines.append(f"Failed Files: {len(self.failed_files)}")
            lines.append("Failed Files Details:")
            lines.extend(f"  • {failure}" for failure in self.failed_files)
        if self.error_message:
            lines.append(f"Error: {self.error_message}")
        return "\n".join(lines)


class BackupManager:
    """Creates, restores and prunes backup sessions.

    The catalog file is the only record of which sessions exist;
    session directories it does not list are ignored. Every
    read-modify-write of the catalog holds `<catalog>.lock`.
    """

    def __init__(
        self,
        root: Path,
        source_root: Path | None = None,
        catalog_name: str = "backup_metadata.json",
        lock_timeout: float = 30,
        log=logger,
    ):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.source_root = Path(source_root or Path.cwd()).absolute()
        self.catalog_file = self.root / catalog_name
        self.lock = FileLock(
            str(self.catalog_file) + ".lock", timeout=lock_timeout
        )
        self.log = log

    # Catalog

    def _load(self) -> BackupCatalog:
        if not self.catalog_file.exists():
            return BackupCatalog()
        try:
            return BackupCatalog.model_validate_json(
                self.catalog_file.read_text(encoding="utf-8")
            )
        except (OSError, ValidationError) as e:
            raise CatalogError(
                f"Cannot read backup catalog {self.catalog_file}: {e}"
            ) from e

    def _save(self, catalog: BackupCatalog) -> None:
        temp_path = self.catalog_file.with_suffix(
            f".tmp.{uuid.uuid4().hex[:8]}"
        )
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                f.write(catalog.model_dump_json(by_alias=True, indent=2))
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.catalog_file)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise CatalogError(
                f"Cannot write backup catalog {self.catalog_file}: {e}"
            ) from e

    def list_sessions(self) -> list[BackupSession]:
        """Catalog sessions, oldest first."""
        with self.lock:
            return self._load().sessions

    def get_session(self, session_id: str) -> BackupSession | None:
        for session in self.list_sessions():
            if session.id == session_id:
                return session
        return None

    def latest_session(self) -> BackupSession | None:
        sessions = self.list_sessions()
        if not sessions:
            return None
        # Later catalog entries win ties
        return max(reversed(sessions), key=lambda s: s.created_at)

    # Backup

    def _backup_path(self, session_dir: Path, original: Path) -> Path:
        """Mirror the file's place under the source root so that files
        sharing a name do not collide."""
        try:
            relative = original.relative_to(self.source_root)
        except ValueError:
            parts = [p.strip("\\/:") or "root" for p in original.parts]
            relative = Path("_external", *parts)
        return session_dir / relative.parent / (relative.name + BACKUP_SUFFIX)

    def create_backup(
        self, files: Iterable[Path], name: str | None = None
    ) -> BackupSession:
        """Copy every existing file into a new session and record it.

        Missing files are skipped. Any other failure removes the
        partial session directory.

        Raises:
            BackupError: If the session cannot be completed
        """
        now = datetime.now(UTC)
        local = now.astimezone()
        session = BackupSession(
            id=str(uuid.uuid4()),
            name=name or f"Backup_{local:%Y%m%d_%H%M%S}",
            created_at=now,
            backup_directory=self.root / (
                f"session_{local:%Y%m%d_%H%M%S}_{uuid.uuid4().hex[:8]}"
            ),
        )

        with self.log.span(
            "Creating backup {name}",
            name=session.name,
            directory=str(session.backup_directory),
        ):
            try:
                session.backup_directory.mkdir(parents=True)
                seen = set()
                for file_path in files:
                    original = Path(file_path).absolute()
                    if original in seen or not original.is_file():
                        continue
                    seen.add(original)

                    target = self._backup_path(
                        session.backup_directory, original
                    )
                    target.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(original, target)
                    stat = original.stat()
                    session.backed_up_files.append(BackupFileInfo(
                        original_path=original,
                        backup_path=target,
                        file_size=stat.st_size,
                        last_modified=datetime.fromtimestamp(
                            stat.st_mtime, UTC
                        ),
                        backup_created=datetime.now(UTC),
                    ))

                with self.lock:
                    catalog = self._load()
                    catalog.sessions.append(session)
                    self._save(catalog)
            except (OSError, BackupError) as e:
                shutil.rmtree(session.backup_directory, ignore_errors=True)
                if isinstance(e, BackupError):
                    raise
                raise BackupError(
                    f"Backup {session.name} failed: {e}"
                ) from e

        self.log.info(
            "Backed up {count} files to session {session_id}",
            count=session.file_count,
            session_id=session.id,
        )
        return session

    # Rollback

    def rollback(self, session_id: str) -> RollbackResult:
        """Restore every file of a session. Never raises: problems are
        reported on the result."""
        result = RollbackResult(session_id=session_id)
        try:
            session = self.get_session(session_id)
        except (CatalogError, OSError) as e:
            result.error_message = f"Rollback failed: {e}"
            result.finished_at = datetime.now(UTC)
            return result

        if session is None:
            result.error_message = f"Backup session {session_id} not found"
            result.finished_at = datetime.now(UTC)
            return result

        with self.log.span(
            "Rolling back session {session_id}", session_id=session_id
        ):
            for info in session.backed_up_files:
                if not info.backup_path.is_file():
                    result.failed_files.append(
                        f"{info.original_path}: Backup file not found at "
                        f"{info.backup_path}"
                    )
                    continue
                try:
                    info.original_path.parent.mkdir(
                        parents=True, exist_ok=True
                    )
                    shutil.copy2(info.backup_path, info.original_path)
                except OSError as e:
                    result.failed_files.append(f"{info.original_path}: {e}")
                    continue
                result.restored_files.append(info.original_path)

        result.success = not result.failed_files
        result.finished_at = datetime.now(UTC)
        log = self.log.info if result.success else self.log.error
        log(
            "Rollback of {session_id}: {restored} restored, {failed} failed",
            session_id=session_id,
            restored=len(result.restored_files),
            failed=len(result.failed_files),
        )
        return result

    # Maintenance

    def cleanup_older_than(self, max_age: timedelta) -> int:
        """Delete sessions created at or before now - max_age.

        A session whose directory cannot be deleted stays in the
        catalog. Returns the number of sessions removed.
        """
        cutoff = datetime.now(UTC) - max_age
        removed = 0
        with self.lock:
            catalog = self._load()
            kept = []
            for session in catalog.sessions:
                if session.created_at > cutoff:
                    kept.append(session)
                    continue
                try:
                    if session.backup_directory.exists():
                        shutil.rmtree(session.backup_directory)
                except OSError as e:
                    self.log.warn(
                        "Could not delete backup session {session_id}: "
                        "{error}",
                        session_id=session.id,
                        error=str(e),
                    )
                    kept.append(session)
                    continue
                removed += 1

            if removed:
                catalog.sessions = kept
                self._save(catalog)

        self.log.info("Removed {count} backup sessions", count=removed)
        return removed

    def total_backup_size(self) -> int:
        """Bytes used by the directories of catalogued sessions."""
        total = 0
        for session in self.list_sessions():
            if not session.backup_directory.is_dir():
                continue
            for dirpath, _dirnames, filenames in os.walk(
                session.backup_directory
            ):
                for name in filenames:
                    with contextlib.suppress(OSError):
                        total += (Path(dirpath) / name).stat().st_size
        return total


__all__ = [
    "BackupCatalog",
    "BackupFileInfo",
    "BackupManager",
    "BackupSession",
    "RollbackResult",
]
