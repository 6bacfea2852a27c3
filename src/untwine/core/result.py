"""Result types for detection, build validation and orchestration."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from untwine.backup.manager import BackupSession
from untwine.rules.categories import ConflictType


class UsageKind(StrEnum):
    """Syntactic position of a type reference."""

    CONSTRUCTOR = "constructor"
    DECLARATION = "declaration"
    STATIC_MEMBER = "static_member"
    GENERIC_ARGUMENT = "generic_argument"
    ARRAY = "array"
    INHERITANCE = "inheritance"
    CAST = "cast"
    TYPE_TEST = "type_test"
    TUPLE_ELEMENT = "tuple_element"


class ConflictRecord(BaseModel):
    """One ambiguous type reference found in a source file."""

    model_config = ConfigDict(frozen=True)

    category: ConflictType
    file_path: Path | None = None
    line: int
    column: int
    identifier: str
    usage: UsageKind
    snippet: str = ""

    def __str__(self) -> str:
        where = f"{self.file_path}:" if self.file_path else ""
        return (
            f"{where}{self.line}:{self.column} {self.identifier} "
            f"({self.usage})"
        )


class Diagnostic(BaseModel):
    """A compiler error or warning parsed from build output."""

    model_config = ConfigDict(frozen=True)

    file_path: str
    line: int
    column: int
    severity: str
    code: str
    message: str
    project: str | None = None
    raw_text: str = ""


class FunctionalityCheckResult(BaseModel):
    """Outcome of one post-build functionality check."""

    name: str
    success: bool
    message: str = ""
    log_file: Path | None = None
    returncode: int | None = None
    timestamp: datetime


class BuildAnalysis(BaseModel):
    """Where the build errors are and what to do about them."""

    total_errors: int = 0
    categorized: dict[str, int] = Field(default_factory=dict)
    percentages: dict[str, float] = Field(default_factory=dict)
    top_files: list[tuple[str, int]] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class BuildValidationResult(BaseModel):
    """Everything learned from one build run."""

    configuration: str
    started_at: datetime
    finished_at: datetime | None = None
    build_successful: bool = False
    exit_code: int | None = None
    timed_out: bool = False
    error_count: int = 0
    warning_count: int = 0
    errors: list[Diagnostic] = Field(default_factory=list)
    warnings: list[Diagnostic] = Field(default_factory=list)
    conflicts_by_category: dict[str, list[Diagnostic]] = Field(
        default_factory=dict
    )
    conflict_counts: dict[str, int] = Field(default_factory=dict)
    analysis: BuildAnalysis = Field(default_factory=BuildAnalysis)
    functionality_checks: list[FunctionalityCheckResult] = Field(
        default_factory=list
    )
    validation_errors: list[str] = Field(default_factory=list)
    log_file: Path | None = None
    output: str = Field(default="", repr=False)

    @property
    def duration(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def summary(self) -> str:
        lines = [
            f"Build Validation Summary ({self.configuration} configuration)",
            f"Duration: {self.duration:.2f} seconds",
            f"Build Status: {'SUCCESS' if self.build_successful else 'FAILED'}",
            f"Errors: {self.error_count}, Warnings: {self.warning_count}",
        ]

        counts = {k: v for k, v in self.conflict_counts.items() if v}
        if counts:
            lines.append("")
            lines.append("Namespace Conflicts by Type:")
            lines.extend(f"  {k}: {v} conflicts" for k, v in counts.items())

        if self.analysis.recommendations:
            lines.append("")
            lines.append("Recommendations:")
            lines.extend(f"  • {r}" for r in self.analysis.recommendations)

        if self.functionality_checks:
            passed = sum(c.success for c in self.functionality_checks)
            lines.append("")
            lines.append(
                f"Functionality Tests: {passed}/"
                f"{len(self.functionality_checks)} passed"
            )

        if self.validation_errors:
            lines.append("")
            lines.append("Validation Errors:")
            lines.extend(f"  • {e}" for e in self.validation_errors)

        return "\n".join(lines)

    def detailed_errors(self, limit: int = 20) -> str:
        if not self.errors:
            return "No build errors found."

        lines = ["Detailed Build Errors:", "=" * 50]
        for error in self.errors[:limit]:
            lines.extend([
                "",
                f"File: {error.file_path}",
                f"Line: {error.line}, Column: {error.column}",
                f"Code: {error.code}",
                f"Message: {error.message}",
                "-" * 30,
            ])

        if len(self.errors) > limit:
            lines.append("")
            lines.append(f"... and {len(self.errors) - limit} more errors")

        return "\n".join(lines)


class ResolutionStepResult(BaseModel):
    """One resolver run over the project."""

    model_config = ConfigDict(frozen=True)

    step_name: str
    category: ConflictType
    started_at: datetime
    finished_at: datetime
    success: bool
    error_message: str | None = None
    files_modified: list[Path] = Field(default_factory=list)
    files_failed: list[Path] = Field(default_factory=list)

    @property
    def duration(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()


class OrchestrationAnalysis(BaseModel):
    """Before/after comparison of a resolution run."""

    initial_error_count: int
    final_error_count: int
    errors_resolved: int
    effectiveness_percent: float
    total_files_modified: int
    successful_steps: int
    total_steps: int
    recommendations: list[str] = Field(default_factory=list)


class Outcome(StrEnum):
    NO_CONFLICTS = "no_conflicts"
    RESOLVED = "resolved"
    PARTIAL = "partial"
    FAILED = "failed"


class OrchestrationResult(BaseModel):
    """Aggregate result of detect → backup → resolve → validate →
    analyze."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    project_path: Path
    started_at: datetime
    finished_at: datetime | None = None
    success: bool = False
    error_message: str | None = None
    initial_build: BuildValidationResult | None = None
    conflicts: dict[ConflictType, list[ConflictRecord]] = Field(
        default_factory=dict
    )
    backup_session: BackupSession | None = None
    steps: list[ResolutionStepResult] = Field(default_factory=list)
    intermediate_builds: list[BuildValidationResult] = Field(
        default_factory=list
    )
    final_build: BuildValidationResult | None = None
    analysis: OrchestrationAnalysis | None = None

    @property
    def duration(self) -> float:
        if self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def outcome(self) -> Outcome:
        if self.error_message is not None:
            return Outcome.FAILED
        if (
            self.success
            and not self.steps
            and self.initial_build is not None
            and self.initial_build.error_count == 0
        ):
            return Outcome.NO_CONFLICTS
        if self.success:
            return Outcome.RESOLVED
        if self.final_build is not None:
            return Outcome.PARTIAL
        return Outcome.FAILED


__all__ = [
    "BuildAnalysis",
    "BuildValidationResult",
    "ConflictRecord",
    "Diagnostic",
    "FunctionalityCheckResult",
    "OrchestrationAnalysis",
    "OrchestrationResult",
    "Outcome",
    "ResolutionStepResult",
    "UsageKind",
]
