"""Tests for the plain-text resolution report."""

from datetime import UTC, datetime, timedelta
from pathlib import Path

from untwine.backup.manager import BackupSession
from untwine.core.result import (
    BuildValidationResult,
    ConflictRecord,
    OrchestrationAnalysis,
    OrchestrationResult,
    ResolutionStepResult,
    UsageKind,
)
from untwine.rules.categories import ConflictType
from untwine.workflow.report import generate_report

START = datetime(2025, 3, 1, 9, 0, 0)
NOW = datetime(2025, 3, 1, 9, 30, 0)


def build(errors, successful):
    return BuildValidationResult(
        configuration="Debug",
        started_at=START,
        finished_at=START,
        build_successful=successful,
        error_count=errors,
        warning_count=7,
    )


def record(path, identifier="MessageBox"):
    return ConflictRecord(
        category=ConflictType.MESSAGE_BOX,
        file_path=Path(path),
        line=3,
        column=5,
        identifier=identifier,
        usage=UsageKind.STATIC_MEMBER,
    )


def step(name, success, error=None, files=()):
    return ResolutionStepResult(
        step_name=name,
        category=ConflictType.MESSAGE_BOX,
        started_at=START,
        finished_at=START + timedelta(seconds=1.5),
        success=success,
        error_message=error,
        files_modified=[Path(f) for f in files],
    )


def test_no_conflicts_report():
    result = OrchestrationResult(
        project_path=Path("/src/Demo"),
        started_at=START,
        finished_at=START + timedelta(seconds=90),
        success=True,
        initial_build=build(0, True),
    )

    report = generate_report(result, now=NOW)
    lines = report.split("\n")

    assert lines[:6] == [
        "Namespace Conflict Resolution Report",
        "=" * 37,
        "Generated: 2025-03-01 09:30:00",
        f"Project: {Path('/src/Demo')}",
        "Duration: 1.50 minutes",
        "Status: NO CONFLICTS FOUND",
    ]
    assert "Initial State:" in lines
    assert "  Build Status: SUCCESS" in lines
    assert "Resolution Steps:" not in lines
    assert "Backup Information:" not in lines


def test_partial_report_sections():
    created = datetime(2025, 3, 1, 9, 1, 0, tzinfo=UTC)
    session = BackupSession(
        id="abc-123",
        name="ConflictResolution_20250301_090100",
        created_at=created,
        backup_directory=Path("/backups/session"),
    )
    result = OrchestrationResult(
        project_path=Path("/src/Demo"),
        started_at=START,
        finished_at=START + timedelta(minutes=3),
        success=False,
        initial_build=build(4, False),
        conflicts={
            ConflictType.MESSAGE_BOX: [
                record("/src/Demo/A.cs"),
                record("/src/Demo/A.cs"),
                record("/src/Demo/B.cs"),
            ],
        },
        backup_session=session,
        steps=[
            step("MessageBox Resolution", True, files=["/src/Demo/A.cs"]),
            step("View Resolution", False, error="1 files failed"),
        ],
        final_build=build(1, False),
        analysis=OrchestrationAnalysis(
            initial_error_count=4,
            final_error_count=1,
            errors_resolved=3,
            effectiveness_percent=75.0,
            total_files_modified=1,
            successful_steps=1,
            total_steps=2,
            recommendations=["1 errors remain after resolution"],
        ),
    )

    lines = generate_report(result, now=NOW).split("\n")

    assert "Status: RESOLVED WITH REMAINING ISSUES" in lines
    assert "  MessageBox: 3 references in 2 files" in lines
    assert "  TaskDialog: 0 references in 0 files" in lines
    assert "  ✅ MessageBox Resolution: 1 files modified (1.5s)" in lines
    assert "  ❌ View Resolution: 0 files modified (1.5s)" in lines
    assert "      Error: 1 files failed" in lines
    assert "Final State:" in lines
    assert "  Total Errors: 1" in lines
    assert "  Total Warnings: 7" in lines
    assert "  Errors Resolved: 3/4" in lines
    assert "  Resolution Effectiveness: 75.0%" in lines
    assert "  Successful Steps: 1/2" in lines
    assert "  1 errors remain after resolution" in lines
    assert "  Session ID: abc-123" in lines
    assert "  Files Backed Up: 0" in lines


def test_failed_report_shows_error():
    result = OrchestrationResult(
        project_path=Path("/src/Demo"),
        started_at=START,
        success=False,
        error_message="disk full",
    )

    lines = generate_report(result, now=NOW).split("\n")

    assert "Status: FAILED" in lines
    assert "Error: disk full" in lines
    assert "Duration: 0.00 minutes" in lines
    assert "Analysis:" not in lines
