"""Plain-text report of a resolution run."""

from __future__ import annotations

from datetime import datetime

from untwine.core.result import OrchestrationResult, Outcome
from untwine.rules.categories import CATEGORIES

STATUS = {
    Outcome.NO_CONFLICTS: "NO CONFLICTS FOUND",
    Outcome.RESOLVED: "RESOLVED",
    Outcome.PARTIAL: "RESOLVED WITH REMAINING ISSUES",
    Outcome.FAILED: "FAILED",
}


def _build_section(title, build) -> list[str]:
    return [
        f"{title}:",
        "  Build Status: "
        f"{'SUCCESS' if build.build_successful else 'FAILED'}",
        f"  Total Errors: {build.error_count}",
        f"  Total Warnings: {build.warning_count}",
        "",
    ]


def generate_report(
    result: OrchestrationResult, now: datetime | None = None
) -> str:
    """Render a result as text. Pure: reads nothing but its arguments.

    Args:
        result: Result of ConflictResolutionOrchestrator.resolve_all()
        now: Timestamp printed as the generation time (defaults to
            the current time)
    """
    now = now or datetime.now()
    lines = [
        "Namespace Conflict Resolution Report",
        "=" * 37,
        f"Generated: {now:%Y-%m-%d %H:%M:%S}",
        f"Project: {result.project_path}",
        f"Duration: {result.duration / 60:.2f} minutes",
        f"Status: {STATUS[result.outcome]}",
    ]
    if result.error_message:
        lines.append(f"Error: {result.error_message}")
    lines.append("")

    if result.initial_build is not None:
        lines.extend(_build_section("Initial State", result.initial_build))

    if result.conflicts:
        lines.append("Conflicts Detected:")
        for category in CATEGORIES:
            records = result.conflicts.get(category.key, [])
            files = {record.file_path for record in records}
            lines.append(
                f"  {category.title}: {len(records)} references in "
                f"{len(files)} files"
            )
        lines.append("")

    if result.steps:
        lines.append("Resolution Steps:")
        for step in result.steps:
            mark = "✅" if step.success else "❌"
            lines.append(
                f"  {mark} {step.step_name}: {len(step.files_modified)} "
                f"files modified ({step.duration:.1f}s)"
            )
            if not step.success and step.error_message:
                lines.append(f"      Error: {step.error_message}")
        lines.append("")

    if result.final_build is not None:
        lines.extend(_build_section("Final State", result.final_build))

    analysis = result.analysis
    if analysis is not None:
        lines.extend([
            "Analysis:",
            "  Errors Resolved: "
            f"{analysis.errors_resolved}/{analysis.initial_error_count}",
            "  Resolution Effectiveness: "
            f"{analysis.effectiveness_percent:.1f}%",
            f"  Files Modified: {analysis.total_files_modified}",
            "  Successful Steps: "
            f"{analysis.successful_steps}/{analysis.total_steps}",
            "",
        ])
        if analysis.recommendations:
            lines.append("Recommendations:")
            lines.extend(f"  {r}" for r in analysis.recommendations)
            lines.append("")

    session = result.backup_session
    if session is not None:
        lines.extend([
            "Backup Information:",
            f"  Session ID: {session.id}",
            f"  Session Name: {session.name}",
            f"  Files Backed Up: {session.file_count}",
            f"  Created: {session.created_at.astimezone():%Y-%m-%d %H:%M:%S}",
            "",
        ])

    return "\n".join(lines)


__all__ = ["generate_report"]
