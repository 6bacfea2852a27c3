"""Tests for the resolution workflow driven by the orchestrator."""

import asyncio
import threading
from datetime import datetime
from unittest.mock import Mock

import pytest

from untwine.backup.manager import BackupManager
from untwine.core.errors import BackupError, FinalValidationError
from untwine.core.result import (
    BuildValidationResult,
    Outcome,
    ResolutionStepResult,
)
from untwine.rules.categories import ConflictType, get_category
from untwine.rules.resolver import AliasResolver, default_resolvers
from untwine.workflow.nodes.analyze import compute_analysis
from untwine.workflow.orchestrator import ConflictResolutionOrchestrator

WINDOW = (
    "using System.Windows;\n"
    "using System.Windows.Forms;\n"
    "\n"
    "class Window1\n"
    "{\n"
    '    void Save() { MessageBox.Show("Saved"); }\n'
    "}\n"
)


def build(errors=0, successful=None, validation_errors=(), **kwargs):
    if successful is None:
        successful = errors == 0 and not validation_errors
    return BuildValidationResult(
        configuration="Debug",
        started_at=datetime.now(),
        finished_at=datetime.now(),
        build_successful=successful,
        exit_code=0 if successful else 1,
        error_count=errors,
        validation_errors=list(validation_errors),
        **kwargs,
    )


def fake_validator(*results):
    validator = Mock()
    validator.validate.side_effect = list(results)
    return validator


class BrokenResolver(AliasResolver):
    def scan_directory(self, *args, **kwargs):
        raise RuntimeError("disk on fire")


@pytest.fixture
def window(project, write_file):
    return write_file(project / "Views" / "Window1.cs", WINDOW)


@pytest.fixture
def backups(tmp_path, project):
    return BackupManager(tmp_path / "backups", source_root=project)


def orchestrate(project, validator, backups=None, **kwargs):
    return ConflictResolutionOrchestrator(
        project_root=project,
        validator=validator,
        backups=backups,
        **kwargs,
    )


def test_clean_build_short_circuits(project, window, backups):
    validator = fake_validator(build(errors=0))
    orchestrator = orchestrate(project, validator, backups)

    result = asyncio.run(orchestrator.resolve_all())

    assert result.success
    assert result.outcome == Outcome.NO_CONFLICTS
    assert result.steps == []
    assert result.backup_session is None
    assert backups.list_sessions() == []
    assert validator.validate.call_count == 1
    assert window.read_text(encoding="utf-8") == WINDOW


def test_build_that_cannot_run_fails(project, window, backups):
    validator = fake_validator(
        build(validation_errors=["Command not found: dotnet"])
    )
    orchestrator = orchestrate(project, validator, backups)

    result = asyncio.run(orchestrator.resolve_all())

    assert not result.success
    assert result.outcome == Outcome.FAILED
    assert result.error_message == (
        "Initial build could not be run: Command not found: dotnet"
    )
    assert result.conflicts == {}
    assert window.read_text(encoding="utf-8") == WINDOW


def test_full_run_resolves(project, window, backups):
    validator = fake_validator(
        build(errors=3), build(errors=0), build(errors=0)
    )
    orchestrator = orchestrate(project, validator, backups)

    result = asyncio.run(orchestrator.resolve_all(configuration="Release"))

    assert result.outcome == Outcome.RESOLVED
    records = result.conflicts[ConflictType.MESSAGE_BOX]
    assert [r.identifier for r in records] == ["MessageBox"]
    assert result.conflicts[ConflictType.VIEW] == []

    assert [s.step_name for s in result.steps] == [
        "TaskDialog Resolution",
        "MessageBox Resolution",
        "UI control Resolution",
        "File dialog Resolution",
        "View Resolution",
    ]
    assert all(s.success for s in result.steps)
    message_box_step = result.steps[1]
    assert message_box_step.files_modified == [window]

    assert "WpfMessageBox.Show" in window.read_text(encoding="utf-8")
    session = result.backup_session
    assert session is not None
    assert session.name.startswith("ConflictResolution_")
    assert [f.original_path for f in session.backed_up_files] == [window]

    assert len(result.intermediate_builds) == 1
    assert result.analysis.errors_resolved == 3
    assert result.analysis.effectiveness_percent == 100.0
    assert result.analysis.total_files_modified == 1
    assert result.analysis.recommendations[-1] == (
        f"Backup created: {session.name}"
    )

    for call in validator.validate.call_args_list:
        assert call.args[0] == "Release"


def test_backup_can_be_disabled(project, window, backups):
    validator = fake_validator(build(errors=1), build(), build())
    orchestrator = orchestrate(project, validator, backups)

    result = asyncio.run(orchestrator.resolve_all(create_backup=False))

    assert result.outcome == Outcome.RESOLVED
    assert result.backup_session is None
    assert backups.list_sessions() == []


def test_failed_step_gives_partial_result(project, window, backups):
    resolvers = default_resolvers()
    resolvers[1] = BrokenResolver(get_category(ConflictType.MESSAGE_BOX))
    validator = fake_validator(
        build(errors=4),
        build(errors=2),
        build(errors=2, conflict_counts={"message_box": 2}),
    )
    orchestrator = orchestrate(project, validator, backups, resolvers=resolvers)

    result = asyncio.run(orchestrator.resolve_all())

    assert result.outcome == Outcome.PARTIAL
    assert result.error_message is None
    failed = result.steps[1]
    assert failed.step_name == "MessageBox Resolution"
    assert not failed.success
    assert failed.error_message == "disk on fire"
    assert all(s.success for s in result.steps[:1] + result.steps[2:])
    assert window.read_text(encoding="utf-8") == WINDOW

    analysis = result.analysis
    assert analysis.errors_resolved == 2
    assert analysis.effectiveness_percent == 50.0
    assert analysis.successful_steps == 4
    assert analysis.total_steps == 5
    assert analysis.recommendations == [
        "2 errors remain after resolution",
        "Remaining conflicts by type:",
        "  message_box: 2 conflicts",
        "Failed resolution steps:",
        "  MessageBox Resolution: disk on fire",
        f"Consider rollback using session: {result.backup_session.id}",
    ]


def test_final_validation_failure_propagates(project, window, backups):
    validator = fake_validator(
        build(errors=1), build(), RuntimeError("build server crashed")
    )
    orchestrator = orchestrate(project, validator, backups)

    with pytest.raises(FinalValidationError, match="build server crashed"):
        asyncio.run(orchestrator.resolve_all())


def test_intermediate_validation_failure_is_tolerated(
    project, window, backups
):
    validator = fake_validator(build(errors=1), RuntimeError("flaky"), build())
    orchestrator = orchestrate(project, validator, backups)

    result = asyncio.run(orchestrator.resolve_all())

    assert result.outcome == Outcome.RESOLVED
    assert result.intermediate_builds == []


def test_backup_failure_stops_before_rewriting(project, window):
    backups = Mock()
    backups.create_backup.side_effect = BackupError("disk full")
    validator = fake_validator(build(errors=1))
    orchestrator = orchestrate(project, validator, backups)

    result = asyncio.run(orchestrator.resolve_all())

    assert result.outcome == Outcome.FAILED
    assert result.error_message == "disk full"
    assert result.initial_build.error_count == 1
    assert ConflictType.MESSAGE_BOX in result.conflicts
    assert result.steps == []
    assert window.read_text(encoding="utf-8") == WINDOW


def test_missing_backup_manager_stops_before_rewriting(project, window):
    validator = fake_validator(build(errors=1))
    orchestrator = orchestrate(project, validator)

    result = asyncio.run(orchestrator.resolve_all())

    assert result.outcome == Outcome.FAILED
    assert result.error_message == (
        "Backup requested but no BackupManager configured"
    )
    assert result.backup_session is None
    assert result.steps == []
    assert validator.validate.call_count == 1
    assert window.read_text(encoding="utf-8") == WINDOW


def test_missing_backup_manager_allowed_when_disabled(project, window):
    validator = fake_validator(build(errors=1), build(), build())
    orchestrator = orchestrate(project, validator, create_backup=False)

    result = asyncio.run(orchestrator.resolve_all())

    assert result.outcome == Outcome.RESOLVED
    assert result.backup_session is None
    assert "WpfMessageBox.Show" in window.read_text(encoding="utf-8")


def test_cancelled_before_start(project, window, backups):
    cancel = threading.Event()
    cancel.set()
    validator = fake_validator()
    orchestrator = orchestrate(project, validator, backups)

    result = asyncio.run(orchestrator.resolve_all(cancel=cancel))

    assert result.outcome == Outcome.FAILED
    assert result.error_message == "Cancelled before initial build"
    assert result.initial_build is None
    validator.validate.assert_not_called()


def test_rollback_restores_files(project, window, backups):
    validator = fake_validator(build(errors=1), build(), build())
    orchestrator = orchestrate(project, validator, backups)
    result = asyncio.run(orchestrator.resolve_all())
    assert window.read_text(encoding="utf-8") != WINDOW

    rollback = orchestrator.rollback(result.backup_session.id)

    assert rollback.success
    assert rollback.restored_files == [window]
    assert window.read_text(encoding="utf-8") == WINDOW


def test_rollback_latest(project, window, backups):
    backups.create_backup([window], "older")
    newest = backups.create_backup([window], "newer")
    window.write_text("changed", encoding="utf-8")

    rollback = orchestrate(project, Mock(), backups).rollback(latest=True)

    assert rollback.success
    assert rollback.session_id == newest.id
    assert window.read_text(encoding="utf-8") == WINDOW


def test_rollback_failures(project, backups):
    orchestrator = orchestrate(project, Mock(), backups)

    missing = orchestrator.rollback()
    assert not missing.success
    assert missing.error_message == (
        "No session given; pass a session id or latest"
    )

    empty = orchestrator.rollback(latest=True)
    assert empty.error_message == "No backup session found for rollback"

    unknown = orchestrator.rollback("nope")
    assert unknown.error_message == "Backup session nope not found"

    unconfigured = orchestrate(project, Mock()).rollback("any")
    assert unconfigured.error_message == "Backups are not configured"


def test_analysis_of_clean_initial_build():
    analysis = compute_analysis(build(errors=0), build(errors=0), [])

    assert analysis.errors_resolved == 0
    assert analysis.effectiveness_percent == 100.0
    assert analysis.recommendations == [
        "All namespace conflicts successfully resolved!",
        "Project builds without errors",
    ]


def test_analysis_when_errors_appear_from_clean_start():
    analysis = compute_analysis(build(errors=0), build(errors=5), [])

    assert analysis.errors_resolved == 0
    assert analysis.effectiveness_percent == 100.0
    assert analysis.recommendations == ["5 errors remain after resolution"]


def test_analysis_never_reports_negative_progress(project):
    now = datetime.now()
    step = ResolutionStepResult(
        step_name="View Resolution",
        category=ConflictType.VIEW,
        started_at=now,
        finished_at=now,
        success=True,
        files_modified=[project / "A.cs", project / "B.cs"],
    )
    again = step.model_copy(update={"files_modified": [project / "A.cs"]})

    analysis = compute_analysis(build(errors=2), build(errors=5), [step, again])

    assert analysis.errors_resolved == 0
    assert analysis.effectiveness_percent == 0.0
    assert analysis.total_files_modified == 2
    assert analysis.recommendations == ["5 errors remain after resolution"]
