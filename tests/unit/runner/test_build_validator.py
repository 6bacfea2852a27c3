"""Tests for BuildValidator."""

import sys
from unittest.mock import Mock

import pytest

from untwine.core.result import FunctionalityCheckResult
from untwine.runner.build import BuildValidator

ERROR_LINE = (
    "Commands/Help.cs(42,17): error CS0104: 'TaskDialog' is an ambiguous "
    "reference between 'Autodesk.Revit.UI.TaskDialog' and "
    "'System.Windows.Forms.TaskDialog' [Demo.csproj]"
)

posix_only = pytest.mark.skipif(
    sys.platform == "win32", reason="uses POSIX shell commands"
)


@pytest.fixture
def failing_build(project, write_file):
    write_file(project / "build.sh", "\n".join([
        "echo 'Build started.'",
        f"echo \"{ERROR_LINE}\"",
        "echo '    1 Error(s)' 1>&2",
        "exit 1",
        "",
    ]))
    return "sh build.sh {configuration}"


def passed_check(name="smoke"):
    check = Mock()
    check.name = name
    check.run.return_value = FunctionalityCheckResult(
        name=name, success=True, message="passed",
        timestamp="2025-01-01T00:00:00",
    )
    return check


def test_build_command_formatting(project):
    validator = BuildValidator(
        project, solution="My App.sln", verbosity="minimal"
    )
    assert validator.build_command("Release") == (
        "dotnet build 'My App.sln' --configuration Release "
        "--verbosity minimal"
    )

    validator.solution = None
    assert validator.build_command("Debug") == (
        "dotnet build --configuration Debug --verbosity minimal"
    )


@posix_only
def test_failed_build_is_parsed(project, failing_build, tmp_path):
    check = passed_check()
    validator = BuildValidator(
        project,
        command=failing_build,
        output_dir=tmp_path / "logs",
        checks=[check],
    )

    result = validator.validate()

    assert not result.build_successful
    assert result.exit_code == 1
    assert result.validation_errors == []
    assert result.error_count == 1
    assert result.conflict_counts["task_dialog"] == 1
    assert result.analysis.recommendations[0] == (
        "Apply RevitTaskDialog alias to resolve 1 TaskDialog conflicts"
    )
    assert result.log_file.name.startswith("build-Debug-")
    assert ERROR_LINE in result.log_file.read_text(encoding="utf-8")
    assert result.finished_at >= result.started_at
    check.run.assert_not_called()
    assert "Build Status: FAILED" in result.summary()
    assert "Code: CS0104" in result.detailed_errors()


@posix_only
def test_successful_build_runs_checks(project, tmp_path):
    check = passed_check()
    validator = BuildValidator(
        project,
        command="echo 'Build succeeded.'",
        output_dir=tmp_path / "logs",
        checks=[check],
    )

    result = validator.validate("Release")

    assert result.build_successful
    assert result.configuration == "Release"
    assert result.error_count == 0
    check.run.assert_called_once_with(project, "Release")
    assert [c.name for c in result.functionality_checks] == ["smoke"]


@posix_only
def test_check_exception_does_not_fail_build(project, tmp_path):
    broken = Mock()
    broken.name = "broken"
    broken.run.side_effect = RuntimeError("no assembly")
    validator = BuildValidator(
        project, command="true", output_dir=tmp_path, checks=[broken]
    )

    result = validator.validate()

    assert result.build_successful
    assert result.functionality_checks == []


@posix_only
def test_timeout_reported(project, tmp_path):
    validator = BuildValidator(
        project, command="sleep 10", timeout=1, output_dir=tmp_path
    )

    result = validator.validate()

    assert not result.build_successful
    assert result.timed_out
    assert result.exit_code == -1
    assert result.validation_errors == [
        "Command timed out after 1s: sleep 10"
    ]


def test_unexpected_exception_reported(project, tmp_path):
    runner = Mock()
    runner.execute.side_effect = RuntimeError("boom")
    validator = BuildValidator(project, output_dir=tmp_path, runner=runner)

    result = validator.validate()

    assert not result.build_successful
    assert result.validation_errors == [
        "Build validation failed with exception: boom"
    ]
    assert result.finished_at is not None
