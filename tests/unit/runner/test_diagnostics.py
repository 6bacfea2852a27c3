"""Tests for diagnostic parsing, categorization and analysis."""

import pytest

from untwine.rules.categories import OTHER
from untwine.runner.diagnostics import analyze, categorize, parse_line, parse_output

TASK_DIALOG_ERROR = (
    r"C:\proj\Commands\HelpCommand.cs(42,17): error CS0104: 'TaskDialog' "
    r"is an ambiguous reference between 'Autodesk.Revit.UI.TaskDialog' and "
    r"'System.Windows.Forms.TaskDialog' [C:\proj\Demo.csproj]"
)
MESSAGE_BOX_ERROR = (
    r"C:\proj\Views\Main.cs(10,13): error CS0104: 'MessageBox' is an "
    r"ambiguous reference between 'System.Windows.MessageBox' and "
    r"'System.Windows.Forms.MessageBox' [C:\proj\Demo.csproj]"
)
TIMER_ERROR = (
    r"C:\proj\Services\Poll.cs(7,9): error CS0104: 'Timer' is an ambiguous "
    r"reference between 'System.Threading.Timer' and 'System.Timers.Timer'"
)
MISSING_TYPE_ERROR = (
    r"C:\proj\Views\Main.cs(20,5): error CS0246: The type or namespace "
    r"name 'Foo' could not be found"
)
WARNING = (
    r"C:\proj\Views\Main.cs(3,1): warning CS8019: Unnecessary using "
    r"directive. [C:\proj\Demo.csproj]"
)


def test_parse_line_with_project_suffix():
    diagnostic = parse_line("  " + TASK_DIALOG_ERROR)

    assert diagnostic.file_path == r"C:\proj\Commands\HelpCommand.cs"
    assert (diagnostic.line, diagnostic.column) == (42, 17)
    assert diagnostic.severity == "error"
    assert diagnostic.code == "CS0104"
    assert diagnostic.message.startswith("'TaskDialog' is an ambiguous")
    assert diagnostic.message.endswith("'System.Windows.Forms.TaskDialog'")
    assert diagnostic.project == r"C:\proj\Demo.csproj"
    assert diagnostic.raw_text == TASK_DIALOG_ERROR


def test_parse_line_without_project():
    diagnostic = parse_line(TIMER_ERROR)

    assert diagnostic.project is None
    assert diagnostic.message.endswith("'System.Timers.Timer'")


@pytest.mark.parametrize("line", [
    "",
    "Build started 1/1/2025 10:00:00.",
    "    2 Error(s)",
    "Program.cs: error: no position",
])
def test_parse_line_ignores_other_lines(line):
    assert parse_line(line) is None


def test_task_dialog_error_categorized():
    parsed = parse_output(TASK_DIALOG_ERROR)
    grouped = categorize(parsed.errors)

    assert parsed.error_count == 1
    assert [e.code for e in grouped["task_dialog"]] == ["CS0104"]
    assert {key for key, errors in grouped.items() if errors} == {
        "task_dialog"
    }


def test_duplicates_collapsed_and_summary_wins():
    output = "\n".join([
        "Build started.",
        TASK_DIALOG_ERROR,
        MESSAGE_BOX_ERROR,
        WARNING,
        "",
        "Build FAILED.",
        "",
        TASK_DIALOG_ERROR,
        MESSAGE_BOX_ERROR,
        WARNING,
        "    1 Warning(s)",
        "    7 Error(s)",
    ])
    parsed = parse_output(output)

    assert len(parsed.errors) == 2
    assert len(parsed.warnings) == 1
    assert parsed.error_count == 7
    assert parsed.warning_count == 1


def test_counts_fall_back_to_parsed_lines():
    parsed = parse_output("\n".join([TASK_DIALOG_ERROR, WARNING]))

    assert parsed.error_count == 1
    assert parsed.warning_count == 1


def test_categorize_is_additive_with_other_bucket():
    both = parse_line(
        r"A.cs(1,1): error CS0104: ambiguous reference between View and "
        r"MessageBox"
    )
    errors = [both, parse_line(TIMER_ERROR), parse_line(MISSING_TYPE_ERROR)]

    grouped = categorize(errors)

    assert grouped["view"] == [both]
    assert grouped["message_box"] == [both]
    assert [e.file_path for e in grouped[OTHER]] == [r"C:\proj\Services\Poll.cs"]
    assert grouped["ui_controls"] == []
    assert sum(len(v) for v in grouped.values()) == 3


def test_analyze():
    errors = parse_output("\n".join([
        TASK_DIALOG_ERROR,
        TASK_DIALOG_ERROR.replace("(42,17)", "(50,9)"),
        MESSAGE_BOX_ERROR,
    ])).errors
    counts = {k: len(v) for k, v in categorize(errors).items()}

    analysis = analyze(errors, counts)

    assert analysis.total_errors == 3
    assert analysis.categorized == {"task_dialog": 2, "message_box": 1}
    assert analysis.top_files[0] == (r"C:\proj\Commands\HelpCommand.cs", 2)
    assert analysis.percentages["task_dialog"] == pytest.approx(200 / 3)
    assert analysis.recommendations == [
        "Apply RevitTaskDialog alias to resolve 2 TaskDialog conflicts",
        "Apply WpfMessageBox alias to resolve 1 MessageBox conflicts",
        r"Focus on C:\proj\Commands\HelpCommand.cs which has 2 errors",
    ]


def test_analyze_without_errors():
    analysis = analyze([], {})

    assert analysis.total_errors == 0
    assert analysis.percentages == {}
    assert analysis.recommendations == []
