"""Parse, categorize and analyze compiler diagnostics."""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from untwine.core.result import BuildAnalysis, Diagnostic
from untwine.rules.categories import CATEGORIES, OTHER, ConflictCategory

DIAGNOSTIC = re.compile(
    r"^\s*(?P<path>.+?)\((?P<line>\d+),(?P<column>\d+)\):\s*"
    r"(?P<severity>error|warning)\s+(?P<code>\w+)\s*:\s*"
    r"(?P<message>.*?)(?:\s+\[(?P<project>[^\]]+)\])?\s*$",
    re.IGNORECASE,
)
ERROR_SUMMARY = re.compile(r"(\d+)\s+Error\(s\)", re.IGNORECASE)
WARNING_SUMMARY = re.compile(r"(\d+)\s+Warning\(s\)", re.IGNORECASE)
AMBIGUOUS = re.compile(r"ambiguous reference", re.IGNORECASE)
AMBIGUOUS_CODE = "CS0104"


@dataclass
class ParsedOutput:
    errors: list[Diagnostic] = field(default_factory=list)
    warnings: list[Diagnostic] = field(default_factory=list)
    error_count: int = 0
    warning_count: int = 0


def parse_line(line: str) -> Diagnostic | None:
    m = DIAGNOSTIC.match(line)
    if not m:
        return None
    return Diagnostic(
        file_path=m["path"].strip(),
        line=int(m["line"]),
        column=int(m["column"]),
        severity=m["severity"].lower(),
        code=m["code"],
        message=m["message"],
        project=m["project"],
        raw_text=line.strip(),
    )


def parse_output(output: str) -> ParsedOutput:
    """Extract diagnostics and counts from build output.

    MSBuild repeats every diagnostic in its closing summary, so
    identical diagnostics are kept once. When the output has an
    "N Error(s)" / "N Warning(s)" summary, the last one wins over the
    number of parsed lines.
    """
    parsed = ParsedOutput()
    seen = set()
    error_total = warning_total = None

    for line in output.splitlines():
        diagnostic = parse_line(line)
        if diagnostic is not None:
            key = (
                diagnostic.file_path, diagnostic.line, diagnostic.column,
                diagnostic.severity, diagnostic.code, diagnostic.message,
            )
            if key not in seen:
                seen.add(key)
                if diagnostic.severity == "error":
                    parsed.errors.append(diagnostic)
                else:
                    parsed.warnings.append(diagnostic)
            continue

        m = ERROR_SUMMARY.search(line)
        if m:
            error_total = int(m.group(1))
        m = WARNING_SUMMARY.search(line)
        if m:
            warning_total = int(m.group(1))

    parsed.error_count = (
        len(parsed.errors) if error_total is None else error_total
    )
    parsed.warning_count = (
        len(parsed.warnings) if warning_total is None else warning_total
    )
    return parsed


def categorize(
    errors: Iterable[Diagnostic],
    categories: Iterable[ConflictCategory] = CATEGORIES,
) -> dict[str, list[Diagnostic]]:
    """Group errors by conflict category.

    An error may land in several categories. Ambiguity errors that
    no category claims go under "other".
    """
    categories = list(categories)
    grouped: dict[str, list[Diagnostic]] = {
        str(category.key): [] for category in categories
    }
    grouped[OTHER] = []

    for error in errors:
        hit = False
        for category in categories:
            if category.matches(error.message):
                grouped[str(category.key)].append(error)
                hit = True
        if not hit and (
            error.code.upper() == AMBIGUOUS_CODE
            or AMBIGUOUS.search(error.message)
        ):
            grouped[OTHER].append(error)
    return grouped


def analyze(
    errors: list[Diagnostic],
    conflict_counts: dict[str, int],
    categories: Iterable[ConflictCategory] = CATEGORIES,
) -> BuildAnalysis:
    """Rank files by error count, weigh categories and suggest
    fixes."""
    per_file = Counter(error.file_path for error in errors)
    top_files = per_file.most_common(5)

    total = sum(conflict_counts.values())
    percentages = (
        {key: count / total * 100 for key, count in conflict_counts.items()}
        if total else {}
    )

    recommendations = []
    for category in categories:
        count = conflict_counts.get(str(category.key), 0)
        if count:
            recommendations.append(
                f"{category.recommendation} to resolve {count} "
                f"{category.title} conflicts"
            )
    if top_files:
        path, count = top_files[0]
        recommendations.append(f"Focus on {path} which has {count} errors")

    return BuildAnalysis(
        total_errors=len(errors),
        categorized={k: v for k, v in conflict_counts.items() if v},
        percentages=percentages,
        top_files=top_files,
        recommendations=recommendations,
    )


__all__ = [
    "ParsedOutput",
    "analyze",
    "categorize",
    "parse_line",
    "parse_output",
]
