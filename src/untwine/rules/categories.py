"""Declarative table of namespace-conflict categories.

Each category names the short type names that two frameworks both
define, the alias each one is rewritten to, the namespaces whose
joint import makes the name ambiguous, and the compiler diagnostics
that point at it.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import StrEnum


class ConflictType(StrEnum):
    """Conflict categories, in resolution order."""

    TASK_DIALOG = "task_dialog"
    MESSAGE_BOX = "message_box"
    UI_CONTROLS = "ui_controls"
    FILE_DIALOGS = "file_dialogs"
    VIEW = "view"


# Diagnostic bucket for ambiguity errors no category claims
OTHER = "other"


@dataclass(frozen=True)
class AliasRule:
    """One ambiguous short name and the alias that replaces it."""

    short_name: str
    alias: str
    qualified_name: str

    @property
    def directive(self) -> str:
        return f"using {self.alias} = {self.qualified_name};"


@dataclass(frozen=True)
class ConflictCategory:
    """A family of ambiguous type names.

    A file is ambiguous for the category when its using directives
    hit every namespace group in `requires`.
    """

    key: ConflictType
    title: str
    rules: tuple[AliasRule, ...]
    requires: tuple[frozenset[str], ...]
    recommendation: str
    patterns: tuple[re.Pattern, ...] = field(init=False)

    def __post_init__(self):
        names = "|".join(re.escape(r.short_name) for r in self.rules)
        object.__setattr__(self, "patterns", (
            re.compile(
                rf"'(?:[\w.]+\.)?(?:{names})' is an ambiguous reference",
                re.IGNORECASE,
            ),
            re.compile(
                rf"ambiguous reference.*\b(?:{names})\b",
                re.IGNORECASE,
            ),
        ))

    @property
    def short_names(self) -> set[str]:
        return {r.short_name for r in self.rules}

    def rule_for(self, short_name: str) -> AliasRule | None:
        for rule in self.rules:
            if rule.short_name == short_name:
                return rule
        return None

    def applies_to(self, imports: set[str]) -> bool:
        """True when the imported namespaces make the short names
        ambiguous."""
        return all(group & imports for group in self.requires)

    def matches(self, message: str) -> bool:
        """True when a compiler message reports one of the short
        names as ambiguous."""
        return any(p.search(message) for p in self.patterns)


def _rules(names, alias_prefix, namespace):
    return tuple(
        AliasRule(name, f"{alias_prefix}{name}", f"{namespace}.{name}")
        for name in names
    )


WINFORMS = frozenset({"System.Windows.Forms"})

CATEGORIES: tuple[ConflictCategory, ...] = (
    ConflictCategory(
        key=ConflictType.TASK_DIALOG,
        title="TaskDialog",
        rules=(AliasRule(
            "TaskDialog", "RevitTaskDialog", "Autodesk.Revit.UI.TaskDialog"
        ),),
        requires=(
            frozenset({"Autodesk.Revit.UI"}),
            frozenset({
                "System.Windows.Forms",
                "Microsoft.WindowsAPICodePack.Dialogs",
                "Ookii.Dialogs.Wpf",
            }),
        ),
        recommendation="Apply RevitTaskDialog alias",
    ),
    ConflictCategory(
        key=ConflictType.MESSAGE_BOX,
        title="MessageBox",
        rules=(AliasRule(
            "MessageBox", "WpfMessageBox", "System.Windows.MessageBox"
        ),),
        requires=(frozenset({"System.Windows"}), WINFORMS),
        recommendation="Apply WpfMessageBox alias",
    ),
    ConflictCategory(
        key=ConflictType.UI_CONTROLS,
        title="UI control",
        rules=_rules(
            ("TextBox", "ComboBox", "CheckBox", "Button", "ListBox", "Label"),
            "Wpf",
            "System.Windows.Controls",
        ),
        requires=(frozenset({"System.Windows.Controls"}), WINFORMS),
        recommendation="Apply WPF control aliases",
    ),
    ConflictCategory(
        key=ConflictType.FILE_DIALOGS,
        title="file dialog",
        rules=_rules(
            (
                "OpenFileDialog", "SaveFileDialog", "FolderBrowserDialog",
                "ColorDialog", "FontDialog", "PrintDialog", "DialogResult",
            ),
            "WinForms",
            "System.Windows.Forms",
        ),
        requires=(
            WINFORMS,
            frozenset({"Microsoft.Win32", "System.Windows.Controls"}),
        ),
        recommendation="Apply WinForms dialog aliases",
    ),
    ConflictCategory(
        key=ConflictType.VIEW,
        title="View",
        rules=(AliasRule("View", "RevitView", "Autodesk.Revit.DB.View"),),
        requires=(frozenset({"Autodesk.Revit.DB"}), WINFORMS),
        recommendation="Apply RevitView alias",
    ),
)

CATEGORY_BY_KEY = {category.key: category for category in CATEGORIES}


def get_category(key: ConflictType | str) -> ConflictCategory:
    """Look up a category by key ("message_box" or ConflictType)."""
    return CATEGORY_BY_KEY[ConflictType(key)]


__all__ = [
    "AliasRule",
    "CATEGORIES",
    "ConflictCategory",
    "ConflictType",
    "OTHER",
    "get_category",
]
