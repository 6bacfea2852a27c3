"""Alias-based resolution of ambiguous type references.

One AliasResolver per ConflictCategory. Detection is read-only;
resolution returns new text and leaves writing to scan_files().
"""

from __future__ import annotations

import threading
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from untwine.core.errors import OperationCancelled
from untwine.core.log import logger
from untwine.core.result import ConflictRecord, UsageKind
from untwine.rules.categories import CATEGORIES, AliasRule, ConflictCategory
from untwine.rules.lexer import IDENT, SourceScan, Token, scan
from untwine.rules.sources import (
    iter_source_files,
    read_source,
    write_source,
)

# A name right after these is being declared, not referenced
_DECLARING = {
    "class", "struct", "interface", "enum", "record", "namespace",
    "delegate",
}

# Identifiers that cannot be the variable in `Type name`
_KEYWORDS = {
    "as", "is", "in", "out", "ref", "where", "when", "and", "or", "not",
    "with", "switch", "return", "new", "this", "base", "null", "true",
    "false", "default", "typeof", "sizeof", "nameof", "operator",
}


@dataclass
class Resolution:
    """Rewritten text for one file."""

    content: str
    aliases_added: list[str] = field(default_factory=list)
    references_rewritten: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.aliases_added or self.references_rewritten)


@dataclass
class ScanReport:
    """Outcome of resolving a batch of files."""

    modified: list[Path] = field(default_factory=list)
    failed: dict[Path, str] = field(default_factory=dict)
    references_rewritten: int = 0


@dataclass(frozen=True)
class _Occurrence:
    token: Token
    rule: AliasRule
    usage: UsageKind


def classify(prev: Token | None, nxt: Token | None) -> UsageKind | None:
    """Syntactic position of a type name from its neighbours, or None
    when the name is not in a position we rewrite."""
    p = prev.text if prev else ""
    n = nxt.text if nxt else ""

    if p == "new":
        return UsageKind.CONSTRUCTOR
    if p in ("as", "is"):
        return UsageKind.TYPE_TEST
    if n == ".":
        return UsageKind.STATIC_MEMBER
    if n == "[":
        return UsageKind.ARRAY
    if p == "<" or n == ">":
        return UsageKind.GENERIC_ARGUMENT
    if p == ":":
        return UsageKind.INHERITANCE
    if p == "(" and n == ")":
        return UsageKind.CAST
    if nxt is not None and nxt.kind == IDENT and n not in _KEYWORDS:
        return UsageKind.DECLARATION
    if n == "?":
        return UsageKind.DECLARATION
    return None


# Tokens that may sit between `is` and a type inside a pattern
_PATTERN_WORDS = {"not", "or", "and"}


def _after_is(tokens: list[Token], j: int) -> bool:
    """True when tokens[j] continues a pattern opened by `is`."""
    while j >= 0:
        tok = tokens[j]
        if tok.text == "is":
            return True
        if tok.kind == IDENT or tok.text in (".", "(", ")"):
            j -= 1
            continue
        return False
    return False


def _in_generic_list(tokens: list[Token], j: int) -> bool:
    """True when tokens[j] sits inside a `Name<...>` argument list."""
    depth = 0
    while j >= 0:
        tok = tokens[j]
        if tok.text == ">":
            depth += 1
        elif tok.text == "<":
            if not depth:
                return j > 0 and tokens[j - 1].kind == IDENT
            depth -= 1
        elif tok.kind != IDENT and tok.text not in (
            ",", ".", "::", "?", "[", "]",
        ):
            return False
        j -= 1
    return False


def _closes_tuple_type(tokens: list[Token], j: int) -> bool:
    """True when the parenthesised list around tokens[j] is a tuple
    type, i.e. its `)` is followed by a declared name or a type
    suffix."""
    depth = 0
    for k in range(j, len(tokens)):
        text = tokens[k].text
        if text in (";", "{", "}"):
            return False
        if text == "(":
            depth += 1
        elif text == ")":
            if depth:
                depth -= 1
                continue
            after = tokens[k + 1] if k + 1 < len(tokens) else None
            if after is None:
                return False
            if after.kind == IDENT:
                return after.text not in _KEYWORDS
            return after.text in ("?", ">")
    return False


def classify_in_context(
    tokens: list[Token], index: int,
) -> UsageKind | None:
    """Positions that need more than the immediate neighbours: names
    after pattern combinators and inside comma-separated type lists."""
    prev = tokens[index - 1] if index else None
    nxt = tokens[index + 1] if index + 1 < len(tokens) else None
    p = prev.text if prev else ""
    n = nxt.text if nxt else ""

    if p in _PATTERN_WORDS and _after_is(tokens, index - 1):
        return UsageKind.TYPE_TEST
    if p == "," and _in_generic_list(tokens, index - 1):
        return UsageKind.GENERIC_ARGUMENT
    if (
        p in ("(", ",") and n in (",", ")")
        and _closes_tuple_type(tokens, index + 1)
    ):
        return UsageKind.TUPLE_ELEMENT
    return None


class AliasResolver:
    """Detects and rewrites one category's ambiguous references."""

    def __init__(self, category: ConflictCategory, log=logger):
        self.category = category
        self.log = log

    def __repr__(self) -> str:
        return f"AliasResolver({self.category.key})"

    def _occurrences(self, source: SourceScan) -> list[_Occurrence]:
        if not self.category.applies_to(source.imports):
            return []

        tokens = source.tokens
        bound = source.aliases
        found = []
        for index, tok in enumerate(tokens):
            if tok.kind != IDENT:
                continue
            rule = self.category.rule_for(tok.text)
            if rule is None or tok.text in bound:
                continue
            if source.in_directive(tok.start):
                continue

            prev = tokens[index - 1] if index else None
            nxt = tokens[index + 1] if index + 1 < len(tokens) else None
            if prev is not None and (
                prev.text in (".", "::") or prev.text in _DECLARING
            ):
                continue
            # `View? name` and `(View?, int)` need the token after the `?`
            if nxt is not None and nxt.text == "?":
                after = tokens[index + 2] if index + 2 < len(tokens) else None
                if after is None or not (
                    after.kind == IDENT or after.text in (",", ")", ">")
                ):
                    continue

            usage = classify(prev, nxt)
            if usage is None:
                usage = classify_in_context(tokens, index)
            if usage is not None:
                found.append(_Occurrence(tok, rule, usage))
        return found

    def detect(
        self, content: str, file_path: Path | None = None
    ) -> list[ConflictRecord]:
        """Return every ambiguous reference in content. Pure."""
        source = scan(content)
        lines = content.split("\n")
        return [
            ConflictRecord(
                category=self.category.key,
                file_path=file_path,
                line=occ.token.line,
                column=occ.token.column,
                identifier=occ.token.text,
                usage=occ.usage,
                snippet=lines[occ.token.line - 1].strip(),
            )
            for occ in self._occurrences(source)
        ]

    def summarize(self, content: str) -> Counter:
        """Count ambiguous references in content by usage kind."""
        return Counter(occ.usage for occ in self._occurrences(scan(content)))

    def resolve(self, content: str) -> Resolution:
        """Rewrite every ambiguous reference to its alias and add the
        missing alias directives. Running it again changes nothing."""
        source = scan(content)
        occurrences = self._occurrences(source)
        if not occurrences:
            return Resolution(content)

        existing = source.aliases
        needed = sorted({
            occ.rule.directive for occ in occurrences
            if occ.rule.alias not in existing
        })

        edits = [
            (occ.token.start, occ.token.end, occ.rule.alias)
            for occ in occurrences
        ]
        if needed:
            edits.append(_directive_insertion(source, needed))
        edits.sort(key=lambda edit: (edit[0], edit[1]))

        pieces = []
        pos = 0
        for start, end, replacement in edits:
            pieces.append(content[pos:start])
            pieces.append(replacement)
            pos = end
        pieces.append(content[pos:])

        return Resolution(
            content="".join(pieces),
            aliases_added=needed,
            references_rewritten=len(occurrences),
        )

    def detect_files(
        self, paths: Iterable[Path], encoding: str = "utf-8"
    ) -> list[ConflictRecord]:
        """Detect across files; unreadable files are logged and
        skipped."""
        records = []
        for path in paths:
            try:
                text = read_source(path, encoding).text
            except (OSError, UnicodeError) as e:
                self.log.warn(
                    "Skipping unreadable file {path}: {error}",
                    path=str(path), error=str(e),
                )
                continue
            records.extend(self.detect(text, path))
        return records

    def detect_directory(
        self,
        root: Path,
        patterns: Iterable[str] = ("*.cs",),
        exclude_dirs: Iterable[str] = (),
        encoding: str = "utf-8",
    ) -> list[ConflictRecord]:
        return self.detect_files(
            iter_source_files(root, patterns, exclude_dirs), encoding
        )

    def scan_files(
        self,
        paths: Iterable[Path],
        cancel: threading.Event | None = None,
        encoding: str = "utf-8",
    ) -> ScanReport:
        """Resolve each file and write back the ones that changed.

        Files without conflicts are never opened for writing. A file
        that fails is recorded and the batch goes on.

        Raises:
            OperationCancelled: If cancel is set between two files
        """
        report = ScanReport()
        for path in paths:
            if cancel is not None and cancel.is_set():
                raise OperationCancelled(
                    f"{self.category.title} resolution cancelled after "
                    f"{len(report.modified)} files"
                )
            try:
                source = read_source(path, encoding)
                resolution = self.resolve(source.text)
                if not resolution.changed:
                    continue
                source.text = resolution.content
                write_source(path, source)
            except (OSError, UnicodeError) as e:
                self.log.error(
                    "Failed to resolve {path}: {error}",
                    path=str(path), error=str(e),
                )
                report.failed[path] = str(e)
                continue

            self.log.debug(
                "Rewrote {count} references in {path}",
                count=resolution.references_rewritten,
                path=str(path),
                aliases=resolution.aliases_added,
            )
            report.modified.append(path)
            report.references_rewritten += resolution.references_rewritten
        return report

    def scan_directory(
        self,
        root: Path,
        patterns: Iterable[str] = ("*.cs",),
        exclude_dirs: Iterable[str] = (),
        cancel: threading.Event | None = None,
        encoding: str = "utf-8",
    ) -> ScanReport:
        return self.scan_files(
            iter_source_files(root, patterns, exclude_dirs),
            cancel=cancel,
            encoding=encoding,
        )


def _directive_insertion(
    source: SourceScan, directives: list[str]
) -> tuple[int, int, str]:
    """Edit that inserts alias directives on the line after the last
    top-level using directive, or at the top of the file followed by
    a blank line when there is none."""
    text = source.text
    newline = "\r\n" if "\r\n" in text else "\n"
    anchor = source.last_top_level_directive
    if anchor is None:
        block = "".join(d + newline for d in directives) + newline
        return (0, 0, block)

    line_start = text.rfind("\n", 0, anchor.start) + 1
    leading = text[line_start:anchor.start]
    indent = leading[:len(leading) - len(leading.lstrip())]

    line_end = text.find("\n", anchor.end)
    if line_end < 0:
        block = "".join(newline + indent + d for d in directives)
        return (anchor.end, anchor.end, block)

    block = "".join(indent + d + newline for d in directives)
    return (line_end + 1, line_end + 1, block)


def default_resolvers(log=logger) -> list[AliasResolver]:
    """One resolver per category, in resolution order."""
    return [AliasResolver(category, log=log) for category in CATEGORIES]
