"""Minimal lexical scanner for C-family source files.

Not a parser: it only knows enough to tell code from strings,
character literals, comments and preprocessor lines, and to read
the using directives at the top of a file.
"""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass, field

IDENT = "ident"
NUMBER = "number"
PUNCT = "punct"

_IDENT = re.compile(r"@?[A-Za-z_][A-Za-z0-9_]*")
_NUMBER = re.compile(r"[0-9][0-9A-Za-z_.]*")
_DOTTED = re.compile(r"\s*(global::)?\s*([A-Za-z_][\w.]*?)\s*;")
_ALIAS = re.compile(r"\s*([A-Za-z_]\w*)\s*=\s*(global::)?\s*([^;]+?)\s*;")


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    start: int
    line: int
    column: int

    @property
    def end(self) -> int:
        return self.start + len(self.text)


@dataclass
class UsingDirective:
    """A `using X;`, `using static X;` or `using A = X;` directive."""

    start: int
    end: int
    namespace: str
    alias: str | None = None
    is_static: bool = False
    top_level: bool = True


@dataclass
class SourceScan:
    """Tokens of a file plus its using directives."""

    text: str
    tokens: list[Token]
    directives: list[UsingDirective] = field(default_factory=list)

    @property
    def imports(self) -> set[str]:
        """Namespaces imported by plain using directives."""
        return {
            d.namespace for d in self.directives
            if d.alias is None and not d.is_static
        }

    @property
    def aliases(self) -> dict[str, str]:
        return {
            d.alias: d.namespace for d in self.directives if d.alias
        }

    @property
    def last_top_level_directive(self) -> UsingDirective | None:
        top = [d for d in self.directives if d.top_level]
        return top[-1] if top else None

    def in_directive(self, offset: int) -> bool:
        return any(d.start <= offset < d.end for d in self.directives)


def _skip_string(text: str, i: int, verbatim: bool) -> int:
    """Return the offset just past the string whose opening quote is
    at i."""
    n = len(text)
    i += 1
    while i < n:
        ch = text[i]
        if verbatim:
            if ch == '"':
                if i + 1 < n and text[i + 1] == '"':
                    i += 2
                    continue
                return i + 1
        elif ch == '\\':
            i += 2
            continue
        elif ch == '"' or ch == '\n':
            return i + 1
        i += 1
    return n


def _skip_char(text: str, i: int) -> int:
    """Return the offset just past the character literal at i."""
    n = len(text)
    j = i + 1
    while j < n and text[j] not in "'\n":
        j += 2 if text[j] == '\\' else 1
    return min(j + 1, n)


def _skip_interpolated(
    text: str, i: int, verbatim: bool,
) -> tuple[int, list[tuple[int, int]]]:
    """Skip an interpolated string whose opening quote is at i.

    Returns the offset just past the string and the (start, end) spans
    of its code holes, so the caller can tokenize them in place.
    """
    n = len(text)
    i += 1
    depth = 0
    hole_start = 0
    holes: list[tuple[int, int]] = []
    while i < n:
        ch = text[i]
        if depth:
            if ch == '"':
                i = _skip_string(text, i, verbatim=False)
                continue
            if ch == "'":
                i = _skip_char(text, i)
                continue
            if ch == '{':
                depth += 1
            elif ch == '}':
                depth -= 1
                if not depth:
                    holes.append((hole_start, i))
            i += 1
            continue
        if ch == '{':
            if i + 1 < n and text[i + 1] == '{':
                i += 2
                continue
            depth = 1
            hole_start = i + 1
        elif ch == '"':
            if verbatim and i + 1 < n and text[i + 1] == '"':
                i += 2
                continue
            return i + 1, holes
        elif ch == '\\' and not verbatim:
            i += 2
            continue
        elif ch == '\n' and not verbatim:
            return i + 1, holes
        i += 1
    if depth:
        holes.append((hole_start, n))
    return n, holes


def _skip_raw(text: str, i: int) -> int:
    """Skip a raw string literal opened by three or more quotes."""
    n = len(text)
    j = i
    while j < n and text[j] == '"':
        j += 1
    fence = text[i:j]
    end = text.find(fence, j)
    return n if end < 0 else end + len(fence)


def tokenize(text: str) -> list[Token]:
    """Split source text into identifier, number and punctuation
    tokens, dropping whitespace, comments, literals and
    preprocessor lines. Code inside interpolation holes is kept."""
    line_starts = [0] + [m.end() for m in re.finditer(r"\n", text)]
    tokens: list[Token] = []

    def emit(kind, start, end):
        line = bisect.bisect_right(line_starts, start)
        column = start - line_starts[line - 1] + 1
        tokens.append(Token(kind, text[start:end], start, line, column))

    def run(i, n, at_line_start):
        while i < n:
            ch = text[i]

            if ch == '\n':
                at_line_start = True
                i += 1
                continue
            if ch.isspace() or ch == '\ufeff':
                i += 1
                continue

            if ch == '#' and at_line_start:
                end = text.find('\n', i)
                i = n if end < 0 else end
                continue
            at_line_start = False

            if text.startswith('//', i):
                end = text.find('\n', i)
                i = n if end < 0 else end
                continue
            if text.startswith('/*', i):
                end = text.find('*/', i + 2)
                i = n if end < 0 else end + 2
                continue

            if text.startswith('"""', i):
                i = _skip_raw(text, i)
                continue
            if ch == '"':
                i = _skip_string(text, i, verbatim=False)
                continue
            if ch in '@$':
                prefix = re.match(r'[@$]{1,2}(?=")', text[i:i + 3])
                if prefix:
                    mark = prefix.group(0)
                    quote = i + len(mark)
                    if text.startswith('"""', quote):
                        i = _skip_raw(text, quote)
                    elif '$' in mark:
                        i, holes = _skip_interpolated(
                            text, quote, '@' in mark,
                        )
                        for start, end in holes:
                            run(start, end, False)
                    else:
                        i = _skip_string(text, quote, verbatim=True)
                    continue
            if ch == "'":
                i = _skip_char(text, i)
                continue

            m = _IDENT.match(text, i)
            if m:
                emit(IDENT, i, m.end())
                i = m.end()
                continue
            m = _NUMBER.match(text, i)
            if m:
                emit(NUMBER, i, m.end())
                i = m.end()
                continue
            if text.startswith('::', i):
                emit(PUNCT, i, i + 2)
                i += 2
                continue
            emit(PUNCT, i, i + 1)
            i += 1

    run(0, len(text), True)
    return tokens


def scan(text: str) -> SourceScan:
    """Tokenize text and collect its using directives."""
    tokens = tokenize(text)
    result = SourceScan(text=text, tokens=tokens)

    depth = 0
    prev: Token | None = None
    for index, tok in enumerate(tokens):
        if tok.kind == PUNCT:
            if tok.text == '{':
                depth += 1
            elif tok.text == '}':
                depth = max(0, depth - 1)
        elif (
            tok.text in ("using", "global")
            and (prev is None or prev.text in (';', '{', '}', ']'))
        ):
            directive = _read_directive(text, tokens, index)
            if directive is not None:
                directive.top_level = depth == 0
                result.directives.append(directive)
        prev = tok

    return result


def _read_directive(
    text: str, tokens: list[Token], index: int
) -> UsingDirective | None:
    tok = tokens[index]
    if tok.text == "global":
        if index + 1 >= len(tokens) or tokens[index + 1].text != "using":
            return None
        index += 1

    pos = tokens[index].end
    is_static = False
    m = re.match(r"\s+static\b", text[pos:])
    if m:
        is_static = True
        pos += m.end()

    m = _ALIAS.match(text, pos)
    if m and not is_static:
        return UsingDirective(
            start=tok.start,
            end=m.end(),
            namespace=m.group(3),
            alias=m.group(1),
        )

    # `using (` and `using var x = ...` are statements, not directives
    m = _DOTTED.match(text, pos)
    if m and (m.group(1) or m.group(2) != "var"):
        return UsingDirective(
            start=tok.start,
            end=m.end(),
            namespace=m.group(2),
            is_static=is_static,
        )
    return None


__all__ = [
    "IDENT",
    "NUMBER",
    "PUNCT",
    "SourceScan",
    "Token",
    "UsingDirective",
    "scan",
    "tokenize",
]
