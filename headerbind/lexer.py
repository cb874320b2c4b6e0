"""C tokenizer and source cleanup.

Implements the early translation phases the preprocessor relies on:
backslash-newline splicing, comment removal, and splitting logical lines
into tokens. Line numbers of the physical source are preserved so that
diagnostics can point at the right place.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

IDENT = "ident"
NUMBER = "number"
STRING = "string"
CHAR = "char"
PUNCT = "punct"

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>[ \t\r\f\v\n]+)
  | (?P<string>(?:u8|u|U|L)?"(?:\\.|[^"\\\n])*")
  | (?P<char>(?:u8|u|U|L)?'(?:\\.|[^'\\\n])*')
  | (?P<number>\.?[0-9](?:[eEpP][+-]|[0-9A-Za-z_.])*)
  | (?P<ident>[A-Za-z_$][A-Za-z0-9_$]*)
  | (?P<punct>\.\.\.|<<=|>>=|->|\+\+|--|<<|>>|<=|>=|==|!=|&&|\|\||\#\#
        |\+=|-=|\*=|/=|%=|&=|\|=|\^=|::|[-+*/%&|^~!=<>?:;,.(){}\[\]\#@\\])
  | (?P<other>.)
    """,
    re.VERBOSE,
)


@dataclass(frozen=True)
class Token:
    """A single preprocessing token.

    :param kind: One of ``ident``, ``number``, ``string``, ``char``, ``punct``.
    :param text: Exact spelling.
    :param line: 1-based source line, 0 when synthesized.
    """

    kind: str
    text: str
    line: int = 0

    def is_punct(self, text: str) -> bool:
        return self.kind == PUNCT and self.text == text

    def is_ident(self, text: str | None = None) -> bool:
        return self.kind == IDENT and (text is None or self.text == text)

    def __str__(self) -> str:
        return self.text


def tokenize(text: str, line: int = 0) -> list[Token]:
    """Split a piece of (comment-free) C text into tokens.

    Every token is stamped with ``line``; callers tokenize one logical line
    at a time, so that is the line the token came from.
    """
    tokens: list[Token] = []
    for match in _TOKEN_RE.finditer(text):
        kind = match.lastgroup
        if kind == "ws":
            continue
        if kind == "other":
            kind = PUNCT
        tokens.append(Token(kind, match.group(), line))
    return tokens


def spell(tokens: list[Token]) -> str:
    """Join tokens back into text, separated by single spaces."""
    return " ".join(t.text for t in tokens)


def _splice(source: str) -> list[tuple[int, str]]:
    """Join backslash-continued physical lines into logical lines."""
    result: list[tuple[int, str]] = []
    pending: list[str] = []
    start = 1
    for number, raw in enumerate(source.splitlines(), start=1):
        if not pending:
            start = number
        stripped = raw.rstrip()
        if stripped.endswith("\\"):
            pending.append(stripped[:-1])
            continue
        pending.append(raw)
        result.append((start, "".join(pending)))
        pending = []
    if pending:
        result.append((start, "".join(pending)))
    return result


def _strip_comments(lines: list[tuple[int, str]]) -> list[tuple[int, str]]:
    """Replace comments with a single space.

    A block comment spanning several lines is folded into the line where it
    started, so text after the closing ``*/`` stays on that logical line.
    """
    result: list[tuple[int, str]] = []
    in_block = False
    current: list[str] = []
    current_line = 0

    for number, text in lines:
        if not in_block:
            current = []
            current_line = number
        i = 0
        n = len(text)
        quote: str | None = None
        while i < n:
            ch = text[i]
            if in_block:
                end = text.find("*/", i)
                if end < 0:
                    i = n
                    break
                in_block = False
                current.append(" ")
                i = end + 2
                continue
            if quote is not None:
                current.append(ch)
                if ch == "\\" and i + 1 < n:
                    current.append(text[i + 1])
                    i += 2
                    continue
                if ch == quote:
                    quote = None
                i += 1
                continue
            if ch in "\"'":
                quote = ch
                current.append(ch)
                i += 1
                continue
            if text.startswith("//", i):
                break
            if text.startswith("/*", i):
                in_block = True
                i += 2
                continue
            current.append(ch)
            i += 1
        if in_block:
            continue
        result.append((current_line, "".join(current)))
    if in_block:
        result.append((current_line, "".join(current)))
    return result


def logical_lines(source: str) -> list[tuple[int, str]]:
    """Return ``(line_number, text)`` pairs with continuations spliced and comments removed.

    The line number is that of the first physical line of each logical line.
    """
    return _strip_comments(_splice(source))
