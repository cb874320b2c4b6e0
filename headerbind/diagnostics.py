"""Errors and collected diagnostics.

Only :class:`FatalIOError` (and :class:`DuplicateSymbolError` under the
``"error"`` duplicate policy) abort a run. Everything else is recorded on a
:class:`Diagnostics` collector so that callers can inspect, serialize and
compare the issues of a run instead of scraping log output.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

# =============================================================================
# Exceptions
# =============================================================================


class HeaderbindError(Exception):
    """Base class for all headerbind errors."""


class FatalIOError(HeaderbindError):
    """The entry header or a search path cannot be read."""


class DuplicateSymbolError(HeaderbindError):
    """A symbol was declared twice under the ``"error"`` duplicate policy."""

    def __init__(self, name: str, first: str | None, second: str | None) -> None:
        super().__init__(f"duplicate symbol {name!r}: first in {first}, again in {second}")
        self.name = name
        self.first = first
        self.second = second


class ParseError(HeaderbindError):
    """A single declaration could not be parsed."""

    def __init__(self, message: str, line: int | None = None) -> None:
        super().__init__(message if line is None else f"line {line}: {message}")
        self.line = line


class MacroCycleError(HeaderbindError):
    """A macro expands to itself, directly or through other macros."""

    def __init__(self, name: str) -> None:
        super().__init__(f"macro {name!r} expands to itself")
        self.name = name


class ExpressionError(HeaderbindError):
    """An expression is outside the supported subset."""


# =============================================================================
# Diagnostics
# =============================================================================

HEADER_READ_FAILURE = "header_read_failure"
MACRO_CYCLE = "macro_cycle"
INCLUDE_CYCLE = "include_cycle"
UNSUPPORTED_DECLARATION = "unsupported_declaration"
DUPLICATE_SYMBOL = "duplicate_symbol"
UNRESOLVED_REFERENCE = "unresolved_reference"
UNEVALUATED_CONSTANT = "unevaluated_constant"
MALFORMED_DECLARATION = "malformed_declaration"
UNSUPPORTED_EXPRESSION = "unsupported_expression"
UNSUPPORTED_TYPE = "unsupported_type"
MALFORMED_DIRECTIVE = "malformed_directive"
PREPROCESSOR_ERROR = "preprocessor_error"

DIAGNOSTIC_KINDS = (
    HEADER_READ_FAILURE,
    MACRO_CYCLE,
    INCLUDE_CYCLE,
    UNSUPPORTED_DECLARATION,
    DUPLICATE_SYMBOL,
    UNRESOLVED_REFERENCE,
    UNEVALUATED_CONSTANT,
    MALFORMED_DECLARATION,
    UNSUPPORTED_EXPRESSION,
    UNSUPPORTED_TYPE,
    MALFORMED_DIRECTIVE,
    PREPROCESSOR_ERROR,
)


@dataclass(frozen=True)
class Diagnostic:
    """A single non-fatal issue.

    :param kind: One of :data:`DIAGNOSTIC_KINDS`.
    :param message: Human-readable description.
    :param header: Header the issue was found in, if any.
    :param line: Line within ``header``, if known.
    :param symbol: Affected symbol, if any.
    :param severity: ``"warning"`` or ``"error"``.
    """

    kind: str
    message: str
    header: str | None = None
    line: int | None = None
    symbol: str | None = None
    severity: str = "warning"

    @property
    def key(self) -> tuple[str, str | None, str | None, str]:
        """Identity used when comparing runs; ignores line numbers."""
        return (self.kind, self.header, self.symbol, self.message)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"kind": self.kind, "severity": self.severity, "message": self.message}
        if self.header is not None:
            d["header"] = self.header
        if self.line is not None:
            d["line"] = self.line
        if self.symbol is not None:
            d["symbol"] = self.symbol
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Diagnostic:
        return cls(
            kind=data["kind"],
            message=data["message"],
            header=data.get("header"),
            line=data.get("line"),
            symbol=data.get("symbol"),
            severity=data.get("severity", "warning"),
        )

    def __str__(self) -> str:
        where = ""
        if self.header:
            where = f"{self.header}:{self.line}: " if self.line is not None else f"{self.header}: "
        return f"{where}{self.severity}: [{self.kind}] {self.message}"


class Diagnostics:
    """Collects diagnostics for one run and logs each one as it arrives."""

    def __init__(self) -> None:
        self._items: list[Diagnostic] = []

    def report(
        self,
        kind: str,
        message: str,
        *,
        header: str | None = None,
        line: int | None = None,
        symbol: str | None = None,
        severity: str = "warning",
    ) -> Diagnostic:
        """Record a diagnostic and return it."""
        diagnostic = Diagnostic(kind, message, header=header, line=line, symbol=symbol, severity=severity)
        self._items.append(diagnostic)
        logger.warning("%s", diagnostic)
        return diagnostic

    def of_kind(self, kind: str) -> list[Diagnostic]:
        return [d for d in self._items if d.kind == kind]

    def counts(self) -> dict[str, int]:
        return dict(Counter(d.kind for d in self._items))

    def __iter__(self):
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)
