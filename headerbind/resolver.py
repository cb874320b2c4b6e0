"""Include-graph traversal and directive processing.

The resolver walks ``#include`` directives depth-first from the entry
header. A nested include is processed where its directive appears, so the
macros it defines are visible to the rest of the includer. Each header is
read, preprocessed and parsed at most once; the resulting
:class:`HeaderNode` list is in dependency order (includes before includers).
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

from headerbind.diagnostics import (
    HEADER_READ_FAILURE,
    INCLUDE_CYCLE,
    MALFORMED_DIRECTIVE,
    PREPROCESSOR_ERROR,
    Diagnostics,
    FatalIOError,
)
from headerbind.ir import Declaration
from headerbind.lexer import IDENT, STRING, Token, logical_lines, spell, tokenize
from headerbind.macros import MacroDefinition, MacroEnvironment

logger = logging.getLogger(__name__)

UNVISITED = "unvisited"
IN_PROGRESS = "in_progress"
DONE = "done"

_DIRECTIVE_RE = re.compile(r"^\s*#\s*([A-Za-z_]\w*)?(.*)$")
_DEFINE_RE = re.compile(r"^([A-Za-z_]\w*)(\(([^)]*)\))?(.*)$")


@dataclass
class HeaderNode:
    """One header in the include graph.

    :param path: Resolved filesystem path.
    :param display_name: Name used in diagnostics and module naming, relative
        to the search directory the header was found in.
    :param state: ``unvisited``, ``in_progress`` or ``done``.
    :param includes: Resolved paths of directly included headers, in order.
    :param declarations: Declarations contributed by this header, in order.
    :param tokens: Macro-expanded text of the header.
    :param defines: Object-like ``#define`` directives with the position in
        ``tokens`` where each appeared.
    """

    path: Path
    display_name: str
    state: str = UNVISITED
    includes: list[Path] = field(default_factory=list)
    declarations: list[Declaration] = field(default_factory=list)
    tokens: list[Token] = field(default_factory=list)
    defines: list[tuple[int, MacroDefinition]] = field(default_factory=list)
    read_failed: bool = False


@dataclass
class _Conditional:
    """One level of the ``#if`` stack."""

    parent_active: bool
    active: bool
    taken: bool
    seen_else: bool = False
    line: int = 0


# Called with each finished header; returns its declarations.
HeaderParser = Callable[[HeaderNode], list[Declaration]]


def node_key(path: Path) -> str:
    """Identity of a header file, stable across spellings of its path."""
    return os.path.normcase(str(path.resolve()))


class HeaderResolver:
    """Walks the include graph, preprocessing each header once.

    :param macros: The run's macro environment; mutated by ``#define``/``#undef``.
    :param diagnostics: Collector for non-fatal issues.
    :param parser: Called for every header once its text is complete.
    """

    def __init__(
        self,
        macros: MacroEnvironment,
        diagnostics: Diagnostics | None = None,
        parser: HeaderParser | None = None,
    ) -> None:
        self._macros = macros
        self._diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self._parser = parser
        self._nodes: dict[str, HeaderNode] = {}
        self._order: list[HeaderNode] = []
        self._display_names: set[str] = set()
        self._search_paths: list[Path] = []
        self._listing_cache: dict[Path, dict[str, str]] = {}

    @property
    def nodes(self) -> dict[str, HeaderNode]:
        return self._nodes

    def resolve(self, entry: str | os.PathLike[str], search_paths: Sequence[str | os.PathLike[str]]) -> list[HeaderNode]:
        """Process ``entry`` and everything it includes.

        :returns: Header nodes in dependency order.
        :raises FatalIOError: If the entry header cannot be read, no search
            path is given, or a search path is not a directory.
        """
        if not search_paths:
            raise FatalIOError("no include search paths given")
        self._search_paths = []
        for raw in search_paths:
            directory = Path(raw)
            if not directory.is_dir():
                raise FatalIOError(f"search path is not a readable directory: {directory}")
            self._search_paths.append(directory)

        entry_path = Path(entry)
        try:
            source = entry_path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise FatalIOError(f"cannot read entry header {entry_path}: {exc}") from exc

        node = self._node_for(entry_path, entry_path.name)
        self._process(node, source)
        return list(self._order)

    # -- graph -----------------------------------------------------------------

    def _node_for(self, path: Path, display_name: str) -> HeaderNode:
        key = node_key(path)
        node = self._nodes.get(key)
        if node is None:
            if display_name in self._display_names:
                display_name = path.resolve().as_posix()
            self._display_names.add(display_name)
            node = HeaderNode(path=path, display_name=display_name)
            self._nodes[key] = node
        return node

    def _visit(self, includer: HeaderNode, target: Path, display_name: str, line: int) -> None:
        node = self._node_for(target, display_name)
        includer.includes.append(node.path)
        if node.state == DONE:
            logger.debug("%s already processed, skipping", node.display_name)
            return
        if node.state == IN_PROGRESS:
            self._diagnostics.report(
                INCLUDE_CYCLE,
                f"{includer.display_name} includes {node.display_name}, which is still being processed",
                header=includer.display_name,
                line=line,
            )
            return
        try:
            source = target.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            node.state = DONE
            node.read_failed = True
            self._diagnostics.report(
                HEADER_READ_FAILURE,
                f"cannot read {target}: {exc}",
                header=includer.display_name,
                line=line,
                symbol=node.display_name,
            )
            return
        self._process(node, source)

    def _process(self, node: HeaderNode, source: str) -> None:
        node.state = IN_PROGRESS
        logger.debug("processing %s", node.path)
        _HeaderPreprocessor(self, node).run(source)
        node.state = DONE
        if self._parser is not None:
            node.declarations = self._parser(node)
        self._order.append(node)

    # -- include lookup --------------------------------------------------------

    def find_include(self, name: str, quoted: bool, includer: Path) -> tuple[Path, str] | None:
        """Locate an included header.

        Quoted includes try the includer's directory first. The first search
        path holding the file wins; if none has an exact match, a
        case-insensitive match is accepted.

        :returns: The path and its display name, or None.
        """
        directories = list(self._search_paths)
        if quoted:
            directories.insert(0, includer.parent)
        for directory in directories:
            candidate = directory / name
            if candidate.is_file():
                return candidate, self._display(candidate, directory, name)
        for directory in directories:
            candidate = self._find_case_insensitive(directory, name)
            if candidate is not None:
                return candidate, self._display(candidate, directory, name)
        return None

    @staticmethod
    def _display(path: Path, directory: Path, name: str) -> str:
        try:
            return path.relative_to(directory).as_posix()
        except ValueError:
            return Path(name).as_posix()

    def _find_case_insensitive(self, directory: Path, name: str) -> Path | None:
        current = directory
        for part in Path(name).parts:
            if part in (".", ".."):
                current = current / part
                continue
            listing = self._listing(current)
            actual = listing.get(part.lower())
            if actual is None:
                return None
            current = current / actual
        return current if current.is_file() else None

    def _listing(self, directory: Path) -> dict[str, str]:
        if directory not in self._listing_cache:
            try:
                entries = {entry.lower(): entry for entry in sorted(os.listdir(directory))}
            except OSError:
                entries = {}
            self._listing_cache[directory] = entries
        return self._listing_cache[directory]

    # -- diagnostics -----------------------------------------------------------

    def report(self, kind: str, message: str, node: HeaderNode, line: int, symbol: str | None = None) -> None:
        self._diagnostics.report(kind, message, header=node.display_name, line=line, symbol=symbol)


class _HeaderPreprocessor:
    """Runs the directives of one header and collects its expanded text."""

    def __init__(self, resolver: HeaderResolver, node: HeaderNode) -> None:
        self._resolver = resolver
        self._macros = resolver._macros
        self._node = node
        self._stack: list[_Conditional] = []
        self._pending: list[Token] = []

    @property
    def _active(self) -> bool:
        return not self._stack or self._stack[-1].active

    def run(self, source: str) -> None:
        for line, text in logical_lines(source):
            match = _DIRECTIVE_RE.match(text)
            if match is None:
                if self._active:
                    self._pending.extend(tokenize(text, line))
                continue
            self._flush()
            name, rest = match.group(1) or "", match.group(2).strip()
            self._directive(name, rest, line)
        self._flush()
        for frame in self._stack:
            self._resolver.report(
                MALFORMED_DIRECTIVE,
                "unterminated conditional block",
                self._node,
                frame.line,
            )

    def _flush(self) -> None:
        if self._pending:
            expanded = self._macros.expand(self._pending, self._node.display_name)
            self._node.tokens.extend(expanded)
            self._pending = []

    def _directive(self, name: str, rest: str, line: int) -> None:
        if name in ("if", "ifdef", "ifndef"):
            self._open(name, rest, line)
        elif name == "elif":
            self._elif(rest, line)
        elif name == "else":
            self._else(line)
        elif name == "endif":
            if not self._stack:
                self._resolver.report(MALFORMED_DIRECTIVE, "#endif without #if", self._node, line)
            else:
                self._stack.pop()
        elif not self._active:
            return
        elif name == "define":
            self._define(rest, line)
        elif name == "undef":
            self._macros.undef(rest.split()[0] if rest else "")
        elif name in ("include", "include_next"):
            self._include(rest, line)
        elif name == "error":
            self._resolver.report(PREPROCESSOR_ERROR, f"#error {rest}".rstrip(), self._node, line)
        elif name in ("pragma", "line", "warning", "ident", ""):
            logger.debug("%s:%d: ignoring #%s %s", self._node.display_name, line, name, rest)
        else:
            self._resolver.report(MALFORMED_DIRECTIVE, f"unknown directive #{name}", self._node, line)

    # -- conditionals ----------------------------------------------------------

    def _open(self, name: str, rest: str, line: int) -> None:
        parent_active = self._active
        if not parent_active:
            self._stack.append(_Conditional(False, False, True, line=line))
            return
        if name == "if":
            value = self._macros.evaluate_condition(tokenize(rest, line), self._node.display_name, line)
        else:
            tokens = tokenize(rest, line)
            if not tokens or tokens[0].kind != IDENT:
                self._resolver.report(MALFORMED_DIRECTIVE, f"#{name} without a macro name", self._node, line)
                value = False
            else:
                value = self._macros.is_defined(tokens[0].text) == (name == "ifdef")
        self._stack.append(_Conditional(True, value, value, line=line))

    def _elif(self, rest: str, line: int) -> None:
        if not self._stack or self._stack[-1].seen_else:
            self._resolver.report(MALFORMED_DIRECTIVE, "#elif without #if", self._node, line)
            return
        frame = self._stack[-1]
        if not frame.parent_active or frame.taken:
            frame.active = False
            return
        frame.active = self._macros.evaluate_condition(tokenize(rest, line), self._node.display_name, line)
        frame.taken = frame.active

    def _else(self, line: int) -> None:
        if not self._stack or self._stack[-1].seen_else:
            self._resolver.report(MALFORMED_DIRECTIVE, "#else without #if", self._node, line)
            return
        frame = self._stack[-1]
        frame.seen_else = True
        frame.active = frame.parent_active and not frame.taken
        frame.taken = True

    # -- definitions -----------------------------------------------------------

    def _define(self, rest: str, line: int) -> None:
        match = _DEFINE_RE.match(rest)
        if match is None:
            self._resolver.report(MALFORMED_DIRECTIVE, f"malformed #define {rest}", self._node, line)
            return
        name, param_group, param_text, body = match.groups()
        params: list[str] | None = None
        is_variadic = False
        if param_group is not None:
            params = [p.strip() for p in param_text.split(",") if p.strip()]
            if params and params[-1] == "...":
                params.pop()
                is_variadic = True
            elif params and params[-1].endswith("..."):
                # GNU named variadic parameter; treated as __VA_ARGS__.
                params.pop()
                is_variadic = True
        definition = MacroDefinition(
            name=name,
            body=tokenize(body, line),
            params=params,
            is_variadic=is_variadic,
            source=self._node.display_name,
            line=line,
        )
        self._macros.define(definition)
        if definition.is_object_like:
            self._node.defines.append((len(self._node.tokens), definition))

    def _include(self, rest: str, line: int) -> None:
        target = self._include_target(rest, line)
        if target is None:
            self._resolver.report(MALFORMED_DIRECTIVE, f"malformed #include {rest}", self._node, line)
            return
        name, quoted = target
        found = self._resolver.find_include(name, quoted, self._node.path)
        if found is None:
            self._resolver.report(
                HEADER_READ_FAILURE,
                f"cannot find included header {name!r}",
                self._node,
                line,
                symbol=name,
            )
            return
        path, display_name = found
        self._resolver._visit(self._node, path, display_name, line)

    def _include_target(self, rest: str, line: int) -> tuple[str, bool] | None:
        if rest.startswith("<"):
            end = rest.find(">")
            return (rest[1:end].strip(), False) if end > 0 else None
        if rest.startswith('"'):
            end = rest.find('"', 1)
            return (rest[1:end], True) if end > 0 else None
        # Computed include: expand, then reinterpret.
        expanded = self._macros.expand(tokenize(rest, line), self._node.display_name)
        if not expanded:
            return None
        if expanded[0].kind == STRING and expanded[0].text.startswith('"'):
            return expanded[0].text[1:-1], True
        if expanded[0].is_punct("<"):
            texts = [t.text for t in expanded[1:]]
            if ">" not in texts:
                return None
            return "".join(texts[: texts.index(">")]), False
        logger.debug("cannot interpret computed include %s", spell(expanded))
        return None
