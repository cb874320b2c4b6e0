"""Run the whole pipeline for one entry header.

:func:`generate` is the library entry point::

    from headerbind import RunConfig, generate

    result = generate("windows.h", RunConfig(search_paths=["C:/sdk/um", "C:/sdk/shared"]))
    for file_name, text in result.modules.items():
        print(file_name, len(text))

A :class:`Session` owns every piece of mutable state of a run: the macro
environment, the symbol table and the diagnostics. Nothing is shared
between runs, so two runs with the same inputs produce identical output.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Sequence

from headerbind.arch import DEFAULT_ARCH, ArchProfile, get_profile
from headerbind.diagnostics import UNRESOLVED_REFERENCE, Diagnostics
from headerbind.emitter import EmitResult, ModuleEmitter, OutputModule, get_namespace_policy
from headerbind.ir import Declaration
from headerbind.macros import MacroEnvironment
from headerbind.parser import DeclarationParser
from headerbind.providers import SearchPathProvider
from headerbind.report import RunReport
from headerbind.resolver import HeaderNode, HeaderResolver
from headerbind.symbols import SymbolTable, UnresolvedReference
from headerbind.writers import WriterBackend, get_writer

logger = logging.getLogger(__name__)


@dataclass
class RunConfig:
    """Settings for one run.

    :param arch: Architecture profile name.
    :param search_paths: Include directories, in search order. Takes
        precedence over ``provider``.
    :param provider: Supplies search paths when ``search_paths`` is empty.
    :param extra_macros: Added to (or overriding) the profile's predefined
        macros, e.g. ``{"WINAPI_FAMILY": "100"}``.
    :param duplicate_policy: ``"first"``, ``"last"`` or ``"error"``.
    :param namespace_policy: ``"flat"`` or ``"qualified"``.
    :param writer: Writer name; see :func:`headerbind.writers.list_writers`.
    :param crate_name: Name of the generated crate.
    """

    arch: str = DEFAULT_ARCH
    search_paths: list[str | os.PathLike[str]] = field(default_factory=list)
    provider: SearchPathProvider | None = None
    extra_macros: Mapping[str, str] = field(default_factory=dict)
    duplicate_policy: str = "first"
    namespace_policy: str = "flat"
    writer: str = "rust"
    crate_name: str = "bindings"

    def resolve_search_paths(self) -> list[Path]:
        if self.search_paths:
            return [Path(p) for p in self.search_paths]
        if self.provider is not None:
            return list(self.provider.provide_search_paths())
        return []


@dataclass
class BindingResult:
    """Output of :func:`generate`.

    :param modules: Rendered files keyed by file name, aggregator included.
    :param headers: Display names of the processed headers, in dependency order.
    :param symbols: The finalized symbol table.
    :param report: Diagnostics of the run.
    :param output_modules: The modules the files were rendered from.
    :param aggregator: File name of the aggregator in ``modules``.
    """

    modules: dict[str, str]
    headers: list[str]
    symbols: SymbolTable
    report: RunReport
    output_modules: list[OutputModule] = field(default_factory=list)
    aggregator: str = ""


class Session:
    """Mutable state of one run.

    Only the resolver (through ``#define``/``#undef``) changes the macro
    environment, and only :meth:`aggregate` changes the symbol table.

    :param config: Run settings.
    """

    def __init__(self, config: RunConfig | None = None) -> None:
        self.config = config or RunConfig()
        profile = get_profile(self.config.arch)
        if self.config.extra_macros:
            profile = profile.with_macros(self.config.extra_macros)
        self.profile: ArchProfile = profile
        self.diagnostics = Diagnostics()
        self.macros = MacroEnvironment(profile.predefined_macros, self.diagnostics, profile.long_width)
        self.table = SymbolTable(self.config.duplicate_policy, self.diagnostics)
        self.parser = DeclarationParser(self.diagnostics)
        self.headers: list[HeaderNode] = []

    def parse_header(self, node: HeaderNode) -> list[Declaration]:
        return self.parser.parse(node.tokens, node.display_name, node.defines)

    def resolve(self, entry: str | os.PathLike[str], search_paths: Sequence[str | os.PathLike[str]]) -> list[HeaderNode]:
        """Preprocess and parse ``entry`` and everything it includes.

        :raises FatalIOError: If the entry or a search path is unusable.
        """
        resolver = HeaderResolver(self.macros, self.diagnostics, self.parse_header)
        self.headers = resolver.resolve(entry, search_paths)
        logger.info("processed %d headers, %d macros defined", len(self.headers), len(self.macros))
        return self.headers

    def aggregate(self, nodes: Sequence[HeaderNode]) -> None:
        """Insert every header's declarations into the symbol table, in order."""
        for node in nodes:
            self.table.add_header(node.display_name)
            for decl in node.declarations:
                self.table.insert(decl)

    def resolve_references(self) -> list[UnresolvedReference]:
        """Record an ``unresolved_reference`` diagnostic per missing type."""
        unresolved = self.table.resolve_references()
        for ref in unresolved:
            self.diagnostics.report(
                UNRESOLVED_REFERENCE,
                f"{ref.name} is used by {ref.referenced_by} but never declared",
                header=ref.header,
                symbol=ref.name,
            )
        return unresolved

    def emit(self, writer: WriterBackend) -> EmitResult:
        emitter = ModuleEmitter(
            writer,
            profile=self.profile,
            policy=get_namespace_policy(self.config.namespace_policy),
            diagnostics=self.diagnostics,
            crate_name=self.config.crate_name,
        )
        return emitter.emit(self.table)

    def report(self, entry: str | os.PathLike[str]) -> RunReport:
        return RunReport(
            entry=Path(entry).name,
            arch=self.profile.name,
            diagnostics=list(self.diagnostics),
            headers=[node.display_name for node in self.headers],
        )


def locate_entry(entry: str | os.PathLike[str], search_paths: Sequence[Path]) -> Path:
    """Find the entry header.

    A path that exists is used as is. A relative name that does not is
    looked up in the search paths, so ``"windows.h"`` works like
    ``#include <windows.h>``.
    """
    path = Path(entry)
    if path.is_file() or path.is_absolute():
        return path
    for directory in search_paths:
        candidate = directory / path
        if candidate.is_file():
            return candidate
    return path


def generate(entry: str | os.PathLike[str], config: RunConfig | None = None) -> BindingResult:
    """Generate bindings for ``entry`` and everything it includes.

    :param entry: Entry header, as a path or a name found in the search paths.
    :param config: Run settings; defaults to :class:`RunConfig`.
    :raises FatalIOError: If the entry header or a search path cannot be read.
    :raises DuplicateSymbolError: Under the ``"error"`` duplicate policy.
    :raises ValueError: If the architecture, duplicate policy, namespace
        policy or writer name is unknown.
    """
    config = config or RunConfig()
    writer = get_writer(config.writer)
    get_namespace_policy(config.namespace_policy)
    session = Session(config)

    search_paths = config.resolve_search_paths()
    entry_path = locate_entry(entry, search_paths)
    nodes = session.resolve(entry_path, search_paths)
    session.aggregate(nodes)
    session.table.finalize()
    session.resolve_references()
    emitted = session.emit(writer)

    report = session.report(entry_path)
    logger.info(
        "generated %d modules with %d diagnostics",
        len(emitted.modules),
        len(report.diagnostics),
    )
    return BindingResult(
        modules=emitted.files,
        headers=report.headers,
        symbols=session.table,
        report=report,
        output_modules=emitted.modules,
        aggregator=emitted.aggregator,
    )


__all__ = ["BindingResult", "RunConfig", "Session", "generate", "locate_entry"]
