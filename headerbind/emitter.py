"""Group declarations into output modules and render them.

Every header that owns at least one emitted declaration becomes one
:class:`OutputModule`, named after the header's stem. The modules and an
aggregator are rendered by a writer from :mod:`headerbind.writers`; how the
aggregator exposes the modules is decided by a :class:`NamespacePolicy`.

``flat`` re-exports every module into the crate root. It is the default
because that is what existing consumers expect, but it is a known
limitation: two headers declaring the same name would clash at the root.
``qualified`` keeps each module's symbols under its own path.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from headerbind.arch import ArchProfile, get_profile
from headerbind.constants import ConstantEvaluator, EvaluatedConstant
from headerbind.diagnostics import Diagnostics
from headerbind.ir import Constant, Declaration
from headerbind.symbols import SymbolTable
from headerbind.typemap import RUST_KEYWORDS, NON_RAW_KEYWORDS, TypeMapper

if TYPE_CHECKING:
    from headerbind.writers import WriterBackend

logger = logging.getLogger(__name__)

# Module names the aggregator or Cargo reserve.
_RESERVED_MODULE_NAMES = frozenset({"lib", "mod", "main", "build"}) | RUST_KEYWORDS | NON_RAW_KEYWORDS


@dataclass
class OutputModule:
    """The generated code unit for one header.

    :param name: Rust module name, unique within the run.
    :param header: Display name of the source header.
    :param declarations: Emitted declarations in first-appearance order.
    """

    name: str
    header: str
    declarations: list[Declaration] = field(default_factory=list)


# =============================================================================
# Namespace policies
# =============================================================================


@runtime_checkable
class NamespacePolicy(Protocol):
    """Decides how the aggregator exposes each output module."""

    @property
    def name(self) -> str:
        """Policy name used on the command line (e.g. ``"flat"``)."""
        ...

    def reexports(self, module: OutputModule) -> bool:
        """Whether ``module``'s symbols are re-exported at the crate root."""
        ...


class FlatNamespace:
    """Re-export every module's symbols into one namespace."""

    @property
    def name(self) -> str:
        return "flat"

    def reexports(self, module: OutputModule) -> bool:
        return True


class QualifiedNamespace:
    """Keep each module's symbols under the module path."""

    @property
    def name(self) -> str:
        return "qualified"

    def reexports(self, module: OutputModule) -> bool:
        return False


NAMESPACE_POLICIES: dict[str, type[NamespacePolicy]] = {
    "flat": FlatNamespace,
    "qualified": QualifiedNamespace,
}


def get_namespace_policy(name: str | None = None) -> NamespacePolicy:
    """Instantiate a namespace policy by name (default ``"flat"``).

    :raises ValueError: If the name is unknown.
    """
    name = name or "flat"
    if name not in NAMESPACE_POLICIES:
        available = ", ".join(NAMESPACE_POLICIES)
        raise ValueError(f"Unknown namespace policy: {name!r}. Available: {available}")
    return NAMESPACE_POLICIES[name]()


# =============================================================================
# Emission
# =============================================================================


def module_name_for(header: str, taken: set[str]) -> str:
    """Derive a unique Rust module name from a header's display name.

    ``"minwindef.h"`` becomes ``"minwindef"``, ``"sys/Types.h"`` becomes
    ``"types"``. Names that collide get ``_2``, ``_3``... appended.
    """
    stem = header.replace("\\", "/").rsplit("/", 1)[-1].split(".", 1)[0].lower()
    base = re.sub(r"[^a-z0-9_]", "_", stem) or "header"
    if base[0].isdigit():
        base = f"_{base}"
    if base in _RESERVED_MODULE_NAMES:
        base = f"{base}_h"
    name = base
    counter = 2
    while name in taken:
        name = f"{base}_{counter}"
        counter += 1
    taken.add(name)
    return name


@dataclass
class EmitContext:
    """Everything a writer needs to render modules for one run."""

    table: SymbolTable
    profile: ArchProfile
    type_mapper: TypeMapper
    evaluator: ConstantEvaluator
    diagnostics: Diagnostics
    policy: NamespacePolicy
    crate_name: str = "bindings"
    module_names: dict[str, str] = field(default_factory=dict)


@dataclass
class EmitResult:
    """Rendered files keyed by file name, plus the modules they came from."""

    files: dict[str, str]
    modules: list[OutputModule]
    aggregator: str


class ModuleEmitter:
    """Builds output modules from a finalized symbol table.

    :param writer: Renders modules; see :func:`headerbind.writers.get_writer`.
    :param profile: Architecture profile for type widths.
    :param policy: Namespace policy for the aggregator.
    :param diagnostics: Collector for unsupported types and constants.
    :param crate_name: Name recorded in the aggregator.
    """

    def __init__(
        self,
        writer: WriterBackend,
        profile: ArchProfile | None = None,
        policy: NamespacePolicy | None = None,
        diagnostics: Diagnostics | None = None,
        crate_name: str = "bindings",
    ) -> None:
        self._writer = writer
        self._profile = profile or get_profile()
        self._policy = policy or FlatNamespace()
        self._diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self._crate_name = crate_name

    def build_modules(self, table: SymbolTable) -> list[OutputModule]:
        """One module per header with at least one emitted declaration."""
        taken: set[str] = set()
        modules: list[OutputModule] = []
        for header in table.headers():
            declarations = table.winners(header)
            if not declarations:
                logger.debug("%s contributes no declarations, no module emitted", header)
                continue
            modules.append(OutputModule(module_name_for(header, taken), header, declarations))
        return modules

    def emit(self, table: SymbolTable) -> EmitResult:
        """Render every module and the aggregator."""
        modules = self.build_modules(table)
        module_names = {m.header: m.name for m in modules}
        evaluator = ConstantEvaluator(table, self._profile)

        def module_of(qualified_name: str) -> str | None:
            owner = table.owner_of(qualified_name)
            return module_names.get(owner) if owner is not None else None

        context = EmitContext(
            table=table,
            profile=self._profile,
            type_mapper=TypeMapper(table, self._profile, evaluator, module_of),
            evaluator=evaluator,
            diagnostics=self._diagnostics,
            policy=self._policy,
            crate_name=self._crate_name,
            module_names=module_names,
        )
        for module in modules:
            self._fill_constants(module, evaluator)

        files: dict[str, str] = {}
        for module in modules:
            files[f"{module.name}{self._writer.file_extension}"] = self._writer.write_module(module, context)
        aggregator = self._writer.aggregator_name
        files[aggregator] = self._writer.write_aggregator(modules, context)
        return EmitResult(files=files, modules=modules, aggregator=aggregator)

    @staticmethod
    def _fill_constants(module: OutputModule, evaluator: ConstantEvaluator) -> None:
        for decl in module.declarations:
            if isinstance(decl, Constant):
                result = evaluator.evaluate_constant(decl.name)
                if isinstance(result, EvaluatedConstant):
                    decl.value = result.value
                    decl.notation = result.notation
