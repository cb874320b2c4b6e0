"""Translate IR type expressions into Rust type expressions.

Integer widths follow the run's :class:`~headerbind.arch.ArchProfile`.
Named references become the identifier the Rust writer emits for the
target declaration (``struct_X``, ``enum_X``, typedef names), qualified
with ``super::module::`` when the target lives in another output module.

Constructs with no faithful translation (unions, bitfields, array bounds
that cannot be evaluated, unresolved names) do not raise. They come back
as problems on the :class:`TypeMapping`, and the writer turns those into
visible ``// unsupported:`` stubs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from headerbind.arch import ArchProfile, get_profile
from headerbind.constants import ConstantEvaluator
from headerbind.ir import (
    Array,
    CType,
    Field,
    FunctionPointer,
    Parameter,
    Pointer,
    Typedef,
    TypeExpr,
    Union,
)
from headerbind.symbols import SymbolTable

C_VOID = "::core::ffi::c_void"

RUST_KEYWORDS = frozenset(
    {
        "abstract",
        "as",
        "async",
        "await",
        "become",
        "box",
        "break",
        "const",
        "continue",
        "do",
        "dyn",
        "else",
        "enum",
        "false",
        "final",
        "fn",
        "for",
        "gen",
        "if",
        "impl",
        "in",
        "let",
        "loop",
        "macro",
        "match",
        "mod",
        "move",
        "mut",
        "override",
        "priv",
        "pub",
        "ref",
        "return",
        "static",
        "struct",
        "trait",
        "true",
        "try",
        "type",
        "typeof",
        "unsafe",
        "unsized",
        "use",
        "virtual",
        "where",
        "while",
        "yield",
    }
)

# Keywords that cannot be written as raw identifiers.
NON_RAW_KEYWORDS = frozenset({"self", "Self", "super", "crate", "extern"})

#: Calling convention to Rust ABI string.
ABI_NAMES: dict[str | None, str] = {
    None: "C",
    "cdecl": "C",
    "stdcall": "system",
    "fastcall": "fastcall",
    "vectorcall": "vectorcall",
    "thiscall": "thiscall",
}


def rust_identifier(name: str) -> str:
    """Escape a C identifier that collides with a Rust keyword."""
    if name in NON_RAW_KEYWORDS:
        return f"_{name}"
    if name in RUST_KEYWORDS:
        return f"r#{name}"
    return name


def declared_name(qualified_name: str) -> str:
    """Rust identifier for a qualified C name: ``struct X`` becomes ``struct_X``."""
    kind, _, name = qualified_name.partition(" ")
    if name and kind in ("struct", "enum", "union"):
        return f"{kind}_{name}"
    return rust_identifier(qualified_name)


def abi_name(calling_convention: str | None) -> str:
    return ABI_NAMES.get(calling_convention, "C")


@dataclass
class TypeMapping:
    """Result of mapping one type. ``expr`` is only usable when ``ok``."""

    expr: str
    problems: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.problems


class TypeMapper:
    """Maps C types for one run.

    :param table: Finalized symbol table.
    :param profile: Architecture profile providing platform widths.
    :param evaluator: Used for array bounds that are expressions.
    :param module_of: Returns the output module that owns a qualified name,
        or None when it is not emitted.
    """

    def __init__(
        self,
        table: SymbolTable,
        profile: ArchProfile | None = None,
        evaluator: ConstantEvaluator | None = None,
        module_of: Callable[[str], str | None] | None = None,
    ) -> None:
        self._table = table
        self._profile = profile or get_profile()
        self._evaluator = evaluator or ConstantEvaluator(table, self._profile)
        self._module_of = module_of or (lambda name: None)
        self._typedef_memo: dict[str, list[str]] = {}
        self._typedef_pending: set[str] = set()

    @property
    def profile(self) -> ArchProfile:
        return self._profile

    def map_type(self, t: TypeExpr, module: str | None = None) -> TypeMapping:
        """Map a type expression as seen from output module ``module``."""
        problems: list[str] = []
        expr = self._map(t, module, problems)
        return TypeMapping(expr, problems)

    def map_field(self, f: Field, module: str | None = None) -> TypeMapping:
        mapping = self.map_type(f.type, module)
        if f.bit_width is not None:
            mapping.problems.append(f"bitfield {f.name}: {f.bit_width} is not supported")
        return mapping

    def map_return(self, t: TypeExpr, module: str | None = None) -> TypeMapping:
        """Like :meth:`map_type`, but ``void`` maps to an empty string."""
        if self.is_void(t):
            return TypeMapping("")
        return self.map_type(t, module)

    @staticmethod
    def is_void(t: TypeExpr) -> bool:
        return isinstance(t, CType) and t.kind == "primitive" and t.name == "void"

    def reference(self, qualified_name: str, module: str | None) -> str:
        """Identifier for a declaration, qualified if it lives in another module."""
        ident = declared_name(qualified_name)
        owner = self._module_of(qualified_name)
        if owner is None or owner == module:
            return ident
        return f"super::{owner}::{ident}"

    # -- internals -------------------------------------------------------------

    def _map(self, t: TypeExpr, module: str | None, problems: list[str]) -> str:
        if isinstance(t, CType):
            return self._named(t, module, problems)
        if isinstance(t, Pointer):
            return self._pointer(t, module, problems)
        if isinstance(t, Array):
            element = self._map(t.element_type, module, problems)
            if t.size is None:
                return f"[{element}; 0]"
            size = self._evaluator.array_size(t.size)
            if size is None:
                problems.append(f"array size {t.size!r} could not be evaluated")
                return f"[{element}; 0]"
            return f"[{element}; {size}]"
        if isinstance(t, FunctionPointer):
            return f"Option<{self._signature(t, module, problems)}>"
        problems.append(f"unknown type expression {t!r}")
        return C_VOID

    def _named(self, t: CType, module: str | None, problems: list[str]) -> str:
        if t.kind == "primitive":
            return self._primitive(t.name, problems)
        if t.kind == "union":
            problems.append(f"union {t.name} is not supported")
            return C_VOID
        qualified = t.qualified_name
        decl = self._table.get(qualified)
        if isinstance(decl, Union):
            problems.append(f"union {t.name} is not supported")
            return C_VOID
        if isinstance(decl, Typedef):
            inherited = self._typedef_problems(decl)
            if inherited:
                problems.extend(f"{p} via {decl.name}" for p in inherited)
                return C_VOID
        if decl is not None:
            return self.reference(qualified, module)
        if t.kind == "typedef":
            if t.name == "va_list":
                return f"*mut {C_VOID}"
            width = self._profile.well_known_width(t.name)
            if width is not None:
                bits, signed = width
                return f"{'i' if signed else 'u'}{bits}"
        problems.append(f"unresolved type {qualified}")
        return C_VOID

    def _typedef_problems(self, decl: Typedef) -> list[str]:
        """Problems of a typedef's own mapping; a name that uses it inherits them."""
        cached = self._typedef_memo.get(decl.name)
        if cached is not None:
            return cached
        if decl.name in self._typedef_pending:
            return []
        self._typedef_pending.add(decl.name)
        try:
            found: list[str] = []
            self._map(decl.underlying_type, None, found)
        finally:
            self._typedef_pending.discard(decl.name)
        self._typedef_memo[decl.name] = found
        return found

    def _primitive(self, name: str, problems: list[str]) -> str:
        if name == "void":
            return C_VOID
        if name == "_Bool":
            return "bool"
        if name == "float":
            return "f32"
        if name in ("double", "long double"):
            return "f64"
        width = self._profile.primitive_width(name)
        if width is None:
            problems.append(f"unknown primitive {name!r}")
            return C_VOID
        bits, signed = width
        return f"{'i' if signed else 'u'}{bits}"

    def _pointer(self, t: Pointer, module: str | None, problems: list[str]) -> str:
        pointee = t.pointee
        if isinstance(pointee, FunctionPointer):
            return f"Option<{self._signature(pointee, module, problems)}>"
        if isinstance(pointee, CType) and self._is_function_typedef(pointee):
            return self._named(pointee, module, problems)
        mutability = "*const" if self._is_const(pointee) else "*mut"
        return f"{mutability} {self._map(pointee, module, problems)}"

    @staticmethod
    def _is_const(t: TypeExpr) -> bool:
        if isinstance(t, CType | Pointer):
            return "const" in t.qualifiers
        return False

    def _is_function_typedef(self, t: CType) -> bool:
        """Whether ``t`` names a typedef of a bare function type."""
        seen: set[str] = set()
        while t.kind == "typedef" and t.name not in seen:
            seen.add(t.name)
            decl = self._table.get(t.name)
            if not isinstance(decl, Typedef):
                return False
            underlying = decl.underlying_type
            if isinstance(underlying, FunctionPointer):
                return True
            if not isinstance(underlying, CType):
                return False
            t = underlying
        return False

    def _signature(self, fp: FunctionPointer, module: str | None, problems: list[str]) -> str:
        params = [self._map(p.type, module, problems) for p in fp.parameters]
        if fp.is_variadic:
            params.append("...")
        signature = f'unsafe extern "{abi_name(fp.calling_convention)}" fn({", ".join(params)})'
        if not self.is_void(fp.return_type):
            signature += f" -> {self._map(fp.return_type, module, problems)}"
        return signature

    def parameter_list(self, params: list[Parameter], is_variadic: bool, module: str | None) -> TypeMapping:
        """Render ``name: Type`` pairs; unnamed parameters become ``__arg{i}``."""
        problems: list[str] = []
        rendered: list[str] = []
        for index, param in enumerate(params):
            name = rust_identifier(param.name) if param.name else f"__arg{index}"
            rendered.append(f"{name}: {self._map(param.type, module, problems)}")
        if is_variadic:
            rendered.append("...")
        return TypeMapping(", ".join(rendered), problems)


__all__ = [
    "ABI_NAMES",
    "C_VOID",
    "NON_RAW_KEYWORDS",
    "RUST_KEYWORDS",
    "TypeMapper",
    "TypeMapping",
    "abi_name",
    "declared_name",
    "rust_identifier",
]
