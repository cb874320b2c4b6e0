"""Intermediate representation for parsed C headers.

The declaration parser produces these objects, the symbol table indexes them,
and the writers turn them into output modules. Types are plain dataclasses so
that structurally identical declarations compare equal regardless of where
they were found (``location`` is excluded from comparison).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union as _TypingUnion

# =============================================================================
# Source locations
# =============================================================================


@dataclass(frozen=True)
class SourceLocation:
    """Where a declaration was found.

    :param file: Display name of the defining header.
    :param line: 1-based line number of the first token.
    :param column: Optional column, unused by the built-in parser.
    """

    file: str
    line: int
    column: int | None = None

    def __str__(self) -> str:
        return f"{self.file}:{self.line}"


# =============================================================================
# Type expressions
# =============================================================================

#: Kinds of named type references.
TYPE_KINDS = ("primitive", "typedef", "struct", "enum", "union")


@dataclass
class CType:
    """A primitive type or a named reference to another declaration.

    ``kind`` tells the two apart: ``"primitive"`` for C keyword types such as
    ``unsigned long``, ``"typedef"`` for typedef names, and ``"struct"``,
    ``"enum"`` or ``"union"`` for tag references.

    Example
    -------
    ::

        CType("int", kind="primitive")
        CType("HANDLE")
        CType("_FILETIME", kind="struct")
    """

    name: str
    qualifiers: list[str] = field(default_factory=list)
    kind: str = "typedef"

    @property
    def qualified_name(self) -> str:
        """Symbol-table key this reference resolves against."""
        if self.kind in ("struct", "enum", "union"):
            return f"{self.kind} {self.name}"
        return self.name

    @property
    def is_const(self) -> bool:
        return "const" in self.qualifiers

    def __str__(self) -> str:
        parts = list(self.qualifiers)
        parts.append(self.qualified_name)
        return " ".join(parts)


@dataclass
class Pointer:
    """Pointer to another type. ``qualifiers`` apply to the pointer itself."""

    pointee: TypeExpr
    qualifiers: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        if isinstance(self.pointee, FunctionPointer):
            return str(self.pointee)
        return f"{self.pointee}*"


@dataclass
class Array:
    """Fixed-size array.

    ``size`` is an int when the parser could read it directly, the raw
    expression text when it could not, and None for flexible arrays.
    """

    element_type: TypeExpr
    size: int | str | None = None

    def __str__(self) -> str:
        size = "" if self.size is None else str(self.size)
        return f"{self.element_type}[{size}]"


@dataclass
class Parameter:
    """A function parameter. ``name`` is None for abstract declarators."""

    name: str | None
    type: TypeExpr

    def __str__(self) -> str:
        if self.name:
            return f"{self.type} {self.name}"
        return str(self.type)


@dataclass
class FunctionPointer:
    """A function signature used as a type.

    Function-pointer typedefs appear as ``Pointer(FunctionPointer(...))``; a
    typedef of a bare function type is a ``FunctionPointer`` on its own.
    """

    return_type: TypeExpr
    parameters: list[Parameter] = field(default_factory=list)
    is_variadic: bool = False
    calling_convention: str | None = None

    def __str__(self) -> str:
        params = [str(p) for p in self.parameters]
        if self.is_variadic:
            params.append("...")
        return f"{self.return_type} (*)({', '.join(params)})"


TypeExpr = _TypingUnion[CType, Pointer, Array, FunctionPointer]


# =============================================================================
# Declarations
# =============================================================================


@dataclass
class Field:
    """A struct field. ``bit_width`` is set for bitfields."""

    name: str
    type: TypeExpr
    bit_width: int | None = None

    def __str__(self) -> str:
        if self.bit_width is not None:
            return f"{self.type} {self.name} : {self.bit_width}"
        return f"{self.type} {self.name}"


@dataclass
class EnumValue:
    """An enumerator. ``value`` is the raw expression text, if any."""

    name: str
    value: int | str | None = None

    def __str__(self) -> str:
        if self.value is None:
            return self.name
        return f"{self.name} = {self.value}"


@dataclass
class Struct:
    """A struct definition. ``fields is None`` marks an opaque forward declaration."""

    name: str | None
    fields: list[Field] | None = None
    is_typedef: bool = False
    location: SourceLocation | None = field(default=None, compare=False)

    @property
    def is_opaque(self) -> bool:
        return self.fields is None

    @property
    def qualified_name(self) -> str | None:
        return f"struct {self.name}" if self.name else None

    def __str__(self) -> str:
        return f"struct {self.name or '(anonymous)'}"


@dataclass
class Union:
    """A union declaration.

    Unions are not translated. They are kept as a first-class declaration so
    that writers can emit a visible marker instead of dropping them.
    """

    name: str | None
    fields: list[Field] | None = None
    location: SourceLocation | None = field(default=None, compare=False)

    @property
    def is_opaque(self) -> bool:
        return self.fields is None

    @property
    def qualified_name(self) -> str | None:
        return f"union {self.name}" if self.name else None

    def __str__(self) -> str:
        return f"union {self.name or '(anonymous)'}"


@dataclass
class Enum:
    """An enum definition. Anonymous enums have ``name=None``."""

    name: str | None
    values: list[EnumValue] = field(default_factory=list)
    is_typedef: bool = False
    location: SourceLocation | None = field(default=None, compare=False)

    @property
    def qualified_name(self) -> str | None:
        return f"enum {self.name}" if self.name else None

    def __str__(self) -> str:
        return f"enum {self.name or '(anonymous)'}"


@dataclass
class Function:
    """A function prototype."""

    name: str
    return_type: TypeExpr
    parameters: list[Parameter] = field(default_factory=list)
    is_variadic: bool = False
    calling_convention: str | None = None
    location: SourceLocation | None = field(default=None, compare=False)

    @property
    def qualified_name(self) -> str:
        return self.name

    def __str__(self) -> str:
        params = [str(p) for p in self.parameters]
        if self.is_variadic:
            params.append("...")
        return f"{self.return_type} {self.name}({', '.join(params)})"


@dataclass
class Typedef:
    """A typedef alias."""

    name: str
    underlying_type: TypeExpr
    location: SourceLocation | None = field(default=None, compare=False)

    @property
    def qualified_name(self) -> str:
        return self.name

    def __str__(self) -> str:
        return f"typedef {self.underlying_type} {self.name}"


@dataclass
class Variable:
    """An ``extern`` global variable."""

    name: str
    type: TypeExpr
    location: SourceLocation | None = field(default=None, compare=False)

    @property
    def qualified_name(self) -> str:
        return self.name

    def __str__(self) -> str:
        return f"{self.type} {self.name}"


@dataclass
class Constant:
    """An object-like ``#define`` treated as a constant.

    ``tokens`` holds the raw replacement list. ``value`` and ``notation`` are
    filled in by the constant evaluator and kept apart so that the source
    notation (hex, octal...) can be restored without touching the arithmetic.
    """

    name: str
    tokens: list[str] = field(default_factory=list)
    value: int | float | str | None = None
    notation: str | None = None
    location: SourceLocation | None = field(default=None, compare=False)

    @property
    def qualified_name(self) -> str:
        return self.name

    def __str__(self) -> str:
        return f"#define {self.name} {' '.join(self.tokens)}".rstrip()


Declaration = _TypingUnion[Struct, Union, Enum, Function, Typedef, Variable, Constant]


def declaration_kind(decl: Declaration) -> str:
    """Return a short lowercase label for a declaration (``"struct"``, ...)."""
    return type(decl).__name__.lower()


def header_of(decl: Declaration) -> str | None:
    """Return the defining header of a declaration, if known."""
    return decl.location.file if decl.location is not None else None


def iter_type_refs(t: TypeExpr):
    """Yield every :class:`CType` reachable from a type expression."""
    if isinstance(t, CType):
        yield t
    elif isinstance(t, Pointer):
        yield from iter_type_refs(t.pointee)
    elif isinstance(t, Array):
        yield from iter_type_refs(t.element_type)
    elif isinstance(t, FunctionPointer):
        yield from iter_type_refs(t.return_type)
        for p in t.parameters:
            yield from iter_type_refs(p.type)


def declaration_types(decl: Declaration) -> list[TypeExpr]:
    """Return the type expressions a declaration depends on."""
    if isinstance(decl, Struct | Union):
        return [f.type for f in decl.fields or []]
    if isinstance(decl, Function):
        return [decl.return_type] + [p.type for p in decl.parameters]
    if isinstance(decl, Typedef):
        return [decl.underlying_type]
    if isinstance(decl, Variable):
        return [decl.type]
    return []
