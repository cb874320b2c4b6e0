"""Global symbol table and cross-header reference graph.

Declarations from every header are inserted here in dependency order. Tags
live in their own namespaces (``struct X``, ``enum X``, ``union X``);
everything else is keyed by its plain name. A per-header reverse index
remembers what each header contributed, and :meth:`SymbolTable.resolve_references`
checks that every named type reference points at something.

Duplicate policy
----------------
``"first"`` (default)
    Keep the existing entry and record a ``duplicate_symbol`` warning.
``"last"``
    Replace the existing entry and record a warning.
``"error"``
    Raise :class:`~headerbind.diagnostics.DuplicateSymbolError`.

A definition that completes an opaque forward declaration, and a
redeclaration identical to the existing entry, are not duplicates.

Enumerators of anonymous enums are emitted as free constants, so they
take part in the plain-name namespace too.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator

from headerbind.arch import PRIMITIVE_TYPES, WELL_KNOWN_TYPES
from headerbind.diagnostics import DUPLICATE_SYMBOL, Diagnostics, DuplicateSymbolError
from headerbind.ir import (
    Declaration,
    Enum,
    EnumValue,
    Struct,
    Typedef,
    Union,
    declaration_types,
    header_of,
    iter_type_refs,
)

logger = logging.getLogger(__name__)

DUPLICATE_POLICIES = ("first", "last", "error")

#: Header recorded for declarations built without a location.
UNKNOWN_HEADER = "<unknown>"


@dataclass(frozen=True)
class UnresolvedReference:
    """A named type that no declaration in the run defines.

    :param name: Qualified name of the missing type (``"struct X"``, ``"DWORD"``).
    :param referenced_by: Qualified name of the declaration using it.
    :param header: Header of the referencing declaration.
    """

    name: str
    referenced_by: str
    header: str | None

    def __str__(self) -> str:
        return f"{self.referenced_by} references unknown type {self.name!r}"


@dataclass(frozen=True)
class DuplicateRecord:
    """A rejected or replaced declaration."""

    name: str
    kept: Declaration
    discarded: Declaration


def _key(decl: Declaration) -> str | None:
    return decl.qualified_name


def _header(decl: Declaration) -> str:
    return header_of(decl) or UNKNOWN_HEADER


def _is_opaque(decl: Declaration) -> bool:
    return isinstance(decl, Struct | Union) and decl.is_opaque


class SymbolTable:
    """Maps qualified names to their winning declaration.

    :param duplicate_policy: ``"first"``, ``"last"`` or ``"error"``.
    :param diagnostics: Collector for duplicate warnings.
    :raises ValueError: If the policy is unknown.
    """

    def __init__(self, duplicate_policy: str = "first", diagnostics: Diagnostics | None = None) -> None:
        if duplicate_policy not in DUPLICATE_POLICIES:
            raise ValueError(f"Unknown duplicate policy: {duplicate_policy!r}. Available: {', '.join(DUPLICATE_POLICIES)}")
        self.duplicate_policy = duplicate_policy
        self._diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self._entries: dict[str, Declaration] = {}
        self._contributed: dict[str, list[Declaration]] = {}
        self._anonymous: list[Enum] = []
        self._enumerators: dict[str, tuple[Enum, EnumValue]] = {}
        self._free: dict[str, Enum] = {}
        self._duplicates: list[DuplicateRecord] = []
        self._finalized = False

    # -- mutation --------------------------------------------------------------

    def add_header(self, header: str) -> None:
        """Register a header so it keeps its place in emission order."""
        self._check_mutable()
        self._contributed.setdefault(header, [])

    def insert(self, decl: Declaration) -> bool:
        """Add a declaration, applying the duplicate policy.

        Enumerators of anonymous enums become free constants. They share the
        plain-name namespace with every other declaration and go through the
        same policy.

        :returns: True if ``decl`` is now the entry for its name.
        :raises DuplicateSymbolError: Under the ``"error"`` policy.
        :raises RuntimeError: If the table has been finalized.
        """
        self._check_mutable()
        header = _header(decl)
        self._contributed.setdefault(header, []).append(decl)

        key = _key(decl)
        if isinstance(decl, Enum):
            self._index_enumerators(decl, free=key is None)
        if key is None:
            if isinstance(decl, Enum):
                self._anonymous.append(decl)
            return True

        enumerator_owner = self._free.get(key)
        if enumerator_owner is not None:
            if not self._duplicate(key, enumerator_owner, decl):
                return False
            del self._free[key]
            self._enumerators.pop(key, None)

        existing = self._entries.get(key)
        if existing is None:
            self._entries[key] = decl
            return True
        if existing == decl:
            return False
        if _is_opaque(decl) and type(existing) is type(decl):
            return False
        if _is_opaque(existing) and type(existing) is type(decl):
            logger.debug("%s completes forward declaration from %s", key, _header(existing))
            del self._entries[key]
            self._entries[key] = decl
            return True

        if not self._duplicate(key, existing, decl):
            return False
        del self._entries[key]
        self._entries[key] = decl
        return True

    def _duplicate(self, key: str, existing: Declaration, decl: Declaration) -> bool:
        """Apply the policy to a clash on ``key``; True if ``decl`` replaces ``existing``."""
        previous = _header(existing)
        header = _header(decl)
        if self.duplicate_policy == "error":
            raise DuplicateSymbolError(key, previous, header)
        if self.duplicate_policy == "last":
            self._duplicates.append(DuplicateRecord(key, decl, existing))
            message = f"{key} redeclared in {header}, replacing the declaration from {previous}"
        else:
            self._duplicates.append(DuplicateRecord(key, existing, decl))
            message = f"{key} redeclared in {header}, keeping the declaration from {previous}"
        self._diagnostics.report(
            DUPLICATE_SYMBOL,
            message,
            header=header,
            line=decl.location.line if decl.location else None,
            symbol=key,
        )
        return self.duplicate_policy == "last"

    def _index_enumerators(self, decl: Enum, free: bool) -> None:
        for value in decl.values:
            if not free:
                self._enumerators.setdefault(value.name, (decl, value))
                continue
            rival = self._entries.get(value.name)
            if rival is None:
                rival = self._free.get(value.name)
            if rival is not None:
                if rival == decl or not self._duplicate(value.name, rival, decl):
                    continue
                self._entries.pop(value.name, None)
            self._free[value.name] = decl
            self._enumerators[value.name] = (decl, value)

    def finalize(self) -> None:
        """Make the table read-only."""
        self._finalized = True

    @property
    def finalized(self) -> bool:
        return self._finalized

    def _check_mutable(self) -> None:
        if self._finalized:
            raise RuntimeError("symbol table is finalized")

    # -- queries ---------------------------------------------------------------

    def get(self, name: str) -> Declaration | None:
        return self._entries.get(name)

    def __getitem__(self, name: str) -> Declaration:
        return self._entries[name]

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[Declaration]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def names(self) -> list[str]:
        return list(self._entries)

    def owner_of(self, name: str) -> str | None:
        """Return the header owning the winning declaration of ``name``."""
        decl = self._entries.get(name)
        return _header(decl) if decl is not None else None

    def headers(self) -> list[str]:
        """Headers in the order they were first seen."""
        return list(self._contributed)

    def contributed_by(self, header: str) -> list[Declaration]:
        """Every declaration ``header`` contributed, winners or not."""
        return list(self._contributed.get(header, []))

    def winners(self, header: str) -> list[Declaration]:
        """Declarations owned by ``header`` that are emitted, in first-appearance order."""
        result: list[Declaration] = []
        for decl in self._contributed.get(header, []):
            key = _key(decl)
            if key is None:
                if isinstance(decl, Enum) and any(self._free.get(v.name) is decl for v in decl.values):
                    result.append(decl)
            elif self._entries.get(key) is decl:
                result.append(decl)
        return result

    def enumerator(self, name: str) -> tuple[Enum, EnumValue] | None:
        return self._enumerators.get(name)

    def emits_enumerator(self, decl: Enum, name: str) -> bool:
        """Whether enumerator ``name`` of ``decl`` is emitted.

        Always true for named enums. A free enumerator that lost a duplicate
        clash is not.
        """
        return decl.name is not None or self._free.get(name) is decl

    @property
    def anonymous(self) -> list[Enum]:
        return list(self._anonymous)

    @property
    def duplicates(self) -> list[DuplicateRecord]:
        return list(self._duplicates)

    def is_type_name(self, name: str) -> bool:
        """Whether ``name`` is a typedef in the table or a well-known type."""
        return isinstance(self._entries.get(name), Typedef) or name in WELL_KNOWN_TYPES

    def resolve_references(self) -> list[UnresolvedReference]:
        """Find named type references with no declaration.

        Primitives and well-known names never count as unresolved. Each
        (missing name, referencing declaration) pair is reported once.
        """
        seen: set[tuple[str, str]] = set()
        unresolved: list[UnresolvedReference] = []
        for decl in self._emitted():
            owner = decl.qualified_name or str(decl)
            for type_expr in declaration_types(decl):
                for ref in iter_type_refs(type_expr):
                    if ref.kind == "primitive" or ref.name in PRIMITIVE_TYPES:
                        continue
                    if ref.kind == "typedef" and ref.name in WELL_KNOWN_TYPES:
                        continue
                    if ref.qualified_name in self._entries:
                        continue
                    pair = (ref.qualified_name, owner)
                    if pair in seen:
                        continue
                    seen.add(pair)
                    unresolved.append(UnresolvedReference(ref.qualified_name, owner, _header(decl)))
        return unresolved

    def _emitted(self) -> Iterator[Declaration]:
        for header in self._contributed:
            yield from self.winners(header)
