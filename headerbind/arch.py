"""Architecture profiles.

A profile is chosen once per run. It fixes the width of the C types whose
size depends on the target (``long``, ``wchar_t``, pointer-sized integers)
and seeds the macro environment with the predefined macros that the
platform's own headers test in their ``#ifdef`` guards.

Selection order for :func:`get_profile`:

1. The explicit name passed by the caller.
2. The ``HEADERBIND_ARCH`` environment variable.
3. :data:`DEFAULT_ARCH` (``"x86-64"``).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

DEFAULT_ARCH = "x86-64"
ARCH_ENV_VAR = "HEADERBIND_ARCH"


@dataclass(frozen=True)
class ArchProfile:
    """Immutable description of a compilation target.

    :param name: Profile name (e.g. ``"x86-64"``).
    :param pointer_width: Width of pointers and pointer-sized integers, in bits.
    :param long_width: Width of ``long``, in bits (32 on LLP64 and ILP32, 64 on LP64).
    :param wchar_width: Width of ``wchar_t``, in bits.
    :param wchar_signed: Whether ``wchar_t`` is signed.
    :param char_signed: Whether plain ``char`` is signed.
    :param predefined_macros: Macros defined before any header is read.
    """

    name: str
    pointer_width: int
    long_width: int
    wchar_width: int = 16
    wchar_signed: bool = False
    char_signed: bool = True
    predefined_macros: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "predefined_macros", MappingProxyType(dict(self.predefined_macros)))

    def with_macros(self, extra: Mapping[str, str]) -> ArchProfile:
        """Return a copy whose predefined macros are extended by ``extra``."""
        merged = dict(self.predefined_macros)
        merged.update(extra)
        return ArchProfile(
            name=self.name,
            pointer_width=self.pointer_width,
            long_width=self.long_width,
            wchar_width=self.wchar_width,
            wchar_signed=self.wchar_signed,
            char_signed=self.char_signed,
            predefined_macros=merged,
        )

    def primitive_width(self, name: str) -> tuple[int, bool] | None:
        """Return ``(bits, signed)`` for a canonical primitive type name.

        Canonical names are the ones the declaration parser produces, such as
        ``"unsigned long"`` or ``"__int64"``. Returns None for ``void``,
        floating-point types and unknown names.
        """
        if name in _FIXED_PRIMITIVES:
            return _FIXED_PRIMITIVES[name]
        if name == "char":
            return (8, self.char_signed)
        if name == "long":
            return (self.long_width, True)
        if name == "unsigned long":
            return (self.long_width, False)
        if name == "__int3264":
            return (self.pointer_width, True)
        if name == "unsigned __int3264":
            return (self.pointer_width, False)
        return None

    def well_known_width(self, name: str) -> tuple[int, bool] | None:
        """Return ``(bits, signed)`` for a well-known typedef name.

        These are names such as ``size_t`` or ``uint32_t`` that system headers
        normally typedef themselves. A typedef found in the parsed headers
        always takes precedence over this table.
        """
        if name in _FIXED_WELL_KNOWN:
            return _FIXED_WELL_KNOWN[name]
        if name in _POINTER_SIZED:
            return (self.pointer_width, _POINTER_SIZED[name])
        if name == "wchar_t":
            return (self.wchar_width, self.wchar_signed)
        return None


# Primitive keyword types whose width never depends on the profile.
_FIXED_PRIMITIVES: dict[str, tuple[int, bool]] = {
    "signed char": (8, True),
    "unsigned char": (8, False),
    "short": (16, True),
    "unsigned short": (16, False),
    "int": (32, True),
    "unsigned int": (32, False),
    "long long": (64, True),
    "unsigned long long": (64, False),
    "__int8": (8, True),
    "unsigned __int8": (8, False),
    "__int16": (16, True),
    "unsigned __int16": (16, False),
    "__int32": (32, True),
    "unsigned __int32": (32, False),
    "__int64": (64, True),
    "unsigned __int64": (64, False),
}

_FIXED_WELL_KNOWN: dict[str, tuple[int, bool]] = {
    "int8_t": (8, True),
    "int16_t": (16, True),
    "int32_t": (32, True),
    "int64_t": (64, True),
    "uint8_t": (8, False),
    "uint16_t": (16, False),
    "uint32_t": (32, False),
    "uint64_t": (64, False),
}

_POINTER_SIZED: dict[str, bool] = {
    "size_t": False,
    "ssize_t": True,
    "ptrdiff_t": True,
    "intptr_t": True,
    "uintptr_t": False,
}

#: Type names the type mapper understands without a declaration.
WELL_KNOWN_TYPES = frozenset(_FIXED_WELL_KNOWN) | frozenset(_POINTER_SIZED) | {"wchar_t", "va_list"}

#: Canonical primitive names produced by the parser.
PRIMITIVE_TYPES = frozenset(_FIXED_PRIMITIVES) | {
    "void",
    "char",
    "long",
    "unsigned long",
    "__int3264",
    "unsigned __int3264",
    "_Bool",
    "float",
    "double",
    "long double",
}

#: Keywords that combine into a primitive type specifier.
PRIMITIVE_KEYWORDS = frozenset(
    {
        "void",
        "char",
        "short",
        "int",
        "long",
        "signed",
        "unsigned",
        "float",
        "double",
        "_Bool",
        "bool",
        "__int8",
        "__int16",
        "__int32",
        "__int64",
        "__int3264",
    }
)


def canonical_primitive(words: list[str]) -> str:
    """Collapse a list of primitive keywords into one canonical name.

    ``["unsigned", "long", "int"]`` becomes ``"unsigned long"``, ``["signed"]``
    becomes ``"int"``, ``["long", "long"]`` becomes ``"long long"``.

    :raises ValueError: If the keywords do not form a valid type.
    """
    unsigned = "unsigned" in words
    if unsigned and "signed" in words:
        raise ValueError(f"conflicting signedness: {' '.join(words)}")
    base = [w for w in words if w not in ("signed", "unsigned", "int")]
    prefix = "unsigned " if unsigned else ""

    if not base:
        return prefix + "int"
    if base == ["void"]:
        return "void"
    if base in (["_Bool"], ["bool"]):
        return "_Bool"
    if base == ["float"]:
        return "float"
    if base == ["double"]:
        return "double"
    if sorted(base) == ["double", "long"]:
        return "long double"
    if base == ["char"]:
        if unsigned:
            return "unsigned char"
        return "signed char" if "signed" in words else "char"
    if base == ["short"]:
        return prefix + "short"
    if base == ["long"]:
        return prefix + "long"
    if base == ["long", "long"]:
        return prefix + "long long"
    if len(base) == 1 and base[0].startswith("__int"):
        return prefix + base[0]
    raise ValueError(f"invalid type specifier: {' '.join(words)}")


_MSVC = {"_MSC_VER": "1930", "_WIN32": "1", "_INTEGRAL_MAX_BITS": "64"}

PROFILES: dict[str, ArchProfile] = {
    "x86-64": ArchProfile(
        name="x86-64",
        pointer_width=64,
        long_width=32,
        predefined_macros={**_MSVC, "_WIN64": "1", "_M_X64": "100", "_M_AMD64": "100", "_AMD64_": "1"},
    ),
    "x86": ArchProfile(
        name="x86",
        pointer_width=32,
        long_width=32,
        predefined_macros={**_MSVC, "_M_IX86": "600", "_X86_": "1"},
    ),
    "aarch64": ArchProfile(
        name="aarch64",
        pointer_width=64,
        long_width=32,
        predefined_macros={**_MSVC, "_WIN64": "1", "_M_ARM64": "1", "_ARM64_": "1"},
    ),
    "x86-64-sysv": ArchProfile(
        name="x86-64-sysv",
        pointer_width=64,
        long_width=64,
        wchar_width=32,
        wchar_signed=True,
        predefined_macros={"__x86_64__": "1", "__LP64__": "1", "__linux__": "1", "__STDC__": "1"},
    ),
    "i686-sysv": ArchProfile(
        name="i686-sysv",
        pointer_width=32,
        long_width=32,
        wchar_width=32,
        wchar_signed=True,
        predefined_macros={"__i386__": "1", "__ILP32__": "1", "__linux__": "1", "__STDC__": "1"},
    ),
}


def list_profiles() -> list[str]:
    """List the names accepted by :func:`get_profile`."""
    return list(PROFILES)


def get_profile(name: str | None = None) -> ArchProfile:
    """Look up an architecture profile.

    :param name: Profile name, or None to use ``HEADERBIND_ARCH`` or the default.
    :raises ValueError: If the name is unknown.
    """
    if name is None:
        env_name = os.environ.get(ARCH_ENV_VAR, "").strip()
        if env_name:
            if env_name in PROFILES:
                return PROFILES[env_name]
            import warnings

            warnings.warn(f"{ARCH_ENV_VAR}={env_name!r} is not a known architecture, using {DEFAULT_ARCH}", stacklevel=2)
        name = DEFAULT_ARCH
    if name not in PROFILES:
        available = ", ".join(PROFILES)
        raise ValueError(f"Unknown architecture: {name!r}. Available: {available}")
    return PROFILES[name]
