"""Writers that render output modules.

A writer turns each :class:`~headerbind.emitter.OutputModule` into the text
of one file, and renders the aggregator that ties the modules together.

Available Writers
-----------------
rust
    Rust ``#[repr(C)]`` items and ``extern`` blocks (default).
json
    JSON view of each module, C declarations next to their Rust types.

Example
-------
::

    from headerbind.writers import get_writer, list_writers

    # Get the default writer (rust)
    writer = get_writer()

    # Get a specific writer
    writer = get_writer("json", indent=4)

    # List available writers
    for name in list_writers():
        print(name)
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from headerbind.emitter import EmitContext, OutputModule

__all__ = [
    "WriterBackend",
    "get_default_writer",
    "get_writer",
    "get_writer_info",
    "is_writer_available",
    "list_writers",
    "register_writer",
]

# =============================================================================
# Writer Protocol
# =============================================================================


@runtime_checkable
class WriterBackend(Protocol):
    """Protocol defining the interface for output writers.

    Writer-specific options (e.g. ``indent`` for JSON) are constructor
    parameters on the concrete class, not part of the ``write_*``
    signatures.

    Example
    -------
    ::

        from headerbind.writers import get_writer

        writer = get_writer("rust")
        text = writer.write_module(module, context)
    """

    def write_module(self, module: OutputModule, context: EmitContext) -> str:
        """Render one output module.

        Writers emit a visible marker for declarations they cannot
        represent, and record a diagnostic on ``context.diagnostics``.
        They must not raise for valid IR.

        :param module: The module to render.
        :param context: Symbol table, type mapper and run settings.
        :returns: File contents.
        """
        ...

    def write_aggregator(self, modules: list[OutputModule], context: EmitContext) -> str:
        """Render the aggregator that exposes ``modules``."""
        ...

    @property
    def name(self) -> str:
        """Human-readable name of this writer (e.g., ``"rust"``)."""
        ...

    @property
    def file_extension(self) -> str:
        """Extension of module files, including the dot."""
        ...

    @property
    def aggregator_name(self) -> str:
        """File name of the aggregator (e.g., ``"lib.rs"``)."""
        ...

    @property
    def format_description(self) -> str:
        """Short description of the output format."""
        ...


# =============================================================================
# Writer Registry
# =============================================================================


@dataclass(frozen=True)
class _Registration:
    writer_class: type[WriterBackend]
    description: str


# Modules imported on first lookup; each registers its writer when imported.
_BUILTIN_WRITERS = ("headerbind.writers.rust", "headerbind.writers.json")

_WRITER_REGISTRY: dict[str, _Registration] = {}
_DEFAULT_WRITER: str | None = None
_WRITERS_LOADED: bool = False


def register_writer(
    name: str,
    writer_class: type[WriterBackend],
    is_default: bool = False,
    description: str | None = None,
) -> None:
    """Register an output writer.

    The first registered writer becomes the default unless a later one
    passes ``is_default``.

    :param name: Writer name used in :func:`get_writer` lookups.
    :param writer_class: Class implementing :class:`WriterBackend`.
    :param is_default: Make this writer the default.
    :param description: Short description for :func:`get_writer_info`;
        the first line of the class docstring when omitted.
    :raises ValueError: If ``name`` is already registered.
    """
    global _DEFAULT_WRITER  # pylint: disable=global-statement
    if name in _WRITER_REGISTRY:
        raise ValueError(f"Writer already registered: {name!r}")
    if description is None:
        doc = (writer_class.__doc__ or "").strip()
        description = doc.split("\n")[0] if doc else ""
    _WRITER_REGISTRY[name] = _Registration(writer_class, description)
    if is_default or _DEFAULT_WRITER is None:
        _DEFAULT_WRITER = name


def list_writers() -> list[str]:
    """Names accepted by :func:`get_writer`, in registration order."""
    _ensure_writers_loaded()
    return list(_WRITER_REGISTRY)


def is_writer_available(name: str) -> bool:
    _ensure_writers_loaded()
    return name in _WRITER_REGISTRY


def get_writer_info() -> list[dict[str, str | bool]]:
    """Describe every registered writer without instantiating it.

    :returns: One dict per writer with keys ``name``, ``description`` and
        ``is_default``.
    """
    _ensure_writers_loaded()
    return [
        {"name": name, "description": entry.description, "is_default": name == _DEFAULT_WRITER}
        for name, entry in _WRITER_REGISTRY.items()
    ]


def get_writer(name: str | None = None, **kwargs: object) -> WriterBackend:
    """Instantiate a writer.

    Keyword arguments go to the writer's constructor::

        writer = get_writer("json", indent=None)

    :param name: Writer name, or None for the default writer.
    :raises ValueError: If no such writer is registered.
    """
    _ensure_writers_loaded()
    name = name or get_default_writer()
    if name not in _WRITER_REGISTRY:
        available = ", ".join(_WRITER_REGISTRY) or "(none)"
        raise ValueError(f"Unknown writer: {name!r}. Available: {available}")
    return _WRITER_REGISTRY[name].writer_class(**kwargs)


def get_default_writer() -> str:
    """Name of the default writer.

    :raises ValueError: If no writers are registered.
    """
    _ensure_writers_loaded()
    if _DEFAULT_WRITER is None:
        raise ValueError("No writers available")
    return _DEFAULT_WRITER


def _ensure_writers_loaded() -> None:
    """Import the built-in writer modules once.

    Writer modules import :func:`register_writer` from this package while
    this function imports them, so the imports cannot move to module level.
    """
    global _WRITERS_LOADED  # pylint: disable=global-statement
    if _WRITERS_LOADED:
        return
    _WRITERS_LOADED = True
    for module in _BUILTIN_WRITERS:
        importlib.import_module(module)
