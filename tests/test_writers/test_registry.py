"""Tests for the writer registry."""

from __future__ import annotations

from collections.abc import Generator
from types import ModuleType
from typing import Any

import pytest

import headerbind.writers.json  # noqa: F401
import headerbind.writers.rust  # noqa: F401
from headerbind.emitter import EmitContext, OutputModule
from headerbind.writers import (
    WriterBackend,
    get_default_writer,
    get_writer,
    get_writer_info,
    is_writer_available,
    list_writers,
    register_writer,
)


class TextWriter:
    """Plain text dump of module names.

    Only used to exercise the registry.
    """

    def __init__(self, **options: Any) -> None:
        self.options = options

    def write_module(self, module: OutputModule, context: EmitContext) -> str:
        return module.name

    def write_aggregator(self, modules: list[OutputModule], context: EmitContext) -> str:
        return "\n".join(m.name for m in modules)

    @property
    def name(self) -> str:
        return "text"

    @property
    def file_extension(self) -> str:
        return ".txt"

    @property
    def aggregator_name(self) -> str:
        return "modules.txt"

    @property
    def format_description(self) -> str:
        return "module names"


class UndocumentedWriter(TextWriter):
    __doc__ = None


@pytest.fixture()
def empty_registry() -> Generator[ModuleType, None, None]:
    """An empty registry that will not import the built-in writers."""
    import headerbind.writers as registry

    saved = (dict(registry._WRITER_REGISTRY), registry._DEFAULT_WRITER, registry._WRITERS_LOADED)
    registry._WRITER_REGISTRY.clear()
    registry._DEFAULT_WRITER = None
    registry._WRITERS_LOADED = True
    yield registry
    registry._WRITER_REGISTRY.clear()
    registry._WRITER_REGISTRY.update(saved[0])
    registry._DEFAULT_WRITER, registry._WRITERS_LOADED = saved[1], saved[2]


@pytest.mark.usefixtures("empty_registry")
class TestRegistration:
    def test_register_and_get(self) -> None:
        register_writer("text", TextWriter)
        writer = get_writer("text", upper=True)
        assert isinstance(writer, TextWriter)
        assert writer.options == {"upper": True}
        assert is_writer_available("text")
        assert not is_writer_available("html")

    @pytest.mark.parametrize(
        ("defaults", "expected"),
        [((False, False), "first"), ((False, True), "second"), ((True, False), "first")],
    )
    def test_default_selection(self, defaults: tuple[bool, bool], expected: str) -> None:
        register_writer("first", TextWriter, is_default=defaults[0])
        register_writer("second", TextWriter, is_default=defaults[1])
        assert get_default_writer() == expected
        assert list_writers() == ["first", "second"]

    def test_duplicate_name_rejected(self) -> None:
        register_writer("text", TextWriter)
        with pytest.raises(ValueError, match="Writer already registered: 'text'"):
            register_writer("text", TextWriter)

    def test_unknown_writer(self) -> None:
        register_writer("text", TextWriter)
        with pytest.raises(ValueError, match="Unknown writer: 'html'. Available: text"):
            get_writer("html")

    def test_empty(self) -> None:
        with pytest.raises(ValueError, match="No writers available"):
            get_default_writer()
        with pytest.raises(ValueError, match="No writers available"):
            get_writer()

    def test_descriptions(self) -> None:
        register_writer("text", TextWriter)
        register_writer("bare", UndocumentedWriter)
        register_writer("explicit", TextWriter, description="given")
        assert get_writer_info() == [
            {"name": "text", "description": "Plain text dump of module names.", "is_default": True},
            {"name": "bare", "description": "", "is_default": False},
            {"name": "explicit", "description": "given", "is_default": False},
        ]

    def test_lazy_loading(self, empty_registry: ModuleType) -> None:
        empty_registry._WRITERS_LOADED = False
        register_writer("text", TextWriter)
        assert list_writers() == ["text"]
        assert empty_registry._WRITERS_LOADED


class TestBuiltinWriters:
    def test_registered(self) -> None:
        assert sorted(list_writers()) == ["json", "rust"]
        assert get_default_writer() == "rust"

    @pytest.mark.parametrize(
        ("name", "extension", "aggregator"),
        [("rust", ".rs", "lib.rs"), ("json", ".json", "index.json")],
    )
    def test_properties(self, name: str, extension: str, aggregator: str) -> None:
        writer = get_writer(name)
        assert isinstance(writer, WriterBackend)
        assert (writer.name, writer.file_extension, writer.aggregator_name) == (name, extension, aggregator)
        assert writer.format_description

    def test_info(self) -> None:
        info = {entry["name"]: entry for entry in get_writer_info()}
        assert info["rust"]["is_default"] is True
        assert info["json"]["is_default"] is False
        assert info["json"]["description"]
