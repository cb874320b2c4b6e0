"""Render output modules as Rust source.

Each header module becomes one ``.rs`` file:

- structs become ``#[repr(C)]`` structs, and opaque ones become
  ``#[repr(transparent)]`` wrappers;
- enums become ``#[repr(transparent)]`` newtypes over ``i32`` with one
  associated constant per enumerator;
- functions go into ``extern "ABI"`` blocks;
- typedefs become ``pub type`` aliases;
- object-like macros become ``pub const`` items when they evaluate.

Anything that cannot be translated is emitted as an ``// unsupported:``
comment and recorded as a diagnostic, so the gap is visible in the output.
"""

from __future__ import annotations

import math

from headerbind.constants import EvaluatedConstant
from headerbind.diagnostics import UNEVALUATED_CONSTANT, UNSUPPORTED_TYPE
from headerbind.emitter import EmitContext, OutputModule
from headerbind.ir import (
    Constant,
    Declaration,
    Enum,
    Function,
    Struct,
    Typedef,
    Union,
    Variable,
)
from headerbind.typemap import abi_name, declared_name, rust_identifier

ALLOW_LINTS = "#![allow(non_camel_case_types, non_snake_case, non_upper_case_globals, dead_code)]"

INDENT = "    "


def _unsupported(what: str, problems: list[str]) -> str:
    return f"// unsupported: {what}: {'; '.join(problems)}"


def _report(context: EmitContext, module: OutputModule, symbol: str, problems: list[str]) -> None:
    context.diagnostics.report(
        UNSUPPORTED_TYPE,
        f"{symbol}: {'; '.join(problems)}",
        header=module.header,
        symbol=symbol,
    )


def _struct_lines(decl: Struct, module: OutputModule, context: EmitContext) -> list[str]:
    ident = declared_name(decl.qualified_name or "")
    if decl.is_opaque:
        return ["#[repr(transparent)]", f"pub struct {ident}(::core::ffi::c_void);"]
    lines = ["#[repr(C)]", "#[derive(Copy, Clone)]", f"pub struct {ident} {{"]
    for f in decl.fields or []:
        mapping = context.type_mapper.map_field(f, module.name)
        if mapping.ok:
            lines.append(f"{INDENT}pub {rust_identifier(f.name)}: {mapping.expr},")
        else:
            lines.append(INDENT + _unsupported(f"field {f.name}", mapping.problems))
            _report(context, module, f"{decl.qualified_name}.{f.name}", mapping.problems)
    lines.append("}")
    return lines


def _enum_lines(decl: Enum, module: OutputModule, context: EmitContext) -> list[str]:
    values = context.evaluator.enum_values(decl)
    if decl.name is None:
        lines: list[str] = []
        for (name, value), item in zip(values, decl.values):
            if not context.table.emits_enumerator(decl, name):
                continue
            if value is None:
                lines.append(_unsupported(f"enumerator {name}", [f"cannot evaluate {item.value}"]))
                _unevaluated(context, module, name, str(item.value))
            else:
                lines.append(f"pub const {rust_identifier(name)}: i32 = {value};")
        return lines

    ident = declared_name(decl.qualified_name or "")
    lines = [
        "#[repr(transparent)]",
        "#[derive(Copy, Clone, Debug, PartialEq, Eq, Hash)]",
        f"pub struct {ident}(pub i32);",
    ]
    if not values:
        return lines
    lines.append(f"impl {ident} {{")
    for (name, value), item in zip(values, decl.values):
        if value is None:
            lines.append(INDENT + _unsupported(f"enumerator {name}", [f"cannot evaluate {item.value}"]))
            _unevaluated(context, module, name, str(item.value))
        else:
            lines.append(f"{INDENT}pub const {rust_identifier(name)}: Self = Self({value});")
    lines.append("}")
    return lines


def _unevaluated(context: EmitContext, module: OutputModule, name: str, text: str) -> None:
    context.diagnostics.report(
        UNEVALUATED_CONSTANT,
        f"{name} = {text} could not be evaluated",
        header=module.header,
        symbol=name,
    )


def _function_line(decl: Function, module: OutputModule, context: EmitContext) -> str:
    mapper = context.type_mapper
    params = mapper.parameter_list(decl.parameters, decl.is_variadic, module.name)
    ret = mapper.map_return(decl.return_type, module.name)
    problems = params.problems + ret.problems
    if problems:
        _report(context, module, decl.name, problems)
        return _unsupported(f"fn {decl.name}", problems)
    line = f"pub fn {rust_identifier(decl.name)}({params.expr})"
    if ret.expr:
        line += f" -> {ret.expr}"
    return line + ";"


def _typedef_lines(decl: Typedef, module: OutputModule, context: EmitContext) -> list[str]:
    mapping = context.type_mapper.map_type(decl.underlying_type, module.name)
    if not mapping.ok:
        _report(context, module, decl.name, mapping.problems)
        return [_unsupported(f"type {decl.name}", mapping.problems)]
    return [f"pub type {rust_identifier(decl.name)} = {mapping.expr};"]


def _variable_lines(decl: Variable, module: OutputModule, context: EmitContext) -> list[str]:
    mapping = context.type_mapper.map_type(decl.type, module.name)
    if not mapping.ok:
        _report(context, module, decl.name, mapping.problems)
        return [_unsupported(f"static {decl.name}", mapping.problems)]
    return ['extern "C" {', f"{INDENT}pub static mut {rust_identifier(decl.name)}: {mapping.expr};", "}"]


def _literal(result: EvaluatedConstant) -> str | None:
    value = result.value
    if isinstance(value, str):
        return f'"{value}"'
    if isinstance(value, float):
        return repr(value) if math.isfinite(value) else None
    if result.notation == "hex" and value >= 0:
        return f"0x{value:X}"
    return str(value)


def _constant_lines(decl: Constant, module: OutputModule, context: EmitContext) -> list[str]:
    result = context.evaluator.evaluate_constant(decl.name)
    literal = _literal(result) if isinstance(result, EvaluatedConstant) else None
    if not isinstance(result, EvaluatedConstant) or literal is None:
        text = " ".join(decl.tokens)
        _unevaluated(context, module, decl.name, text)
        return [f"// unsupported: #define {decl.name} {text}"]
    return [f"pub const {rust_identifier(decl.name)}: {result.rust_type} = {literal};"]


def module_to_rust(module: OutputModule, context: EmitContext) -> str:
    """Render one module as Rust source."""
    out = [
        f"//! Bindings for `{module.header}`.",
        "//!",
        "//! Generated by headerbind. Do not edit.",
        "",
        ALLOW_LINTS,
    ]

    # Consecutive functions with the same ABI share one extern block.
    block_abi: str | None = None
    block: list[str] = []

    def close_block() -> None:
        nonlocal block_abi
        if block_abi is not None:
            out.append("")
            out.append(f'extern "{block_abi}" {{')
            out.extend(INDENT + line for line in block)
            out.append("}")
        block_abi = None
        block.clear()

    for decl in module.declarations:
        if isinstance(decl, Function):
            abi = abi_name(decl.calling_convention)
            line = _function_line(decl, module, context)
            if line.startswith("//"):
                close_block()
                out.append("")
                out.append(line)
                continue
            if abi != block_abi:
                close_block()
                block_abi = abi
            block.append(line)
            continue
        close_block()
        lines = _declaration_lines(decl, module, context)
        if lines:
            out.append("")
            out.extend(lines)
    close_block()
    return "\n".join(out) + "\n"


def _declaration_lines(decl: Declaration, module: OutputModule, context: EmitContext) -> list[str]:
    if isinstance(decl, Struct):
        return _struct_lines(decl, module, context)
    if isinstance(decl, Union):
        return [f"// unsupported: union {decl.name} is not translated"]
    if isinstance(decl, Enum):
        return _enum_lines(decl, module, context)
    if isinstance(decl, Typedef):
        return _typedef_lines(decl, module, context)
    if isinstance(decl, Variable):
        return _variable_lines(decl, module, context)
    if isinstance(decl, Constant):
        return _constant_lines(decl, module, context)
    return []


def aggregator_to_rust(modules: list[OutputModule], context: EmitContext) -> str:
    """Render ``lib.rs`` for the generated crate."""
    out = [
        f"//! `{context.crate_name}`: generated bindings.",
        "//!",
        f"//! Namespace policy: {context.policy.name}.",
        "",
        ALLOW_LINTS,
        "",
    ]
    out.extend(f"pub mod {m.name};" for m in modules)
    exported = [m for m in modules if context.policy.reexports(m)]
    if exported:
        out.append("")
        out.extend(f"pub use self::{m.name}::*;" for m in exported)
    return "\n".join(out) + "\n"


class RustWriter:
    """Writer that renders output modules as Rust source.

    Example
    -------
    ::

        from headerbind.writers import get_writer

        writer = get_writer("rust")
        text = writer.write_module(module, context)
    """

    def write_module(self, module: OutputModule, context: EmitContext) -> str:
        return module_to_rust(module, context)

    def write_aggregator(self, modules: list[OutputModule], context: EmitContext) -> str:
        return aggregator_to_rust(modules, context)

    @property
    def name(self) -> str:
        """Human-readable name of this writer."""
        return "rust"

    @property
    def file_extension(self) -> str:
        return ".rs"

    @property
    def aggregator_name(self) -> str:
        return "lib.rs"

    @property
    def format_description(self) -> str:
        """Short description of the output format."""
        return "Rust #[repr(C)] declarations and extern blocks"


# Bottom-of-module self-registration; writers have no optional dependencies.
from headerbind.writers import register_writer  # noqa: E402

register_writer(
    "rust",
    RustWriter,
    is_default=True,
    description="Rust #[repr(C)] declarations and extern blocks",
)
