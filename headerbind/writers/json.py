"""Serialize output modules to JSON.

Each module becomes one ``.json`` file holding its declarations in emission
order, and ``index.json`` lists the modules. When a module is written as part
of a run, every declaration also carries its Rust side: the binding name and
the mapped type of each field, parameter and alias, or the reasons it could
not be mapped. This makes the files a convenient input for reviewing a
binding or for a custom generator.
"""

from __future__ import annotations

import json
from typing import Any

from headerbind.emitter import EmitContext, OutputModule
from headerbind.ir import (
    Array,
    Constant,
    CType,
    Declaration,
    Enum,
    Function,
    FunctionPointer,
    Pointer,
    Struct,
    Typedef,
    TypeExpr,
    Union,
    Variable,
)
from headerbind.typemap import TypeMapping, declared_name, rust_identifier


class ModuleEncoder:
    """Turns the declarations of one module into plain dicts.

    :param module: Module being encoded.
    :param context: Emission context. Without one only the C view is
        encoded and enumerators keep the raw values the parser recorded.
    """

    def __init__(self, module: OutputModule, context: EmitContext | None = None) -> None:
        self.module = module
        self.context = context

    def encode(self) -> dict[str, Any]:
        return {
            "module": self.module.name,
            "header": self.module.header,
            "declarations": [self.declaration(decl) for decl in self.module.declarations],
        }

    # -- C types ---------------------------------------------------------------

    def ctype(self, t: TypeExpr) -> dict[str, Any]:
        if isinstance(t, CType):
            out: dict[str, Any] = {"kind": "ctype", "name": t.name, "ref": t.kind}
        elif isinstance(t, Pointer):
            out = {"kind": "pointer", "pointee": self.ctype(t.pointee)}
        elif isinstance(t, Array):
            out = {"kind": "array", "element_type": self.ctype(t.element_type)}
            if t.size is not None:
                out["size"] = t.size
            return out
        elif isinstance(t, FunctionPointer):
            out = {
                "kind": "function_pointer",
                "return_type": self.ctype(t.return_type),
                "parameters": [self.slot(p.name, p.type) for p in t.parameters],
                "is_variadic": t.is_variadic,
            }
            if t.calling_convention:
                out["calling_convention"] = t.calling_convention
            return out
        else:
            return {"kind": "unknown", "repr": repr(t)}
        if t.qualifiers:
            out["qualifiers"] = list(t.qualifiers)
        return out

    def slot(self, name: str | None, t: TypeExpr, mapping: TypeMapping | None = None) -> dict[str, Any]:
        """A named, typed position: a parameter or a field."""
        out: dict[str, Any] = {}
        if name:
            out["name"] = name
        out["type"] = self.ctype(t)
        if self.context is not None:
            self._attach(out, mapping or self.context.type_mapper.map_type(t, self.module.name))
        return out

    @staticmethod
    def _attach(out: dict[str, Any], mapping: TypeMapping) -> None:
        if mapping.ok:
            out["rust_type"] = mapping.expr
        else:
            out["problems"] = list(mapping.problems)

    # -- declarations ----------------------------------------------------------

    def declaration(self, decl: Declaration) -> dict[str, Any]:
        if isinstance(decl, Struct | Union):
            out = self._record(decl)
        elif isinstance(decl, Enum):
            out = self._enum(decl)
        elif isinstance(decl, Function):
            out = self._function(decl)
        elif isinstance(decl, Typedef):
            out = {"kind": "typedef", "name": decl.name, "underlying_type": self.ctype(decl.underlying_type)}
            if self.context is not None:
                self._attach(out, self.context.type_mapper.map_type(decl.underlying_type, self.module.name))
        elif isinstance(decl, Variable):
            out = {"kind": "variable", "name": decl.name, "type": self.ctype(decl.type)}
            if self.context is not None:
                self._attach(out, self.context.type_mapper.map_type(decl.type, self.module.name))
        elif isinstance(decl, Constant):
            out = {"kind": "constant", "name": decl.name, "tokens": list(decl.tokens)}
            if decl.value is not None:
                out["value"] = decl.value
            if decl.notation is not None:
                out["notation"] = decl.notation
        else:
            return {"kind": "unknown", "repr": repr(decl)}

        if self.context is not None and decl.qualified_name is not None:
            out["rust_name"] = declared_name(decl.qualified_name)
        if decl.location is not None:
            out["location"] = {"file": decl.location.file, "line": decl.location.line}
            if decl.location.column is not None:
                out["location"]["column"] = decl.location.column
        return out

    def _record(self, decl: Struct | Union) -> dict[str, Any]:
        fields = []
        for f in decl.fields or []:
            mapping = self.context.type_mapper.map_field(f, self.module.name) if self.context is not None else None
            entry = self.slot(f.name, f.type, mapping)
            if f.bit_width is not None:
                entry["bit_width"] = f.bit_width
            fields.append(entry)
        out: dict[str, Any] = {
            "kind": "union" if isinstance(decl, Union) else "struct",
            "name": decl.name,
            "opaque": decl.is_opaque,
            "fields": fields,
        }
        if isinstance(decl, Struct) and decl.is_typedef:
            out["is_typedef"] = True
        return out

    def _enum(self, decl: Enum) -> dict[str, Any]:
        if self.context is not None:
            evaluated = dict(self.context.evaluator.enum_values(decl))
        else:
            evaluated = {v.name: v.value for v in decl.values if isinstance(v.value, int)}
        values = []
        for raw in decl.values:
            if self.context is not None and not self.context.table.emits_enumerator(decl, raw.name):
                continue
            entry: dict[str, Any] = {"name": raw.name, "value": evaluated.get(raw.name)}
            if isinstance(raw.value, str):
                entry["expression"] = raw.value
            values.append(entry)
        out: dict[str, Any] = {"kind": "enum", "name": decl.name, "values": values}
        if decl.is_typedef:
            out["is_typedef"] = True
        return out

    def _function(self, decl: Function) -> dict[str, Any]:
        out: dict[str, Any] = {
            "kind": "function",
            "name": decl.name,
            "return_type": self.ctype(decl.return_type),
            "parameters": [self.slot(p.name, p.type) for p in decl.parameters],
            "is_variadic": decl.is_variadic,
        }
        if decl.calling_convention:
            out["calling_convention"] = decl.calling_convention
        if self.context is not None:
            returns = self.context.type_mapper.map_return(decl.return_type, self.module.name)
            if returns.ok:
                out["rust_return_type"] = returns.expr or None
            else:
                out["problems"] = list(returns.problems)
            for i, (param, entry) in enumerate(zip(decl.parameters, out["parameters"])):
                entry["rust_name"] = rust_identifier(param.name) if param.name else f"__arg{i}"
        return out


def module_to_json_dict(module: OutputModule, context: EmitContext | None = None) -> dict[str, Any]:
    """Convert an output module to a JSON-serializable dict (no string encoding).

    :param module: Module to convert.
    :param context: Emission context; adds the Rust view and evaluated enumerators.
    :returns: Dict suitable for ``json.dumps()``.
    """
    return ModuleEncoder(module, context).encode()


def module_to_json(module: OutputModule, context: EmitContext | None = None, indent: int | None = 2) -> str:
    """Convert an output module to a JSON string.

    :param indent: JSON indentation level. None for compact output.
    """
    return json.dumps(module_to_json_dict(module, context), indent=indent)


class JsonWriter:
    """Writes each output module as JSON, C and Rust views side by side.

    :param indent: JSON indentation level. None for compact output.

    ::

        writer = get_writer("json", indent=None)
    """

    def __init__(self, indent: int | None = 2) -> None:
        self._indent = indent

    def write_module(self, module: OutputModule, context: EmitContext) -> str:
        return module_to_json(module, context, indent=self._indent)

    def write_aggregator(self, modules: list[OutputModule], context: EmitContext) -> str:
        index = {
            "crate": context.crate_name,
            "namespace": context.policy.name,
            "arch": context.profile.name,
            "modules": [
                {
                    "name": m.name,
                    "header": m.header,
                    "file": f"{m.name}{self.file_extension}",
                    "reexported": context.policy.reexports(m),
                }
                for m in modules
            ],
        }
        return json.dumps(index, indent=self._indent)

    @property
    def name(self) -> str:
        return "json"

    @property
    def file_extension(self) -> str:
        return ".json"

    @property
    def aggregator_name(self) -> str:
        return "index.json"

    @property
    def format_description(self) -> str:
        return "JSON view of each output module with C and Rust types"


from headerbind.writers import register_writer  # noqa: E402

register_writer("json", JsonWriter)
