"""headerbind - generate Rust bindings from C headers."""

from headerbind.arch import ArchProfile, get_profile, list_profiles
from headerbind.diagnostics import (
    Diagnostic,
    Diagnostics,
    DuplicateSymbolError,
    FatalIOError,
    HeaderbindError,
    ParseError,
)
from headerbind.emitter import NamespacePolicy, OutputModule, get_namespace_policy
from headerbind.ir import (
    Array,
    Constant,
    # Type expressions
    CType,
    Declaration,
    Enum,
    EnumValue,
    # Declarations
    Field,
    Function,
    FunctionPointer,
    Parameter,
    Pointer,
    SourceLocation,
    Struct,
    Typedef,
    TypeExpr,
    Union,
    Variable,
)
from headerbind.pipeline import BindingResult, RunConfig, Session, generate
from headerbind.providers import EnvironmentSearchPaths, SearchPathProvider, StaticSearchPaths
from headerbind.report import ReportDiff, RunReport, compare_reports
from headerbind.symbols import SymbolTable
from headerbind.writers import (
    WriterBackend,
    get_default_writer,
    get_writer,
    get_writer_info,
    is_writer_available,
    list_writers,
    register_writer,
)

__version__ = "0.1.0"

__all__ = [
    # Types
    "CType",
    "Pointer",
    "Array",
    "Parameter",
    "FunctionPointer",
    "TypeExpr",
    # Declarations
    "Field",
    "EnumValue",
    "Enum",
    "Struct",
    "Union",
    "Function",
    "Typedef",
    "Variable",
    "Constant",
    "Declaration",
    "SourceLocation",
    # Pipeline
    "ArchProfile",
    "BindingResult",
    "RunConfig",
    "Session",
    "SymbolTable",
    "generate",
    "get_profile",
    "list_profiles",
    # Search paths
    "SearchPathProvider",
    "StaticSearchPaths",
    "EnvironmentSearchPaths",
    # Output
    "NamespacePolicy",
    "OutputModule",
    "get_namespace_policy",
    # Diagnostics
    "Diagnostic",
    "Diagnostics",
    "HeaderbindError",
    "FatalIOError",
    "DuplicateSymbolError",
    "ParseError",
    "RunReport",
    "ReportDiff",
    "compare_reports",
    # Writer Protocol
    "WriterBackend",
    # Writer API
    "get_default_writer",
    "get_writer",
    "get_writer_info",
    "is_writer_available",
    "list_writers",
    "register_writer",
]
