"""Tests for the declaration parser."""

from __future__ import annotations

from headerbind.diagnostics import MALFORMED_DECLARATION, UNSUPPORTED_DECLARATION, Diagnostics
from headerbind.ir import (
    Array,
    Constant,
    CType,
    Enum,
    EnumValue,
    Field,
    Function,
    FunctionPointer,
    Parameter,
    Pointer,
    SourceLocation,
    Struct,
    Typedef,
    Union,
    Variable,
)
from headerbind.lexer import tokenize
from headerbind.macros import MacroDefinition
from headerbind.parser import DeclarationParser, clean_tokens, split_statements

INT = CType("int", kind="primitive")


def lex(text: str):
    return [t for number, line in enumerate(text.splitlines(), start=1) for t in tokenize(line, number)]


def parse(text: str, diagnostics: Diagnostics | None = None, defines=()):
    parser = DeclarationParser(diagnostics)
    return parser.parse(lex(text), "test.h", defines)


class TestTokenCleaning:
    def test_declspec_and_sal_removed(self) -> None:
        tokens = lex("__declspec(dllimport) BOOL _In_opt_ __ptr64 x;")
        assert [t.text for _, t in clean_tokens(tokens)] == ["BOOL", "x", ";"]

    def test_statements_keep_original_position(self) -> None:
        statements = split_statements(clean_tokens(lex("int a; __declspec(x) int b;")))
        assert [s.position for s in statements] == [0, 7]

    def test_extern_c_block_flattened(self) -> None:
        statements = split_statements(clean_tokens(lex('extern "C" {\nint f(void);\n}\n')))
        assert len(statements) == 1
        assert statements[0].tokens[0].text == "int"


class TestTypedefs:
    def test_primitive_typedef(self) -> None:
        assert parse("typedef unsigned long DWORD;") == [Typedef("DWORD", CType("unsigned long", kind="primitive"))]

    def test_pointer_typedef_keeps_const(self) -> None:
        (decl,) = parse("typedef const char *LPCSTR;")
        assert decl == Typedef("LPCSTR", Pointer(CType("char", ["const"], kind="primitive")))

    def test_struct_with_typedef_names(self) -> None:
        decls = parse(
            """\
typedef struct _FILETIME {
    DWORD dwLowDateTime;
    DWORD dwHighDateTime;
} FILETIME, *PFILETIME;
"""
        )
        tag = CType("_FILETIME", kind="struct")
        assert decls == [
            Struct(
                "_FILETIME",
                [Field("dwLowDateTime", CType("DWORD")), Field("dwHighDateTime", CType("DWORD"))],
                is_typedef=True,
            ),
            Typedef("FILETIME", tag),
            Typedef("PFILETIME", Pointer(tag)),
        ]
        assert decls[0].location == SourceLocation("test.h", 1)

    def test_anonymous_struct_named_after_typedef(self) -> None:
        decls = parse("typedef struct { int x; } POINT;")
        assert decls == [
            Struct("POINT", [Field("x", INT)], is_typedef=True),
            Typedef("POINT", CType("POINT", kind="struct")),
        ]

    def test_function_pointer_typedef(self) -> None:
        (decl,) = parse("typedef void (__stdcall *CALLBACK)(int code);")
        assert decl == Typedef(
            "CALLBACK",
            Pointer(
                FunctionPointer(
                    CType("void", kind="primitive"),
                    [Parameter("code", INT)],
                    calling_convention="stdcall",
                )
            ),
        )

    def test_forward_declared_struct_typedef(self) -> None:
        decls = parse("typedef struct _IMPL *HIMPL;")
        assert decls == [
            Struct("_IMPL", None),
            Typedef("HIMPL", Pointer(CType("_IMPL", kind="struct"))),
        ]
        assert decls[0].is_opaque


class TestStructs:
    def test_forward_declaration(self) -> None:
        (decl,) = parse("struct Opaque;")
        assert decl == Struct("Opaque", None)

    def test_arrays(self) -> None:
        (decl,) = parse("struct S { char name[260]; char tail[]; int data[N * 2]; };")
        assert isinstance(decl, Struct)
        assert decl.fields == [
            Field("name", Array(CType("char", kind="primitive"), 260)),
            Field("tail", Array(CType("char", kind="primitive"), None)),
            Field("data", Array(INT, "N * 2")),
        ]

    def test_bitfields_and_unnamed_padding(self) -> None:
        (decl,) = parse("struct B { unsigned int a : 3; unsigned int : 5; unsigned int c : 1; };")
        assert isinstance(decl, Struct)
        unsigned = CType("unsigned int", kind="primitive")
        assert decl.fields == [
            Field("a", unsigned, 3),
            Field("__pad1", unsigned, 5),
            Field("c", unsigned, 1),
        ]

    def test_nested_anonymous_members(self) -> None:
        diagnostics = Diagnostics()
        decls = parse(
            "typedef struct _OUTER { struct { int a; } s; union { int b; float c; }; } OUTER;",
            diagnostics,
        )
        names = [(type(d).__name__, d.name) for d in decls]
        assert names == [
            ("Struct", "_OUTER__anon1"),
            ("Union", "_OUTER__anon2"),
            ("Struct", "_OUTER"),
            ("Typedef", "OUTER"),
        ]
        outer = decls[2]
        assert isinstance(outer, Struct)
        assert outer.fields == [
            Field("s", CType("_OUTER__anon1", kind="struct")),
            Field("__anon1", CType("_OUTER__anon2", kind="union")),
        ]
        assert len(diagnostics.of_kind(UNSUPPORTED_DECLARATION)) == 1

    def test_union_is_kept_and_reported(self) -> None:
        diagnostics = Diagnostics()
        (decl,) = parse("union U { int a; float b; };", diagnostics)
        assert isinstance(decl, Union)
        assert decl.name == "U"
        reported = diagnostics.of_kind(UNSUPPORTED_DECLARATION)
        assert [d.symbol for d in reported] == ["union U"]


class TestEnums:
    def test_values(self) -> None:
        (decl,) = parse("enum Color { RED, GREEN = 5, BLUE = 1 << 3, MASK = RED | GREEN };")
        assert decl == Enum(
            "Color",
            [EnumValue("RED"), EnumValue("GREEN", 5), EnumValue("BLUE", 8), EnumValue("MASK", "RED | GREEN")],
        )

    def test_anonymous_enum_is_kept(self) -> None:
        (decl,) = parse("enum { A = 1, B, };")
        assert decl == Enum(None, [EnumValue("A", 1), EnumValue("B")])

    def test_typedef_enum(self) -> None:
        decls = parse("typedef enum _LEVEL { Low, High } LEVEL;")
        assert decls[0] == Enum("_LEVEL", [EnumValue("Low"), EnumValue("High")], is_typedef=True)
        assert decls[1] == Typedef("LEVEL", CType("_LEVEL", kind="enum"))


class TestFunctions:
    def test_stdcall_prototype(self) -> None:
        (decl,) = parse("__declspec(dllimport) DWORD __stdcall GetFileSize(_In_ HANDLE hFile, _Out_opt_ LPDWORD high);")
        assert decl == Function(
            "GetFileSize",
            CType("DWORD"),
            [Parameter("hFile", CType("HANDLE")), Parameter("high", CType("LPDWORD"))],
            calling_convention="stdcall",
        )

    def test_variadic(self) -> None:
        (decl,) = parse("int printf(const char *fmt, ...);")
        assert isinstance(decl, Function)
        assert decl.is_variadic
        assert decl.parameters == [Parameter("fmt", Pointer(CType("char", ["const"], kind="primitive")))]
        assert decl.calling_convention is None

    def test_void_parameter_list(self) -> None:
        (decl,) = parse("void Reset(void);")
        assert isinstance(decl, Function)
        assert decl.parameters == []
        assert decl.return_type == CType("void", kind="primitive")

    def test_unnamed_and_array_parameters(self) -> None:
        (decl,) = parse("int f(int, char buf[16]);")
        assert isinstance(decl, Function)
        assert decl.parameters == [
            Parameter(None, INT),
            Parameter("buf", Pointer(CType("char", kind="primitive"))),
        ]

    def test_inline_definitions_skipped(self) -> None:
        decls = parse("static __inline int add(int a, int b) { return a + b; }\nint twice(int a) { return a * 2; }\nint after;")
        assert decls == [Variable("after", INT)]

    def test_extern_c_block(self) -> None:
        decls = parse('extern "C" {\nint f(void);\n}\n')
        assert [d.name for d in decls] == ["f"]


class TestVariables:
    def test_extern_variable(self) -> None:
        assert parse("extern int g_count;") == [Variable("g_count", INT)]

    def test_static_dropped(self) -> None:
        assert parse("static int hidden;") == []

    def test_multiple_declarators(self) -> None:
        assert parse("int a, *b;") == [Variable("a", INT), Variable("b", Pointer(INT))]


class TestRecovery:
    def test_malformed_statement_skipped(self) -> None:
        diagnostics = Diagnostics()
        decls = parse("int x y;\nint ok;", diagnostics)
        assert decls == [Variable("ok", INT)]
        (reported,) = diagnostics.of_kind(MALFORMED_DECLARATION)
        assert reported.line == 1
        assert reported.header == "test.h"

    def test_cxx_namespace_unsupported(self) -> None:
        diagnostics = Diagnostics()
        decls = parse("namespace foo { int x; }\nint y;", diagnostics)
        assert decls == [Variable("y", INT)]
        assert len(diagnostics.of_kind(UNSUPPORTED_DECLARATION)) == 1


class TestConstants:
    def test_defines_interleaved_by_position(self) -> None:
        defines = [(3, MacroDefinition("X", tokenize("5"), source="test.h", line=2))]
        decls = parse("int a;\nint b;", defines=defines)
        assert [d.name for d in decls] == ["a", "X", "b"]
        assert decls[1] == Constant("X", ["5"])
        assert decls[1].location == SourceLocation("test.h", 2)

    def test_trailing_and_empty_defines(self) -> None:
        defines = [
            (3, MacroDefinition("GUARD_H", [], line=1)),
            (3, MacroDefinition("LAST", tokenize("0x10"), line=3)),
        ]
        decls = parse("int a;", defines=defines)
        assert [d.name for d in decls] == ["a", "LAST"]
