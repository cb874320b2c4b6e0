"""End-to-end tests: header trees on disk through to rendered bindings."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from headerbind.diagnostics import (
    DUPLICATE_SYMBOL,
    INCLUDE_CYCLE,
    UNEVALUATED_CONSTANT,
    UNRESOLVED_REFERENCE,
    UNSUPPORTED_DECLARATION,
    UNSUPPORTED_TYPE,
    DuplicateSymbolError,
    FatalIOError,
)
from headerbind.ir import Constant
from headerbind.pipeline import RunConfig, Session, generate, locate_entry
from headerbind.providers import StaticSearchPaths

HeaderTree = Callable[[dict[str, str]], Path]


def run(root: Path, entry: str = "entry.h", **config):
    return generate(root / entry, RunConfig(search_paths=[root], **config))


@pytest.mark.timeout(60)
class TestSdkTree:
    def test_files_and_headers(self, sdk_tree: Path) -> None:
        result = generate("windows.h", RunConfig(search_paths=[sdk_tree]))
        assert result.headers == ["minwindef.h", "fileapi.h", "windows.h"]
        assert list(result.modules) == ["minwindef.rs", "fileapi.rs", "lib.rs"]
        assert result.aggregator == "lib.rs"
        assert [m.name for m in result.output_modules] == ["minwindef", "fileapi"]

    def test_minwindef_module(self, sdk_tree: Path) -> None:
        text = generate("windows.h", RunConfig(search_paths=[sdk_tree])).modules["minwindef.rs"]
        assert text.startswith("//! Bindings for `minwindef.h`.\n")
        assert "// unsupported: #define WINAPI __stdcall\n" in text
        assert "pub const MAX_PATH: i32 = 260;\n" in text
        assert "pub type DWORD = u32;\n" in text
        assert "pub type HANDLE = *mut ::core::ffi::c_void;\n" in text
        assert "pub type LPCSTR = *const i8;\n" in text
        assert "pub struct struct__FILETIME {\n    pub dwLowDateTime: DWORD,\n" in text
        assert "pub type PFILETIME = *mut struct__FILETIME;\n" in text

    def test_fileapi_module(self, sdk_tree: Path) -> None:
        text = generate("windows.h", RunConfig(search_paths=[sdk_tree])).modules["fileapi.rs"]
        assert "pub const INVALID_FILE_SIZE: u32 = 0xFFFFFFFF;\n" in text
        assert "pub const FILE_BEGIN: i32 = 0;\n" in text
        assert "pub struct enum__FINDEX_INFO_LEVELS(pub i32);\n" in text
        assert "    pub const FindExInfoBasic: Self = Self(1);\n" in text
        assert "pub type FINDEX_INFO_LEVELS = enum__FINDEX_INFO_LEVELS;\n" in text
        assert "    pub dwFileAttributes: super::minwindef::DWORD,\n" in text
        assert "    pub ftCreationTime: super::minwindef::FILETIME,\n" in text
        assert "    pub cFileName: [i8; 260],\n" in text
        assert "    pub cAlternateFileName: [i8; 14],\n" in text

    def test_functions_share_one_block(self, sdk_tree: Path) -> None:
        text = generate("windows.h", RunConfig(search_paths=[sdk_tree])).modules["fileapi.rs"]
        assert text.count('extern "system" {') == 1
        assert (
            "    pub fn GetFileSize(hFile: super::minwindef::HANDLE, lpFileSizeHigh: super::minwindef::LPDWORD)"
            " -> super::minwindef::DWORD;\n"
        ) in text
        assert "    pub fn CloseHandle(hObject: super::minwindef::HANDLE) -> super::minwindef::BOOL;\n" in text
        assert (
            "    pub fn FindFirstFileA(lpFileName: super::minwindef::LPCSTR, lpFindFileData: LPWIN32_FIND_DATAA)"
            " -> super::minwindef::HANDLE;\n"
        ) in text

    def test_aggregator(self, sdk_tree: Path) -> None:
        lib = generate("windows.h", RunConfig(search_paths=[sdk_tree])).modules["lib.rs"]
        assert "pub mod minwindef;\npub mod fileapi;\n" in lib
        assert "pub use self::minwindef::*;\npub use self::fileapi::*;\n" in lib

    def test_diagnostics(self, sdk_tree: Path) -> None:
        report = generate("windows.h", RunConfig(search_paths=[sdk_tree])).report
        assert report.entry == "windows.h"
        assert report.arch == "x86-64"
        assert report.counts_by_kind() == {UNEVALUATED_CONSTANT: 1}
        assert report.diagnostics[0].symbol == "WINAPI"

    def test_symbols(self, sdk_tree: Path) -> None:
        symbols = generate("windows.h", RunConfig(search_paths=[sdk_tree])).symbols
        assert symbols.owner_of("DWORD") == "minwindef.h"
        assert symbols.owner_of("GetFileSize") == "fileapi.h"
        constant = symbols["INVALID_FILE_SIZE"]
        assert isinstance(constant, Constant)
        assert constant.value == 0xFFFFFFFF

    def test_idempotent(self, sdk_tree: Path) -> None:
        config = RunConfig(search_paths=[sdk_tree])
        first = generate("windows.h", config)
        second = generate("windows.h", config)
        assert first.modules == second.modules
        assert first.report == second.report

    def test_sysv_long_is_wider(self, sdk_tree: Path) -> None:
        result = generate("windows.h", RunConfig(arch="x86-64-sysv", search_paths=[sdk_tree]))
        assert "pub type DWORD = u64;\n" in result.modules["minwindef.rs"]

    def test_qualified_namespace(self, sdk_tree: Path) -> None:
        result = generate("windows.h", RunConfig(search_paths=[sdk_tree], namespace_policy="qualified"))
        assert "pub use" not in result.modules["lib.rs"]

    def test_json_writer(self, sdk_tree: Path) -> None:
        result = generate("windows.h", RunConfig(search_paths=[sdk_tree], writer="json"))
        assert list(result.modules) == ["minwindef.json", "fileapi.json", "index.json"]
        assert result.aggregator == "index.json"

    def test_provider_fallback(self, sdk_tree: Path) -> None:
        result = generate("windows.h", RunConfig(provider=StaticSearchPaths([sdk_tree])))
        assert result.headers == ["minwindef.h", "fileapi.h", "windows.h"]


class TestHeaders:
    def test_include_cycle_with_forward_reference(self, header_tree: HeaderTree) -> None:
        root = header_tree(
            {
                "a.h": "#include <b.h>\ntypedef struct _NODE NODE;\nstruct _NODE { NODE *next; int value; };\n",
                "b.h": "#include <a.h>\ntypedef unsigned int COUNT;\n",
            }
        )
        result = run(root, "a.h")
        assert result.headers == ["b.h", "a.h"]
        assert result.report.counts_by_kind() == {INCLUDE_CYCLE: 1}
        assert "    pub next: *mut NODE,\n" in result.modules["a.rs"]

    def test_union_marker(self, header_tree: HeaderTree) -> None:
        root = header_tree({"entry.h": "union U { int a; float b; };\n"})
        result = run(root)
        assert "// unsupported: union U is not translated\n" in result.modules["entry.rs"]
        (reported,) = result.report.of_kind(UNSUPPORTED_DECLARATION)
        assert reported.header == "entry.h"

    @pytest.mark.parametrize(("arch", "expected"), [("x86", "u32"), ("x86-64", "u64"), ("aarch64", "u64")])
    def test_size_t_width(self, header_tree: HeaderTree, arch: str, expected: str) -> None:
        root = header_tree({"entry.h": "size_t length(const char *s);\n"})
        result = run(root, arch=arch)
        assert f"-> {expected};" in result.modules["entry.rs"]

    @pytest.mark.parametrize(("arch", "expected"), [("i686-sysv", "i32"), ("x86-64-sysv", "i64"), ("x86-64", "i32")])
    def test_long_width(self, header_tree: HeaderTree, arch: str, expected: str) -> None:
        root = header_tree({"entry.h": "typedef long LONG;\n"})
        result = run(root, arch=arch)
        assert f"pub type LONG = {expected};\n" in result.modules["entry.rs"]

    def test_hex_constant(self, header_tree: HeaderTree) -> None:
        root = header_tree({"entry.h": "#define FLAGS 0xF\n"})
        result = run(root)
        assert "pub const FLAGS: i32 = 0xF;\n" in result.modules["entry.rs"]
        assert result.symbols["FLAGS"].value == 15

    def test_conditional_on_profile_macro(self, header_tree: HeaderTree) -> None:
        root = header_tree(
            {"entry.h": "#ifdef _WIN64\ntypedef long long INT_PTR;\n#else\ntypedef int INT_PTR;\n#endif\n"}
        )
        assert "pub type INT_PTR = i64;" in run(root, arch="x86-64").modules["entry.rs"]
        assert "pub type INT_PTR = i32;" in run(root, arch="x86").modules["entry.rs"]

    def test_extra_macros(self, header_tree: HeaderTree) -> None:
        root = header_tree({"entry.h": "#if WINVER >= 0x0600\nint vista_only(void);\n#endif\nint always(void);\n"})
        assert "vista_only" not in run(root).modules["entry.rs"]
        assert "vista_only" in run(root, extra_macros={"WINVER": "0x0601"}).modules["entry.rs"]

    def test_unresolved_reference(self, header_tree: HeaderTree) -> None:
        root = header_tree({"entry.h": "typedef MISSING_T ALIAS;\n"})
        result = run(root)
        assert [d.symbol for d in result.report.unresolved] == ["MISSING_T"]
        assert "// unsupported: type ALIAS: unresolved type MISSING_T\n" in result.modules["entry.rs"]

    def test_union_typedef_users_become_stubs(self, header_tree: HeaderTree) -> None:
        root = header_tree(
            {
                "entry.h": (
                    "typedef union _LARGE_INTEGER { struct { unsigned long Low; long High; } u; long long QuadPart; } LARGE_INTEGER;\n"
                    "typedef struct _FILE_INFO { LARGE_INTEGER Size; int Flags; } FILE_INFO;\n"
                    "int GetSize(LARGE_INTEGER *out);\n"
                )
            }
        )
        result = run(root)
        text = result.modules["entry.rs"]
        via = "union _LARGE_INTEGER is not supported via LARGE_INTEGER"
        assert f"    // unsupported: field Size: {via}\n" in text
        assert "    pub Flags: i32,\n" in text
        assert f"// unsupported: fn GetSize: {via}\n" in text
        assert "LARGE_INTEGER," not in text
        assert "*mut LARGE_INTEGER" not in text
        symbols = [d.symbol for d in result.report.of_kind(UNSUPPORTED_TYPE)]
        assert set(symbols) == {"LARGE_INTEGER", "struct _FILE_INFO.Size", "GetSize"}

    def test_duplicates_first_wins(self, header_tree: HeaderTree) -> None:
        root = header_tree(
            {
                "entry.h": "#include <a.h>\n#include <b.h>\n",
                "a.h": "typedef unsigned int HANDLE_T;\n",
                "b.h": "typedef unsigned int HANDLE_T;\nint other;\n",
            }
        )
        result = run(root)
        assert result.symbols.owner_of("HANDLE_T") == "a.h"
        assert "HANDLE_T" not in result.modules["b.rs"]

    def test_duplicates_error_policy(self, header_tree: HeaderTree) -> None:
        root = header_tree(
            {
                "entry.h": "#include <a.h>\n#include <b.h>\n",
                "a.h": "typedef unsigned int HANDLE_T;\n",
                "b.h": "typedef int HANDLE_T;\n",
            }
        )
        with pytest.raises(DuplicateSymbolError, match="HANDLE_T"):
            run(root, duplicate_policy="error")

    @pytest.mark.parametrize("clash", ["#define FLAG_A 2\n", "int FLAG_A(void);\n"])
    def test_enumerator_clash_first_wins(self, header_tree: HeaderTree, clash: str) -> None:
        root = header_tree(
            {
                "entry.h": "#include <a.h>\n#include <b.h>\n",
                "a.h": "enum { FLAG_A = 1, FLAG_B };\n",
                "b.h": clash + "int other;\n",
            }
        )
        result = run(root)
        assert "pub const FLAG_A: i32 = 1;\n" in result.modules["a.rs"]
        assert "FLAG_A" not in result.modules["b.rs"]
        (reported,) = result.report.of_kind(DUPLICATE_SYMBOL)
        assert (reported.symbol, reported.header) == ("FLAG_A", "b.h")

    def test_enumerator_clash_last_wins(self, header_tree: HeaderTree) -> None:
        root = header_tree(
            {
                "entry.h": "#include <a.h>\n#include <b.h>\n",
                "a.h": "enum { FLAG_A = 1, FLAG_B };\n",
                "b.h": "#define FLAG_A 2\n",
            }
        )
        result = run(root, duplicate_policy="last")
        assert "FLAG_A" not in result.modules["a.rs"]
        assert "pub const FLAG_B: i32 = 2;\n" in result.modules["a.rs"]
        assert "pub const FLAG_A: i32 = 2;\n" in result.modules["b.rs"]
        assert [d.symbol for d in result.report.of_kind(DUPLICATE_SYMBOL)] == ["FLAG_A"]

    @pytest.mark.parametrize("clash", ["#define FLAG_A 2\n", "int FLAG_A(void);\n"])
    def test_enumerator_clash_error_policy(self, header_tree: HeaderTree, clash: str) -> None:
        root = header_tree(
            {
                "entry.h": "#include <a.h>\n#include <b.h>\n",
                "a.h": "enum { FLAG_A = 1 };\n",
                "b.h": clash,
            }
        )
        with pytest.raises(DuplicateSymbolError, match="FLAG_A"):
            run(root, duplicate_policy="error")


class TestConfigErrors:
    @pytest.mark.parametrize(
        "config",
        [
            {"arch": "sparc"},
            {"writer": "cobol"},
            {"namespace_policy": "nested"},
            {"duplicate_policy": "newest"},
        ],
    )
    def test_unknown_names(self, header_tree: HeaderTree, config: dict[str, str]) -> None:
        root = header_tree({"entry.h": "int x;\n"})
        with pytest.raises(ValueError):
            run(root, **config)

    def test_missing_entry(self, header_tree: HeaderTree) -> None:
        root = header_tree({})
        with pytest.raises(FatalIOError):
            run(root, "nothing.h")

    def test_no_search_paths(self, header_tree: HeaderTree) -> None:
        root = header_tree({"entry.h": "int x;\n"})
        with pytest.raises(FatalIOError):
            generate(root / "entry.h")


class TestLocateEntry:
    def test_existing_path(self, header_tree: HeaderTree) -> None:
        root = header_tree({"entry.h": ""})
        assert locate_entry(root / "entry.h", []) == root / "entry.h"

    def test_name_in_search_path(self, header_tree: HeaderTree, tmp_path: Path) -> None:
        root = header_tree({"entry.h": ""})
        assert locate_entry("entry.h", [tmp_path, root]) == root / "entry.h"

    def test_not_found(self) -> None:
        assert locate_entry("nowhere.h", []) == Path("nowhere.h")


class TestSession:
    def test_stages(self, header_tree: HeaderTree) -> None:
        root = header_tree({"entry.h": "typedef unsigned long ULONG;\nULONG count(void);\n"})
        session = Session(RunConfig(search_paths=[root]))
        nodes = session.resolve(root / "entry.h", [root])
        session.aggregate(nodes)
        session.table.finalize()
        assert session.resolve_references() == []
        report = session.report(root / "entry.h")
        assert report.headers == ["entry.h"]
        assert len(session.diagnostics) == 0

    def test_sessions_do_not_share_macros(self) -> None:
        first = Session(RunConfig(extra_macros={"FOO": "1"}))
        second = Session()
        assert first.macros.is_defined("FOO")
        assert not second.macros.is_defined("FOO")
