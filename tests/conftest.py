"""Shared fixtures: header trees written into ``tmp_path``."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable

import pytest

MINWINDEF_H = """\
#pragma once
#ifndef _MINWINDEF_
#define _MINWINDEF_

#define WINAPI __stdcall
#define MAX_PATH 260
#define FALSE 0
#define TRUE 1

typedef unsigned long DWORD;
typedef int BOOL;
typedef unsigned char BYTE;
typedef unsigned short WORD;
typedef DWORD *LPDWORD;
typedef void *HANDLE;
typedef void *LPVOID;
typedef const char *LPCSTR;

typedef struct _FILETIME {
    DWORD dwLowDateTime;
    DWORD dwHighDateTime;
} FILETIME, *PFILETIME, *LPFILETIME;

#endif
"""

FILEAPI_H = """\
#pragma once
#include <minwindef.h>

#define INVALID_FILE_SIZE ((DWORD)0xFFFFFFFF)
#define FILE_BEGIN 0

#ifdef __cplusplus
extern "C" {
#endif

typedef enum _FINDEX_INFO_LEVELS {
    FindExInfoStandard,
    FindExInfoBasic,
    FindExInfoMaxInfoLevel
} FINDEX_INFO_LEVELS;

typedef struct _WIN32_FIND_DATAA {
    DWORD dwFileAttributes;
    FILETIME ftCreationTime;
    char cFileName[MAX_PATH];
    char cAlternateFileName[14];
} WIN32_FIND_DATAA, *LPWIN32_FIND_DATAA;

__declspec(dllimport)
DWORD
WINAPI
GetFileSize(
    _In_ HANDLE hFile,
    _Out_opt_ LPDWORD lpFileSizeHigh
    );

__declspec(dllimport)
BOOL
WINAPI
CloseHandle(_In_ HANDLE hObject);

HANDLE WINAPI FindFirstFileA(_In_ LPCSTR lpFileName, _Out_ LPWIN32_FIND_DATAA lpFindFileData);

#ifdef __cplusplus
}
#endif
"""

WINDOWS_H = """\
#pragma once
#include <minwindef.h>
#include <fileapi.h>
"""


HeaderTree = Callable[[dict[str, str]], Path]


@pytest.fixture()
def header_tree(tmp_path: Path) -> HeaderTree:
    """Write ``{relative_name: text}`` under ``tmp_path/include`` and return that directory."""

    def write(files: dict[str, str]) -> Path:
        root = tmp_path / "include"
        for name, text in files.items():
            path = root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(text), encoding="utf-8")
        root.mkdir(parents=True, exist_ok=True)
        return root

    return write


@pytest.fixture()
def sdk_tree(header_tree: HeaderTree) -> Path:
    """A miniature Windows SDK: ``windows.h`` including ``minwindef.h`` and ``fileapi.h``."""
    return header_tree(
        {
            "windows.h": WINDOWS_H,
            "minwindef.h": MINWINDEF_H,
            "fileapi.h": FILEAPI_H,
        }
    )


@pytest.fixture(autouse=True)
def _no_arch_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's HEADERBIND_ARCH from leaking into tests."""
    monkeypatch.delenv("HEADERBIND_ARCH", raising=False)
