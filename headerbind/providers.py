"""Sources of include search paths.

Detecting an installed SDK is platform specific and lives outside the
pipeline. A run gets its search paths either directly through
``RunConfig.search_paths`` or from a :class:`SearchPathProvider`.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol, Sequence, runtime_checkable

logger = logging.getLogger(__name__)

INCLUDE_ENV_VAR = "INCLUDE"


@runtime_checkable
class SearchPathProvider(Protocol):
    """Supplies include directories, in search order."""

    def provide_search_paths(self) -> list[Path]: ...


class StaticSearchPaths:
    """A fixed list of directories.

    :param paths: Directories in search order.
    """

    def __init__(self, paths: Sequence[str | os.PathLike[str]]) -> None:
        self._paths = [Path(p) for p in paths]

    def provide_search_paths(self) -> list[Path]:
        return list(self._paths)


class EnvironmentSearchPaths:
    """Directories listed in an environment variable.

    The default variable, ``INCLUDE``, is the one the MSVC developer
    prompt sets. Entries are separated by :data:`os.pathsep`; empty entries
    are skipped.

    :param var: Name of the environment variable.
    """

    def __init__(self, var: str = INCLUDE_ENV_VAR) -> None:
        self.var = var

    def provide_search_paths(self) -> list[Path]:
        value = os.environ.get(self.var, "")
        paths = [Path(entry) for entry in value.split(os.pathsep) if entry.strip()]
        if not paths:
            logger.debug("%s is empty or unset", self.var)
        return paths


__all__ = ["EnvironmentSearchPaths", "SearchPathProvider", "StaticSearchPaths"]
