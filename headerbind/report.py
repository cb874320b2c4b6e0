"""Run reports and run-to-run comparison.

A :class:`RunReport` is the serializable record of one run: the entry
header, the architecture and every diagnostic. Two reports can be compared
with :func:`compare_reports` to see which issues a change introduced and
which it resolved, e.g. in CI after bumping an SDK version.
"""

from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from headerbind.diagnostics import UNRESOLVED_REFERENCE, Diagnostic

SCHEMA_VERSION = "1.0"

# =============================================================================
# Data Structures
# =============================================================================


@dataclass
class RunReport:
    """Diagnostics of one run.

    :param entry: Entry header of the run.
    :param arch: Architecture profile name.
    :param diagnostics: Every diagnostic, in the order it was recorded.
    :param headers: Display names of the processed headers.
    """

    entry: str
    arch: str
    diagnostics: list[Diagnostic] = field(default_factory=list)
    headers: list[str] = field(default_factory=list)

    def counts_by_kind(self) -> dict[str, int]:
        """Number of diagnostics per kind, sorted by kind."""
        return dict(sorted(Counter(d.kind for d in self.diagnostics).items()))

    def of_kind(self, kind: str) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.kind == kind]

    @property
    def unresolved(self) -> list[Diagnostic]:
        """Shortcut for the ``unresolved_reference`` diagnostics."""
        return self.of_kind(UNRESOLVED_REFERENCE)

    @property
    def error_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.severity == "error")

    @property
    def warning_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.severity == "warning")

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "entry": self.entry,
            "arch": self.arch,
            "headers": list(self.headers),
            "summary": {
                "total": len(self.diagnostics),
                "errors": self.error_count,
                "warnings": self.warning_count,
                "by_kind": self.counts_by_kind(),
            },
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }

    def to_json(self, indent: int | None = 2) -> str:
        """Serialize the report.

        :param indent: JSON indentation level. None for compact output.
        """
        return json.dumps(self.to_json_dict(), indent=indent)

    @classmethod
    def from_json(cls, text: str) -> RunReport:
        """Load a report written by :meth:`to_json`.

        :raises ValueError: If ``text`` is not a report.
        """
        data = json.loads(text)
        if not isinstance(data, dict) or "diagnostics" not in data:
            raise ValueError("not a headerbind run report")
        return cls(
            entry=data.get("entry", ""),
            arch=data.get("arch", ""),
            diagnostics=[Diagnostic.from_dict(d) for d in data["diagnostics"]],
            headers=list(data.get("headers", [])),
        )


@dataclass
class ReportDiff:
    """Difference between two run reports.

    :param new: Diagnostics in the target that the baseline did not have.
    :param resolved: Diagnostics in the baseline that the target no longer has.
    """

    new: list[Diagnostic] = field(default_factory=list)
    resolved: list[Diagnostic] = field(default_factory=list)

    @property
    def has_regressions(self) -> bool:
        return bool(self.new)

    def to_json(self, indent: int | None = 2) -> str:
        data = {
            "schema_version": SCHEMA_VERSION,
            "summary": {"new": len(self.new), "resolved": len(self.resolved)},
            "new": [d.to_dict() for d in self.new],
            "resolved": [d.to_dict() for d in self.resolved],
        }
        return json.dumps(data, indent=indent)


# =============================================================================
# Comparison
# =============================================================================


def compare_reports(baseline: RunReport, target: RunReport) -> ReportDiff:
    """Compare two reports.

    Diagnostics are matched by kind, header, symbol and message; line
    numbers are ignored, so an issue that merely moved is not reported.
    Repeated diagnostics are matched by count.

    :param baseline: The earlier run.
    :param target: The later run.
    """
    baseline_keys = Counter(d.key for d in baseline.diagnostics)
    target_keys = Counter(d.key for d in target.diagnostics)

    diff = ReportDiff()
    remaining = Counter(baseline_keys)
    for d in target.diagnostics:
        if remaining[d.key] > 0:
            remaining[d.key] -= 1
        else:
            diff.new.append(d)
    remaining = Counter(target_keys)
    for d in baseline.diagnostics:
        if remaining[d.key] > 0:
            remaining[d.key] -= 1
        else:
            diff.resolved.append(d)
    return diff


__all__ = ["ReportDiff", "RunReport", "compare_reports"]
