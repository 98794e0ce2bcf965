"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync runs:

- ``format_reconcile_report`` -- summary of an incremental reconciliation.
- ``format_initial_report`` -- summary of a Push / Pull / Merge run.
- ``format_mirror_report`` -- one-line mirror summary.
- ``format_status`` -- service and scheduler status.
- ``report_to_json`` -- structured dict for MCP tool output.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any

from .models import (
    InitialSyncReport,
    MirrorReport,
    ReconcileReport,
    SyncAction,
    SyncResult,
)

_ACTION_LABELS: dict[SyncAction, str] = {
    SyncAction.CREATE_REMOTE: "Created on linkding",
    SyncAction.CREATE_LOCAL: "Created locally",
    SyncAction.LINK: "Linked",
    SyncAction.UPDATE_REMOTE: "Updated on linkding",
    SyncAction.UPDATE_LOCAL: "Updated locally",
    SyncAction.UPDATE_BOTH: "Updated on both sides",
    SyncAction.DELETE_REMOTE: "Deleted from linkding",
    SyncAction.DELETE_LOCAL: "Deleted locally",
    SyncAction.DROP_STALE: "Dropped stale entries",
}

# ------------------------------------------------------------------
# Human-readable reports
# ------------------------------------------------------------------


def _format_results(results: list[SyncResult]) -> list[str]:
    lines: list[str] = []
    groups: dict[SyncAction, list[str]] = defaultdict(list)
    for r in results:
        if r.success:
            groups[r.action].append(r.key)

    for action, label in _ACTION_LABELS.items():
        keys = groups.get(action)
        if not keys:
            continue
        lines.append(f"{label}:")
        lines.extend(f"  {key}" for key in keys)
        lines.append("")

    failed = [r for r in results if not r.success]
    if failed:
        lines.append("Errors:")
        for r in failed:
            lines.append(f"  {r.key} ({r.action.value}): {r.error}")
        lines.append("")
    return lines


def format_reconcile_report(report: ReconcileReport) -> str:
    """Format an incremental reconciliation report.

    Args:
        report: The completed report.

    Returns:
        Multi-line formatted string.
    """
    lines = ["Two-way sync", f"Started: {report.started_at}"]
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")
    lines.append(
        f"{report.added} added, {report.removed} removed, "
        f"{report.updated} updated; {report.total} bookmarks mapped"
    )
    lines.append("")
    lines.extend(_format_results(report.results))
    if not report.results:
        lines.append("Already in sync.")
    return "\n".join(lines).rstrip()


def format_initial_report(report: InitialSyncReport) -> str:
    """Format an initial sync report."""
    lines = [
        f"Initial sync ({report.mode.value})",
        f"Started: {report.started_at}",
    ]
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")
    lines.append(
        f"{report.added} uploaded, {report.updated} merged, "
        f"{report.downloaded} downloaded; {report.total} bookmarks mapped"
    )
    lines.append("")
    lines.extend(_format_results(report.results))
    return "\n".join(lines).rstrip()


def format_mirror_report(report: MirrorReport) -> str:
    return (
        f"Mirrored {report.bookmarks} bookmarks into {report.tags} tag "
        f"folders ({report.entries} entries) at {report.completed_at}"
    )


def format_status(status: dict[str, Any]) -> str:
    """Format the combined service/scheduler status dict."""
    lines = []
    width = max((len(k) for k in status), default=0)
    for key, value in status.items():
        if isinstance(value, dict):
            value = ", ".join(f"{k}={v}" for k, v in value.items())
        elif value is None:
            value = "-"
        lines.append(f"{key.ljust(width)}  {value}")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(
    report: ReconcileReport | InitialSyncReport | MirrorReport,
) -> dict:
    """Convert a report to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.
    """
    if isinstance(report, MirrorReport):
        return report.model_dump(mode="json")

    results_list = []
    for r in report.results:
        entry: dict = {
            "key": r.key,
            "action": r.action.value,
            "success": r.success,
        }
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    data: dict[str, Any] = {
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": report.counts(),
        "results": results_list,
    }
    if isinstance(report, InitialSyncReport):
        data["mode"] = report.mode.value
    return data
