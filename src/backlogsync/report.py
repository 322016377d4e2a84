"""Report rendering.

Both commands print exactly one fenced markdown block to stdout. The same data
can be serialised to JSON for automation (``--summary-json``).
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .models import GenerateReport, QueueReport, ResolvedItem, ScheduledItem, SkippedItem

FENCE = "```"
NONE = "_None._"


def _fenced(lines: list[str]) -> str:
    return "\n".join([FENCE, *lines, FENCE])


def _bullets(entries: list[str], empty: str | None = NONE) -> list[str]:
    if not entries and empty is not None:
        return [empty]
    return [f"- {e}" for e in entries]


def render_generate_report(report: GenerateReport) -> str:
    lines = [
        "## Issue Generator Report" + (" [DRY RUN]" if report.dry_run else ""),
        "",
        f"### ✅ Created ({len(report.created)})",
        *_bullets(report.created, empty=None),
        "",
        f"### ⏭️ Skipped – already exists ({len(report.skipped)})",
        *_bullets(report.skipped, empty=None),
    ]
    if report.errors:
        lines += ["", f"### ❌ Errors ({len(report.errors)})", *_bullets(report.errors)]
    return _fenced(lines)


def _issue_ref(resolved: ResolvedItem) -> str:
    return f"#{resolved.issue.number}" if resolved.issue is not None else "#?"


def _admitted_line(s: ScheduledItem) -> str:
    r = s.resolved
    tags = r.item.collision_tags
    tag_text = ", ".join(tags) if tags else "(no collision tags)"
    return f'ISSUE {r.number} ({_issue_ref(r)}) [{r.priority}] "{r.item.title}" — {tag_text}'


def _deferred_line(s: ScheduledItem) -> str:
    r = s.resolved
    return f'ISSUE {r.number} ({_issue_ref(r)}) [{r.priority}] "{r.item.title}" — deferred: {s.defer_reason}'


def _skipped_line(s: SkippedItem) -> str:
    r = s.resolved
    ref = f" ({_issue_ref(r)})" if r.issue is not None else ""
    return f'ISSUE {r.number}{ref} [{r.priority}] "{r.item.title}" — {s.reason}'


def _label_section(report: QueueReport, ready: str, in_progress: str) -> list[str]:
    lines = ["### 🏷️ Label Changes"]
    changes = report.label_changes
    if report.dry_run:
        lines.append("_[DRY RUN] No label changes applied._")
        lines += [
            f"- Would set `{in_progress}`, remove `{ready}` on ISSUE {c.backlog_number} (#{c.issue_number})"
            for c in changes
        ]
        return lines
    if not changes:
        lines.append("_No issues in Group 1; no label changes applied._")
        return lines
    applied = [c for c in changes if c.applied]
    if applied:
        lines.append("Applied:")
        lines += [
            f"- ✅ Set `{in_progress}`, removed `{ready}` on ISSUE {c.backlog_number} (#{c.issue_number})"
            for c in applied
        ]
    if report.label_error:
        not_attempted = len(changes) - len(applied) - 1
        lines.append(f"- ❌ Failed: {report.label_error}")
        lines.append(f"_Aborted; {not_attempted} remaining change(s) not attempted._")
    return lines


def render_queue_report(
    report: QueueReport, *, ready_label: str = "ai-ready", in_progress_label: str = "ai-in-progress"
) -> str:
    plan = report.plan
    lines = ["## Start Queue Generator Report", ""]
    lines.append(f"### 🟢 Group 1 – Start Now ({len(plan.group1)})")
    if plan.group1:
        lines += _bullets([_admitted_line(s) for s in plan.group1])
    else:
        lines.append("_None – all eligible issues are in conflict or unavailable._")
    lines += ["", f"### 🟡 Group 2 – Start Next ({len(plan.group2)})"]
    lines += _bullets([_deferred_line(s) for s in plan.group2])
    lines += ["", f"### ⏭️ Skipped ({len(plan.skipped)})"]
    lines += _bullets([_skipped_line(s) for s in plan.skipped])
    lines += ["", f"### ⚠️ Conflicts ({len(plan.conflicts)})"]
    lines += _bullets(list(plan.conflicts))
    lines += ["", *_label_section(report, ready_label, in_progress_label)]
    return _fenced(lines)


def _scheduled_dict(s: ScheduledItem) -> dict[str, Any]:
    r = s.resolved
    return {
        "number": r.number,
        "issue": r.issue.number if r.issue else None,
        "priority": r.priority,
        "title": r.item.title,
        "collision_tags": list(r.item.collision_tags),
        "defer_reason": s.defer_reason,
    }


def summarize_generate(report: GenerateReport) -> dict[str, Any]:
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "command": "generate",
        "dry_run": report.dry_run,
        "totals": {
            "created": len(report.created),
            "skipped": len(report.skipped),
            "errors": len(report.errors),
        },
        "created": list(report.created),
        "skipped": list(report.skipped),
        "errors": list(report.errors),
    }


def summarize_queue(report: QueueReport) -> dict[str, Any]:
    plan = report.plan
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "command": "queue",
        "dry_run": report.dry_run,
        "totals": {
            "group1": len(plan.group1),
            "group2": len(plan.group2),
            "skipped": len(plan.skipped),
            "conflicts": len(plan.conflicts),
        },
        "group1": [_scheduled_dict(s) for s in plan.group1],
        "group2": [_scheduled_dict(s) for s in plan.group2],
        "skipped": [
            {"number": s.resolved.number, "issue": s.resolved.issue.number if s.resolved.issue else None, "reason": s.reason}
            for s in plan.skipped
        ],
        "conflicts": list(plan.conflicts),
        "label_changes": [
            {
                "number": c.backlog_number,
                "issue": c.issue_number,
                "before": c.before,
                "after": c.after,
                "applied": c.applied,
            }
            for c in report.label_changes
        ],
        "label_error": report.label_error,
    }


def write_summary(path: str | Path, summary: dict[str, Any]) -> Path:
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(summary, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return out


__all__ = [
    "render_generate_report",
    "render_queue_report",
    "summarize_generate",
    "summarize_queue",
    "write_summary",
]
