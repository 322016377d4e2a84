"""High-level pipelines behind the ``generate`` and ``queue`` commands.

Each pipeline runs the same fixed sequence: load + parse backlog, fetch a
tracker snapshot, check required labels, then do its work. Every
``PreconditionError`` surfaces before the first mutating call.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .config import SyncConfig
from .logging import get_logger
from .models import BacklogItem, GenerateReport, QueueReport
from .parser import SeparatorBlockSource, load_backlog
from .reconcile import (
    LabelFlipError,
    LabelPolicy,
    apply_label_changes,
    generate_issues,
    plan_label_changes,
    require_labels,
)
from .report import (
    render_generate_report,
    render_queue_report,
    summarize_generate,
    summarize_queue,
)
from .scheduler import SchedulerRules, build_queue
from .tracker import TrackerClient, fetch_snapshot, resolve_items


@dataclass
class RunResult:
    report: str
    summary: dict[str, Any]
    exit_code: int


def load_items(cfg: SyncConfig) -> list[BacklogItem]:
    source = SeparatorBlockSource(cfg.separator_char, cfg.separator_min_run)
    items = load_backlog(cfg.source_file, source=source, markers=cfg.markers)
    get_logger().info(
        f"Parsed {len(items)} issue(s) from {cfg.source_file.name}", item_count=len(items)
    )
    return items


def label_policy(cfg: SyncConfig) -> LabelPolicy:
    return LabelPolicy(
        ready_label=cfg.ready_label,
        in_progress_label=cfg.in_progress_label,
        title_prefix=cfg.title_prefix,
    )


def scheduler_rules(cfg: SyncConfig) -> SchedulerRules:
    return SchedulerRules(
        ready_label=cfg.ready_label,
        active_labels=frozenset(cfg.active_labels),
        priority_order=tuple(cfg.priority_order),
        serial_tag=cfg.serial_tag,
    )


def run_generate(cfg: SyncConfig, client: TrackerClient, *, dry_run: bool) -> RunResult:
    items = load_items(cfg)
    snapshot = fetch_snapshot(
        client,
        state="all",
        concurrent=cfg.concurrency_enabled,
        max_workers=cfg.concurrency_max_workers,
    )
    report: GenerateReport = generate_issues(
        items, snapshot, client, policy=label_policy(cfg), dry_run=dry_run
    )
    return RunResult(
        report=render_generate_report(report),
        summary=summarize_generate(report),
        exit_code=0 if report.ok else 1,
    )


def run_queue(cfg: SyncConfig, client: TrackerClient, *, dry_run: bool) -> RunResult:
    logger = get_logger()
    items = load_items(cfg)
    snapshot = fetch_snapshot(
        client,
        state="open",
        concurrent=cfg.concurrency_enabled,
        max_workers=cfg.concurrency_max_workers,
    )
    # Workflow labels are verified, never created
    require_labels(snapshot.labels, [cfg.ready_label, cfg.in_progress_label])
    resolved = resolve_items(items, snapshot.issues, cfg.title_prefix)
    plan = build_queue(resolved, scheduler_rules(cfg))
    logger.log_operation(
        "queue_built",
        group1=len(plan.group1),
        group2=len(plan.group2),
        skipped=len(plan.skipped),
    )

    report = QueueReport(plan=plan, dry_run=dry_run)
    report.label_changes = plan_label_changes(plan.group1, label_policy(cfg))
    if not dry_run:
        try:
            apply_label_changes(report.label_changes, client)
        except LabelFlipError as exc:
            report.label_error = str(exc)
    rendered = render_queue_report(
        report, ready_label=cfg.ready_label, in_progress_label=cfg.in_progress_label
    )
    return RunResult(report=rendered, summary=summarize_queue(report), exit_code=0 if report.ok else 1)


Pipeline = Callable[..., RunResult]

PIPELINES: dict[str, Pipeline] = {
    "generate": run_generate,
    "queue": run_queue,
}


__all__ = [
    "RunResult",
    "load_items",
    "label_policy",
    "scheduler_rules",
    "run_generate",
    "run_queue",
    "PIPELINES",
]
