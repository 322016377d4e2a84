"""Tracker reconciliation: idempotent issue creation and Group 1 label flips.

Creation is lenient: each backlog item is independent, so a failed create is
recorded and the loop moves on. Label flips are strict: the first failure
aborts the remaining flips so the tracker is never left with an arbitrary
subset of Group 1 marked as started.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .errors import MissingLabelError, classify_error
from .github_rest import GitHubAPIError
from .logging import get_logger
from .models import BacklogItem, GenerateReport, LabelChange, ScheduledItem, TrackerSnapshot
from .parser import canonical_title
from .tracker import TrackerClient, find_by_canonical_title


@dataclass(frozen=True)
class LabelPolicy:
    ready_label: str = "ai-ready"
    in_progress_label: str = "ai-in-progress"
    title_prefix: str = "[AI TASK]"


class LabelFlipError(RuntimeError):
    """A label replace call failed; remaining flips were not attempted."""

    def __init__(self, message: str, *, failed: LabelChange, remaining: int):
        super().__init__(message)
        self.failed = failed
        self.remaining = remaining


def require_labels(registry: Iterable[str], required: Sequence[str]) -> None:
    present = set(registry)
    missing = [lbl for lbl in required if lbl not in present]
    if missing:
        raise MissingLabelError(missing)


def validate_labels(
    candidates: Iterable[str | None], registry: Iterable[str]
) -> tuple[list[str], list[str]]:
    """Split candidate labels into (accepted, rejected) against the registry.

    Empty candidates are dropped, order is preserved and duplicates collapse.
    """
    present = set(registry)
    accepted: list[str] = []
    rejected: list[str] = []
    for label in candidates:
        if not label or label in accepted or label in rejected:
            continue
        (accepted if label in present else rejected).append(label)
    return accepted, rejected


def candidate_labels(item: BacklogItem, ready_label: str) -> list[str | None]:
    return [item.priority, ready_label, item.area, *item.collision_tags]


def generate_issues(
    items: Sequence[BacklogItem],
    snapshot: TrackerSnapshot,
    client: TrackerClient,
    *,
    policy: LabelPolicy | None = None,
    dry_run: bool = False,
) -> GenerateReport:
    """Create a tracker issue for every backlog item whose canonical title is absent.

    ``snapshot`` must contain issues of every state so closed issues also
    count as existing.
    """
    policy = policy or LabelPolicy()
    logger = get_logger()
    require_labels(snapshot.labels, [policy.ready_label])
    report = GenerateReport(dry_run=dry_run)

    for item in items:
        title = canonical_title(item, policy.title_prefix)
        existing = find_by_canonical_title(item, snapshot.issues, policy.title_prefix)
        if existing is not None:
            report.skipped.append(title)
            logger.log_item_action("skipped", item.number, existing.number, dry_run=dry_run, reason="exists")
            continue

        labels, rejected = validate_labels(candidate_labels(item, policy.ready_label), snapshot.labels)
        for label in rejected:
            logger.warning(
                f'Label "{label}" not found in tracker, skipping for "{title}"',
                backlog_number=item.number,
                label=label,
            )
        body = f"{title}\n\n{item.body}"

        if dry_run:
            logger.log_item_action("create", item.number, dry_run=True, labels=labels)
            report.created.append(f"{title} [DRY RUN]")
            continue

        try:
            number = client.create_issue(title=title, body=body, labels=labels)
        except GitHubAPIError as exc:
            info = classify_error(exc)
            report.errors.append(f"{title}: {info.message}")
            logger.log_error(
                f'Error creating "{title}"',
                error=info.message,
                category=info.category,
                backlog_number=item.number,
            )
            continue
        ref = f"#{number} {title}" if number is not None else title
        report.created.append(ref)
        logger.log_item_action("created", item.number, number, labels=labels)
    return report


def plan_label_changes(
    group1: Sequence[ScheduledItem], policy: LabelPolicy | None = None
) -> list[LabelChange]:
    """Compute the ready -> in-progress transition for each admitted item, in order."""
    policy = policy or LabelPolicy()
    changes: list[LabelChange] = []
    for scheduled in group1:
        issue = scheduled.resolved.issue
        if issue is None:  # pragma: no cover - eligibility filter guarantees an issue
            continue
        before = sorted(issue.labels)
        after = [lbl for lbl in before if lbl != policy.ready_label]
        if policy.in_progress_label not in after:
            after.append(policy.in_progress_label)
        changes.append(
            LabelChange(
                backlog_number=scheduled.resolved.number,
                issue_number=issue.number,
                before=before,
                after=after,
            )
        )
    return changes


def apply_label_changes(changes: Sequence[LabelChange], client: TrackerClient) -> None:
    """Apply label replacements strictly sequentially; stop at the first failure."""
    logger = get_logger()
    for index, change in enumerate(changes):
        try:
            client.replace_labels(number=change.issue_number, labels=change.after)
        except GitHubAPIError as exc:
            info = classify_error(exc)
            remaining = len(changes) - index - 1
            logger.log_error(
                f"Failed to update labels on #{change.issue_number}",
                error=info.message,
                category=info.category,
                remaining=remaining,
            )
            raise LabelFlipError(
                f"#{change.issue_number} (ISSUE {change.backlog_number}): {info.message}",
                failed=change,
                remaining=remaining,
            ) from exc
        change.applied = True
        logger.log_item_action("started", change.backlog_number, change.issue_number)


__all__ = [
    "LabelPolicy",
    "LabelFlipError",
    "require_labels",
    "validate_labels",
    "candidate_labels",
    "generate_issues",
    "plan_label_changes",
    "apply_label_changes",
]
