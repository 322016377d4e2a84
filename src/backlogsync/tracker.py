"""Tracker synchronisation: snapshot fetching and backlog ↔ issue matching.

Two matching strategies exist and they are deliberately different:

* ``find_by_canonical_title`` – exact title equality; the generator uses it to
  decide whether an issue "already exists".
* ``resolve_by_number`` – regex on the task prefix plus ``ISSUE <n>`` as a
  whole word; the start queue uses it to find the live issue for a number.
  When several issues match, the first one in tracker order wins.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Protocol

from .logging import get_logger
from .models import BacklogItem, ResolvedItem, TrackerIssue, TrackerSnapshot
from .parser import canonical_title


class TrackerClient(Protocol):  # narrow contract shared by the REST client and test fakes
    def list_issues(self, *, state: str = "open") -> list[dict[str, Any]]: ...  # pragma: no cover
    def list_labels(self) -> set[str]: ...  # pragma: no cover
    def create_issue(
        self, *, title: str, body: str, labels: Iterable[str] = ()
    ) -> int | None: ...  # pragma: no cover
    def replace_labels(self, *, number: int, labels: Iterable[str]) -> None: ...  # pragma: no cover


def normalize_issue(entry: dict[str, Any]) -> TrackerIssue:
    labels: set[str] = set()
    raw_labels = entry.get("labels")
    if isinstance(raw_labels, list):
        for lbl in raw_labels:
            if isinstance(lbl, dict):
                name = lbl.get("name")
                if isinstance(name, str):
                    labels.add(name)
            elif isinstance(lbl, str):
                labels.add(lbl)
    number = entry.get("number")
    return TrackerIssue(
        number=number if isinstance(number, int) else 0,
        title=str(entry.get("title") or ""),
        labels=frozenset(labels),
        state=str(entry.get("state") or "open"),
        is_pull_request=bool(entry.get("pull_request")),
    )


def filter_issues(entries: Iterable[dict[str, Any]]) -> tuple[TrackerIssue, ...]:
    """Normalise raw API entries and drop pull requests."""
    issues = (normalize_issue(e) for e in entries)
    return tuple(i for i in issues if not i.is_pull_request)


def fetch_snapshot(
    client: TrackerClient,
    *,
    state: str = "open",
    concurrent: bool = True,
    max_workers: int = 2,
) -> TrackerSnapshot:
    """Fetch issues and the label registry.

    The two reads are independent and side-effect free, so they may run on a
    thread pool; ``GitHubRestClient`` gives each thread its own session.
    Any read failure propagates and aborts the run.
    """
    logger = get_logger()
    with logger.timed_operation("fetch_snapshot", state=state):
        if concurrent and max_workers > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                issues_f = pool.submit(client.list_issues, state=state)
                labels_f = pool.submit(client.list_labels)
                raw_issues, labels = issues_f.result(), labels_f.result()
        else:
            labels = client.list_labels()
            raw_issues = client.list_issues(state=state)
    issues = filter_issues(raw_issues)
    logger.info(
        f"Found {len(issues)} {state} issue(s) and {len(labels)} label(s) on tracker",
        issue_count=len(issues),
        label_count=len(labels),
    )
    return TrackerSnapshot(issues=issues, labels=frozenset(labels))


def find_by_canonical_title(
    item: BacklogItem, issues: Iterable[TrackerIssue], prefix: str = "[AI TASK]"
) -> TrackerIssue | None:
    title = canonical_title(item, prefix)
    for issue in issues:
        if issue.title == title:
            return issue
    return None


def number_pattern(number: int, prefix: str = "[AI TASK]") -> re.Pattern[str]:
    return re.compile(rf"{re.escape(prefix)}.*ISSUE\s+{number}\b", re.IGNORECASE)


def resolve_by_number(
    number: int, issues: Iterable[TrackerIssue], prefix: str = "[AI TASK]"
) -> TrackerIssue | None:
    # TODO: replace title-derived identity with a persisted number -> issue mapping
    pattern = number_pattern(number, prefix)
    for issue in issues:
        if pattern.search(issue.title):
            return issue
    return None


def resolve_items(
    items: Sequence[BacklogItem],
    issues: Sequence[TrackerIssue],
    prefix: str = "[AI TASK]",
) -> list[ResolvedItem]:
    resolved = [ResolvedItem(item=i, issue=resolve_by_number(i.number, issues, prefix)) for i in items]
    missing = [r.number for r in resolved if r.issue is None]
    if missing:
        get_logger().warning(
            "No matching open tracker issue for: "
            + ", ".join(f"ISSUE {n}" for n in missing),
            missing=missing,
        )
    return resolved


__all__ = [
    "TrackerClient",
    "normalize_issue",
    "filter_issues",
    "fetch_snapshot",
    "find_by_canonical_title",
    "number_pattern",
    "resolve_by_number",
    "resolve_items",
]
