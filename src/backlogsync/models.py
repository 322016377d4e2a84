from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class BacklogItem:
    """One structured record parsed from the backlog document.

    ``number`` is the primary identity; the parser guarantees it is unique
    within a single document.
    """

    number: int
    marker: str
    title: str
    priority: str
    area: str | None
    collision_tags: tuple[str, ...]
    body: str


@dataclass(frozen=True)
class TrackerIssue:
    number: int
    title: str
    labels: frozenset[str]
    state: str = "open"
    is_pull_request: bool = False


@dataclass(frozen=True)
class TrackerSnapshot:
    """Issues (pull requests removed) plus the label registry of one run."""

    issues: tuple[TrackerIssue, ...]
    labels: frozenset[str]


@dataclass(frozen=True)
class ResolvedItem:
    item: BacklogItem
    issue: TrackerIssue | None = None

    @property
    def number(self) -> int:
        return self.item.number

    @property
    def priority(self) -> str:
        return self.item.priority


class Group(str, Enum):
    ADMIT = "group1"
    DEFER = "group2"


@dataclass(frozen=True)
class ScheduledItem:
    resolved: ResolvedItem
    group: Group
    defer_reason: str | None = None


@dataclass(frozen=True)
class SkippedItem:
    resolved: ResolvedItem
    reason: str


@dataclass
class QueuePlan:
    group1: list[ScheduledItem] = field(default_factory=list)
    group2: list[ScheduledItem] = field(default_factory=list)
    skipped: list[SkippedItem] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)


@dataclass
class LabelChange:
    backlog_number: int
    issue_number: int
    before: list[str]
    after: list[str]
    applied: bool = False


@dataclass
class GenerateReport:
    created: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass
class QueueReport:
    plan: QueuePlan
    label_changes: list[LabelChange] = field(default_factory=list)
    label_error: str | None = None
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return self.label_error is None


__all__ = [
    "BacklogItem",
    "TrackerIssue",
    "TrackerSnapshot",
    "ResolvedItem",
    "Group",
    "ScheduledItem",
    "SkippedItem",
    "QueuePlan",
    "LabelChange",
    "GenerateReport",
    "QueueReport",
]
