"""Start-queue scheduler.

Partitions resolved backlog items into Group 1 (start now, in parallel) and
Group 2 (start next) with a single deterministic greedy pass:

1. eligibility filter: a matching issue labelled ready and not already active;
2. sort by ``(priority rank, number)``, a total order since numbers are unique;
3. left fold of ``step`` over the sorted items, threading an immutable
   ``QueueState``.

Rules applied by ``step`` (first match wins):

* a top-tier item was deferred for a collision and this item is not top
  tier -> defer (sticky for the rest of the pass);
* the serial-only item already sits in Group 1 -> defer;
* this item is serial-only and Group 1 is not empty -> defer;
* a collision tag is already used in Group 1 -> defer, and arm the cascade
  when this item is top tier;
* otherwise admit.

There is no backtracking: a later item never displaces an admitted one.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace

from .models import Group, QueuePlan, ResolvedItem, ScheduledItem, SkippedItem

REASON_NOT_FOUND = "not found on tracker (no open issue matching title)"
REASON_HIGHER_PRIORITY = "higher-priority work still pending"
REASON_SERIAL_OCCUPIED = "a serial-only item already occupies this group"
REASON_SERIAL_NOT_ALONE = "serial item must run alone; group not empty"


@dataclass(frozen=True)
class SchedulerRules:
    ready_label: str = "ai-ready"
    active_labels: frozenset[str] = frozenset({"ai-in-progress", "ai-review", "done"})
    priority_order: tuple[str, ...] = ("P0", "P1", "P2")
    serial_tag: str = "touches:i18n-json"

    def rank(self, priority: str) -> int:
        try:
            return self.priority_order.index(priority)
        except ValueError:
            return len(self.priority_order)


@dataclass(frozen=True)
class QueueState:
    used_tags: frozenset[str] = frozenset()
    serial_in_group1: bool = False
    deferred_higher_priority: bool = False
    group1_size: int = 0


def eligibility_reason(resolved: ResolvedItem, rules: SchedulerRules) -> str | None:
    """Return why an item cannot be scheduled, or None when it is eligible."""
    issue = resolved.issue
    if issue is None:
        return REASON_NOT_FOUND
    if rules.ready_label not in issue.labels:
        return f"not ready (missing `{rules.ready_label}`)"
    active = sorted(issue.labels & rules.active_labels)
    if active:
        return f"already active ({', '.join(active)})"
    return None


def partition_eligible(
    items: Iterable[ResolvedItem], rules: SchedulerRules
) -> tuple[list[ResolvedItem], list[SkippedItem]]:
    eligible: list[ResolvedItem] = []
    skipped: list[SkippedItem] = []
    for resolved in items:
        reason = eligibility_reason(resolved, rules)
        if reason is None:
            eligible.append(resolved)
        else:
            skipped.append(SkippedItem(resolved=resolved, reason=reason))
    return eligible, skipped


def sort_key(resolved: ResolvedItem, rules: SchedulerRules) -> tuple[int, int]:
    return rules.rank(resolved.priority), resolved.number


def _defer(resolved: ResolvedItem, reason: str) -> ScheduledItem:
    return ScheduledItem(resolved=resolved, group=Group.DEFER, defer_reason=reason)


def step(
    state: QueueState,
    resolved: ResolvedItem,
    *,
    rules: SchedulerRules,
    top_rank: int,
) -> tuple[QueueState, ScheduledItem, str | None]:
    """Schedule one item; returns the next state, the decision and a conflict line."""
    n = resolved.number
    tags = resolved.item.collision_tags
    is_top = rules.rank(resolved.priority) == top_rank
    is_serial = rules.serial_tag in tags

    if state.deferred_higher_priority and not is_top:
        return (
            state,
            _defer(resolved, REASON_HIGHER_PRIORITY),
            f"ISSUE {n}: blocked, higher-priority item deferred earlier in this run",
        )
    if state.serial_in_group1:
        return (
            state,
            _defer(resolved, REASON_SERIAL_OCCUPIED),
            f"ISSUE {n}: blocked, {rules.serial_tag} item already in Group 1",
        )
    if is_serial and state.group1_size > 0:
        return (
            state,
            _defer(resolved, REASON_SERIAL_NOT_ALONE),
            f"ISSUE {n}: {rules.serial_tag} must be serial, Group 1 already has other issues",
        )
    collisions = [t for t in tags if t in state.used_tags]
    if collisions:
        joined = ", ".join(collisions)
        next_state = replace(state, deferred_higher_priority=True) if is_top else state
        return (
            next_state,
            _defer(resolved, f"collision on {joined}"),
            f"ISSUE {n}: collision, tag(s) {joined} already used in Group 1",
        )
    next_state = replace(
        state,
        used_tags=state.used_tags | frozenset(tags),
        serial_in_group1=state.serial_in_group1 or is_serial,
        group1_size=state.group1_size + 1,
    )
    return next_state, ScheduledItem(resolved=resolved, group=Group.ADMIT), None


def schedule(eligible: Sequence[ResolvedItem], rules: SchedulerRules) -> QueuePlan:
    """Run the greedy pass over already-eligible items."""
    ordered = sorted(eligible, key=lambda r: sort_key(r, rules))
    plan = QueuePlan()
    if not ordered:
        return plan
    top_rank = min(rules.rank(r.priority) for r in ordered)
    state = QueueState()
    for resolved in ordered:
        state, decision, conflict = step(state, resolved, rules=rules, top_rank=top_rank)
        if decision.group is Group.ADMIT:
            plan.group1.append(decision)
        else:
            plan.group2.append(decision)
        if conflict:
            plan.conflicts.append(conflict)
    return plan


def build_queue(items: Iterable[ResolvedItem], rules: SchedulerRules | None = None) -> QueuePlan:
    rules = rules or SchedulerRules()
    eligible, skipped = partition_eligible(items, rules)
    plan = schedule(eligible, rules)
    plan.skipped.extend(skipped)
    return plan


__all__ = [
    "SchedulerRules",
    "QueueState",
    "eligibility_reason",
    "partition_eligible",
    "sort_key",
    "step",
    "schedule",
    "build_queue",
]
