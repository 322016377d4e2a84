import io
import json

import pytest
from conftest import FakeTracker, tracker_issue

from backlogsync.errors import MissingLabelError
from backlogsync.logging import configure_logging
from backlogsync.models import BacklogItem, Group, ResolvedItem, ScheduledItem, TrackerIssue
from backlogsync.reconcile import (
    LabelFlipError,
    apply_label_changes,
    candidate_labels,
    generate_issues,
    plan_label_changes,
    require_labels,
    validate_labels,
)
from backlogsync.tracker import fetch_snapshot

TITLE_7 = "[AI TASK] 🟢 ISSUE 7 – Seven (P1)"


def _item(number: int, title: str, priority: str = "P1", **kw) -> BacklogItem:
    return BacklogItem(
        number=number,
        marker="🟢",
        title=title,
        priority=priority,
        area=kw.get("area"),
        collision_tags=tuple(kw.get("tags", ())),
        body=kw.get("body", "Body text."),
    )


def _admitted(number: int, issue_number: int, labels: set[str]) -> ScheduledItem:
    issue = TrackerIssue(number=issue_number, title=f"ISSUE {number}", labels=frozenset(labels))
    return ScheduledItem(resolved=ResolvedItem(item=_item(number, "x"), issue=issue), group=Group.ADMIT)


def test_validate_labels_splits_and_preserves_order():
    accepted, rejected = validate_labels(
        ["P1", "ai-ready", None, "area:ui", "", "touches:db", "P1"], {"ai-ready", "P1", "touches:db"}
    )
    assert accepted == ["P1", "ai-ready", "touches:db"]
    assert rejected == ["area:ui"]


def test_candidate_labels():
    item = _item(1, "t", "P0", area="area:auth", tags=["touches:db"])
    assert candidate_labels(item, "ai-ready") == ["P0", "ai-ready", "area:auth", "touches:db"]


def test_require_labels_lists_missing():
    with pytest.raises(MissingLabelError) as exc:
        require_labels({"ai-ready"}, ["ai-ready", "ai-in-progress"])
    assert exc.value.missing == ["ai-in-progress"]
    assert "ai-in-progress" in str(exc.value)


def test_generate_creates_missing_with_valid_labels(fake_tracker):
    stream = io.StringIO()
    configure_logging(stream=stream)
    items = [_item(1, "One", "P0", area="area:auth", tags=["touches:db"], body="Do the thing.")]
    snapshot = fetch_snapshot(fake_tracker, state="all")

    report = generate_issues(items, snapshot, fake_tracker)

    ((_, payload),) = fake_tracker.mutations()
    assert payload["title"] == "[AI TASK] 🟢 ISSUE 1 – One (P0)"
    assert payload["body"] == "[AI TASK] 🟢 ISSUE 1 – One (P0)\n\nDo the thing."
    assert payload["labels"] == ["P0", "ai-ready"]
    assert report.created == ["#1001 [AI TASK] 🟢 ISSUE 1 – One (P0)"]
    assert report.ok
    log = stream.getvalue()
    assert 'Label "area:auth" not found' in log
    assert 'Label "touches:db" not found' in log


def test_generate_is_idempotent(fake_tracker):
    items = [_item(1, "One"), _item(2, "Two")]
    generate_issues(items, fake_tracker_snapshot(fake_tracker), fake_tracker)
    first = len(fake_tracker.mutations())

    second = generate_issues(items, fake_tracker_snapshot(fake_tracker), fake_tracker)

    assert first == 2
    assert len(fake_tracker.mutations()) == 2
    assert second.created == []
    assert len(second.skipped) == 2


def test_generate_skips_closed_existing_even_in_dry_run(fake_tracker):
    fake_tracker.issues.append(tracker_issue(70, TITLE_7, state="closed"))
    report = generate_issues([_item(7, "Seven")], fake_tracker_snapshot(fake_tracker), fake_tracker, dry_run=True)
    assert report.skipped == [TITLE_7]
    assert report.created == []


def test_generate_dry_run_never_mutates(fake_tracker):
    report = generate_issues([_item(1, "One")], fake_tracker_snapshot(fake_tracker), fake_tracker, dry_run=True)
    assert fake_tracker.mutations() == []
    assert report.created == ["[AI TASK] 🟢 ISSUE 1 – One (P1) [DRY RUN]"]
    assert report.dry_run


def test_generate_error_on_one_item_continues(fake_tracker):
    fake_tracker.fail_create.add("[AI TASK] 🟢 ISSUE 1 – One (P1)")
    report = generate_issues([_item(1, "One"), _item(2, "Two")], fake_tracker_snapshot(fake_tracker), fake_tracker)
    assert len(report.errors) == 1
    assert report.errors[0].startswith("[AI TASK] 🟢 ISSUE 1 – One (P1):")
    assert report.created == ["#1001 [AI TASK] 🟢 ISSUE 2 – Two (P1)"]
    assert not report.ok


def test_generate_requires_ready_label():
    tracker = FakeTracker(labels={"P1"})
    with pytest.raises(MissingLabelError):
        generate_issues([_item(1, "One")], fake_tracker_snapshot(tracker), tracker)
    assert tracker.mutations() == []


def test_plan_label_changes_swaps_ready_for_in_progress():
    (change,) = plan_label_changes([_admitted(3, 33, {"ai-ready", "P0", "touches:db"})])
    assert change.before == ["P0", "ai-ready", "touches:db"]
    assert change.after == ["P0", "touches:db", "ai-in-progress"]
    assert change.issue_number == 33
    assert change.applied is False


def test_apply_label_changes_sequential(fake_tracker):
    changes = plan_label_changes([_admitted(1, 11, {"ai-ready"}), _admitted(2, 12, {"ai-ready"})])
    apply_label_changes(changes, fake_tracker)
    assert [p["number"] for _, p in fake_tracker.mutations()] == [11, 12]
    assert all(c.applied for c in changes)


def test_apply_label_changes_stops_at_first_failure(fake_tracker):
    fake_tracker.fail_labels.add(12)
    changes = plan_label_changes(
        [_admitted(1, 11, {"ai-ready"}), _admitted(2, 12, {"ai-ready"}), _admitted(3, 13, {"ai-ready"})]
    )
    with pytest.raises(LabelFlipError) as exc:
        apply_label_changes(changes, fake_tracker)
    assert exc.value.remaining == 1
    assert exc.value.failed.issue_number == 12
    assert str(exc.value).startswith("#12 (ISSUE 2):")
    assert [p["number"] for _, p in fake_tracker.mutations()] == [11, 12]
    assert [c.applied for c in changes] == [True, False, False]


def fake_tracker_snapshot(tracker):
    return fetch_snapshot(tracker, state="all", concurrent=False)


def test_create_failure_is_logged_with_category(fake_tracker):
    stream = io.StringIO()
    configure_logging(json_logging=True, stream=stream)
    fake_tracker.fail_create.add("[AI TASK] 🟢 ISSUE 1 – One (P1)")
    generate_issues([_item(1, "One")], fake_tracker_snapshot(fake_tracker), fake_tracker)

    errors = [json.loads(line) for line in stream.getvalue().splitlines() if '"ERROR"' in line]
    assert errors[0]["category"] == "generic"
    assert errors[0]["backlog_number"] == 1
