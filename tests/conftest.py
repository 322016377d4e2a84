"""Pytest configuration for backlogsync tests.

Ensures the in-repo `src` directory is on `sys.path` so the package can be
imported without an editable install, and provides an in-memory tracker that
behaves like the GitHub REST surface the tool consumes.
"""

from __future__ import annotations

import sys
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from backlogsync.github_rest import GitHubAPIError  # noqa: E402
from backlogsync.logging import configure_logging  # noqa: E402

SEP = "─" * 40


class FakeTracker:
    """In-memory stand-in for ``GitHubRestClient``.

    ``fail_create`` / ``fail_labels`` hold issue titles / numbers whose mutating
    call should raise ``GitHubAPIError``.
    """

    def __init__(
        self,
        issues: list[dict[str, Any]] | None = None,
        labels: Iterable[str] = (),
    ) -> None:
        self.issues: list[dict[str, Any]] = list(issues or [])
        self.labels = set(labels)
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.fail_create: set[str] = set()
        self.fail_labels: set[int] = set()
        self._next_number = 1000

    def list_issues(self, *, state: str = "open") -> list[dict[str, Any]]:
        self.calls.append(("list_issues", {"state": state}))
        if state == "all":
            return [dict(i) for i in self.issues]
        return [dict(i) for i in self.issues if i.get("state", "open") == state]

    def list_labels(self) -> set[str]:
        self.calls.append(("list_labels", {}))
        return set(self.labels)

    def create_issue(self, *, title: str, body: str, labels: Iterable[str] = ()) -> int | None:
        label_list = list(labels)
        self.calls.append(("create_issue", {"title": title, "body": body, "labels": label_list}))
        if title in self.fail_create:
            raise GitHubAPIError(f"GitHub API POST /issues → 422: {title}", status=422)
        self._next_number += 1
        self.issues.append(
            {
                "number": self._next_number,
                "title": title,
                "state": "open",
                "labels": [{"name": n} for n in label_list],
            }
        )
        return self._next_number

    def replace_labels(self, *, number: int, labels: Iterable[str]) -> None:
        label_list = list(labels)
        self.calls.append(("replace_labels", {"number": number, "labels": label_list}))
        if number in self.fail_labels:
            raise GitHubAPIError(f"GitHub API PUT /issues/{number}/labels → 500", status=500)
        for issue in self.issues:
            if issue["number"] == number:
                issue["labels"] = [{"name": n} for n in label_list]

    def mutations(self) -> list[tuple[str, dict[str, Any]]]:
        return [c for c in self.calls if c[0] in {"create_issue", "replace_labels"}]


def issue_block(
    number: int,
    title: str,
    priority: str = "P1",
    *,
    marker: str = "🟢",
    area: str | None = None,
    touches: Iterable[str] = (),
    body: str = "Some context.",
) -> str:
    lines = [f"{marker} ISSUE {number} – {title} ({priority})", "", body, "", "## Labels"]
    if area:
        lines.append(f"Area: {area}")
    for t in touches:
        lines.append(f"- touches:{t}")
    return "\n".join(lines)


def backlog_doc(*blocks: str) -> str:
    return f"\n{SEP}\n".join(blocks) + "\n"


def tracker_issue(number: int, title: str, labels: Iterable[str] = (), state: str = "open") -> dict[str, Any]:
    return {"number": number, "title": title, "state": state, "labels": [{"name": n} for n in labels]}


@pytest.fixture(autouse=True)
def _logging_to_stderr() -> None:
    configure_logging(level="DEBUG")


@pytest.fixture
def fake_tracker() -> FakeTracker:
    return FakeTracker(labels={"ai-ready", "ai-in-progress", "P0", "P1", "P2"})
