import json
import threading
from dataclasses import dataclass
from typing import Any

import pytest
import requests

from backlogsync.github_rest import GitHubAPIError, GitHubRestClient


@dataclass
class _DummyResponse:
    status_code: int
    payload: Any

    def json(self) -> Any:
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload

    @property
    def text(self) -> str:
        payload = self.payload
        if payload is None:
            return ""
        if isinstance(payload, (dict, list)):
            return json.dumps(payload)
        return str(payload)


class _DummySession:
    def __init__(self, responses: list[Any]):
        self._responses = responses
        self.request_log: list[tuple[str, str, dict[str, Any]]] = []
        self.headers: dict[str, str] = {}

    def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        json: Any | None = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> _DummyResponse:
        self.request_log.append((method, url, {"headers": headers, "json": json, "params": params}))
        if not self._responses:
            raise AssertionError("No response queued for request")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _client(session: _DummySession, page_size: int = 2) -> GitHubRestClient:
    return GitHubRestClient(token="tkn", repo="acme/widgets", page_size=page_size, session=session)


def test_client_sets_auth_headers():
    session = _DummySession([])
    _client(session)
    assert session.headers["Authorization"] == "Bearer tkn"
    assert session.headers["Accept"] == "application/vnd.github+json"


def test_list_issues_paginates_until_short_page():
    session = _DummySession(
        [
            _DummyResponse(200, [{"number": 1}, {"number": 2}]),
            _DummyResponse(200, [{"number": 3}]),
        ]
    )
    issues = _client(session).list_issues(state="all")

    assert [i["number"] for i in issues] == [1, 2, 3]
    assert [entry[2]["params"]["page"] for entry in session.request_log] == [1, 2]
    assert session.request_log[0][2]["params"] == {"state": "all", "per_page": 2, "page": 1}
    assert session.request_log[0][1] == "https://api.github.com/repos/acme/widgets/issues"


def test_pagination_stops_on_empty_page():
    session = _DummySession([_DummyResponse(200, [{"number": 1}, {"number": 2}]), _DummyResponse(200, [])])
    assert len(_client(session).list_issues()) == 2
    assert len(session.request_log) == 2


def test_list_labels_returns_names():
    session = _DummySession([_DummyResponse(200, [{"name": "ai-ready"}, {"name": "P0"}, {"id": 3}])])
    assert _client(session, page_size=100).list_labels() == {"ai-ready", "P0"}


def test_create_issue_posts_payload():
    session = _DummySession([_DummyResponse(201, {"number": 321})])
    number = _client(session).create_issue(title="Demo", body="Body", labels=["bug"])

    assert number == 321
    method, url, meta = session.request_log[0]
    assert method == "POST"
    assert url.endswith("/repos/acme/widgets/issues")
    assert meta["json"] == {"title": "Demo", "body": "Body", "labels": ["bug"]}


def test_replace_labels_puts_full_set():
    session = _DummySession([_DummyResponse(200, [{"name": "ai-in-progress"}])])
    _client(session).replace_labels(number=12, labels=["P0", "ai-in-progress"])

    method, url, meta = session.request_log[0]
    assert method == "PUT"
    assert url.endswith("/repos/acme/widgets/issues/12/labels")
    assert meta["json"] == {"labels": ["P0", "ai-in-progress"]}


def test_rest_client_raises_on_error():
    session = _DummySession([_DummyResponse(500, {"message": "boom"})])
    with pytest.raises(GitHubAPIError) as exc:
        _client(session).list_issues(state="all")
    assert exc.value.status == 500
    assert "boom" in (exc.value.response_text or "")


def test_transport_errors_become_api_errors():
    session = _DummySession([requests.ConnectionError("connection reset by peer")])
    with pytest.raises(GitHubAPIError, match="connection reset"):
        _client(session).list_labels()


def test_non_json_payload_raises():
    session = _DummySession([_DummyResponse(200, ValueError("not json"))])
    with pytest.raises(GitHubAPIError, match="non-JSON"):
        _client(session).list_labels()


def test_each_thread_gets_its_own_session():
    client = GitHubRestClient(token="tkn", repo="acme/widgets")
    sessions: list[requests.Session] = []

    def grab() -> None:
        sessions.append(client._thread_session())

    workers = [threading.Thread(target=grab) for _ in range(2)]
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join()

    assert len(sessions) == 2
    assert sessions[0] is not sessions[1]
    assert all(s.headers["Authorization"] == "Bearer tkn" for s in sessions)
    assert client._thread_session() is client._thread_session()


def test_injected_session_is_shared():
    session = _DummySession([])
    client = _client(session)
    assert client._thread_session() is session
