from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import requests

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_PAGE_SIZE = 100
USER_AGENT = "backlogsync-rest/0.1.0"
API_VERSION = "2022-11-28"
HTTP_ERROR_STATUS = 400
REQUEST_TIMEOUT = 30


class GitHubAPIError(RuntimeError):
    """Raised when the GitHub REST API returns an error."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        response_text: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.response_text = response_text


@dataclass
class GitHubRestClient:
    """Minimal REST client covering the four tracker calls the tool needs."""

    token: str
    repo: str
    base_url: str = DEFAULT_API_URL
    page_size: int = DEFAULT_PAGE_SIZE
    session: requests.Session | None = None
    _headers: dict[str, str] = field(init=False, repr=False)
    _local: threading.local = field(init=False, repr=False, default_factory=threading.local)

    def __post_init__(self) -> None:
        self._headers = {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
            "User-Agent": USER_AGENT,
        }
        if self.session is not None:
            for key, value in self._headers.items():
                self.session.headers.setdefault(key, value)

    def _thread_session(self) -> requests.Session:
        """Session for the calling thread.

        ``requests.Session`` is not guaranteed thread-safe, so concurrent reads
        each get their own. An injected session is shared as-is.
        """
        if self.session is not None:
            return self.session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update(self._headers)
            self._local.session = session
        return session

    # ---- REST helpers -------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Any:
        url = f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        session = self._thread_session()
        try:
            response = session.request(
                method,
                url,
                params=params,
                json=json_body,
                headers=session.headers,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise GitHubAPIError(f"GitHub API {method} {path} failed: {exc}") from exc
        if response.status_code >= HTTP_ERROR_STATUS:
            raise GitHubAPIError(
                f"GitHub API {method} {path} → {response.status_code}: {response.text}",
                status=response.status_code,
                response_text=response.text,
            )
        if response.text:
            try:
                return response.json()
            except ValueError as exc:
                raise GitHubAPIError(
                    f"GitHub API {method} {path} returned non-JSON payload",
                    status=response.status_code,
                    response_text=response.text,
                ) from exc
        return None

    def _paginate(self, path: str, *, params: dict[str, Any] | None = None) -> list[Any]:
        params = dict(params or {})
        params["per_page"] = self.page_size
        params["page"] = 1
        results: list[Any] = []
        while True:
            data = self._request("GET", path, params=dict(params))
            if not isinstance(data, list) or not data:
                break
            results.extend(data)
            if len(data) < self.page_size:
                break
            params["page"] += 1
        return results

    # ---- Issue operations --------------------------------------------
    def list_issues(self, *, state: str = "open") -> list[dict[str, Any]]:
        """All issues in ``state`` (pull requests included, GitHub mixes them)."""
        data = self._paginate(f"/repos/{self.repo}/issues", params={"state": state})
        return [entry for entry in data if isinstance(entry, dict)]

    def list_labels(self) -> set[str]:
        names: set[str] = set()
        for entry in self._paginate(f"/repos/{self.repo}/labels"):
            if isinstance(entry, dict) and isinstance(entry.get("name"), str):
                names.add(entry["name"])
        return names

    def create_issue(self, *, title: str, body: str, labels: Iterable[str] = ()) -> int | None:
        payload: dict[str, Any] = {"title": title, "body": body, "labels": list(labels)}
        data = self._request("POST", f"/repos/{self.repo}/issues", json_body=payload)
        if isinstance(data, dict):
            number = data.get("number")
            if isinstance(number, int):
                return number
        return None

    def replace_labels(self, *, number: int, labels: Iterable[str]) -> None:
        """Replace the full label set of an issue (idempotent PUT)."""
        self._request(
            "PUT",
            f"/repos/{self.repo}/issues/{number}/labels",
            json_body={"labels": list(labels)},
        )


__all__ = [
    "DEFAULT_API_URL",
    "DEFAULT_PAGE_SIZE",
    "GitHubAPIError",
    "GitHubRestClient",
]
