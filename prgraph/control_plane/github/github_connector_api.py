"""GitHub REST API change-record provider."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any

import requests

from prgraph.control_plane.errors import NotFoundError, UpstreamUnavailableError
from prgraph.control_plane.github.github_auth import GitHubAuth
from prgraph.control_plane.github.github_connector import (
    change_ref,
    parse_declared_dependencies,
    risk_from_labels,
    split_change_ref,
)
from prgraph.control_plane.models.decomposition_contracts import FileChange
from prgraph.control_plane.models.graph_contracts import ChangeNode

logger = logging.getLogger(__name__)

PER_PAGE = 100
MAX_PAGES = 30
_FILE_STATUSES = {"added", "modified", "deleted", "renamed"}


class GitHubAPIConnector:
    """Reads open pull requests through the GitHub REST API.

    File lists are fetched concurrently when ``fetch_workers`` is above one.
    ``requests.Session`` is not thread-safe, so without an injected ``session``
    each worker thread gets its own from ``session_factory``. An injected
    ``session`` is shared, so file lists are then fetched one at a time.
    """

    def __init__(
        self,
        auth: GitHubAuth | None = None,
        base_url: str = "https://api.github.com",
        session: requests.Session | None = None,
        fetch_workers: int = 4,
        timeout_s: float = 15.0,
        session_factory: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self.auth = auth or GitHubAuth(read_token=None)
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.session_factory = session_factory
        self._local = threading.local()
        self.fetch_workers = max(1, int(fetch_workers))
        self.timeout_s = timeout_s

    def list_open_changes(self, repo: str) -> list[ChangeNode]:
        rows = self._paginate(f"/repos/{repo}/pulls", params={"state": "open"})
        pulls = [row for row in rows if isinstance(row, dict) and row.get("number")]
        change_ids = [change_ref(repo, int(row["number"])) for row in pulls]
        if self.session is not None or self.fetch_workers == 1 or len(change_ids) <= 1:
            file_lists = [self.get_file_list(change_id) for change_id in change_ids]
        else:
            with ThreadPoolExecutor(max_workers=self.fetch_workers) as pool:
                file_lists = list(pool.map(self.get_file_list, change_ids))
        return [
            _change_from_row(repo, row, files) for row, files in zip(pulls, file_lists)
        ]

    def get_change(self, change_id: str) -> ChangeNode | None:
        """Pull request metadata only; ``files_changed`` is left empty.

        Callers that need the files ask ``get_file_list``, which keeps a
        decomposition to a single file-list fetch.
        """
        parsed = split_change_ref(change_id)
        if parsed is None:
            return None
        repo, number = parsed
        try:
            row = self._request("GET", f"/repos/{repo}/pulls/{number}")
        except NotFoundError:
            return None
        if not isinstance(row, dict):
            return None
        return _change_from_row(repo, row, [])

    def get_file_list(self, change_id: str) -> list[FileChange]:
        parsed = split_change_ref(change_id)
        if parsed is None:
            raise NotFoundError("Change", change_id)
        repo, number = parsed
        rows = self._paginate(f"/repos/{repo}/pulls/{number}/files")
        files: list[FileChange] = []
        for row in rows:
            if not isinstance(row, dict) or not row.get("filename"):
                continue
            status = str(row.get("status", "modified"))
            files.append(
                FileChange(
                    path=str(row["filename"]),
                    status=status if status in _FILE_STATUSES else "modified",
                    additions=int(row.get("additions", 0) or 0),
                    deletions=int(row.get("deletions", 0) or 0),
                )
            )
        if len(rows) >= PER_PAGE * MAX_PAGES:
            logger.warning("File list for %s truncated at %d entries", change_id, len(rows))
        return files

    def _paginate(self, path: str, params: dict[str, str] | None = None) -> list[Any]:
        rows: list[Any] = []
        for page in range(1, MAX_PAGES + 1):
            page_params = dict(params or {})
            page_params.update({"per_page": str(PER_PAGE), "page": str(page)})
            payload = self._request("GET", path, params=page_params)
            if not isinstance(payload, list):
                break
            rows.extend(payload)
            if len(payload) < PER_PAGE:
                break
        return rows

    def _session(self) -> requests.Session:
        if self.session is not None:
            return self.session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self.session_factory()
            self._local.session = session
        return session

    def _request(self, method: str, path: str, params: dict[str, str] | None = None) -> Any:
        try:
            response = self._session().request(
                method=method,
                url=f"{self.base_url}{path}",
                headers=self.auth.request_headers(),
                params=params,
                timeout=self.timeout_s,
            )
        except requests.RequestException as exc:
            raise UpstreamUnavailableError(
                f"GitHub API unreachable: {exc}", reason_code="github_unreachable"
            ) from exc

        if response.status_code == 404:
            raise NotFoundError("GitHub resource", path)
        if response.status_code in {429, 403} and _looks_like_rate_limit(response):
            raise UpstreamUnavailableError(
                "GitHub API rate limited",
                reason_code="github_rate_limited",
                retry_after_s=_parse_retry_after((response.headers or {}).get("Retry-After")),
            )
        if response.status_code >= 500:
            raise UpstreamUnavailableError(
                f"GitHub API {response.status_code} response",
                reason_code=f"github_{response.status_code}",
            )
        if response.status_code >= 400:
            raise UpstreamUnavailableError(
                f"GitHub API rejected request with {response.status_code}",
                reason_code=f"github_{response.status_code}",
            )
        if not response.content:
            return {}
        return response.json()


def _change_from_row(repo: str, row: dict[str, Any], files: list[FileChange]) -> ChangeNode:
    labels = [
        str(label.get("name", "")) for label in row.get("labels", []) if isinstance(label, dict)
    ]
    if row.get("merged_at"):
        status = "merged"
    elif row.get("state") == "closed":
        status = "closed"
    elif row.get("draft"):
        status = "draft"
    else:
        status = "open"
    head = row.get("head") if isinstance(row.get("head"), dict) else {}
    base = row.get("base") if isinstance(row.get("base"), dict) else {}
    user = row.get("user") if isinstance(row.get("user"), dict) else {}
    body = str(row.get("body") or "")
    return ChangeNode(
        id=change_ref(repo, int(row["number"])),
        number=int(row["number"]),
        title=str(row.get("title", "")),
        branch=str(head.get("ref", "")),
        base_branch=str(base.get("ref", "")),
        author=str(user.get("login", "")),
        status=status,
        risk_level=risk_from_labels(labels),
        created_at=_parse_timestamp(row.get("created_at")),
        files_changed=[file.path for file in files],
        depends_on=parse_declared_dependencies(body),
        body=body,
    )


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _looks_like_rate_limit(response: requests.Response) -> bool:
    if response.status_code == 429:
        return True
    try:
        payload = response.json()
    except ValueError:
        return False
    message = str(payload.get("message", "")).lower() if isinstance(payload, dict) else ""
    return "rate limit" in message


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        parsed = float(value)
    except ValueError:
        return None
    return parsed if parsed >= 0 else None
