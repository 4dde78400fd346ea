from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import pytest
import requests

from prgraph.control_plane.errors import UpstreamUnavailableError
from prgraph.control_plane.github.github_auth import GitHubAuth, load_github_auth_from_env
from prgraph.control_plane.github.github_connector import (
    build_connector_from_env,
    parse_declared_dependencies,
    risk_from_labels,
    split_change_ref,
)
from prgraph.control_plane.github.github_connector_api import GitHubAPIConnector
from prgraph.control_plane.github.github_connector_inmemory import InMemoryGitHubConnector
from prgraph.control_plane.models.decomposition_contracts import FileChange
from prgraph.control_plane.models.graph_contracts import ChangeNode


@dataclass
class FakeResponse:
    status_code: int
    payload: Any
    headers: dict[str, str] | None = None

    @property
    def content(self) -> bytes:
        if self.payload is None:
            return b""
        return b"json"

    def json(self) -> Any:
        return self.payload


class FakeSession:
    def __init__(self, responses: list[FakeResponse | Exception]) -> None:
        self.responses = responses
        self.calls: list[dict[str, Any]] = []

    def request(self, **kwargs: Any) -> FakeResponse:
        self.calls.append(kwargs)
        if not self.responses:
            raise RuntimeError("No fake response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _pull(number: int, head: str, base: str, **extra: Any) -> dict[str, Any]:
    row = {
        "number": number,
        "title": f"Change {number}",
        "state": "open",
        "draft": False,
        "head": {"ref": head},
        "base": {"ref": base},
        "user": {"login": "octo"},
        "labels": [],
        "created_at": "2026-01-02T03:04:05Z",
        "body": "",
    }
    row.update(extra)
    return row


def test_build_connector_from_env_defaults_to_inmemory() -> None:
    assert isinstance(build_connector_from_env(env={}), InMemoryGitHubConnector)


def test_build_connector_from_env_explicit_empty_env_ignores_process(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("PRGRAPH_GITHUB_CONNECTOR", "api")
    assert isinstance(build_connector_from_env(env={}), InMemoryGitHubConnector)


def test_build_connector_from_env_api_and_unknown() -> None:
    connector = build_connector_from_env(
        env={"PRGRAPH_GITHUB_CONNECTOR": "api", "GITHUB_TOKEN": "ghp_abcdefgh1234"},
        fetch_workers=2,
    )
    assert isinstance(connector, GitHubAPIConnector)
    assert connector.fetch_workers == 2
    assert connector.auth.read_token == "ghp_abcdefgh1234"

    with pytest.raises(ValueError, match="unknown_connector:gitlab"):
        build_connector_from_env(env={"PRGRAPH_GITHUB_CONNECTOR": "gitlab"})


def test_auth_prefers_read_token_and_redacts() -> None:
    auth = load_github_auth_from_env(
        {"PRGRAPH_GITHUB_READ_TOKEN": " read-token-123 ", "PRGRAPH_GITHUB_TOKEN": "shared"}
    )
    assert auth.read_token == "read-token-123"
    assert auth.redacted() == {"read_token": "read...-123", "source": "PRGRAPH_GITHUB_READ_TOKEN"}

    anonymous = load_github_auth_from_env({"GITHUB_TOKEN": "  "})
    assert anonymous.authenticated is False
    assert anonymous.redacted() == {"read_token": "unset", "source": "none"}
    assert "Authorization" not in anonymous.request_headers()


def test_change_refs_and_declared_dependencies() -> None:
    assert split_change_ref("org/repo#12") == ("org/repo", 12)
    assert split_change_ref("not-a-ref") is None
    assert parse_declared_dependencies("Depends on #12, #14\nBlocked by #3 and #12") == [12, 14, 3]
    assert parse_declared_dependencies("Fixes #5") == []
    assert risk_from_labels(["bug", "risk:high"]) == "high"
    assert risk_from_labels(["bug"]) == "medium"


def test_api_connector_lists_open_changes_with_files() -> None:
    session = FakeSession(
        [
            FakeResponse(
                200,
                [
                    _pull(1, "feat-a", "main", labels=[{"name": "risk:low"}]),
                    _pull(2, "feat-b", "feat-a", draft=True, body="Depends on #1"),
                ],
            ),
            FakeResponse(
                200,
                [{"filename": "src/a.py", "status": "added", "additions": 10, "deletions": 0}],
            ),
            FakeResponse(
                200,
                [{"filename": "src/b.py", "status": "copied", "additions": 2, "deletions": 1}],
            ),
        ]
    )
    connector = GitHubAPIConnector(
        auth=GitHubAuth(read_token="token"),
        base_url="https://api.example.test/",
        session=session,
        fetch_workers=1,
    )

    changes = connector.list_open_changes("org/repo")

    assert [change.id for change in changes] == ["org/repo#1", "org/repo#2"]
    assert changes[0].risk_level == "low"
    assert changes[0].files_changed == ["src/a.py"]
    assert changes[0].created_at == datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert changes[1].status == "draft"
    assert changes[1].base_branch == "feat-a"
    assert changes[1].depends_on == [1]
    assert session.calls[0]["url"] == "https://api.example.test/repos/org/repo/pulls"
    assert session.calls[0]["params"] == {"state": "open", "per_page": "100", "page": "1"}
    assert session.calls[0]["headers"]["Authorization"] == "Bearer token"
    assert session.calls[2]["url"] == "https://api.example.test/repos/org/repo/pulls/2/files"


def test_api_connector_file_list_normalises_status() -> None:
    session = FakeSession(
        [FakeResponse(200, [{"filename": "x.py", "status": "copied", "additions": 1}, {"status": "added"}])]
    )
    connector = GitHubAPIConnector(session=session)

    assert connector.get_file_list("org/repo#4") == [FileChange(path="x.py", additions=1)]


def test_api_connector_get_change_returns_none_on_404() -> None:
    connector = GitHubAPIConnector(
        session=FakeSession([FakeResponse(404, {"message": "Not Found"})])
    )

    assert connector.get_change("org/repo#404") is None
    assert connector.get_change("garbage") is None


def test_api_connector_maps_upstream_failures() -> None:
    session = FakeSession(
        [
            FakeResponse(403, {"message": "API rate limit exceeded"}, headers={"Retry-After": "30"}),
            FakeResponse(502, {"message": "Bad gateway"}),
            requests.ConnectionError("down"),
        ]
    )
    connector = GitHubAPIConnector(session=session)

    reasons = []
    for _ in range(3):
        with pytest.raises(UpstreamUnavailableError) as excinfo:
            connector.list_open_changes("org/repo")
        reasons.append((excinfo.value.reason_code, excinfo.value.retry_after_s))

    assert reasons == [
        ("github_rate_limited", 30.0),
        ("github_502", None),
        ("github_unreachable", None),
    ]


def test_inmemory_connector_snapshot_and_outage() -> None:
    connector = InMemoryGitHubConnector()
    connector.load_snapshot(
        "org/repo",
        {
            "changes": [
                {"number": 1, "branch": "a", "files": [{"path": "src/a.py", "additions": 3}]},
                {"number": 2, "branch": "b", "status": "merged"},
                {"number": 3, "branch": "c", "body": "Requires #1"},
            ]
        },
    )
    connector.add_change(ChangeNode(id="org/repo#4", number=4, status="closed"))

    assert [change.id for change in connector.list_open_changes("org/repo")] == [
        "org/repo#1",
        "org/repo#3",
    ]
    assert connector.get_change("org/repo#3").depends_on == [1]
    assert connector.get_change("org/repo#1").files_changed == ["src/a.py"]
    assert connector.get_file_list("org/repo#1")[0].additions == 3
    assert connector.get_file_list("org/repo#99") == []

    connector.unavailable_repos.add("org/repo")
    with pytest.raises(UpstreamUnavailableError) as excinfo:
        connector.list_open_changes("org/repo")
    assert excinfo.value.reason_code == "github_unavailable"


def test_api_connector_get_change_fetches_metadata_only() -> None:
    session = FakeSession([FakeResponse(200, _pull(7, "feat-x", "main", body="Depends on #3"))])
    connector = GitHubAPIConnector(session=session)

    change = connector.get_change("org/repo#7")

    assert change is not None
    assert change.id == "org/repo#7"
    assert change.depends_on == [3]
    assert change.files_changed == []
    assert [call["url"] for call in session.calls] == ["https://api.github.com/repos/org/repo/pulls/7"]


class RoutingSession:
    """Answers by URL and records which threads used it."""

    def __init__(self) -> None:
        self.thread_ids: set[int] = set()

    def request(self, **kwargs: Any) -> FakeResponse:
        self.thread_ids.add(threading.get_ident())
        url = kwargs["url"]
        if url.endswith("/pulls"):
            return FakeResponse(200, [_pull(number, f"b{number}", "main") for number in (1, 2, 3, 4)])
        number = url.rsplit("/", 2)[-2]
        return FakeResponse(200, [{"filename": f"src/f{number}.py", "status": "modified"}])


def test_api_connector_gives_each_fetch_thread_its_own_session() -> None:
    created: list[RoutingSession] = []

    def factory() -> RoutingSession:
        session = RoutingSession()
        created.append(session)
        return session

    connector = GitHubAPIConnector(fetch_workers=2, session_factory=factory)

    changes = connector.list_open_changes("org/repo")

    assert [change.files_changed for change in changes] == [
        ["src/f1.py"],
        ["src/f2.py"],
        ["src/f3.py"],
        ["src/f4.py"],
    ]
    assert 2 <= len(created) <= 3
    assert all(len(session.thread_ids) == 1 for session in created)
    assert len({next(iter(session.thread_ids)) for session in created}) == len(created)
