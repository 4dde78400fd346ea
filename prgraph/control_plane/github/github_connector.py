"""Change-record provider contract, change refs, and factory helpers."""

from __future__ import annotations

import os
import re
from typing import Protocol

from prgraph.control_plane.github.github_auth import GitHubAuth, load_github_auth_from_env
from prgraph.control_plane.models.decomposition_contracts import FileChange
from prgraph.control_plane.models.graph_contracts import ChangeNode


CHANGE_REF_RE = re.compile(r"^(?P<repo>[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+)#(?P<number>\d+)$")
DECLARED_DEPENDENCY_RE = re.compile(
    r"\b(?:depends\s+on|blocked\s+by|requires)\s*:?\s*((?:#\d+[\s,]*(?:and\s+)?)+)",
    re.IGNORECASE,
)
RISK_LABEL_RE = re.compile(r"^risk[:/ -](?P<level>low|medium|high|critical)$", re.IGNORECASE)


class ChangeRecordProvider(Protocol):
    """Source of in-flight pull requests for a repository."""

    def list_open_changes(self, repo: str) -> list[ChangeNode]: ...

    def get_change(self, change_id: str) -> ChangeNode | None: ...

    def get_file_list(self, change_id: str) -> list[FileChange]: ...


def change_ref(repo: str, number: int) -> str:
    return f"{repo}#{number}"


def split_change_ref(change_id: str) -> tuple[str, int] | None:
    match = CHANGE_REF_RE.match(change_id.strip())
    if not match:
        return None
    return match.group("repo"), int(match.group("number"))


def parse_declared_dependencies(body: str) -> list[int]:
    """PR numbers named in "Depends on #12, #14" style lines of a PR body."""
    numbers: list[int] = []
    for match in DECLARED_DEPENDENCY_RE.finditer(body or ""):
        for ref in re.findall(r"#(\d+)", match.group(1)):
            number = int(ref)
            if number not in numbers:
                numbers.append(number)
    return numbers


def risk_from_labels(labels: list[str], default: str = "medium") -> str:
    for label in labels:
        match = RISK_LABEL_RE.match(label.strip())
        if match:
            return match.group("level").lower()
    return default


def build_connector_from_env(
    env: dict[str, str] | None = None,
    fetch_workers: int = 4,
) -> ChangeRecordProvider:
    env_map = os.environ if env is None else env
    connector_type = (env_map.get("PRGRAPH_GITHUB_CONNECTOR") or "in_memory").strip().lower()

    if connector_type == "api":
        from prgraph.control_plane.github.github_connector_api import GitHubAPIConnector

        auth = load_github_auth_from_env(env_map)
        return GitHubAPIConnector(auth=auth, fetch_workers=fetch_workers)

    if connector_type != "in_memory":
        raise ValueError(f"unknown_connector:{connector_type}")

    from prgraph.control_plane.github.github_connector_inmemory import InMemoryGitHubConnector

    return InMemoryGitHubConnector()


__all__ = [
    "ChangeRecordProvider",
    "GitHubAuth",
    "build_connector_from_env",
    "change_ref",
    "parse_declared_dependencies",
    "risk_from_labels",
    "split_change_ref",
]
