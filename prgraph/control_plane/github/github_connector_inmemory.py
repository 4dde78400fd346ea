"""In-memory change-record provider for deterministic tests and snapshots."""

from __future__ import annotations

from typing import Any

from prgraph.control_plane.errors import UpstreamUnavailableError
from prgraph.control_plane.github.github_connector import (
    change_ref,
    parse_declared_dependencies,
    split_change_ref,
)
from prgraph.control_plane.models.decomposition_contracts import FileChange
from prgraph.control_plane.models.graph_contracts import ChangeNode


class InMemoryGitHubConnector:
    """Holds pull requests per repository; ``unavailable_repos`` simulate outages."""

    def __init__(self) -> None:
        self.changes: dict[str, dict[str, ChangeNode]] = {}
        self.files: dict[str, list[FileChange]] = {}
        self.unavailable_repos: set[str] = set()
        self.list_calls: dict[str, int] = {}

    def add_change(self, change: ChangeNode, files: list[FileChange] | None = None) -> ChangeNode:
        parsed = split_change_ref(change.id)
        if parsed is None:
            raise ValueError(f"Unsupported change ref: {change.id}")
        repo, _ = parsed
        if files is not None and not change.files_changed:
            change = change.model_copy(update={"files_changed": [file.path for file in files]})
        self.changes.setdefault(repo, {})[change.id] = change
        if files is not None:
            self.files[change.id] = list(files)
        return change

    def load_snapshot(self, repo: str, payload: dict[str, Any]) -> list[ChangeNode]:
        """Load ``{"changes": [...]}`` rows as written by ``prgraph`` snapshot files."""
        loaded: list[ChangeNode] = []
        for row in payload.get("changes", []):
            if not isinstance(row, dict):
                continue
            fields = dict(row)
            files = [FileChange.model_validate(item) for item in fields.pop("files", []) or []]
            number = int(fields.get("number", 0) or 0)
            fields.setdefault("id", change_ref(repo, number))
            if "depends_on" not in fields and fields.get("body"):
                fields["depends_on"] = parse_declared_dependencies(str(fields["body"]))
            loaded.append(
                self.add_change(ChangeNode.model_validate(fields), files=files or None)
            )
        return loaded

    def list_open_changes(self, repo: str) -> list[ChangeNode]:
        self.list_calls[repo] = self.list_calls.get(repo, 0) + 1
        if repo in self.unavailable_repos:
            raise UpstreamUnavailableError(
                f"Change records for {repo} are unavailable", reason_code="github_unavailable"
            )
        return [
            change
            for change in self.changes.get(repo, {}).values()
            if change.status in {"open", "draft"}
        ]

    def get_change(self, change_id: str) -> ChangeNode | None:
        parsed = split_change_ref(change_id)
        if parsed is None:
            return None
        return self.changes.get(parsed[0], {}).get(change_id)

    def get_file_list(self, change_id: str) -> list[FileChange]:
        if change_id in self.files:
            return list(self.files[change_id])
        change = self.get_change(change_id)
        if change is None:
            return []
        return [FileChange(path=path) for path in change.files_changed]
