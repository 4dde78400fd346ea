"""Read-only GitHub credentials for listing pull requests."""

from __future__ import annotations

import os
from dataclasses import dataclass

TOKEN_ENV_VARS = ("PRGRAPH_GITHUB_READ_TOKEN", "PRGRAPH_GITHUB_TOKEN", "GITHUB_TOKEN")
API_VERSION = "2022-11-28"


@dataclass(frozen=True)
class GitHubAuth:
    read_token: str | None
    source: str = ""

    @property
    def authenticated(self) -> bool:
        return self.read_token is not None

    def request_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        if self.read_token:
            headers["Authorization"] = f"Bearer {self.read_token}"
        return headers

    def redacted(self) -> dict[str, str]:
        token = self.read_token
        if token is None:
            shown = "unset"
        elif len(token) <= 8:
            shown = "***"
        else:
            shown = f"{token[:4]}...{token[-4:]}"
        return {"read_token": shown, "source": self.source or "none"}


def load_github_auth_from_env(env: dict[str, str] | None = None) -> GitHubAuth:
    """First non-blank token wins, in ``TOKEN_ENV_VARS`` order."""
    env_map = os.environ if env is None else env
    for name in TOKEN_ENV_VARS:
        token = (env_map.get(name) or "").strip()
        if token:
            return GitHubAuth(read_token=token, source=name)
    return GitHubAuth(read_token=None)
