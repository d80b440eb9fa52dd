"""Gitee API (v5) client. Same operations as GitHubClient; different endpoints and auth."""

from __future__ import annotations

import os
from typing import Any, Optional

from cla_gate.models.cla import PRInfo
from cla_gate.services.github_client import DEFAULT_CACHE_SIZE, GitHubClient


class GiteeClient(GitHubClient):
    def __init__(
        self,
        token: Optional[str] = None,
        base_url: str = "https://gitee.com/api/v5",
        user_agent: str = "cla-gate/1.0",
        timeout: float = 20.0,
        cache_size: int = DEFAULT_CACHE_SIZE,
    ) -> None:
        env_token = (os.getenv("GITEE_TOKEN") or "").strip() or None
        # Gitee takes the token as a query parameter, never as a bearer header.
        super().__init__(token="", base_url=base_url, user_agent=user_agent, timeout=timeout, cache_size=cache_size)
        self._headers.pop("Authorization", None)
        self._headers.pop("X-GitHub-Api-Version", None)
        self._headers["Accept"] = "application/json"
        self._gitee_token = token or env_token

    def _auth_params(self) -> dict[str, str]:
        if self._gitee_token:
            return {"access_token": self._gitee_token}
        return {}

    def _labels_path(self, pr: PRInfo) -> str:
        return f"/repos/{pr.org}/{pr.repo}/pulls/{pr.number}/labels"

    def _label_payload(self, label: str) -> Any:
        return [label]

    def _comments_path(self, pr: PRInfo) -> str:
        return f"/repos/{pr.org}/{pr.repo}/pulls/{pr.number}/comments"

    def _comment_path(self, pr: PRInfo, comment_id: Any) -> str:
        return f"/repos/{pr.org}/{pr.repo}/pulls/comments/{comment_id}"
