"""Turn code-hosting webhook deliveries into CLA check requests."""

from __future__ import annotations

import hashlib
import hmac
from typing import Any, Optional

from pydantic import BaseModel

from cla_gate.models.cla import PRInfo
from cla_gate.services.cla_check_service import is_check_cla_command

_GITHUB_PR_ACTIONS = {"opened", "reopened", "synchronize"}
_GITEE_PR_ACTIONS = {"open", "reopen", "update"}
_GITEE_SOURCE_BRANCH_CHANGED = "source_branch_changed"


class CheckRequest(BaseModel):
    pr: PRInfo
    labels: set[str]


def verify_github_signature(secret: str, body: bytes, signature: str) -> bool:
    if not signature.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature.split("=", 1)[1])


def verify_gitee_token(secret: str, token: str) -> bool:
    return hmac.compare_digest(secret, token)


def _label_names(rows: Any) -> set[str]:
    if not isinstance(rows, list):
        return set()
    return {str(row.get("name")) for row in rows if isinstance(row, dict) and row.get("name")}


def _pr_number(item: dict) -> Optional[int]:
    try:
        return int(item["number"])
    except (KeyError, TypeError, ValueError):
        return None


def _github_pr(payload: dict, number: int, title: str, author: str) -> PRInfo:
    repository = payload.get("repository") or {}
    return PRInfo(
        platform="github",
        org=str((repository.get("owner") or {}).get("login") or ""),
        repo=str(repository.get("name") or ""),
        number=number,
        author=author,
        title=title,
    )


def parse_github_event(event: str, payload: dict) -> Optional[CheckRequest]:
    if event == "pull_request":
        if payload.get("action") not in _GITHUB_PR_ACTIONS:
            return None
        pr = payload.get("pull_request") or {}
        if pr.get("state", "open") != "open":
            return None
        number = _pr_number(pr)
        if number is None:
            return None
        info = _github_pr(payload, number, str(pr.get("title") or ""), str((pr.get("user") or {}).get("login") or ""))
        return CheckRequest(pr=info, labels=_label_names(pr.get("labels")))

    if event == "issue_comment":
        issue = payload.get("issue") or {}
        if payload.get("action") != "created" or "pull_request" not in issue:
            return None
        if issue.get("state", "open") != "open":
            return None
        if not is_check_cla_command(str((payload.get("comment") or {}).get("body") or "")):
            return None
        number = _pr_number(issue)
        if number is None:
            return None
        info = _github_pr(payload, number, str(issue.get("title") or ""), str((issue.get("user") or {}).get("login") or ""))
        return CheckRequest(pr=info, labels=_label_names(issue.get("labels")))

    return None


def _gitee_pr(payload: dict, pr: dict) -> Optional[PRInfo]:
    number = _pr_number(pr)
    if number is None:
        return None
    repository = payload.get("repository") or payload.get("project") or {}
    return PRInfo(
        platform="gitee",
        org=str(repository.get("namespace") or ""),
        repo=str(repository.get("path") or ""),
        number=number,
        author=str((pr.get("user") or {}).get("login") or ""),
        title=str(pr.get("title") or ""),
    )


def _gitee_check(payload: dict, pr: dict) -> Optional[CheckRequest]:
    if pr.get("state", "open") != "open":
        return None
    info = _gitee_pr(payload, pr)
    if info is None:
        return None
    return CheckRequest(pr=info, labels=_label_names(pr.get("labels")))


def parse_gitee_event(event: str, payload: dict) -> Optional[CheckRequest]:
    if event == "Merge Request Hook":
        action = payload.get("action")
        if action not in _GITEE_PR_ACTIONS:
            return None
        # Gitee sends "update" for every change, including our own label edits.
        if action == "update" and payload.get("action_desc") != _GITEE_SOURCE_BRANCH_CHANGED:
            return None
        return _gitee_check(payload, payload.get("pull_request") or {})

    if event == "Note Hook":
        if payload.get("noteable_type") != "PullRequest":
            return None
        if not is_check_cla_command(str((payload.get("comment") or {}).get("body") or "")):
            return None
        return _gitee_check(payload, payload.get("pull_request") or {})

    return None
