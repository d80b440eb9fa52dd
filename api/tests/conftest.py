"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cla_gate.models.cla import PRInfo, short_sha  # noqa: E402


class FakeTracker:
    """In-memory issue tracker that records every call made by the CLA checker."""

    def __init__(self, commits=None, labels=None, comments=None) -> None:
        self.commits: list[dict] = list(commits or [])
        self.labels: set[str] = set(labels or ())
        self.comments: list[str] = list(comments or ())
        self.calls: list[tuple] = []
        self.fail_on: set[str] = set()

    def _maybe_fail(self, name: str) -> None:
        if name in self.fail_on:
            raise RuntimeError(f"{name} failed")

    def get_unsigned_commits(self, pr: PRInfo, check_by_committer: bool, is_signed) -> dict[str, str]:
        self.calls.append(("get_unsigned_commits", pr.number, check_by_committer))
        self._maybe_fail("get_unsigned_commits")
        role = "committer_email" if check_by_committer else "author_email"
        unsigned: dict[str, str] = {}
        for commit in self.commits:
            if not is_signed(commit[role]):
                unsigned.setdefault(short_sha(commit["sha"]), commit["message"])
        return unsigned

    def add_pr_label(self, pr: PRInfo, label: str) -> None:
        self.calls.append(("add_pr_label", label))
        self._maybe_fail("add_pr_label")
        self.labels.add(label)

    def remove_pr_label(self, pr: PRInfo, label: str) -> None:
        self.calls.append(("remove_pr_label", label))
        self._maybe_fail("remove_pr_label")
        self.labels.discard(label)

    def create_pr_comment(self, pr: PRInfo, text: str) -> None:
        self.calls.append(("create_pr_comment",))
        self._maybe_fail("create_pr_comment")
        self.comments.append(text)

    def delete_pr_comment(self, pr: PRInfo, matches) -> None:
        self.calls.append(("delete_pr_comment",))
        self._maybe_fail("delete_pr_comment")
        self.comments = [c for c in self.comments if not matches(c)]


@pytest.fixture
def fake_tracker_cls() -> type[FakeTracker]:
    return FakeTracker


@pytest.fixture(autouse=True)
def _reset_app_state_between_tests(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    # Every test gets its own data dir, an in-memory store and no repo/owner config.
    for key in (
        "CLA_DATABASE_URL",
        "DATABASE_URL",
        "CLA_REPO_CONFIG_PATH",
        "CLA_ORG_OWNERS_PATH",
        "CLA_WEBHOOK_SECRET",
        "CLA_SUPPORTED_LANGUAGES",
        "CLA_SUPPORTED_PLATFORMS",
        "CLA_SIGN_URL",
        "GITHUB_TOKEN",
        "GH_TOKEN",
        "GITEE_TOKEN",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("CLA_DATA_DIR", str(tmp_path / "data"))

    from cla_gate.main import app, configure_app_state

    configure_app_state(app)
