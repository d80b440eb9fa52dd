from __future__ import annotations

import hashlib
import hmac
import json

import pytest
from httpx import ASGITransport, AsyncClient

from cla_gate.adapters.signing_store import InMemorySigningStore
from cla_gate.main import app
from cla_gate.models.cla import CLAConfiguration, CLARepoConfig
from cla_gate.services.webhook_service import parse_gitee_event, parse_github_event


def _github_pr_event(action: str = "opened", labels: list[str] | None = None) -> dict:
    return {
        "action": action,
        "pull_request": {
            "number": 12,
            "state": "open",
            "title": "Add feature",
            "user": {"login": "dev"},
            "labels": [{"name": name} for name in labels or []],
        },
        "repository": {"name": "repo1", "owner": {"login": "orgA"}},
    }


def _github_comment_event(body: str = "/check-cla") -> dict:
    return {
        "action": "created",
        "issue": {"number": 12, "state": "open", "pull_request": {}, "labels": [{"name": "cla/no"}]},
        "comment": {"body": body},
        "repository": {"name": "repo1", "owner": {"login": "orgA"}},
    }


def _install(fake_tracker_cls, commits=None, platform: str = "github", org: str = "orgA"):
    store = InMemorySigningStore()
    store.initialize_individual_signing("cla-1", None)
    tracker = fake_tracker_cls(commits=commits or [])
    app.state.signing_store = store
    app.state.tracker_clients = {platform: tracker}
    app.state.cla_config = CLAConfiguration(repos=(CLARepoConfig(org=org, repo="repo1", cla_id="cla-1"),))
    return store, tracker


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_pull_request_event_runs_check(fake_tracker_cls) -> None:
    _, tracker = _install(fake_tracker_cls, commits=[{"sha": "abcdef1234", "author_email": "a@x.com", "committer_email": "a@x.com", "message": "m"}])

    async with _client() as client:
        resp = await client.post(
            "/api/webhooks/github",
            content=json.dumps(_github_pr_event()),
            headers={"X-GitHub-Event": "pull_request"},
        )

    assert resp.status_code == 200
    assert resp.json() == {"status": "checked", "pr": "orgA/repo1#12", "all_signed": False}
    assert tracker.labels == {"cla/no"}
    assert len(tracker.comments) == 1


@pytest.mark.asyncio
async def test_check_cla_comment_after_signing_flips_label(fake_tracker_cls) -> None:
    store, tracker = _install(fake_tracker_cls, commits=[{"sha": "abcdef1234", "author_email": "a@x.com", "committer_email": "a@x.com", "message": "m"}])
    tracker.labels = {"cla/no"}
    store.sign_individual("cla-1", "a@x.com")

    async with _client() as client:
        resp = await client.post(
            "/api/webhooks/github",
            content=json.dumps(_github_comment_event()),
            headers={"X-GitHub-Event": "issue_comment"},
        )

    assert resp.json()["all_signed"] is True
    assert tracker.labels == {"cla/yes"}


@pytest.mark.asyncio
async def test_unrelated_events_are_ignored(fake_tracker_cls) -> None:
    _, tracker = _install(fake_tracker_cls)

    async with _client() as client:
        closed = await client.post(
            "/api/webhooks/github",
            content=json.dumps(_github_pr_event(action="closed")),
            headers={"X-GitHub-Event": "pull_request"},
        )
        chatter = await client.post(
            "/api/webhooks/github",
            content=json.dumps(_github_comment_event(body="looks good")),
            headers={"X-GitHub-Event": "issue_comment"},
        )
        push = await client.post("/api/webhooks/github", content="{}", headers={"X-GitHub-Event": "push"})

    assert closed.json()["status"] == "ignored"
    assert chatter.json()["status"] == "ignored"
    assert push.json() == {"status": "ignored", "event": "push"}
    assert tracker.calls == []


@pytest.mark.asyncio
async def test_repo_without_cla_config_is_404(fake_tracker_cls) -> None:
    _, tracker = _install(fake_tracker_cls, org="someone-else")

    async with _client() as client:
        resp = await client.post(
            "/api/webhooks/github",
            content=json.dumps(_github_pr_event()),
            headers={"X-GitHub-Event": "pull_request"},
        )

    assert resp.status_code == 404
    assert resp.json()["error_code"] == "no_cla_config"
    assert tracker.calls == []


@pytest.mark.asyncio
async def test_github_signature_is_enforced_when_secret_set(fake_tracker_cls, monkeypatch) -> None:
    monkeypatch.setenv("CLA_WEBHOOK_SECRET", "s3cret")
    _install(fake_tracker_cls)
    body = json.dumps(_github_pr_event()).encode("utf-8")
    good = "sha256=" + hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()

    async with _client() as client:
        rejected = await client.post(
            "/api/webhooks/github",
            content=body,
            headers={"X-GitHub-Event": "pull_request", "X-Hub-Signature-256": "sha256=deadbeef"},
        )
        accepted = await client.post(
            "/api/webhooks/github",
            content=body,
            headers={"X-GitHub-Event": "pull_request", "X-Hub-Signature-256": good},
        )

    assert rejected.status_code == 401
    assert accepted.status_code == 200
    assert accepted.json()["all_signed"] is True


@pytest.mark.asyncio
async def test_invalid_json_and_unknown_platform(fake_tracker_cls) -> None:
    _install(fake_tracker_cls)

    async with _client() as client:
        bad = await client.post("/api/webhooks/github", content="{not json", headers={"X-GitHub-Event": "pull_request"})
        unknown = await client.post("/api/webhooks/gitlab", content="{}")

    assert bad.status_code == 400
    assert unknown.status_code == 404


@pytest.mark.asyncio
async def test_gitee_merge_request_hook(fake_tracker_cls, monkeypatch) -> None:
    monkeypatch.setenv("CLA_WEBHOOK_SECRET", "tok")
    _, tracker = _install(fake_tracker_cls, platform="gitee")
    payload = {
        "action": "open",
        "pull_request": {"number": 3, "state": "open", "title": "t", "user": {"login": "dev"}, "labels": []},
        "repository": {"namespace": "orgA", "path": "repo1"},
    }

    async with _client() as client:
        wrong = await client.post(
            "/api/webhooks/gitee",
            content=json.dumps(payload),
            headers={"X-Gitee-Event": "Merge Request Hook", "X-Gitee-Token": "nope"},
        )
        resp = await client.post(
            "/api/webhooks/gitee",
            content=json.dumps(payload),
            headers={"X-Gitee-Event": "Merge Request Hook", "X-Gitee-Token": "tok"},
        )

    assert wrong.status_code == 401
    assert resp.json() == {"status": "checked", "pr": "orgA/repo1#3", "all_signed": True}
    assert tracker.labels == {"cla/yes"}


def test_parse_github_event_reads_labels_and_scope() -> None:
    check = parse_github_event("pull_request", _github_pr_event(action="synchronize", labels=["cla/no", "bug"]))

    assert check is not None
    assert (check.pr.org, check.pr.repo, check.pr.number) == ("orgA", "repo1", 12)
    assert check.pr.author == "dev"
    assert check.labels == {"cla/no", "bug"}


def test_parse_github_comment_on_plain_issue_is_ignored() -> None:
    event = _github_comment_event()
    del event["issue"]["pull_request"]

    assert parse_github_event("issue_comment", event) is None


def test_parse_gitee_note_hook() -> None:
    payload = {
        "noteable_type": "PullRequest",
        "comment": {"body": "/check-cla"},
        "pull_request": {"number": 4, "state": "open", "labels": [{"name": "cla/no"}]},
        "repository": {"namespace": "orgA", "path": "repo1"},
    }

    check = parse_gitee_event("Note Hook", payload)

    assert check is not None
    assert check.pr.platform == "gitee"
    assert check.labels == {"cla/no"}
    assert parse_gitee_event("Note Hook", {**payload, "noteable_type": "Issue"}) is None


def test_events_without_pr_number_are_ignored() -> None:
    pr_event = _github_pr_event()
    del pr_event["pull_request"]["number"]
    comment_event = _github_comment_event()
    comment_event["issue"]["number"] = "not-a-number"
    gitee_event = {"action": "open", "pull_request": {"state": "open"}, "repository": {"namespace": "orgA", "path": "repo1"}}

    assert parse_github_event("pull_request", pr_event) is None
    assert parse_github_event("issue_comment", comment_event) is None
    assert parse_gitee_event("Merge Request Hook", gitee_event) is None


@pytest.mark.asyncio
async def test_malformed_delivery_is_ignored_not_500(fake_tracker_cls) -> None:
    _, tracker = _install(fake_tracker_cls)
    event = _github_pr_event()
    del event["pull_request"]["number"]

    async with _client() as client:
        resp = await client.post("/api/webhooks/github", content=json.dumps(event), headers={"X-GitHub-Event": "pull_request"})

    assert resp.status_code == 200
    assert resp.json()["status"] == "ignored"
    assert tracker.calls == []


@pytest.mark.parametrize(
    ("action_desc", "checked"),
    [("source_branch_changed", True), ("update_label", False), (None, False)],
)
def test_gitee_update_only_checks_new_pushes(action_desc, checked: bool) -> None:
    payload = {
        "action": "update",
        "pull_request": {"number": 5, "state": "open", "labels": [{"name": "cla/no"}]},
        "repository": {"namespace": "orgA", "path": "repo1"},
    }
    if action_desc is not None:
        payload["action_desc"] = action_desc

    assert (parse_gitee_event("Merge Request Hook", payload) is not None) is checked
