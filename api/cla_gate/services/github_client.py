"""GitHub API client used as the issue tracker for CLA checks.

REST wrapper with:
- optional token auth (GITHUB_TOKEN)
- rate-limit handling (sleep until reset when exhausted)
- basic ETag conditional requests + bounded LRU response cache for GETs
- PR commit listing, label and comment mutations
"""

from __future__ import annotations

import os
import time
from collections import OrderedDict
from typing import Any, Optional
from urllib.parse import quote

import httpx

from cla_gate.models.cla import PRInfo, short_sha
from cla_gate.services.errors import CLAGateError, ErrorCode

DEFAULT_CACHE_SIZE = 256


def tracker_error(status_code: int, url: str, text: str) -> CLAGateError:
    return CLAGateError(ErrorCode.TRACKER_ERROR, f"issue tracker API error {status_code} for {url}: {text[:200]}")


def _first_line(message: str) -> str:
    lines = (message or "").strip().splitlines()
    return lines[0] if lines else ""


class GitHubClient:
    def __init__(
        self,
        token: Optional[str] = None,
        base_url: str = "https://api.github.com",
        user_agent: str = "cla-gate/1.0",
        timeout: float = 20.0,
        cache_size: int = DEFAULT_CACHE_SIZE,
    ) -> None:
        env_token = os.getenv("GITHUB_TOKEN")
        if not env_token:
            env_token = os.getenv("GH_TOKEN")
        if env_token:
            env_token = env_token.strip() or None
        self._token = token or env_token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": user_agent,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._token:
            self._headers["Authorization"] = f"Bearer {self._token}"

        # url -> (etag, json), least recently used first
        self._cache: OrderedDict[str, tuple[str, Any]] = OrderedDict()
        self._cache_size = max(0, cache_size)

    def _auth_params(self) -> dict[str, str]:
        return {}

    def _url(self, path: str) -> str:
        return path if path.startswith("http") else f"{self._base_url}{path}"

    def _with_auth(self, url: str) -> str:
        # Merge into the existing query; httpx's params= replaces it.
        params = self._auth_params()
        if not params:
            return url
        return str(httpx.URL(url).copy_merge_params(params))

    def _sleep_for_rate_limit_if_needed(self, r: httpx.Response) -> None:
        remaining = r.headers.get("X-RateLimit-Remaining")
        reset = r.headers.get("X-RateLimit-Reset")
        try:
            rem_i = int(remaining) if remaining is not None else None
            reset_i = int(reset) if reset is not None else None
        except ValueError:
            rem_i, reset_i = None, None

        if rem_i == 0 and reset_i:
            now = int(time.time())
            delay = max(0, reset_i - now) + 1
            time.sleep(delay)

    def _request(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        h = dict(self._headers)
        if headers:
            h.update(headers)
        url = self._with_auth(url)
        with httpx.Client(timeout=self._timeout, headers=h) as client:
            r = client.request(method, url, json=json)
        self._sleep_for_rate_limit_if_needed(r)

        # If 403 is rate-limit, back off until reset then retry once.
        if r.status_code == 403 and r.headers.get("X-RateLimit-Remaining") == "0":
            self._sleep_for_rate_limit_if_needed(r)
            with httpx.Client(timeout=self._timeout, headers=h) as client:
                r = client.request(method, url, json=json)
        return r

    def _cached(self, url: str) -> Optional[tuple[str, Any]]:
        entry = self._cache.get(url)
        if entry is not None:
            self._cache.move_to_end(url)
        return entry

    def _remember(self, url: str, etag: str, data: Any) -> None:
        if self._cache_size == 0:
            return
        self._cache[url] = (etag, data)
        self._cache.move_to_end(url)
        while len(self._cache) > self._cache_size:
            self._cache.popitem(last=False)

    def get_json(self, path: str) -> Any:
        """GET JSON for a path or full URL. Uses ETag conditional requests when possible."""
        url = self._url(path)

        extra_headers: dict[str, str] = {}
        cached = self._cached(url)
        if cached is not None:
            extra_headers["If-None-Match"] = cached[0]

        try:
            r = self._request("GET", url, headers=extra_headers)
            if r.status_code == 304:
                cached = self._cached(url)
                if cached is not None:
                    return cached[1]
                # If cache was lost, retry without condition.
                r = self._request("GET", url, headers={})
        except httpx.HTTPError as exc:
            raise CLAGateError(ErrorCode.TRACKER_ERROR, f"issue tracker request failed for {url}: {exc}") from exc

        if r.status_code >= 400:
            raise tracker_error(r.status_code, url, r.text)

        data = r.json()
        new_etag = r.headers.get("ETag")
        if new_etag:
            self._remember(url, new_etag, data)
        return data

    def _send(self, method: str, path: str, json: Any = None, allow_not_found: bool = False) -> None:
        url = self._url(path)
        try:
            r = self._request(method, url, json=json)
        except httpx.HTTPError as exc:
            raise CLAGateError(ErrorCode.TRACKER_ERROR, f"issue tracker request failed for {url}: {exc}") from exc
        if r.status_code == 404 and allow_not_found:
            return
        if r.status_code >= 400:
            raise tracker_error(r.status_code, url, r.text)

    def _paginate(self, path: str, per_page: int, max_pages: int) -> list[dict]:
        sep = "&" if "?" in path else "?"
        out: list[dict] = []
        for page in range(1, max_pages + 1):
            data = self.get_json(f"{path}{sep}per_page={per_page}&page={page}")
            if not isinstance(data, list):
                break
            out.extend(data)
            if len(data) < per_page:
                break
        return out

    # --- endpoint layout (overridden by platforms with a GitHub-like API) ---

    def _commits_path(self, pr: PRInfo) -> str:
        return f"/repos/{pr.org}/{pr.repo}/pulls/{pr.number}/commits"

    def _labels_path(self, pr: PRInfo) -> str:
        return f"/repos/{pr.org}/{pr.repo}/issues/{pr.number}/labels"

    def _label_payload(self, label: str) -> Any:
        return {"labels": [label]}

    def _comments_path(self, pr: PRInfo) -> str:
        return f"/repos/{pr.org}/{pr.repo}/issues/{pr.number}/comments"

    def _comment_path(self, pr: PRInfo, comment_id: Any) -> str:
        return f"/repos/{pr.org}/{pr.repo}/issues/comments/{comment_id}"

    # --- issue tracker operations ---

    def list_pr_commits(self, pr: PRInfo, per_page: int = 100, max_pages: int = 3) -> list[dict]:
        """List PR commits in order. GitHub caps this endpoint at 250 commits."""
        return self._paginate(self._commits_path(pr), per_page, max_pages)

    def list_pr_comments(self, pr: PRInfo, per_page: int = 100, max_pages: int = 10) -> list[dict]:
        return self._paginate(self._comments_path(pr), per_page, max_pages)

    def get_unsigned_commits(self, pr: PRInfo, check_by_committer: bool, is_signed) -> dict[str, str]:
        role = "committer" if check_by_committer else "author"
        signed_cache: dict[str, bool] = {}
        unsigned: dict[str, str] = {}
        for item in self.list_pr_commits(pr):
            commit = item.get("commit") or {}
            email = str((commit.get(role) or {}).get("email") or "").strip()
            if email not in signed_cache:
                signed_cache[email] = bool(email) and is_signed(email)
            if signed_cache[email]:
                continue
            sha = short_sha(str(item.get("sha") or ""))
            if sha and sha not in unsigned:
                unsigned[sha] = _first_line(str(commit.get("message") or ""))
        return unsigned

    def add_pr_label(self, pr: PRInfo, label: str) -> None:
        self._send("POST", self._labels_path(pr), json=self._label_payload(label))

    def remove_pr_label(self, pr: PRInfo, label: str) -> None:
        self._send("DELETE", f"{self._labels_path(pr)}/{quote(label, safe='')}", allow_not_found=True)

    def create_pr_comment(self, pr: PRInfo, text: str) -> None:
        self._send("POST", self._comments_path(pr), json={"body": text})

    def delete_pr_comment(self, pr: PRInfo, matches) -> None:
        for comment in self.list_pr_comments(pr):
            if not matches(str(comment.get("body") or "")):
                continue
            self._send("DELETE", self._comment_path(pr, comment.get("id")), allow_not_found=True)
