"""Pull request CLA check.

Every event recomputes the unsigned commits of a PR from scratch and drives the
PR's labels and guidance comment toward the matching state. Label and comment
calls are best effort: a failed call is logged and the next event (a new push
or a ``/check-cla`` comment) converges the PR again. Two events handled at the
same time for one PR may race on labels; the next check repairs that too.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Protocol

from cla_gate.adapters.signing_store import SigningStore
from cla_gate.models.cla import CLAConfiguration, CLARepoConfig, PRInfo, short_sha
from cla_gate.services.errors import CLAGateError, ErrorCode

logger = logging.getLogger(__name__)

SIGN_GUIDE_TITLE = (
    "Thanks for your pull request.\n\n"
    "The authors of the following commits have not signed the Contributor License Agreement (CLA):"
)
# Guidance comments posted by earlier releases start with this title.
SIGN_GUIDE_TITLE_OLD = (
    "Thanks for your pull request. Before we can look at your pull request, "
    "you'll need to sign a Contributor License Agreement (CLA)."
)
SIGN_GUIDE_TITLES = (SIGN_GUIDE_TITLE, SIGN_GUIDE_TITLE_OLD)

CHECK_CLA_RE = re.compile(r"(?mi)^\s*/check-cla\s*$")

IsSigned = Callable[[str], bool]
CommentMatcher = Callable[[str], bool]


class IssueTrackerClient(Protocol):
    def get_unsigned_commits(self, pr: PRInfo, check_by_committer: bool, is_signed: IsSigned) -> dict[str, str]:
        """Map short SHA -> commit message for every commit whose identity is unsigned."""
        ...

    def add_pr_label(self, pr: PRInfo, label: str) -> None:
        ...

    def remove_pr_label(self, pr: PRInfo, label: str) -> None:
        ...

    def create_pr_comment(self, pr: PRInfo, text: str) -> None:
        ...

    def delete_pr_comment(self, pr: PRInfo, matches: CommentMatcher) -> None:
        ...


def is_sign_guide(text: str) -> bool:
    return any(text.startswith(title) for title in SIGN_GUIDE_TITLES)


def is_check_cla_command(text: str) -> bool:
    return bool(CHECK_CLA_RE.search(text or ""))


def generate_unsigned_comment(commits: dict[str, str]) -> str:
    return "\n".join(f"**{short_sha(sha)}** | {msg}" for sha, msg in commits.items())


def join_sign_url(base: str, cla_id: str) -> str:
    return f"{base.rstrip('/')}/{cla_id.lstrip('/')}"


def sign_guide(sign_url: str, commits_info: str, faq_url: str) -> str:
    return (
        f"{SIGN_GUIDE_TITLE}\n\n"
        f"{commits_info}\n\n"
        f"Please check the [**FAQs**]({faq_url}) first.\n"
        f"You can click [**here**]({sign_url}) to sign the CLA. "
        'After signing the CLA, you must comment "/check-cla" to check the CLA status again.'
    )


def store_signed_predicate(store: SigningStore, cla_id: str) -> IsSigned:
    """Signing lookups that fail count as unsigned so the PR stays gated."""

    def is_signed(email: str) -> bool:
        try:
            return store.is_individual_signed(cla_id, email)
        except CLAGateError as exc:
            logger.warning("signing_lookup_failed cla_id=%s code=%s detail=%s", cla_id, exc.code.value, exc.detail)
            return False

    return is_signed


class CLAChecker:
    def __init__(
        self,
        client: IssueTrackerClient,
        store: SigningStore,
        sign_url: str,
        faq_of_checking_by_author: str,
        faq_of_checking_by_committer: str,
    ) -> None:
        self._client = client
        self._store = store
        self._sign_url = sign_url
        self._faq_by_author = faq_of_checking_by_author
        self._faq_by_committer = faq_of_checking_by_committer

    def handle(self, pr: PRInfo, labels: set[str], config: CLAConfiguration) -> bool:
        """Check one PR; returns True when every commit identity has signed.

        Raises CLAGateError(NO_CLA_CONFIG) before touching the PR when the repo
        has no CLA configured. Commit fetch failures propagate.
        """
        cfg = config.cla_for(pr.org, pr.repo)
        if cfg is None:
            raise CLAGateError(ErrorCode.NO_CLA_CONFIG, f"no cla config for this repo: {pr.org}/{pr.repo}")

        unsigned = self._client.get_unsigned_commits(
            pr, cfg.check_by_committer, store_signed_predicate(self._store, cfg.cla_id)
        )

        faq_url = self._faq_by_committer if cfg.check_by_committer else self._faq_by_author
        self._apply(pr, labels, cfg, unsigned, faq_url)

        logger.info("cla_checked pr=%s cla_id=%s unsigned=%s", pr, cfg.cla_id, len(unsigned))
        return not unsigned

    def _warn(self, pr: PRInfo, msg: str, exc: Exception) -> None:
        logger.warning("%s for %s, err:%s", msg, pr, exc)

    def _delete_sign_guide(self, pr: PRInfo) -> None:
        try:
            self._client.delete_pr_comment(pr, is_sign_guide)
        except Exception as exc:
            self._warn(pr, "Could not delete sign guide comment", exc)

    def _add_label(self, pr: PRInfo, label: str) -> None:
        try:
            self._client.add_pr_label(pr, label)
        except Exception as exc:
            self._warn(pr, f"Could not add {label} label", exc)

    def _remove_label(self, pr: PRInfo, label: str) -> None:
        try:
            self._client.remove_pr_label(pr, label)
        except Exception as exc:
            self._warn(pr, f"Could not remove {label} label", exc)

    def _apply(
        self,
        pr: PRInfo,
        labels: set[str],
        cfg: CLARepoConfig,
        unsigned: dict[str, str],
        faq_url: str,
    ) -> None:
        has_yes = cfg.cla_label_yes in labels
        has_no = cfg.cla_label_no in labels

        self._delete_sign_guide(pr)

        if not unsigned:
            if has_no:
                self._remove_label(pr, cfg.cla_label_no)
            if not has_yes:
                self._add_label(pr, cfg.cla_label_yes)
            return

        if has_yes:
            self._remove_label(pr, cfg.cla_label_yes)
        if not has_no:
            self._add_label(pr, cfg.cla_label_no)

        text = sign_guide(
            join_sign_url(self._sign_url, cfg.cla_id),
            generate_unsigned_comment(unsigned),
            faq_url,
        )
        try:
            self._client.create_pr_comment(pr, text)
        except Exception as exc:
            self._warn(pr, "Could not add unsigning comment", exc)
