"""Environment-driven settings. Read on every call so tests can monkeypatch the env."""

from __future__ import annotations

import os
from pathlib import Path

_DEFAULT_SIGN_URL = "https://cla.example.com/sign"
_DEFAULT_FAQ_BY_AUTHOR = "https://cla.example.com/faq#checking-by-author"
_DEFAULT_FAQ_BY_COMMITTER = "https://cla.example.com/faq#checking-by-committer"
_DEFAULT_LANGUAGES = ("english", "chinese")
_DEFAULT_PLATFORMS = ("github", "gitee")


def _env_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if not raw:
        return default
    items = tuple(item.strip().lower() for item in raw.split(",") if item.strip())
    return items or default


def data_dir() -> Path:
    return Path(_env_str("CLA_DATA_DIR", "data")).resolve()


def database_url() -> str:
    return _env_str("CLA_DATABASE_URL") or _env_str("DATABASE_URL")


def repo_config_path() -> str:
    return _env_str("CLA_REPO_CONFIG_PATH")


def org_owners_path() -> str:
    return _env_str("CLA_ORG_OWNERS_PATH")


def sign_url() -> str:
    return _env_str("CLA_SIGN_URL", _DEFAULT_SIGN_URL)


def faq_of_checking_by_author() -> str:
    return _env_str("CLA_FAQ_BY_AUTHOR", _DEFAULT_FAQ_BY_AUTHOR)


def faq_of_checking_by_committer() -> str:
    return _env_str("CLA_FAQ_BY_COMMITTER", _DEFAULT_FAQ_BY_COMMITTER)


def supported_languages() -> tuple[str, ...]:
    return _env_list("CLA_SUPPORTED_LANGUAGES", _DEFAULT_LANGUAGES)


def supported_platforms() -> tuple[str, ...]:
    return _env_list("CLA_SUPPORTED_PLATFORMS", _DEFAULT_PLATFORMS)


def webhook_secret() -> str:
    return _env_str("CLA_WEBHOOK_SECRET")


def github_token() -> str | None:
    return _env_str("GITHUB_TOKEN") or _env_str("GH_TOKEN") or None


def gitee_token() -> str | None:
    return _env_str("GITEE_TOKEN") or None


def max_org_signature_bytes() -> int:
    raw = _env_str("CLA_MAX_ORG_SIGNATURE_BYTES", str(5 * 1024 * 1024))
    try:
        value = int(raw)
    except ValueError:
        return 5 * 1024 * 1024
    return max(1024, value)
