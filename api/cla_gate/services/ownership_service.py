"""Ownership checks used to authorize link creation and removal.

Org owners come from a JSON file (``CLA_ORG_OWNERS_PATH``)::

    {"github/org-a": ["alice", "bob"], "gitee/org-b": ["carol"]}

The owner of a link is the user who created it.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Mapping, Protocol

from cla_gate.adapters.signing_store import SigningStore
from cla_gate.services import settings

logger = logging.getLogger(__name__)


def _org_key(platform: str, org_id: str) -> str:
    return f"{platform.strip().lower()}/{org_id.strip()}"


class OwnershipChecker(Protocol):
    def is_owner_of_org(self, user: str, platform: str, org_id: str) -> bool:
        ...

    def is_owner_of_link(self, user: str, link_id: str) -> bool:
        """Raises CLAGateError(NO_LINK) when the link does not exist."""
        ...


class StaticOwnershipChecker:
    def __init__(self, store: SigningStore, org_owners: Mapping[str, Iterable[str]] | None = None) -> None:
        self._store = store
        self._org_owners: dict[str, frozenset[str]] = {}
        for key, users in (org_owners or {}).items():
            platform, _, org_id = key.partition("/")
            self._org_owners[_org_key(platform, org_id)] = frozenset(str(u).strip() for u in users)

    def is_owner_of_org(self, user: str, platform: str, org_id: str) -> bool:
        if not user:
            return False
        return user in self._org_owners.get(_org_key(platform, org_id), frozenset())

    def is_owner_of_link(self, user: str, link_id: str) -> bool:
        record = self._store.get_link(link_id)
        return bool(user) and record.creator == user


def load_org_owners(path: str | None = None) -> dict[str, list[str]]:
    path = path if path is not None else settings.org_owners_path()
    if not path:
        return {}
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.warning("org_owners_file_missing path=%s", path)
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"org owners file must hold a JSON object: {path}")
    return {str(key): [str(u) for u in users] for key, users in data.items() if isinstance(users, list)}
