"""Local files owned by the link flow: CLA texts, org signatures and scope lock files."""

from __future__ import annotations

import hashlib
import logging
import re
import shutil
from pathlib import Path
from typing import Optional

from cla_gate.models.link import ApplyTo, OrgRepo
from cla_gate.services import settings

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def _safe_component(value: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", value.strip())
    if cleaned in {"", ".", ".."}:
        return "_"
    return cleaned


def _root(base_dir: Optional[Path]) -> Path:
    return base_dir if base_dir is not None else settings.data_dir()


def gen_org_file_lock_path(org_repo: OrgRepo, base_dir: Optional[Path] = None) -> Path:
    """Deterministic lock path for a scope; different scopes never share a file."""
    scope = f"{org_repo.platform}/{org_repo.org_id}/{org_repo.repo_id}"
    digest = hashlib.sha256(scope.encode("utf-8")).hexdigest()[:32]
    return _root(base_dir) / "locks" / f"{_safe_component(org_repo.platform)}_{digest}.lock"


def link_dir(link_id: str, base_dir: Optional[Path] = None) -> Path:
    return _root(base_dir) / "cla" / _safe_component(link_id)


def gen_cla_file_path(link_id: str, apply_to: ApplyTo, language: str, base_dir: Optional[Path] = None) -> Path:
    return link_dir(link_id, base_dir) / f"{apply_to.value}_{_safe_component(language)}.txt"


def gen_org_signature_file_path(link_id: str, language: str, base_dir: Optional[Path] = None) -> Path:
    return link_dir(link_id, base_dir) / f"org_signature_{_safe_component(language)}.pdf"


def save_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def save_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def remove_link_files(link_id: str, base_dir: Optional[Path] = None) -> None:
    target = link_dir(link_id, base_dir)
    if not target.exists():
        return
    try:
        shutil.rmtree(target)
    except OSError as exc:
        logger.warning("link_files_cleanup_failed link_id=%s error=%s", link_id, exc)
