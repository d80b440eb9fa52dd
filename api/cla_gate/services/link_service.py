"""Link creation and removal.

A link binds an org (or one repo of it) to an individual and/or corporate CLA.
Creation runs under an exclusive file lock derived from the scope, so two
concurrent requests for the same scope cannot both pass the existence check.
Different scopes lock different files and never wait on each other.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional
from uuid import uuid4

from cla_gate.adapters.signing_store import SigningStore
from cla_gate.models.link import ApplyTo, CLACreateOption, LinkCreateOption, LinkRecord, OrgInfo, OrgRepo
from cla_gate.services import file_lock, local_storage, settings
from cla_gate.services.errors import CLAGateError, ErrorCode, system_error
from cla_gate.services.ownership_service import OwnershipChecker

logger = logging.getLogger(__name__)


def gen_link_id(org_repo: OrgRepo) -> str:
    return f"{org_repo.platform}_{org_repo.org_id}-{uuid4().hex}"


def _validate_cla(
    cla: CLACreateOption,
    prefix: str,
    supported_languages: Iterable[str],
    require_org_signature: bool,
) -> None:
    cla.language = cla.language.strip().lower()
    if cla.language not in set(supported_languages):
        raise CLAGateError(
            ErrorCode.UNSUPPORTED_LANGUAGE,
            f"language '{cla.language}' is not supported",
            field=f"{prefix}.language",
        )
    if not cla.text.strip():
        raise CLAGateError(ErrorCode.INVALID_CLA, "CLA text must not be empty", field=f"{prefix}.text")

    seen: set[str] = set()
    for index, item in enumerate(cla.fields):
        if item.id in seen:
            raise CLAGateError(
                ErrorCode.DUPLICATE_FIELD,
                f"duplicate field id '{item.id}'",
                field=f"{prefix}.fields[{index}].id",
            )
        seen.add(item.id)

    if require_org_signature:
        if not cla.org_signature:
            raise CLAGateError(
                ErrorCode.MISSING_ORG_SIGNATURE,
                "corporate CLA requires the organization signature file",
                field=f"{prefix}.org_signature",
            )
        if len(cla.org_signature) > settings.max_org_signature_bytes():
            raise CLAGateError(
                ErrorCode.INVALID_CLA,
                "organization signature file is too large",
                field=f"{prefix}.org_signature",
            )


def validate_link_option(
    option: LinkCreateOption,
    supported_languages: Iterable[str],
    supported_platforms: Iterable[str],
) -> None:
    """Raise a field-level validation error for the first problem found."""
    option.platform = option.platform.strip().lower()
    if option.platform not in set(supported_platforms):
        raise CLAGateError(
            ErrorCode.UNSUPPORTED_PLATFORM,
            f"platform '{option.platform}' is not supported",
            field="platform",
        )
    if option.individual_cla is None and option.corp_cla is None:
        raise CLAGateError(
            ErrorCode.MISSING_CLA,
            "at least one of individual_cla and corp_cla is required",
            field="individual_cla",
        )
    languages = tuple(supported_languages)
    if option.individual_cla is not None:
        _validate_cla(option.individual_cla, "individual_cla", languages, require_org_signature=False)
    if option.corp_cla is not None:
        _validate_cla(option.corp_cla, "corp_cla", languages, require_org_signature=True)


def _write_local_files(option: LinkCreateOption, link_id: str, base_dir: Optional[Path]) -> None:
    try:
        cla = option.corp_cla
        if cla is not None:
            path = local_storage.gen_cla_file_path(link_id, ApplyTo.CORPORATION, cla.language, base_dir)
            local_storage.save_text(path, cla.text)
            path = local_storage.gen_org_signature_file_path(link_id, cla.language, base_dir)
            local_storage.save_bytes(path, cla.org_signature or b"")

        cla = option.individual_cla
        if cla is not None:
            path = local_storage.gen_cla_file_path(link_id, ApplyTo.INDIVIDUAL, cla.language, base_dir)
            local_storage.save_text(path, cla.text)
    except OSError as exc:
        raise system_error(f"failed to save CLA files: {exc}") from exc


def _initialize_signing(store: SigningStore, option: LinkCreateOption, link_id: str, org_info: OrgInfo) -> None:
    info = option.individual_cla.gen_cla_info() if option.individual_cla is not None else None
    store.initialize_individual_signing(link_id, info)

    info = option.corp_cla.gen_cla_info() if option.corp_cla is not None else None
    store.initialize_corp_signing(link_id, org_info, info)


def create_link(
    option: LinkCreateOption,
    acting_user: str,
    *,
    store: SigningStore,
    ownership: OwnershipChecker,
    org_signature: Optional[bytes] = None,
    supported_languages: Optional[Iterable[str]] = None,
    supported_platforms: Optional[Iterable[str]] = None,
    base_dir: Optional[Path] = None,
) -> LinkRecord:
    if option.corp_cla is not None:
        option.corp_cla.set_org_signature(org_signature)

    validate_link_option(
        option,
        supported_languages if supported_languages is not None else settings.supported_languages(),
        supported_platforms if supported_platforms is not None else settings.supported_platforms(),
    )

    if not ownership.is_owner_of_org(acting_user, option.platform, option.org_id):
        raise CLAGateError(ErrorCode.NOT_OWNER, f"{acting_user or 'anonymous'} is not an owner of {option.org_id}")

    org_repo = option.org_repo()
    lock_path = local_storage.gen_org_file_lock_path(org_repo, base_dir)
    try:
        file_lock.create_locked_file(lock_path)
    except OSError as exc:
        raise system_error(f"failed to create lock file: {exc}") from exc

    with file_lock.locked(lock_path):
        try:
            store.get_link_id(org_repo)
        except CLAGateError as exc:
            if exc.code != ErrorCode.NO_LINK:
                raise
        else:
            raise CLAGateError(ErrorCode.LINK_EXISTS, f"link already exists for {org_repo}")

        link_id = gen_link_id(org_repo)
        org_info = OrgInfo(org_repo=org_repo, org_email=str(option.org_email), org_alias=option.org_alias)
        try:
            _write_local_files(option, link_id, base_dir)
            _initialize_signing(store, option, link_id, org_info)
            record = store.create_link(link_id, org_info, acting_user)
        except Exception:
            # The link id is never handed out on failure, so its documents are unreachable.
            local_storage.remove_link_files(link_id, base_dir)
            raise

    logger.info(
        "link_created link_id=%s scope=%s creator=%s individual=%s corporation=%s",
        link_id,
        org_repo,
        acting_user,
        option.individual_cla is not None,
        option.corp_cla is not None,
    )
    return record


def unlink(link_id: str, acting_user: str, *, store: SigningStore, ownership: OwnershipChecker) -> None:
    if not ownership.is_owner_of_link(acting_user, link_id):
        raise CLAGateError(ErrorCode.NOT_OWNER, f"{acting_user or 'anonymous'} is not the owner of link {link_id}")
    store.unlink(link_id)
    logger.info("link_removed link_id=%s by=%s", link_id, acting_user)
