"""SigningStore abstraction + in-memory backend.

The store owns link records and signing records keyed by (link_id, identity).
Link ids double as the ``cla_id`` referenced by repo CLA configs.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Optional, Protocol

from pydantic import BaseModel, Field

from cla_gate.models.link import ApplyTo, CLAInfo, LinkRecord, OrgInfo, OrgRepo
from cla_gate.services.errors import CLAGateError, ErrorCode


def _email_key(email: str) -> str:
    return email.strip().lower()


def no_link_error(detail: str) -> CLAGateError:
    return CLAGateError(ErrorCode.NO_LINK, detail)


class SigningState(BaseModel):
    """Per-document signing state initialized when a link is created."""

    link_id: str
    apply_to: ApplyTo
    cla_info: Optional[CLAInfo] = None
    org_info: Optional[OrgInfo] = None


class IndividualSigning(BaseModel):
    link_id: str
    email: str
    name: str = ""
    signed_at: datetime = Field(default_factory=datetime.utcnow)


class SigningStore(Protocol):
    """Protocol for signing storage. Implementations: InMemorySigningStore, SqlSigningStore."""

    def initialize_individual_signing(self, link_id: str, cla_info: Optional[CLAInfo]) -> None:
        ...

    def initialize_corp_signing(self, link_id: str, org_info: OrgInfo, cla_info: Optional[CLAInfo]) -> None:
        ...

    def get_link_id(self, org_repo: OrgRepo) -> str:
        """Return the link id for a scope. Raises CLAGateError(NO_LINK) when there is none."""
        ...

    def create_link(self, link_id: str, org_info: OrgInfo, creator: str) -> LinkRecord:
        ...

    def unlink(self, link_id: str) -> None:
        ...

    def get_link(self, link_id: str) -> LinkRecord:
        ...

    def list_links(self, creator: Optional[str] = None) -> list[LinkRecord]:
        ...

    def get_signing_state(self, link_id: str, apply_to: ApplyTo) -> SigningState:
        ...

    def sign_individual(self, link_id: str, email: str, name: str = "") -> IndividualSigning:
        ...

    def is_individual_signed(self, cla_id: str, email: str) -> bool:
        ...


class InMemorySigningStore:
    """In-memory SigningStore. Safe to share between request threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._links: dict[str, LinkRecord] = {}
        self._link_by_scope: dict[OrgRepo, str] = {}
        self._states: dict[tuple[str, ApplyTo], SigningState] = {}
        self._individuals: dict[tuple[str, str], IndividualSigning] = {}

    def initialize_individual_signing(self, link_id: str, cla_info: Optional[CLAInfo]) -> None:
        with self._lock:
            self._states[(link_id, ApplyTo.INDIVIDUAL)] = SigningState(
                link_id=link_id, apply_to=ApplyTo.INDIVIDUAL, cla_info=cla_info
            )

    def initialize_corp_signing(self, link_id: str, org_info: OrgInfo, cla_info: Optional[CLAInfo]) -> None:
        with self._lock:
            self._states[(link_id, ApplyTo.CORPORATION)] = SigningState(
                link_id=link_id, apply_to=ApplyTo.CORPORATION, cla_info=cla_info, org_info=org_info
            )

    def get_link_id(self, org_repo: OrgRepo) -> str:
        with self._lock:
            link_id = self._link_by_scope.get(org_repo)
        if link_id is None:
            raise no_link_error(f"no link for {org_repo}")
        return link_id

    def create_link(self, link_id: str, org_info: OrgInfo, creator: str) -> LinkRecord:
        record = LinkRecord(
            link_id=link_id,
            org_repo=org_info.org_repo,
            org_email=org_info.org_email,
            org_alias=org_info.org_alias,
            creator=creator,
        )
        with self._lock:
            if org_info.org_repo in self._link_by_scope:
                raise CLAGateError(ErrorCode.LINK_EXISTS, f"link already exists for {org_info.org_repo}")
            self._links[link_id] = record
            self._link_by_scope[org_info.org_repo] = link_id
        return record

    def unlink(self, link_id: str) -> None:
        with self._lock:
            record = self._links.pop(link_id, None)
            if record is None:
                raise no_link_error(f"no link with id {link_id}")
            self._link_by_scope.pop(record.org_repo, None)

    def get_link(self, link_id: str) -> LinkRecord:
        with self._lock:
            record = self._links.get(link_id)
        if record is None:
            raise no_link_error(f"no link with id {link_id}")
        return record

    def list_links(self, creator: Optional[str] = None) -> list[LinkRecord]:
        with self._lock:
            rows = list(self._links.values())
        if creator:
            rows = [row for row in rows if row.creator == creator]
        return sorted(rows, key=lambda row: row.created_at)

    def get_signing_state(self, link_id: str, apply_to: ApplyTo) -> SigningState:
        with self._lock:
            state = self._states.get((link_id, apply_to))
        if state is None:
            raise no_link_error(f"{apply_to.value} signing is not initialized for {link_id}")
        return state

    def sign_individual(self, link_id: str, email: str, name: str = "") -> IndividualSigning:
        self.get_signing_state(link_id, ApplyTo.INDIVIDUAL)
        signing = IndividualSigning(link_id=link_id, email=_email_key(email), name=name)
        with self._lock:
            self._individuals[(link_id, signing.email)] = signing
        return signing

    def is_individual_signed(self, cla_id: str, email: str) -> bool:
        self.get_signing_state(cla_id, ApplyTo.INDIVIDUAL)
        with self._lock:
            return (cla_id, _email_key(email)) in self._individuals
