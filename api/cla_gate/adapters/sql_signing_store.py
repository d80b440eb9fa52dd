"""SQL-backed SigningStore (PostgreSQL in production, SQLite for local runs and tests)."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Optional

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint, create_engine, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import NullPool

from cla_gate.adapters.signing_store import IndividualSigning, SigningState, no_link_error
from cla_gate.models.link import ApplyTo, CLAInfo, LinkRecord, OrgInfo, OrgRepo
from cla_gate.services.errors import CLAGateError, ErrorCode, system_error

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class LinkModel(Base):
    __tablename__ = "cla_links"
    __table_args__ = (UniqueConstraint("platform", "org_id", "repo_id", name="uq_cla_links_scope"),)

    link_id: Mapped[str] = mapped_column(String, primary_key=True)
    platform: Mapped[str] = mapped_column(String, nullable=False)
    org_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    repo_id: Mapped[str] = mapped_column(String, nullable=False, default="")
    org_email: Mapped[str] = mapped_column(String, nullable=False, default="")
    org_alias: Mapped[str] = mapped_column(String, nullable=False, default="")
    creator: Mapped[str] = mapped_column(String, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class SigningStateModel(Base):
    __tablename__ = "cla_signing_states"
    __table_args__ = (UniqueConstraint("link_id", "apply_to", name="uq_cla_signing_states_doc"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    link_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    apply_to: Mapped[str] = mapped_column(String, nullable=False)
    cla_info_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    org_info_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class IndividualSigningModel(Base):
    __tablename__ = "cla_individual_signings"
    __table_args__ = (UniqueConstraint("link_id", "email", name="uq_cla_individual_signings_email"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    link_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    email: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False, default="")
    signed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


def _create_engine(url: str):
    kwargs: dict[str, Any] = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        kwargs["poolclass"] = NullPool
    return create_engine(url, **kwargs)


def _dump(model: Optional[Any]) -> Optional[str]:
    if model is None:
        return None
    return json.dumps(model.model_dump(mode="json"), sort_keys=True)


def _to_record(row: LinkModel) -> LinkRecord:
    return LinkRecord(
        link_id=row.link_id,
        org_repo=OrgRepo(platform=row.platform, org_id=row.org_id, repo_id=row.repo_id),
        org_email=row.org_email,
        org_alias=row.org_alias,
        creator=row.creator,
        created_at=row.created_at,
    )


class SqlSigningStore:
    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise ValueError("database_url is required for SqlSigningStore")
        self.engine = _create_engine(database_url)
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False, expire_on_commit=False)
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except CLAGateError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("signing_store_error")
            raise system_error(f"signing store failure: {exc.__class__.__name__}") from exc
        finally:
            session.close()

    def _upsert_state(
        self,
        link_id: str,
        apply_to: ApplyTo,
        cla_info: Optional[CLAInfo],
        org_info: Optional[OrgInfo],
    ) -> None:
        with self._session() as session:
            row = session.scalars(
                select(SigningStateModel).where(
                    SigningStateModel.link_id == link_id,
                    SigningStateModel.apply_to == apply_to.value,
                )
            ).first()
            if row is None:
                row = SigningStateModel(link_id=link_id, apply_to=apply_to.value)
                session.add(row)
            row.cla_info_json = _dump(cla_info)
            row.org_info_json = _dump(org_info)
            row.updated_at = datetime.utcnow()

    def initialize_individual_signing(self, link_id: str, cla_info: Optional[CLAInfo]) -> None:
        self._upsert_state(link_id, ApplyTo.INDIVIDUAL, cla_info, None)

    def initialize_corp_signing(self, link_id: str, org_info: OrgInfo, cla_info: Optional[CLAInfo]) -> None:
        self._upsert_state(link_id, ApplyTo.CORPORATION, cla_info, org_info)

    def get_link_id(self, org_repo: OrgRepo) -> str:
        with self._session() as session:
            link_id = session.scalars(
                select(LinkModel.link_id).where(
                    LinkModel.platform == org_repo.platform,
                    LinkModel.org_id == org_repo.org_id,
                    LinkModel.repo_id == org_repo.repo_id,
                )
            ).first()
        if link_id is None:
            raise no_link_error(f"no link for {org_repo}")
        return link_id

    def create_link(self, link_id: str, org_info: OrgInfo, creator: str) -> LinkRecord:
        scope = org_info.org_repo
        row = LinkModel(
            link_id=link_id,
            platform=scope.platform,
            org_id=scope.org_id,
            repo_id=scope.repo_id,
            org_email=org_info.org_email,
            org_alias=org_info.org_alias,
            creator=creator,
            created_at=datetime.utcnow(),
        )
        try:
            with self._session() as session:
                session.add(row)
        except CLAGateError as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise CLAGateError(ErrorCode.LINK_EXISTS, f"link already exists for {scope}") from exc
            raise
        return _to_record(row)

    def unlink(self, link_id: str) -> None:
        with self._session() as session:
            row = session.get(LinkModel, link_id)
            if row is None:
                raise no_link_error(f"no link with id {link_id}")
            session.delete(row)

    def get_link(self, link_id: str) -> LinkRecord:
        with self._session() as session:
            row = session.get(LinkModel, link_id)
            if row is None:
                raise no_link_error(f"no link with id {link_id}")
            return _to_record(row)

    def list_links(self, creator: Optional[str] = None) -> list[LinkRecord]:
        stmt = select(LinkModel).order_by(LinkModel.created_at)
        if creator:
            stmt = stmt.where(LinkModel.creator == creator)
        with self._session() as session:
            return [_to_record(row) for row in session.scalars(stmt).all()]

    def get_signing_state(self, link_id: str, apply_to: ApplyTo) -> SigningState:
        with self._session() as session:
            row = session.scalars(
                select(SigningStateModel).where(
                    SigningStateModel.link_id == link_id,
                    SigningStateModel.apply_to == apply_to.value,
                )
            ).first()
            if row is None:
                raise no_link_error(f"{apply_to.value} signing is not initialized for {link_id}")
            return SigningState(
                link_id=row.link_id,
                apply_to=apply_to,
                cla_info=CLAInfo(**json.loads(row.cla_info_json)) if row.cla_info_json else None,
                org_info=OrgInfo(**json.loads(row.org_info_json)) if row.org_info_json else None,
            )

    def sign_individual(self, link_id: str, email: str, name: str = "") -> IndividualSigning:
        self.get_signing_state(link_id, ApplyTo.INDIVIDUAL)
        normalized = email.strip().lower()
        with self._session() as session:
            row = session.scalars(
                select(IndividualSigningModel).where(
                    IndividualSigningModel.link_id == link_id,
                    IndividualSigningModel.email == normalized,
                )
            ).first()
            if row is None:
                row = IndividualSigningModel(link_id=link_id, email=normalized, signed_at=datetime.utcnow())
                session.add(row)
            row.name = name
            return IndividualSigning(link_id=link_id, email=normalized, name=name, signed_at=row.signed_at)

    def is_individual_signed(self, cla_id: str, email: str) -> bool:
        self.get_signing_state(cla_id, ApplyTo.INDIVIDUAL)
        with self._session() as session:
            found = session.scalars(
                select(IndividualSigningModel.id).where(
                    IndividualSigningModel.link_id == cla_id,
                    IndividualSigningModel.email == email.strip().lower(),
                )
            ).first()
        return found is not None
