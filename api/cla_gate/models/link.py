"""Link and CLA document models used by the link creation flow."""

from __future__ import annotations

import hashlib
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class ApplyTo(str, Enum):
    INDIVIDUAL = "individual"
    CORPORATION = "corporation"


class OrgRepo(BaseModel):
    """Scope of a link. Empty repo_id means the link covers the whole org."""

    model_config = ConfigDict(frozen=True)

    platform: str
    org_id: str
    repo_id: str = ""

    def __str__(self) -> str:
        if self.repo_id:
            return f"{self.platform}/{self.org_id}/{self.repo_id}"
        return f"{self.platform}/{self.org_id}"


class CLAField(BaseModel):
    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    type: str = "string"
    description: str = ""
    required: bool = False


class CLAInfo(BaseModel):
    """Read-only summary of a CLA document handed to the signing store."""

    model_config = ConfigDict(frozen=True)

    cla_lang: str
    cla_hash: str
    fields: list[CLAField] = Field(default_factory=list)


class CLACreateOption(BaseModel):
    url: str = ""
    text: str = ""
    language: str
    fields: list[CLAField] = Field(default_factory=list)
    # Uploaded separately from the JSON payload, never serialized.
    org_signature: Optional[bytes] = Field(default=None, exclude=True)

    def set_org_signature(self, data: Optional[bytes]) -> None:
        self.org_signature = data

    def gen_cla_info(self) -> CLAInfo:
        return CLAInfo(
            cla_lang=self.language,
            cla_hash=hashlib.sha256(self.text.encode("utf-8")).hexdigest(),
            fields=list(self.fields),
        )


class LinkCreateOption(BaseModel):
    platform: str = Field(min_length=1)
    org_id: str = Field(min_length=1)
    repo_id: str = ""
    org_email: EmailStr
    org_alias: str = ""
    individual_cla: Optional[CLACreateOption] = None
    corp_cla: Optional[CLACreateOption] = None

    def org_repo(self) -> OrgRepo:
        return OrgRepo(platform=self.platform.lower(), org_id=self.org_id, repo_id=self.repo_id)


class OrgInfo(BaseModel):
    org_repo: OrgRepo
    org_email: str
    org_alias: str = ""


class LinkRecord(BaseModel):
    link_id: str
    org_repo: OrgRepo
    org_email: str = ""
    org_alias: str = ""
    creator: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(from_attributes=True)
