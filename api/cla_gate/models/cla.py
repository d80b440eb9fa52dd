"""Repo CLA configuration and pull request models for signing checks."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

MAX_LENGTH_OF_SHA = 8


def short_sha(sha: str) -> str:
    if len(sha) > MAX_LENGTH_OF_SHA:
        return sha[:MAX_LENGTH_OF_SHA]
    return sha


class CLARepoConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    org: str
    repo: str = ""  # empty: applies to every repo of the org
    cla_id: str = Field(min_length=1)
    check_by_committer: bool = False
    cla_label_yes: str = "cla/yes"
    cla_label_no: str = "cla/no"


class CLAConfiguration(BaseModel):
    """Snapshot of repo CLA configs, passed explicitly to each check."""

    model_config = ConfigDict(frozen=True)

    repos: tuple[CLARepoConfig, ...] = ()

    def cla_for(self, org: str, repo: str) -> Optional[CLARepoConfig]:
        org_wide: Optional[CLARepoConfig] = None
        for cfg in self.repos:
            if cfg.org != org:
                continue
            if cfg.repo == repo:
                return cfg
            if not cfg.repo and org_wide is None:
                org_wide = cfg
        return org_wide


class PRInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    platform: str = "github"
    org: str
    repo: str
    number: int
    author: str = ""
    title: str = ""

    def __str__(self) -> str:
        return f"{self.org}/{self.repo}#{self.number}"
