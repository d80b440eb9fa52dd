"""Pydantic models."""

from cla_gate.models.cla import CLAConfiguration, CLARepoConfig, PRInfo
from cla_gate.models.error import ErrorDetail
from cla_gate.models.link import (
    ApplyTo,
    CLACreateOption,
    CLAField,
    CLAInfo,
    LinkCreateOption,
    LinkRecord,
    OrgInfo,
    OrgRepo,
)

__all__ = [
    "ApplyTo",
    "CLAConfiguration",
    "CLACreateOption",
    "CLAField",
    "CLAInfo",
    "CLARepoConfig",
    "ErrorDetail",
    "LinkCreateOption",
    "LinkRecord",
    "OrgInfo",
    "OrgRepo",
    "PRInfo",
]
