"""Closed error taxonomy shared by the link flow, the signing store and the CLA check.

Every failure is a ``CLAGateError`` carrying an ``ErrorCode``. Each code belongs to
exactly one ``ErrorKind``; the HTTP layer maps kinds to status codes and callers
match specific failures by comparing ``err.code``.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    SYSTEM = "system"


class ErrorCode(str, Enum):
    INVALID_PAYLOAD = "invalid_payload"
    MISSING_CLA = "missing_cla"
    INVALID_CLA = "invalid_cla"
    UNSUPPORTED_LANGUAGE = "unsupported_language"
    UNSUPPORTED_PLATFORM = "unsupported_platform"
    DUPLICATE_FIELD = "duplicate_field"
    MISSING_ORG_SIGNATURE = "missing_org_signature"
    NOT_OWNER = "not_owner"
    LINK_EXISTS = "link_exists"
    NO_LINK = "no_link"
    NO_CLA_CONFIG = "no_cla_config"
    SYSTEM_ERROR = "system_error"
    TRACKER_ERROR = "tracker_error"


_KIND_BY_CODE: dict[ErrorCode, ErrorKind] = {
    ErrorCode.INVALID_PAYLOAD: ErrorKind.VALIDATION,
    ErrorCode.MISSING_CLA: ErrorKind.VALIDATION,
    ErrorCode.INVALID_CLA: ErrorKind.VALIDATION,
    ErrorCode.UNSUPPORTED_LANGUAGE: ErrorKind.VALIDATION,
    ErrorCode.UNSUPPORTED_PLATFORM: ErrorKind.VALIDATION,
    ErrorCode.DUPLICATE_FIELD: ErrorKind.VALIDATION,
    ErrorCode.MISSING_ORG_SIGNATURE: ErrorKind.VALIDATION,
    ErrorCode.NOT_OWNER: ErrorKind.AUTHORIZATION,
    ErrorCode.LINK_EXISTS: ErrorKind.CONFLICT,
    ErrorCode.NO_LINK: ErrorKind.NOT_FOUND,
    ErrorCode.NO_CLA_CONFIG: ErrorKind.NOT_FOUND,
    ErrorCode.SYSTEM_ERROR: ErrorKind.SYSTEM,
    ErrorCode.TRACKER_ERROR: ErrorKind.SYSTEM,
}

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.AUTHORIZATION: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.SYSTEM: 500,
}


def kind_of(code: ErrorCode) -> ErrorKind:
    return _KIND_BY_CODE[code]


class CLAGateError(Exception):
    def __init__(self, code: ErrorCode, detail: str, field: Optional[str] = None) -> None:
        super().__init__(detail)
        self.code = code
        self.kind = kind_of(code)
        self.detail = detail
        self.field = field

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def to_dict(self) -> dict[str, Optional[str]]:
        return {"detail": self.detail, "error_code": self.code.value, "field": self.field}

    def __repr__(self) -> str:
        return f"CLAGateError(code={self.code.value!r}, detail={self.detail!r}, field={self.field!r})"


def system_error(detail: str) -> CLAGateError:
    return CLAGateError(ErrorCode.SYSTEM_ERROR, detail)
