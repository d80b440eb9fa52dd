"""Error response schema for 400, 403, 404, 409, 500. 422 uses FastAPI default; do not override."""

from typing import Optional

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Error response: human readable detail plus the machine error code and offending field."""

    detail: str
    error_code: Optional[str] = None
    field: Optional[str] = None
