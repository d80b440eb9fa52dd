"""Link administration routes: bind an org/repo to CLA documents, or remove the binding."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Header, Request, UploadFile
from pydantic import ValidationError

from cla_gate.adapters.signing_store import SigningStore
from cla_gate.models.error import ErrorDetail
from cla_gate.models.link import LinkCreateOption, LinkRecord
from cla_gate.services import link_service, settings
from cla_gate.services.errors import CLAGateError, ErrorCode
from cla_gate.services.ownership_service import OwnershipChecker

router = APIRouter()

_ERROR_RESPONSES = {
    400: {"model": ErrorDetail},
    403: {"model": ErrorDetail},
    404: {"model": ErrorDetail},
    409: {"model": ErrorDetail},
    500: {"model": ErrorDetail},
}


def get_store(request: Request) -> SigningStore:
    return request.app.state.signing_store


def get_ownership(request: Request) -> OwnershipChecker:
    return request.app.state.ownership


def _parse_link_option(data: Optional[str]) -> LinkCreateOption:
    if not data:
        raise CLAGateError(ErrorCode.INVALID_PAYLOAD, "invalid input payload: missing data field", field="data")
    try:
        return LinkCreateOption.model_validate_json(data)
    except ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        raise CLAGateError(
            ErrorCode.INVALID_PAYLOAD,
            f"invalid input payload: {first.get('msg', 'unparseable')}",
            field=field,
        ) from exc


@router.post("/link", response_model=LinkRecord, status_code=201, responses=_ERROR_RESPONSES)
def create_link(
    data: Optional[str] = Form(None, description="LinkCreateOption as JSON"),
    org_signature_file: Optional[UploadFile] = File(None),
    x_acting_user: str = Header(""),
    store: SigningStore = Depends(get_store),
    ownership: OwnershipChecker = Depends(get_ownership),
) -> LinkRecord:
    """Create a link between an org/repo and its CLA documents."""
    option = _parse_link_option(data)
    signature = None
    if org_signature_file is not None:
        # one byte past the limit is enough for the size check to reject it
        signature = org_signature_file.file.read(settings.max_org_signature_bytes() + 1)
    return link_service.create_link(
        option,
        x_acting_user.strip(),
        store=store,
        ownership=ownership,
        org_signature=signature,
    )


@router.get("/link", response_model=list[LinkRecord])
def list_links(creator: Optional[str] = None, store: SigningStore = Depends(get_store)) -> list[LinkRecord]:
    return store.list_links(creator=creator)


@router.get("/link/{link_id}", response_model=LinkRecord, responses={404: {"model": ErrorDetail}})
def get_link(link_id: str, store: SigningStore = Depends(get_store)) -> LinkRecord:
    return store.get_link(link_id)


@router.delete("/link/{link_id}", status_code=204, responses=_ERROR_RESPONSES)
def unlink(
    link_id: str,
    x_acting_user: str = Header(""),
    store: SigningStore = Depends(get_store),
    ownership: OwnershipChecker = Depends(get_ownership),
) -> None:
    """Remove a link. Only the user who created it may do so."""
    link_service.unlink(link_id, x_acting_user.strip(), store=store, ownership=ownership)
