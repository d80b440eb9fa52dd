"""Webhook routes: pull request events and /check-cla comments trigger a CLA check."""

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, HTTPException, Request

from cla_gate.services import settings
from cla_gate.services.cla_check_service import CLAChecker
from cla_gate.services.webhook_service import (
    parse_gitee_event,
    parse_github_event,
    verify_gitee_token,
    verify_github_signature,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _build_checker(request: Request, platform: str) -> CLAChecker:
    client = request.app.state.tracker_clients.get(platform)
    if client is None:
        raise HTTPException(status_code=404, detail=f"Unsupported platform: {platform}")
    return CLAChecker(
        client=client,
        store=request.app.state.signing_store,
        sign_url=settings.sign_url(),
        faq_of_checking_by_author=settings.faq_of_checking_by_author(),
        faq_of_checking_by_committer=settings.faq_of_checking_by_committer(),
    )


@router.post("/webhooks/{platform}")
async def handle_webhook(platform: str, request: Request) -> dict:
    body = await request.body()
    secret = settings.webhook_secret()

    if platform == "github":
        if secret and not verify_github_signature(secret, body, request.headers.get("x-hub-signature-256", "")):
            raise HTTPException(status_code=401, detail="Invalid webhook signature")
        event = request.headers.get("x-github-event", "")
        parser = parse_github_event
    elif platform == "gitee":
        if secret and not verify_gitee_token(secret, request.headers.get("x-gitee-token", "")):
            raise HTTPException(status_code=401, detail="Invalid webhook token")
        event = request.headers.get("x-gitee-event", "")
        parser = parse_gitee_event
    else:
        raise HTTPException(status_code=404, detail=f"Unsupported platform: {platform}")

    try:
        payload = json.loads(body or b"{}")
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Webhook body is not valid JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Webhook body must be a JSON object")

    check = parser(event, payload)
    if check is None:
        return {"status": "ignored", "event": event}

    checker = _build_checker(request, platform)
    # Configuration is read once per delivery and handed to the checker.
    config = request.app.state.cla_config
    all_signed = await asyncio.to_thread(checker.handle, check.pr, check.labels, config)
    logger.info("webhook_cla_check platform=%s event=%s pr=%s all_signed=%s", platform, event, check.pr, all_signed)
    return {"status": "checked", "pr": str(check.pr), "all_signed": all_signed}
