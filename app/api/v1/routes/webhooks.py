import json
import logging

import stripe
from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from app.api.deps import get_webhook_reconciler
from app.core.config import settings
from app.schemas.payments import WebhookAck
from app.services.stripe_client import construct_event
from app.services.webhook_service import WebhookReconciler

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    label = "error" if status_code >= 500 else "bad_request"
    return JSONResponse(status_code=status_code, content={"ok": False, "status": label, "code": code, "message": message})


@router.post("/webhooks/stripe", response_model=WebhookAck, response_model_exclude_none=True)
async def stripe_webhook(req: Request, reconciler: WebhookReconciler = Depends(get_webhook_reconciler)):
    """Stripe event sink. Needs the raw body for signature verification."""
    secret = (settings.STRIPE_WEBHOOK_SECRET or "").strip()
    if not secret:
        logger.error("stripe webhook rejected: STRIPE_WEBHOOK_SECRET is not set")
        return _error(500, "server_misconfigured", "Webhook secret is not configured")

    sig_header = req.headers.get("stripe-signature")
    if not sig_header:
        return _error(400, "missing_stripe_signature", "Missing Stripe-Signature header")

    body = await req.body()
    try:
        event = construct_event(body, sig_header, secret)
    except (stripe.SignatureVerificationError, ValueError) as e:
        logger.warning("stripe webhook signature verification failed: %s", e)
        return _error(400, "invalid_signature", "Invalid Stripe signature")

    # The reconciler does blocking DB work; keep it off the event loop.
    await run_in_threadpool(reconciler.record, str(event["id"]), str(event["type"]), json.loads(body))
    return await run_in_threadpool(reconciler.handle, event)
