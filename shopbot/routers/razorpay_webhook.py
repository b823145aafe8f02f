import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from shopbot.core.config import RAZORPAY_WEBHOOK_SECRET
from shopbot.core.database import get_db
from shopbot.core.errors import SignatureVerificationError
from shopbot.deps import get_runtime
from shopbot.payments.base import verify_webhook_signature
from shopbot.payments.events import (
    PAYMENT_CAPTURED,
    PAYMENT_FAILED,
    PAYMENT_LINK_CANCELLED,
    PAYMENT_LINK_EXPIRED,
    PAYMENT_LINK_PAID,
    PaymentEvent,
    parse_razorpay_event,
)
from shopbot.runtime import Runtime
from shopbot.services.orders import get_order_by_payment_link

router = APIRouter(tags=["webhooks"])
logger = logging.getLogger(__name__)


def _webhook_secret_for(db: Session, runtime: Runtime, event: PaymentEvent) -> str | None:
    if event.payment_link_id:
        order = get_order_by_payment_link(db, event.payment_link_id)
        if order is not None:
            config = runtime.resolver.resolve_by_tenant_id(db, order.tenant_id)
            if config is not None and config.razorpay_webhook_secret:
                return config.razorpay_webhook_secret
    return RAZORPAY_WEBHOOK_SECRET or None


def _verify_signature(body: bytes, signature: str, secret: str | None) -> None:
    if not secret:
        raise SignatureVerificationError("no webhook secret configured")
    if not verify_webhook_signature(body, signature, secret):
        raise SignatureVerificationError("signature mismatch")


def _dispatch_event(runtime: Runtime, db: Session, event: PaymentEvent) -> dict:
    reconciler = runtime.reconciler
    if event.event == PAYMENT_LINK_PAID:
        result = reconciler.reconcile_payment_paid(db, event)
    elif event.event == PAYMENT_LINK_EXPIRED:
        result = reconciler.reconcile_payment_expired(db, event)
    elif event.event == PAYMENT_LINK_CANCELLED:
        result = reconciler.reconcile_payment_cancelled(db, event)
    elif event.event in (PAYMENT_CAPTURED, PAYMENT_FAILED):
        logger.info("payment %s for %s", event.event, event.payment_id, extra={"event": event.event})
        return {"status": "ok"}
    else:
        logger.info("unhandled Razorpay event %s", event.event)
        return {"status": "ok"}
    return {"status": "ok", "outcome": result.outcome}


@router.post("/webhook/razorpay")
async def razorpay_webhook(
    request: Request,
    db: Session = Depends(get_db),
    runtime: Runtime = Depends(get_runtime),
):
    signature = request.headers.get("X-Razorpay-Signature")
    if not signature:
        raise HTTPException(status_code=400, detail="Missing signature")

    body = await request.body()
    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")
    if not isinstance(payload, dict) or not payload.get("event"):
        raise HTTPException(status_code=400, detail="Invalid payload")

    event = parse_razorpay_event(payload)
    secret = _webhook_secret_for(db, runtime, event)
    try:
        _verify_signature(body, signature, secret)
    except SignatureVerificationError as exc:
        logger.warning(
            "Razorpay webhook rejected: %s",
            exc,
            extra={"event": event.event, "payment_link_id": event.payment_link_id},
        )
        raise HTTPException(status_code=401, detail="Invalid signature")

    logger.info(
        "Razorpay webhook received",
        extra={"event": event.event, "payment_link_id": event.payment_link_id},
    )
    return await run_in_threadpool(_dispatch_event, runtime, db, event)


@router.get("/payment/success")
def payment_success(request: Request):
    # the webhook is authoritative; this page only reassures the customer
    qp = request.query_params
    return {
        "status": qp.get("razorpay_payment_link_status") or "unknown",
        "reference_id": qp.get("razorpay_payment_link_reference_id"),
        "message": "Thank you! You can return to WhatsApp for your order confirmation.",
    }
