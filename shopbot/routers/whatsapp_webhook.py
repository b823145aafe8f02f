import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from shopbot.core.config import WHATSAPP_VERIFY_TOKEN
from shopbot.core.database import get_db
from shopbot.deps import get_runtime
from shopbot.models.tenant import Tenant
from shopbot.runtime import Runtime
from shopbot.services.inbound import InboundDispatcher

router = APIRouter(tags=["webhooks"])
logger = logging.getLogger(__name__)


def _is_known_verify_token(db: Session, token: str | None) -> bool:
    if not token:
        return False
    if WHATSAPP_VERIFY_TOKEN and token == WHATSAPP_VERIFY_TOKEN:
        return True
    tenant = (
        db.query(Tenant.id)
        .filter(Tenant.verify_token == token, Tenant.is_active.is_(True))
        .first()
    )
    return tenant is not None


@router.get("/webhook/whatsapp")
async def verify_whatsapp_webhook(request: Request, db: Session = Depends(get_db)):
    qp = request.query_params
    mode = qp.get("hub.mode")
    token = qp.get("hub.verify_token")
    challenge = qp.get("hub.challenge")

    if mode == "subscribe" and _is_known_verify_token(db, token):
        logger.info("WhatsApp webhook verified")
        return PlainTextResponse(challenge or "")

    raise HTTPException(status_code=403, detail="Invalid verify token")


def _process_in_background(dispatcher: InboundDispatcher, payload: dict) -> None:
    # the webhook was already acknowledged; errors end here
    try:
        counts = dispatcher.process_payload(payload)
        logger.info("WhatsApp webhook processed %s", counts)
    except Exception:
        logger.exception("WhatsApp webhook processing failed")


@router.post("/webhook/whatsapp")
async def whatsapp_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    runtime: Runtime = Depends(get_runtime),
):
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("WhatsApp webhook with invalid JSON body")
        return {"status": "ok"}

    if not isinstance(payload, dict) or payload.get("object") != "whatsapp_business_account":
        return {"status": "ignored"}

    background_tasks.add_task(_process_in_background, runtime.dispatcher, payload)
    return {"status": "ok"}
