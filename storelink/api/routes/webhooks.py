"""Shopify webhook receiver.

Order of checks: signature over the raw body, then JSON parsing, then
dispatch. Once dispatch is reached the delivery is always acknowledged with
200, because Shopify retries anything else.
"""

import json
import logging

from fastapi import APIRouter, Depends, Header, Request

from storelink.api.dependencies import get_webhook_dispatcher, get_webhook_verifier
from storelink.errors import WebhookError, WebhookErrorCode
from storelink.services.webhook_dispatcher import WebhookDispatcher
from storelink.services.webhook_verifier import WebhookVerifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/shopify-webhook", tags=["webhooks"])


@router.post("")
async def receive_webhook(
    request: Request,
    verifier: WebhookVerifier = Depends(get_webhook_verifier),
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
    topic: str | None = Header(None, alias="X-Shopify-Topic"),
    shop_domain: str | None = Header(None, alias="X-Shopify-Shop-Domain"),
    signature: str | None = Header(None, alias="X-Shopify-Hmac-Sha256"),
    webhook_id: str | None = Header(None, alias="X-Shopify-Webhook-Id"),
) -> dict:
    raw_body = await request.body()
    logger.info("Webhook received: %s from %s", topic, shop_domain)

    if not verifier.verify(raw_body, signature):
        logger.warning(
            "WEBHOOK_AUDIT topic=%s shop=%s id=%s status=bad_signature",
            topic, shop_domain, webhook_id or "-",
        )
        raise WebhookError(WebhookErrorCode.BAD_SIGNATURE)

    try:
        payload = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning(
            "WEBHOOK_AUDIT topic=%s shop=%s id=%s status=malformed_payload",
            topic, shop_domain, webhook_id or "-",
        )
        raise WebhookError(WebhookErrorCode.MALFORMED_PAYLOAD) from None

    dispatcher.dispatch(topic or "", shop_domain or "", payload, webhook_id=webhook_id)
    return {"success": True}


@router.get("")
def webhook_liveness() -> dict:
    """Liveness check used when registering the webhook endpoint."""
    return {"message": "Shopify webhook endpoint is active", "status": "ok"}
