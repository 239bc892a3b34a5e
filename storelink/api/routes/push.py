"""Product push route.

Requires a verified seller session. The target shop must be one of the
seller's connected stores; the credential for it is resolved server-side.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, Field

from storelink.api.dependencies import (
    get_push_service,
    get_session_verification,
    require_seller,
)
from storelink.services.credential_types import SessionUser
from storelink.services.push_service import PushService
from storelink.services.session_authenticator import SessionVerification, resolve_identity

logger = logging.getLogger(__name__)

router = APIRouter(tags=["push"])


class PushRequest(BaseModel):
    """Request body for a product push."""

    product: dict[str, Any] | None = Field(None, description="Shopify product body")
    shop: str | None = Field(None, description="Target store domain")
    supplier_name: str | None = Field(
        None,
        alias="supplierName",
        description="Client-side identity hint; informational only",
    )


@router.post("/push-to-shopify")
async def push_to_shopify(
    body: PushRequest,
    user: SessionUser = Depends(require_seller),
    verification: SessionVerification = Depends(get_session_verification),
    service: PushService = Depends(get_push_service),
    supplier_product_id: str | None = Header(None, alias="X-Supplier-Product-ID"),
) -> dict:
    """Push one product to one of the seller's stores."""
    identity = resolve_identity(verification, body.supplier_name)
    if body.supplier_name and body.supplier_name != identity.username:
        logger.warning(
            "Client identity hint %r ignored; acting as verified seller %s",
            body.supplier_name, identity.username,
        )

    product = await service.push(
        seller_username=user.username,
        shop=body.shop,
        product=body.product,
        supplier_product_id=supplier_product_id,
    )
    return {"success": True, "product": product}
