"""API routes for direct-config credential provisioning.

Seller-scoped: every route acts on the verified session's seller only.
Credential values are accepted on POST and never returned.
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from storelink.api.dependencies import (
    get_credential_store,
    get_store_registry,
    require_seller,
)
from storelink.services.credential_store import CredentialStore
from storelink.services.credential_types import SessionUser
from storelink.services.store_registry import StoreConnectionRegistry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/store-configs", tags=["store-configs"])

DIRECT_API_CONNECTION_TYPE = "direct_api"


class SaveStoreConfigRequest(BaseModel):
    """Request body for provisioning a store's direct credentials."""

    shop: str = Field(..., min_length=1, description="Store domain (*.myshopify.com)")
    name: str = Field("", description="Display name")
    access_token: str | None = Field(None, repr=False)
    api_key: str | None = Field(None, repr=False)
    api_secret: str | None = Field(None, repr=False)

    def credentials(self) -> dict[str, str]:
        return {
            key: value
            for key, value in (
                ("access_token", self.access_token),
                ("api_key", self.api_key),
                ("api_secret", self.api_secret),
            )
            if value
        }


@router.get("")
def list_store_configs(
    user: SessionUser = Depends(require_seller),
    store: CredentialStore = Depends(get_credential_store),
) -> dict:
    """List the seller's active store configs (metadata only)."""
    configs = store.list_store_configs(user.username)
    return {"success": True, "configs": configs, "total": len(configs)}


@router.post("", status_code=201)
def save_store_config(
    body: SaveStoreConfigRequest,
    user: SessionUser = Depends(require_seller),
    store: CredentialStore = Depends(get_credential_store),
    registry: StoreConnectionRegistry = Depends(get_store_registry),
) -> dict:
    """Provision direct credentials and record the store connection."""
    config = store.save_store_config(
        owner=user.username,
        store_url=body.shop,
        credentials=body.credentials(),
        display_name=body.name,
    )
    registry.record_connection(
        user.username,
        config["shop"],
        config["name"],
        DIRECT_API_CONNECTION_TYPE,
    )
    return {"success": True, "config": config}


@router.delete("/{shop}")
def deactivate_store_config(
    shop: str,
    user: SessionUser = Depends(require_seller),
    store: CredentialStore = Depends(get_credential_store),
) -> dict:
    """Deactivate the seller's active config for a store."""
    config = store.deactivate_store_config(user.username, shop)
    return {"success": True, "config": config}
