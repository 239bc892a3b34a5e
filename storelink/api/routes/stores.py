"""Seller store list route."""

from fastapi import APIRouter, Depends

from storelink.api.dependencies import get_store_registry, require_seller
from storelink.services.credential_types import SessionUser
from storelink.services.store_registry import StoreConnectionRegistry

router = APIRouter(prefix="/stores", tags=["stores"])


@router.get("/user")
def list_user_stores(
    user: SessionUser = Depends(require_seller),
    registry: StoreConnectionRegistry = Depends(get_store_registry),
) -> dict:
    """List the seller's stores merged from the primary and legacy sources."""
    stores = registry.list_for_seller(user.username)
    return {
        "stores": [store.to_dict() for store in stores],
        "username": user.username,
        "totalStores": len(stores),
    }
