"""Product push: validation, ownership, credential resolution, mapping.

The push is the only place a resolved secret is used. It goes straight into
request headers and is never logged or returned.
"""

import logging
from typing import Any

from sqlalchemy.orm import Session

from storelink.db.models import ProductMapping, utc_now_iso
from storelink.errors import ForbiddenError, ProductValidationError, ValidationError
from storelink.services.credential_resolver import CredentialResolver
from storelink.services.credential_types import normalize_store_domain
from storelink.services.shopify_client import ShopifyAdminClient
from storelink.services.store_registry import StoreConnectionRegistry
from storelink.utils.redaction import sanitize_error_message

logger = logging.getLogger(__name__)


def validate_product(product: Any) -> None:
    """Require a title and a first variant that carries a price.

    Raises:
        ProductValidationError: If the product cannot be pushed.
    """
    if not isinstance(product, dict) or not product.get("title"):
        raise ProductValidationError()
    variants = product.get("variants")
    if not isinstance(variants, list) or not variants:
        raise ProductValidationError()
    first = variants[0]
    if not isinstance(first, dict) or not first.get("price"):
        raise ProductValidationError()


class PushService:
    """Pushes a supplier product to one of the seller's stores.

    Args:
        db: SQLAlchemy session (mapping writes).
        resolver: Credential resolver.
        registry: Store registry used for the ownership check.
        client: Shopify Admin API client.
    """

    def __init__(
        self,
        db: Session,
        resolver: CredentialResolver,
        registry: StoreConnectionRegistry,
        client: ShopifyAdminClient,
    ) -> None:
        self._db = db
        self._resolver = resolver
        self._registry = registry
        self._client = client

    async def push(
        self,
        seller_username: str,
        shop: str | None,
        product: Any,
        supplier_product_id: str | None = None,
    ) -> dict[str, Any]:
        """Create ``product`` in ``shop`` on behalf of ``seller_username``.

        Returns:
            The product object Shopify created.

        Raises:
            ValidationError: Missing shop/product, bad domain or bad product.
            ForbiddenError: The shop is not one of the seller's stores.
            CredentialError: No usable credential for the shop.
            UpstreamError: Shopify rejected the request.
        """
        if not product or not shop:
            raise ValidationError("INVALID_REQUEST")
        validate_product(product)
        store_id = normalize_store_domain(shop)

        if not self._registry.is_connected(seller_username, store_id):
            logger.warning(
                "Seller %s attempted push to unconnected store %s",
                seller_username, store_id,
            )
            raise ForbiddenError("STORE_NOT_CONNECTED")

        credential = self._resolver.resolve(store_id)
        logger.info(
            "Pushing product %r to %s via %s/%s",
            product.get("title"), store_id,
            credential.source.value, credential.scheme.value,
        )
        created = await self._client.create_product(credential, product)

        product_id = created.get("id")
        if product_id and supplier_product_id:
            self._record_mapping(supplier_product_id, str(product_id), store_id)
        else:
            logger.info(
                "No mapping stored for push to %s (product_id=%s, supplier_product_id=%s)",
                store_id, product_id, supplier_product_id,
            )
        return created

    def _record_mapping(
        self, supplier_product_id: str, shopify_product_id: str, store_id: str
    ) -> None:
        """Append a mapping row. Failures are logged and swallowed."""
        try:
            self._db.add(
                ProductMapping(
                    supplier_product_id=supplier_product_id,
                    shopify_product_id=shopify_product_id,
                    shopify_store_url=store_id,
                    pushed_at=utc_now_iso(),
                )
            )
            self._db.commit()
        except Exception as e:
            self._db.rollback()
            logger.error(
                "Failed to store product mapping for %s: %s",
                supplier_product_id, sanitize_error_message(str(e)),
            )
