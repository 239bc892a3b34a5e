"""Shopify Admin API client used for product pushes.

One ``ShopifyAdminClient`` is built by the app factory and stored on
``app.state``. Each call opens its own ``httpx.AsyncClient`` so no connection
state is shared between stores. Tests inject an ``httpx.MockTransport``.
"""

import logging
from typing import Any

import httpx

from storelink.errors import StoreLinkError, UpstreamError
from storelink.services.credential_types import ResolvedCredential

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2023-10"
DEFAULT_TIMEOUT_SECONDS = 30.0


class ShopifyAdminClient:
    """Thin async wrapper over the Admin REST API.

    Args:
        api_version: Admin API version segment (e.g. '2023-10').
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (MockTransport in tests).
    """

    def __init__(
        self,
        api_version: str = DEFAULT_API_VERSION,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_version = api_version
        self.timeout = timeout
        self._transport = transport

    def _base_url(self, store_id: str) -> str:
        return f"https://{store_id}/admin/api/{self.api_version}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def create_product(
        self,
        credential: ResolvedCredential,
        product: dict[str, Any],
    ) -> dict[str, Any]:
        """Create a product in the credential's store.

        Args:
            credential: Resolved credential for the target store.
            product: Product body as accepted by POST /products.json.

        Returns:
            The created product object from the response.

        Raises:
            UpstreamError: Shopify answered with a non-2xx status.
            StoreLinkError: UPSTREAM_UNREACHABLE on connection failure/timeout.
        """
        url = f"{self._base_url(credential.store_id)}/products.json"
        headers = {"Content-Type": "application/json", **credential.auth_headers()}

        try:
            async with self._client() as client:
                response = await client.post(url, headers=headers, json={"product": product})
        except httpx.TimeoutException as e:
            logger.warning("Timed out pushing product to %s", credential.store_id)
            raise StoreLinkError(
                "UPSTREAM_UNREACHABLE", f"Timed out reaching {credential.store_id}"
            ) from e
        except httpx.RequestError as e:
            logger.warning(
                "Could not reach %s: %s", credential.store_id, type(e).__name__
            )
            raise StoreLinkError(
                "UPSTREAM_UNREACHABLE", f"Could not reach {credential.store_id}"
            ) from e

        try:
            data = response.json()
        except ValueError:
            data = {"errors": response.text[:500]}

        logger.info(
            "Push to %s returned HTTP %d", credential.store_id, response.status_code
        )
        if not response.is_success:
            raise UpstreamError(response.status_code, data)

        if not isinstance(data, dict):
            return {}
        return data.get("product") or {}
