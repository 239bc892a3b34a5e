"""Webhook dispatch: de-duplication, topic routing and audit logging.

Runs only after the signature has been verified and the body parsed. The
caller always acknowledges with 200 once dispatch is reached, so nothing here
raises for an unknown topic or a failing handler; the outcome is reported
through ``DispatchResult.status`` and the audit log.

Security contract:
- Payloads are never persisted; only a receipt (id, topic, shop, time) is.
- Payloads pass through ``redact_for_logging`` before any log line.
- A repeated ``X-Shopify-Webhook-Id`` is acknowledged without re-dispatching.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from storelink.db.models import WebhookReceipt, utc_now_iso
from storelink.services.credential_store import CredentialStore
from storelink.utils.redaction import redact_for_logging, sanitize_error_message

logger = logging.getLogger(__name__)

Handler = Callable[[str, dict[str, Any]], None]

DEFAULT_RECEIPT_RETENTION_DAYS = 30


@dataclass(frozen=True)
class DispatchResult:
    """What happened to one delivery.

    status is one of: processed, duplicate, unhandled, failed.
    """

    topic: str
    shop_domain: str
    webhook_id: str | None
    status: str


class WebhookDispatcher:
    """Routes verified webhook deliveries to topic handlers.

    Args:
        db: SQLAlchemy session used for receipts.
        credential_store: Used by app/uninstalled to drop revoked grants.
    """

    def __init__(self, db: Session, credential_store: CredentialStore) -> None:
        self._db = db
        self._credentials = credential_store
        self._handlers: dict[str, Handler] = {
            "orders/create": self._handle_order,
            "orders/updated": self._handle_order,
            "products/create": self._handle_product,
            "products/update": self._handle_product,
            "app/uninstalled": self._handle_app_uninstalled,
        }

    @property
    def topics(self) -> frozenset[str]:
        return frozenset(self._handlers)

    def _record_receipt(self, webhook_id: str, topic: str, shop_domain: str) -> bool:
        """Insert a receipt row. Returns False if the id was already seen.

        Other database failures are logged and the delivery is dispatched as
        new.
        """
        self._db.add(
            WebhookReceipt(
                webhook_id=webhook_id,
                topic=topic,
                shop_domain=shop_domain,
                received_at=utc_now_iso(),
            )
        )
        try:
            self._db.commit()
        except IntegrityError:
            self._db.rollback()
            return False
        except SQLAlchemyError as e:
            self._db.rollback()
            logger.warning(
                "Could not record receipt for webhook %s (%s): %s",
                webhook_id, topic, sanitize_error_message(str(e)),
            )
        return True

    def dispatch(
        self,
        topic: str,
        shop_domain: str,
        payload: Any,
        webhook_id: str | None = None,
    ) -> DispatchResult:
        """Dispatch one verified delivery and write its audit line.

        Handlers receive a dict; any other JSON value is handed over as {}.
        """
        topic = topic or ""
        shop_domain = shop_domain or ""
        if not isinstance(payload, dict):
            payload = {}

        if webhook_id and not self._record_receipt(webhook_id, topic, shop_domain):
            status = "duplicate"
        else:
            handler = self._handlers.get(topic)
            if handler is None:
                logger.info("Unhandled webhook topic %r from %s", topic, shop_domain)
                status = "unhandled"
            else:
                try:
                    handler(shop_domain, payload)
                    status = "processed"
                except Exception as e:
                    logger.exception(
                        "Webhook handler for %s failed: %s",
                        topic, sanitize_error_message(str(e)),
                    )
                    self._db.rollback()
                    status = "failed"

        logger.info(
            "WEBHOOK_AUDIT topic=%s shop=%s id=%s status=%s",
            topic, shop_domain, webhook_id or "-", status,
        )
        return DispatchResult(
            topic=topic,
            shop_domain=shop_domain,
            webhook_id=webhook_id,
            status=status,
        )

    # --- handlers ---

    def _handle_order(self, shop_domain: str, payload: dict[str, Any]) -> None:
        logger.info(
            "Order event from %s: id=%s name=%s financial_status=%s",
            shop_domain,
            payload.get("id"),
            payload.get("name"),
            payload.get("financial_status"),
        )
        logger.debug("Order payload: %s", redact_for_logging(payload))

    def _handle_product(self, shop_domain: str, payload: dict[str, Any]) -> None:
        logger.info(
            "Product event from %s: id=%s title=%s",
            shop_domain, payload.get("id"), payload.get("title"),
        )
        logger.debug("Product payload: %s", redact_for_logging(payload))

    def _handle_app_uninstalled(self, shop_domain: str, payload: dict[str, Any]) -> None:
        removed = self._credentials.delete_oauth_tokens(shop_domain.strip().lower())
        logger.warning(
            "App uninstalled from %s; removed %d OAuth token(s)", shop_domain, removed
        )


def purge_webhook_receipts(
    db: Session,
    older_than_days: int = DEFAULT_RECEIPT_RETENTION_DAYS,
    now: datetime | None = None,
) -> int:
    """Delete receipts received more than ``older_than_days`` ago.

    The window must stay longer than Shopify's 48 hour retry period, or a
    retried delivery whose receipt was pruned is dispatched twice.

    Returns:
        Number of receipts deleted.
    """
    if older_than_days < 0:
        raise ValueError("older_than_days must not be negative")
    now = now or datetime.now(UTC)
    cutoff = (now - timedelta(days=older_than_days)).strftime("%Y-%m-%dT%H:%M:%SZ")
    deleted = (
        db.query(WebhookReceipt)
        .filter(WebhookReceipt.received_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    if deleted:
        logger.info("Purged %d webhook receipt(s) older than %s", deleted, cutoff)
    return deleted
