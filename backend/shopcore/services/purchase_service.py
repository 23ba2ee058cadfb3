# Overview: Service-layer operations for vendor purchase headers.

"""
Purchase Service

WHY: Purchases record bills received from vendors under their own PUR
document series.

DESIGN:
- A purchase is a header only: number, optional vendor, status and dates
- It carries no amounts, so it never moves a party balance and sends no
  ledger_changed signal
- Status is supplied by the caller (UNPAID when omitted)
- Delete is soft, same as invoices; the drawn number is never reused

MULTI-TENANT: every query filters on shop_id, and the vendor must be a live
vendor of the same shop.
"""

from __future__ import annotations

from typing import Any, Mapping

from flask import current_app

from ..extensions import db
from ..models import PARTY_VENDOR, PURCHASE_STATUSES, Purchase, generate_uuid
from ..models.purchases import PURCHASE_STATUS_UNPAID
from ..validation import NotFoundError, ValidationError, optional_text, require_choice
from . import audit_service
from .concurrency import run_in_transaction
from .party_service import require_party
from .sequence_service import SEQ_PURCHASE, next_document_number
from shopcore.time_utils import parse_iso_date, utcnow


class PurchaseNotFoundError(NotFoundError):
    """Raised when a purchase is missing or soft-deleted for this shop."""
    pass


def _parse_date(field: str, value: Any):
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an ISO-8601 date")


def _apply_fields(shop_id: str, purchase: Purchase, data: Mapping[str, Any]) -> None:
    vendor_id = optional_text(data.get("vendorId"))
    if vendor_id:
        vendor_id = require_party(shop_id, PARTY_VENDOR, vendor_id).id

    purchase_date = _parse_date("date", data.get("date"))
    if purchase_date is None:
        raise ValidationError("date is required")

    purchase.vendor_id = vendor_id
    purchase.status = require_choice(
        "status", data.get("status") or PURCHASE_STATUS_UNPAID, PURCHASE_STATUSES
    )
    purchase.date = purchase_date
    purchase.due_date = _parse_date("dueDate", data.get("dueDate"))


def _live_purchase_query(shop_id: str, purchase_id: str):
    return db.session.query(Purchase).filter(
        Purchase.id == purchase_id,
        Purchase.shop_id == shop_id,
        Purchase.deleted_at.is_(None),
    )


def create_purchase(shop_id: str, data: Mapping[str, Any], actor_user_id: str | None = None) -> dict:
    """
    Record a purchase under the next PUR number.

    Request data:
    {
        "vendorId": "<uuid>",            (optional)
        "status": "UNPAID",              UNPAID, PARTIAL or PAID
        "date": "2026-10-19",
        "dueDate": "2026-11-19"          (optional)
    }

    Raises:
        ValidationError: Bad date or status
        PartyNotFoundError: vendorId not a live vendor of this shop
        SequenceNotInitialized: Shop counters never seeded
    """
    def _op() -> str:
        now = utcnow()
        purchase = Purchase(id=generate_uuid(), shop_id=shop_id, created_at=now, updated_at=now)
        _apply_fields(shop_id, purchase, data)
        purchase.purchase_number = next_document_number(shop_id, SEQ_PURCHASE)
        db.session.add(purchase)
        db.session.flush()

        audit_service.record(
            shop_id, "purchase", purchase.id, audit_service.ACTION_CREATE,
            {"purchaseNumber": purchase.purchase_number}, actor_user_id,
        )
        return purchase.id

    purchase_id = run_in_transaction(_op)
    current_app.logger.info("Purchase %s created for shop %s", purchase_id, shop_id)
    return get_purchase(shop_id, purchase_id)


def get_purchase(shop_id: str, purchase_id: str) -> dict | None:
    """Live purchase with its vendor summary, or None."""
    purchase = _live_purchase_query(shop_id, purchase_id).first()
    if not purchase:
        return None
    return purchase.to_dict()


def list_purchases(
    shop_id: str,
    *,
    vendor_id: str | None = None,
    status: str | None = None,
) -> list[dict]:
    """Live purchases of a shop, newest first."""
    query = db.session.query(Purchase).filter(
        Purchase.shop_id == shop_id,
        Purchase.deleted_at.is_(None),
    )
    if vendor_id:
        query = query.filter(Purchase.vendor_id == vendor_id)
    if status:
        query = query.filter(Purchase.status == status)

    purchases = query.order_by(Purchase.date.desc(), Purchase.created_at.desc()).all()
    return [p.to_dict() for p in purchases]


def update_purchase(
    shop_id: str,
    purchase_id: str,
    data: Mapping[str, Any],
    actor_user_id: str | None = None,
) -> dict:
    """Replace vendor, status and dates. The number is kept."""
    def _op() -> None:
        purchase = _live_purchase_query(shop_id, purchase_id).first()
        if not purchase:
            raise PurchaseNotFoundError(f"Purchase {purchase_id} not found")

        _apply_fields(shop_id, purchase, data)
        purchase.updated_at = utcnow()

        audit_service.record(
            shop_id, "purchase", purchase_id, audit_service.ACTION_UPDATE, None, actor_user_id,
        )

    run_in_transaction(_op)
    return get_purchase(shop_id, purchase_id)


def delete_purchase(shop_id: str, purchase_id: str, actor_user_id: str | None = None) -> None:
    """
    Soft delete.

    Raises:
        PurchaseNotFoundError: No live purchase matched
    """
    def _op() -> None:
        now = utcnow()
        changed = _live_purchase_query(shop_id, purchase_id).update(
            {Purchase.deleted_at: now, Purchase.updated_at: now},
            synchronize_session="fetch",
        )
        if not changed:
            raise PurchaseNotFoundError(f"Purchase {purchase_id} not found or already deleted")

        audit_service.record(
            shop_id, "purchase", purchase_id, audit_service.ACTION_DELETE, None, actor_user_id,
        )

    run_in_transaction(_op)
    current_app.logger.info("Purchase %s deleted for shop %s", purchase_id, shop_id)
