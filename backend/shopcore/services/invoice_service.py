# Overview: Service-layer transaction coordinator for the invoice aggregate.

"""
Invoice Service

WHY: An invoice is five tables (header, customer snapshot, items, totals,
photos). Every write must land in all of them or none of them.

CREATE (one transaction):
1. Idempotency lookup on the request token; a hit returns the existing invoice
2. New id + next INV document number
3. Totals computed server-side from the items
4. Payload decomposed and header/snapshot/items/totals inserted
5. Token mapping persisted (same transaction)
6. Customer balance recomputed, audit recorded
Then, after commit: ledger_changed signal.

UPDATE is full replacement: snapshot, items and totals are deleted and
re-inserted, so item ids are NOT stable across updates.

DELETE is soft: only the header's deleted_at is set. Child rows stay.
"""

from __future__ import annotations

from typing import Any, Mapping

from flask import current_app

from ..aggregates import (
    assemble_invoice_aggregate,
    assemble_invoice_header,
    decompose_invoice_aggregate,
    require_items,
)
from ..extensions import db
from ..models import (
    Customer,
    Invoice,
    InvoiceCustomerSnapshot,
    InvoiceItem,
    InvoicePhoto,
    InvoiceTotals,
    PARTY_CUSTOMER,
    generate_uuid,
)
from ..money_utils import calculate_invoice_totals
from ..signals import notify_ledger_changed
from ..validation import ConstraintViolation, NotFoundError, ValidationError, require_text
from . import audit_service, idempotency_service
from .balance_service import recompute_balance
from .concurrency import lock_for_update, run_in_transaction
from .payment_service import update_invoice_status
from .sequence_service import SEQ_INVOICE, next_document_number
from shopcore.time_utils import to_utc_z, utcnow


class InvoiceNotFoundError(NotFoundError):
    """Raised when an invoice is missing or soft-deleted for this shop."""
    pass


class AlreadyDeletedOrNotFound(InvoiceNotFoundError):
    """Raised when a soft delete matched no live invoice."""
    pass


class CustomerNotFoundError(NotFoundError):
    """Raised when customerId does not name a live customer of this shop."""
    pass


class PhotoNotFoundError(NotFoundError):
    pass


# =============================================================================
# HELPERS
# =============================================================================

def _is_intra_state(shop_id: str, place_of_supply: str | None) -> bool:
    resolver = current_app.config.get("INTRA_STATE_RESOLVER")
    if resolver is None:
        return True
    return bool(resolver(shop_id, place_of_supply))


def _live_customer(shop_id: str, customer_id: str | None):
    if not customer_id:
        return None
    customer = db.session.query(Customer).filter(
        Customer.id == customer_id,
        Customer.shop_id == shop_id,
        Customer.deleted_at.is_(None),
    ).first()
    if not customer:
        raise CustomerNotFoundError(f"Customer {customer_id} not found")
    return customer


def _live_invoice_query(shop_id: str, invoice_id: str):
    return db.session.query(Invoice).filter(
        Invoice.id == invoice_id,
        Invoice.shop_id == shop_id,
        Invoice.deleted_at.is_(None),
    )


def _compute(shop_id: str, payload: Mapping[str, Any]) -> dict:
    """Totals + decomposition for a create or update payload."""
    if not isinstance(payload, Mapping):
        raise ValidationError("invoice payload must be an object")

    items = require_items(payload)
    customer = _live_customer(shop_id, payload.get("customerId"))
    totals = calculate_invoice_totals(
        items, intra_state=_is_intra_state(shop_id, payload.get("placeOfSupply"))
    )
    return decompose_invoice_aggregate(payload, totals, live_customer=customer)


def _insert_children(invoice_id: str, rows: dict) -> None:
    db.session.add(InvoiceCustomerSnapshot(invoice_id=invoice_id, **rows["customerSnapshot"]))
    for item in rows["items"]:
        db.session.add(InvoiceItem(id=generate_uuid(), invoice_id=invoice_id, **item))
    db.session.flush()
    _insert_totals(invoice_id, rows["totals"])


def _insert_totals(invoice_id: str, totals: dict) -> None:
    db.session.add(InvoiceTotals(invoice_id=invoice_id, **totals))
    db.session.flush()


def _delete_children(invoice_id: str) -> None:
    # Photos are not part of the replaced content.
    # "fetch" evicts loaded rows so the re-inserted ones can take their keys.
    for model in (InvoiceCustomerSnapshot, InvoiceItem, InvoiceTotals):
        db.session.query(model).filter(model.invoice_id == invoice_id).delete(
            synchronize_session="fetch"
        )
    db.session.flush()


def _rebalance_customers(shop_id: str, *customer_ids: str | None) -> None:
    for customer_id in dict.fromkeys(c for c in customer_ids if c):
        recompute_balance(shop_id, customer_id, PARTY_CUSTOMER)


# =============================================================================
# READ
# =============================================================================

def assemble_invoice(shop_id: str, invoice_id: str) -> dict | None:
    """
    Invoice aggregate, or None if the invoice does not exist, is
    soft-deleted, or belongs to another shop.
    """
    invoice = _live_invoice_query(shop_id, invoice_id).first()
    if not invoice:
        return None

    snapshot = db.session.get(InvoiceCustomerSnapshot, invoice.id)
    items = db.session.query(InvoiceItem).filter_by(invoice_id=invoice.id).order_by(
        InvoiceItem.position.asc()
    ).all()
    totals = db.session.get(InvoiceTotals, invoice.id)
    photos = db.session.query(InvoicePhoto).filter_by(invoice_id=invoice.id).order_by(
        InvoicePhoto.created_at.asc(), InvoicePhoto.id.asc()
    ).all()

    return assemble_invoice_aggregate(
        invoice, snapshot, items, totals, photos,
        photo_url_template=current_app.config["PHOTO_URL_TEMPLATE"],
    )


def list_invoices(
    shop_id: str,
    *,
    customer_id: str | None = None,
    status: str | None = None,
) -> list[dict]:
    """Live invoice headers of a shop, newest first."""
    query = db.session.query(Invoice, InvoiceTotals).outerjoin(
        InvoiceTotals, InvoiceTotals.invoice_id == Invoice.id
    ).filter(
        Invoice.shop_id == shop_id,
        Invoice.deleted_at.is_(None),
    )
    if customer_id:
        query = query.filter(Invoice.customer_id == customer_id)
    if status:
        query = query.filter(Invoice.status == status)

    rows = query.order_by(Invoice.date.desc(), Invoice.created_at.desc()).all()
    return [assemble_invoice_header(invoice, totals) for invoice, totals in rows]


# =============================================================================
# CREATE
# =============================================================================

def create_invoice(
    shop_id: str,
    payload: Mapping[str, Any],
    request_id: str | None = None,
    actor_user_id: str | None = None,
) -> dict:
    """
    Create an invoice aggregate in one transaction.

    Args:
        shop_id: Tenant
        payload: Client aggregate, e.g.
            {
                "type": "INVOICE",
                "date": "2026-10-19",
                "customerId": "<uuid>",
                "customer": {"name": "...", "phone": "...", "address": {...}},
                "items": [{"description": "Ring", "quantity": 2, "rate": 500.00, "taxRate": 3}]
            }
            Any totals, tax fields or ids in the payload are ignored.
        request_id: Optional idempotency token

    Returns:
        The assembled aggregate (the original one on an idempotent replay)

    Raises:
        ValidationError / InvalidMonetaryInput: Bad payload
        CustomerNotFoundError: customerId not a live customer of this shop
        InvoiceNotFoundError: Replayed token whose invoice was since deleted
        SequenceNotInitialized: Shop counters never seeded
        ConstraintViolation: Store-level uniqueness/foreign-key violation
    """
    request_id = idempotency_service.normalize_request_id(request_id)

    def _op() -> tuple[str, bool]:
        if request_id:
            existing_id = idempotency_service.check_or_reserve(
                shop_id, request_id, idempotency_service.ENTITY_INVOICE
            )
            if existing_id:
                return existing_id, False

        rows = _compute(shop_id, payload)

        invoice_id = generate_uuid()
        invoice_number = next_document_number(shop_id, SEQ_INVOICE)
        now = utcnow()

        invoice = Invoice(
            id=invoice_id,
            shop_id=shop_id,
            invoice_number=invoice_number,
            created_at=now,
            updated_at=now,
            **rows["invoice"],
        )
        db.session.add(invoice)
        db.session.flush()

        _insert_children(invoice_id, rows)

        if request_id:
            idempotency_service.remember(
                shop_id, request_id, idempotency_service.ENTITY_INVOICE, invoice_id
            )

        _rebalance_customers(shop_id, invoice.customer_id)

        audit_service.record(
            shop_id, "invoice", invoice_id, audit_service.ACTION_CREATE,
            {
                "invoiceNumber": invoice_number,
                "grandTotal": rows["totals"]["grand_total"],
            },
            actor_user_id,
        )
        return invoice_id, True

    try:
        invoice_id, created = run_in_transaction(_op)
    except ConstraintViolation:
        # A concurrent duplicate with the same token committed first
        if not request_id:
            raise
        invoice_id = idempotency_service.check_or_reserve(
            shop_id, request_id, idempotency_service.ENTITY_INVOICE
        )
        if invoice_id is None:
            raise
        created = False

    if created:
        current_app.logger.info("Invoice %s created for shop %s", invoice_id, shop_id)
        notify_ledger_changed(shop_id, "invoice", invoice_id, audit_service.ACTION_CREATE)

    aggregate = assemble_invoice(shop_id, invoice_id)
    if aggregate is None:
        raise InvoiceNotFoundError(f"Invoice {invoice_id} was deleted after it was created")
    return aggregate


# =============================================================================
# UPDATE (FULL REPLACEMENT)
# =============================================================================

def update_invoice(
    shop_id: str,
    invoice_id: str,
    payload: Mapping[str, Any],
    actor_user_id: str | None = None,
) -> dict:
    """
    Replace an invoice's content.

    The header is updated in place (number, id and created_at are kept);
    snapshot, items and totals are deleted and re-inserted. The status is
    then re-derived from existing allocations against the new grand total.

    Raises:
        InvoiceNotFoundError: Missing, soft-deleted, or another shop's invoice
    """
    def _op() -> None:
        invoice = lock_for_update(_live_invoice_query(shop_id, invoice_id)).first()
        if not invoice:
            raise InvoiceNotFoundError(f"Invoice {invoice_id} not found")

        rows = _compute(shop_id, payload)
        previous_customer_id = invoice.customer_id

        header = rows["invoice"]
        invoice.customer_id = header["customer_id"]
        invoice.type = header["type"]
        invoice.date = header["date"]
        invoice.due_date = header["due_date"]
        invoice.place_of_supply = header["place_of_supply"]
        invoice.updated_at = utcnow()
        db.session.flush()

        _delete_children(invoice_id)
        _insert_children(invoice_id, rows)

        update_invoice_status(shop_id, invoice_id, keep_pending=True)
        _rebalance_customers(shop_id, previous_customer_id, invoice.customer_id)

        audit_service.record(
            shop_id, "invoice", invoice_id, audit_service.ACTION_UPDATE,
            {
                "invoiceNumber": invoice.invoice_number,
                "grandTotal": rows["totals"]["grand_total"],
            },
            actor_user_id,
        )

    run_in_transaction(_op)
    current_app.logger.info("Invoice %s updated for shop %s", invoice_id, shop_id)
    notify_ledger_changed(shop_id, "invoice", invoice_id, audit_service.ACTION_UPDATE)

    return assemble_invoice(shop_id, invoice_id)


# =============================================================================
# SOFT DELETE
# =============================================================================

def delete_invoice(shop_id: str, invoice_id: str, actor_user_id: str | None = None) -> None:
    """
    Soft delete: UPDATE ... SET deleted_at WHERE deleted_at IS NULL.

    Child rows and allocations are left in place. The customer balance is
    recomputed, so the invoice stops counting toward it.

    Raises:
        AlreadyDeletedOrNotFound: No live invoice matched
    """
    def _op() -> None:
        now = utcnow()
        changed = _live_invoice_query(shop_id, invoice_id).update(
            {Invoice.deleted_at: now, Invoice.updated_at: now},
            synchronize_session="fetch",
        )
        if not changed:
            raise AlreadyDeletedOrNotFound(f"Invoice {invoice_id} not found or already deleted")

        customer_id = db.session.query(Invoice.customer_id).filter(
            Invoice.id == invoice_id
        ).scalar()
        _rebalance_customers(shop_id, customer_id)

        audit_service.record(
            shop_id, "invoice", invoice_id, audit_service.ACTION_DELETE, None, actor_user_id,
        )

    run_in_transaction(_op)
    current_app.logger.info("Invoice %s deleted for shop %s", invoice_id, shop_id)
    notify_ledger_changed(shop_id, "invoice", invoice_id, audit_service.ACTION_DELETE)


# =============================================================================
# PHOTOS
# =============================================================================

def add_invoice_photo(
    shop_id: str,
    invoice_id: str,
    file_name: str,
    checksum: str,
    actor_user_id: str | None = None,
) -> dict:
    """
    Attach a stored file to an invoice. Only the opaque file name and
    checksum are kept; the bytes live in the external file store.
    """
    file_name = require_text("fileName", file_name)
    checksum = require_text("checksum", checksum)

    def _op() -> InvoicePhoto:
        if not _live_invoice_query(shop_id, invoice_id).first():
            raise InvoiceNotFoundError(f"Invoice {invoice_id} not found")

        photo = InvoicePhoto(
            id=generate_uuid(),
            invoice_id=invoice_id,
            file_name=file_name,
            checksum=checksum,
            created_at=utcnow(),
        )
        db.session.add(photo)
        db.session.flush()

        audit_service.record(
            shop_id, "invoice_photo", photo.id, audit_service.ACTION_CREATE,
            {"invoiceId": invoice_id}, actor_user_id,
        )
        return photo

    photo = run_in_transaction(_op)
    return {
        "id": photo.id,
        "url": current_app.config["PHOTO_URL_TEMPLATE"].format(photo_id=photo.id),
        "createdAt": to_utc_z(photo.created_at),
    }


def delete_invoice_photo(shop_id: str, photo_id: str, actor_user_id: str | None = None) -> str:
    """
    Remove a photo row.

    Returns:
        The stored file name, so the caller can delete the bytes after commit
    """
    def _op() -> str:
        row = db.session.query(InvoicePhoto, Invoice).join(
            Invoice, Invoice.id == InvoicePhoto.invoice_id
        ).filter(
            InvoicePhoto.id == photo_id,
            Invoice.shop_id == shop_id,
        ).first()
        if not row:
            raise PhotoNotFoundError(f"Photo {photo_id} not found")

        photo, invoice = row
        file_name = photo.file_name
        db.session.delete(photo)
        db.session.flush()

        audit_service.record(
            shop_id, "invoice_photo", photo_id, audit_service.ACTION_DELETE,
            {"invoiceId": invoice.id}, actor_user_id,
        )
        return file_name

    return run_in_transaction(_op)
