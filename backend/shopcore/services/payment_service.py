# Overview: Service-layer operations for payments, allocations and invoice payment status.

"""
Payment Allocation & Status Engine

WHY: A payment from a customer (or to a vendor) may settle several invoices
at once. Each invoice's status and the party's balance must move with it,
atomically.

DESIGN PRINCIPLES:
- Payments are immutable; the only change after creation is deletion
- A payment may be split across invoices via allocations; the allocations
  may add up to less than the payment (unallocated remainder is allowed)
- Only a customer payment can carry allocations, and only to that
  customer's own invoices
- Invoice status is derived, never set by callers:
    PAID     allocated >= grand total
    PARTIAL  0 < allocated < grand total
    UNPAID   otherwise
- Create and delete each run as ONE transaction spanning the payment row,
  its allocations, every touched invoice's status and the party balance
"""

from __future__ import annotations

from typing import Any, Mapping

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import (
    Invoice,
    InvoiceTotals,
    Payment,
    PaymentAllocation,
    PARTY_CUSTOMER,
    PARTY_TYPES,
    generate_uuid,
)
from ..models.invoices import INVOICE_STATUS_PENDING, derive_invoice_status
from ..models.payments import PAYMENT_DIRECTIONS
from ..money_utils import to_paisa
from ..signals import notify_ledger_changed
from ..validation import (
    ConstraintViolation,
    NotFoundError,
    ValidationError,
    optional_text,
    require_choice,
    sanitize_text,
)
from . import audit_service, idempotency_service
from .balance_service import recompute_balance
from .concurrency import lock_for_update, run_in_transaction
from .party_service import require_party
from .sequence_service import SEQ_PAYMENT, next_document_number
from shopcore.time_utils import parse_iso_date, utcnow


class PaymentNotFoundError(NotFoundError):
    """Raised when a payment is not found for this shop."""
    pass


class AllocationInvoiceNotFoundError(NotFoundError):
    """Raised when an allocation targets a missing or deleted invoice."""
    pass


# =============================================================================
# INVOICE PAYMENT STATUS
# =============================================================================

def allocated_total(shop_id: str, invoice_id: str) -> int:
    """Sum of live allocations against an invoice (payments of this shop only)."""
    total = db.session.query(
        func.coalesce(func.sum(PaymentAllocation.amount_paisa), 0)
    ).join(
        Payment, Payment.id == PaymentAllocation.payment_id
    ).filter(
        Payment.shop_id == shop_id,
        PaymentAllocation.invoice_id == invoice_id,
    ).scalar()
    return int(total or 0)


def update_invoice_status(shop_id: str, invoice_id: str, *, keep_pending: bool = False) -> str | None:
    """
    Recalculate and store an invoice's payment status.

    Args:
        keep_pending: Leave a PENDING invoice PENDING while it has no
            allocations (used when an invoice is re-saved, not when a
            payment changes)

    Returns:
        The resulting status, or None if the invoice has no totals row
    """
    row = db.session.query(Invoice, InvoiceTotals).join(
        InvoiceTotals, InvoiceTotals.invoice_id == Invoice.id
    ).filter(
        Invoice.id == invoice_id,
        Invoice.shop_id == shop_id,
    ).first()
    if row is None:
        return None

    invoice, totals = row
    allocated = allocated_total(shop_id, invoice_id)

    if keep_pending and allocated == 0 and invoice.status == INVOICE_STATUS_PENDING:
        status = INVOICE_STATUS_PENDING
    else:
        status = derive_invoice_status(allocated, totals.grand_total_paisa)

    if invoice.status != status:
        invoice.status = status
        invoice.updated_at = utcnow()
    return status


# =============================================================================
# PAYMENT CREATION
# =============================================================================

def _parse_allocations(
    shop_id: str, party_type: str, party_id: str, raw_allocations: Any
) -> list[tuple[str, int]]:
    """Allocations may only settle live invoices billed to the paying customer."""
    if raw_allocations is None:
        return []
    if not isinstance(raw_allocations, list):
        raise ValidationError("allocations must be a list")

    allocations = []
    for index, alloc in enumerate(raw_allocations):
        if not isinstance(alloc, Mapping):
            raise ValidationError(f"allocations[{index}] must be an object")
        invoice_id = optional_text(alloc.get("invoiceId"))
        if not invoice_id:
            raise ValidationError(f"allocations[{index}].invoiceId is required")

        invoice = db.session.query(Invoice.id, Invoice.customer_id).filter(
            Invoice.id == invoice_id,
            Invoice.shop_id == shop_id,
            Invoice.deleted_at.is_(None),
        ).first()
        if invoice is None:
            raise AllocationInvoiceNotFoundError(f"Invoice {invoice_id} not found")
        if party_type != PARTY_CUSTOMER or invoice.customer_id != party_id:
            raise ValidationError(
                f"allocations[{index}]: invoice {invoice_id} is not billed to this party"
            )

        allocations.append((invoice_id, to_paisa(alloc.get("amount"), f"allocations[{index}].amount")))
    return allocations


def create_payment(
    shop_id: str,
    data: Mapping[str, Any],
    request_id: str | None = None,
    actor_user_id: str | None = None,
) -> dict:
    """
    Record a payment with optional allocations to invoices.

    Request data:
    {
        "type": "IN",                    IN (received) or OUT (paid)
        "partyType": "CUSTOMER",         CUSTOMER or VENDOR
        "partyId": "<uuid>",
        "amount": 1030.00,               rupees, converted to paisa immediately
        "date": "2026-10-19",
        "mode": "UPI",                   (optional)
        "notes": "...",                  (optional)
        "allocations": [{"invoiceId": "<uuid>", "amount": 1030.00}]
    }

    Returns:
        Payment dict with allocations (the existing one on an idempotent replay)

    Raises:
        ValidationError / InvalidMonetaryInput: Bad input
        PartyNotFoundError: Party missing in this shop
        AllocationInvoiceNotFoundError: Allocation to a missing/deleted invoice
        ValidationError: Allocation to an invoice not billed to this customer
        PaymentNotFoundError: Replayed token whose payment was since deleted
        SequenceNotInitialized: Shop counters never seeded
    """
    request_id = idempotency_service.normalize_request_id(request_id)

    def _op() -> tuple[str, bool]:
        if request_id:
            existing_id = idempotency_service.check_or_reserve(
                shop_id, request_id, idempotency_service.ENTITY_PAYMENT
            )
            if existing_id:
                return existing_id, False

        direction = require_choice("type", data.get("type"), PAYMENT_DIRECTIONS)
        party_type = require_choice("partyType", data.get("partyType"), PARTY_TYPES)
        party = require_party(shop_id, party_type, data.get("partyId"))
        amount_paisa = to_paisa(data.get("amount"), "amount")

        try:
            payment_date = parse_iso_date(data.get("date"))
        except (TypeError, ValueError):
            raise ValidationError("date must be an ISO-8601 date")
        if payment_date is None:
            raise ValidationError("date is required")

        allocations = _parse_allocations(shop_id, party_type, party.id, data.get("allocations"))
        if sum(amount for _, amount in allocations) > amount_paisa:
            raise ValidationError("allocations cannot exceed the payment amount")

        payment = Payment(
            id=generate_uuid(),
            shop_id=shop_id,
            transaction_number=next_document_number(shop_id, SEQ_PAYMENT),
            type=direction,
            party_type=party_type,
            party_id=party.id,
            amount_paisa=amount_paisa,
            date=payment_date,
            mode=optional_text(data.get("mode")),
            notes=sanitize_text(optional_text(data.get("notes"))),
            created_at=utcnow(),
        )
        for position, (invoice_id, amount) in enumerate(allocations):
            payment.allocations.append(
                PaymentAllocation(
                    id=generate_uuid(),
                    invoice_id=invoice_id,
                    position=position,
                    amount_paisa=amount,
                )
            )
        db.session.add(payment)
        db.session.flush()

        # Once per distinct invoice touched
        for invoice_id in dict.fromkeys(invoice_id for invoice_id, _ in allocations):
            update_invoice_status(shop_id, invoice_id)

        recompute_balance(shop_id, party.id, party_type)

        if request_id:
            idempotency_service.remember(
                shop_id, request_id, idempotency_service.ENTITY_PAYMENT, payment.id
            )

        audit_service.record(
            shop_id, "payment", payment.id, audit_service.ACTION_CREATE,
            {"transactionNumber": payment.transaction_number}, actor_user_id,
        )
        return payment.id, True

    try:
        payment_id, created = run_in_transaction(_op)
    except ConstraintViolation:
        # Lost a race on the request token: the winner's payment is the answer
        if not request_id:
            raise
        payment_id = idempotency_service.check_or_reserve(
            shop_id, request_id, idempotency_service.ENTITY_PAYMENT
        )
        if payment_id is None:
            raise
        created = False

    if created:
        current_app.logger.info("Payment %s created for shop %s", payment_id, shop_id)
        notify_ledger_changed(shop_id, "payment", payment_id, audit_service.ACTION_CREATE)

    payment = get_payment(shop_id, payment_id)
    if payment is None:
        raise PaymentNotFoundError(f"Payment {payment_id} was deleted after it was created")
    return payment


# =============================================================================
# PAYMENT DELETION
# =============================================================================

def delete_payment(shop_id: str, payment_id: str, actor_user_id: str | None = None) -> None:
    """
    Delete a payment, then recompute everything it affected.

    Order: allocations and payment removed, then each touched invoice's
    status recomputed from the allocations that remain, then the party
    balance. A missing payment aborts before any mutation.
    """
    def _op() -> None:
        payment = lock_for_update(
            db.session.query(Payment).filter_by(id=payment_id, shop_id=shop_id)
        ).first()
        if not payment:
            raise PaymentNotFoundError(f"Payment {payment_id} not found")

        invoice_ids = list(dict.fromkeys(a.invoice_id for a in payment.allocations))
        party_id, party_type = payment.party_id, payment.party_type
        transaction_number = payment.transaction_number

        db.session.delete(payment)  # allocations cascade
        db.session.flush()

        for invoice_id in invoice_ids:
            update_invoice_status(shop_id, invoice_id)

        recompute_balance(shop_id, party_id, party_type)

        audit_service.record(
            shop_id, "payment", payment_id, audit_service.ACTION_DELETE,
            {"transactionNumber": transaction_number}, actor_user_id,
        )

    run_in_transaction(_op)
    current_app.logger.info("Payment %s deleted for shop %s", payment_id, shop_id)
    notify_ledger_changed(shop_id, "payment", payment_id, audit_service.ACTION_DELETE)


# =============================================================================
# QUERIES
# =============================================================================

def get_payment(shop_id: str, payment_id: str) -> dict | None:
    """Payment with its allocations, or None if not found for this shop."""
    payment = db.session.query(Payment).filter_by(id=payment_id, shop_id=shop_id).first()
    if not payment:
        return None
    return payment.to_dict()


def list_payments(
    shop_id: str,
    *,
    party_id: str | None = None,
    party_type: str | None = None,
    direction: str | None = None,
) -> list[dict]:
    query = db.session.query(Payment).filter(Payment.shop_id == shop_id)

    if party_id:
        query = query.filter(Payment.party_id == party_id)
    if party_type:
        query = query.filter(Payment.party_type == party_type)
    if direction:
        query = query.filter(Payment.type == direction)

    payments = query.order_by(Payment.date.desc(), Payment.created_at.desc()).all()
    return [p.to_dict() for p in payments]
