from __future__ import annotations

from ..extensions import db
from .tenancy import generate_uuid


INVOICE_TYPES = ("INVOICE", "PROFORMA", "LENDING")

INVOICE_STATUS_UNPAID = "UNPAID"
INVOICE_STATUS_PARTIAL = "PARTIAL"
INVOICE_STATUS_PAID = "PAID"
INVOICE_STATUS_PENDING = "PENDING"
INVOICE_STATUSES = (
    INVOICE_STATUS_UNPAID,
    INVOICE_STATUS_PARTIAL,
    INVOICE_STATUS_PAID,
    INVOICE_STATUS_PENDING,
)


def derive_invoice_status(allocated_paisa: int, grand_total_paisa: int) -> str:
    # A zero-value invoice is PAID with no allocations
    if allocated_paisa >= grand_total_paisa:
        return INVOICE_STATUS_PAID
    if allocated_paisa > 0:
        return INVOICE_STATUS_PARTIAL
    return INVOICE_STATUS_UNPAID


class Invoice(db.Model):
    """
    Invoice header. The API-facing aggregate is assembled from this row plus
    the snapshot, items, totals and photos tables (see shopcore.aggregates).

    LIFECYCLE:
    - created by invoice_service.create_invoice
    - status written only by the payment status engine
    - soft delete sets deleted_at; child rows stay in place
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "invoice_number", name="uq_invoices_shop_number"),
        db.Index("ix_invoices_shop_deleted_date", "shop_id", "deleted_at", "date"),
    )

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    shop_id = db.Column(db.String(36), db.ForeignKey("shops.id"), nullable=False, index=True)

    # Human-readable document number (e.g., "INV-2026-0001")
    invoice_number = db.Column(db.String(64), nullable=False)
    customer_id = db.Column(db.String(36), db.ForeignKey("customers.id"), nullable=True, index=True)

    type = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=INVOICE_STATUS_UNPAID, index=True)

    date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=True)
    place_of_supply = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)


class InvoiceCustomerSnapshot(db.Model):
    """
    Customer details as they were when the invoice was issued (or last
    fully updated). Deliberately diverges from the live customer row.
    """
    __tablename__ = "invoice_customer_snapshot"

    invoice_id = db.Column(db.String(36), db.ForeignKey("invoices.id"), primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    gstin = db.Column(db.String(32), nullable=True)
    address_json = db.Column(db.JSON, nullable=True)


class InvoiceItem(db.Model):
    """
    Line item. Replaced wholesale on invoice update, so ids are not stable
    across updates. `position` preserves the submitted order.
    """
    __tablename__ = "invoice_items"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    invoice_id = db.Column(db.String(36), db.ForeignKey("invoices.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    product_id = db.Column(db.String(36), nullable=True)
    description = db.Column(db.Text, nullable=True)
    hsn = db.Column(db.String(16), nullable=True)
    purity = db.Column(db.String(32), nullable=True)

    quantity = db.Column(db.String(32), nullable=False)  # exact decimal text, e.g. "2.500"
    rate_paisa = db.Column(db.BigInteger, nullable=False)
    tax_rate = db.Column(db.String(16), nullable=True)  # percent as decimal text
    line_total_paisa = db.Column(db.BigInteger, nullable=False)
    tax_paisa = db.Column(db.BigInteger, nullable=False, default=0)

    # Opaque side data, never interpreted here
    weight_json = db.Column(db.JSON, nullable=True)
    amount_json = db.Column(db.JSON, nullable=True)


class InvoiceTotals(db.Model):
    """
    Server-computed totals. *_paisa columns are authoritative; the
    string columns are their two-decimal presentation.
    """
    __tablename__ = "invoice_totals"

    invoice_id = db.Column(db.String(36), db.ForeignKey("invoices.id"), primary_key=True)

    subtotal_paisa = db.Column(db.BigInteger, nullable=False)
    tax_total_paisa = db.Column(db.BigInteger, nullable=False)
    cgst_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    sgst_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    igst_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    round_off_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    grand_total_paisa = db.Column(db.BigInteger, nullable=False)

    subtotal = db.Column(db.String(24), nullable=False)
    tax_total = db.Column(db.String(24), nullable=False)
    cgst = db.Column(db.String(24), nullable=False)
    sgst = db.Column(db.String(24), nullable=False)
    igst = db.Column(db.String(24), nullable=False)
    round_off = db.Column(db.String(24), nullable=False)
    grand_total = db.Column(db.String(24), nullable=False)


class InvoicePhoto(db.Model):
    """Opaque reference into the external file store."""
    __tablename__ = "invoice_photos"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    invoice_id = db.Column(db.String(36), db.ForeignKey("invoices.id"), nullable=False, index=True)
    file_name = db.Column(db.String(255), nullable=False)
    checksum = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
