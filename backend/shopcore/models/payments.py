from __future__ import annotations

from ..extensions import db
from shopcore.money_utils import to_rupees
from shopcore.time_utils import to_iso_date, to_utc_z
from .tenancy import generate_uuid


PAYMENT_IN = "IN"
PAYMENT_OUT = "OUT"
PAYMENT_DIRECTIONS = (PAYMENT_IN, PAYMENT_OUT)


class Payment(db.Model):
    """
    Money received from (IN) or paid to (OUT) a customer or vendor.

    IMMUTABLE: never edited once created. Deleting a payment removes its
    allocations and triggers recomputation of every invoice status and
    party balance it touched.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "transaction_number", name="uq_payments_shop_txn_number"),
        db.Index("ix_payments_shop_party", "shop_id", "party_type", "party_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    shop_id = db.Column(db.String(36), db.ForeignKey("shops.id"), nullable=False, index=True)

    # Human-readable number (e.g., "PAY-2026-0001")
    transaction_number = db.Column(db.String(64), nullable=False)

    type = db.Column(db.String(8), nullable=False)  # IN, OUT
    party_type = db.Column(db.String(16), nullable=False)  # CUSTOMER, VENDOR
    party_id = db.Column(db.String(36), nullable=False)

    amount_paisa = db.Column(db.BigInteger, nullable=False)
    date = db.Column(db.Date, nullable=False)
    mode = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    allocations = db.relationship(
        "PaymentAllocation",
        backref=db.backref("payment", lazy=True),
        lazy=True,
        cascade="all, delete-orphan",
        order_by="PaymentAllocation.position",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transactionNumber": self.transaction_number,
            "type": self.type,
            "partyType": self.party_type,
            "partyId": self.party_id,
            "amount": to_rupees(self.amount_paisa),
            "date": to_iso_date(self.date),
            "mode": self.mode,
            "notes": self.notes,
            "allocations": [a.to_dict() for a in self.allocations],
            "createdAt": to_utc_z(self.created_at),
        }


class PaymentAllocation(db.Model):
    """
    Portion of a payment applied to one invoice.

    The allocations of a payment need not add up to the payment amount;
    the remainder simply stays unallocated.
    """
    __tablename__ = "payment_allocations"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    payment_id = db.Column(db.String(36), db.ForeignKey("payments.id"), nullable=False, index=True)
    invoice_id = db.Column(db.String(36), db.ForeignKey("invoices.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    amount_paisa = db.Column(db.BigInteger, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoiceId": self.invoice_id,
            "amount": to_rupees(self.amount_paisa),
        }
