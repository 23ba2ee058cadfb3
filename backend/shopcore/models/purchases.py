from __future__ import annotations

from ..extensions import db
from shopcore.time_utils import to_iso_date, to_utc_z
from .tenancy import generate_uuid


PURCHASE_STATUS_UNPAID = "UNPAID"
PURCHASE_STATUS_PARTIAL = "PARTIAL"
PURCHASE_STATUS_PAID = "PAID"
PURCHASE_STATUSES = (PURCHASE_STATUS_UNPAID, PURCHASE_STATUS_PARTIAL, PURCHASE_STATUS_PAID)


class Purchase(db.Model):
    """
    Purchase bill header from a vendor.

    Carries no line items or money: a purchase does not enter any party
    ledger. Its status is set by the caller, unlike an invoice's.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.UniqueConstraint("shop_id", "purchase_number", name="uq_purchases_shop_number"),
        db.Index("ix_purchases_shop_deleted_date", "shop_id", "deleted_at", "date"),
    )

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    shop_id = db.Column(db.String(36), db.ForeignKey("shops.id"), nullable=False, index=True)

    # Human-readable document number (e.g., "PUR-2026-0001")
    purchase_number = db.Column(db.String(64), nullable=False)
    vendor_id = db.Column(db.String(36), db.ForeignKey("vendors.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default=PURCHASE_STATUS_UNPAID)
    date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    vendor = db.relationship("Vendor", lazy=True)

    def to_dict(self) -> dict:
        vendor = None
        if self.vendor is not None:
            vendor = {"id": self.vendor.id, "name": self.vendor.name, "phone": self.vendor.phone}
        return {
            "id": self.id,
            "purchaseNumber": self.purchase_number,
            "vendorId": self.vendor_id,
            "vendor": vendor,
            "status": self.status,
            "date": to_iso_date(self.date),
            "dueDate": to_iso_date(self.due_date),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
