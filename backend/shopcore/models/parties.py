from __future__ import annotations

from ..extensions import db
from shopcore.money_utils import to_rupees
from shopcore.time_utils import to_utc_z
from .tenancy import generate_uuid


PARTY_CUSTOMER = "CUSTOMER"
PARTY_VENDOR = "VENDOR"
PARTY_TYPES = (PARTY_CUSTOMER, PARTY_VENDOR)


class Customer(db.Model):
    """
    Customer master data.

    MULTI-TENANT: scoped to a shop via shop_id.

    DERIVED: balance_paisa is a cache of the ledger
    (invoiced grand totals minus payments) and is written only by
    balance_service.recompute_balance. `balance` is its decimal-string
    presentation.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_shop_deleted", "shop_id", "deleted_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    shop_id = db.Column(db.String(36), db.ForeignKey("shops.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    gstin = db.Column(db.String(32), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address_json = db.Column(db.JSON, nullable=True)

    balance_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    balance = db.Column(db.String(24), nullable=False, default="0.00")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return _party_dict(self, PARTY_CUSTOMER)


class Vendor(db.Model):
    """
    Vendor master data. Same ledger-derived balance rule as customers.
    """
    __tablename__ = "vendors"
    __table_args__ = (
        db.Index("ix_vendors_shop_deleted", "shop_id", "deleted_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    shop_id = db.Column(db.String(36), db.ForeignKey("shops.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    gstin = db.Column(db.String(32), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address_json = db.Column(db.JSON, nullable=True)

    balance_paisa = db.Column(db.BigInteger, nullable=False, default=0)
    balance = db.Column(db.String(24), nullable=False, default="0.00")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return _party_dict(self, PARTY_VENDOR)


PARTY_MODELS = {
    PARTY_CUSTOMER: Customer,
    PARTY_VENDOR: Vendor,
}


def _party_dict(party, party_type: str) -> dict:
    return {
        "id": party.id,
        "partyType": party_type,
        "name": party.name,
        "gstin": party.gstin,
        "phone": party.phone,
        "email": party.email,
        "address": party.address_json,
        "balance": to_rupees(party.balance_paisa or 0),
        "createdAt": to_utc_z(party.created_at),
        "updatedAt": to_utc_z(party.updated_at),
    }
