from __future__ import annotations

import uuid

from ..extensions import db
from shopcore.time_utils import to_utc_z


def generate_uuid() -> str:
    return str(uuid.uuid4())


class Shop(db.Model):
    """
    Multi-tenant root: every tenant is a Shop.

    WHY: Shared-database multi-tenancy. Every business row carries shop_id
    and every query touching shop-scoped data filters on it explicitly.
    """
    __tablename__ = "shops"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    name = db.Column(db.String(255), nullable=False)

    # Business header info printed on documents
    phone = db.Column(db.String(32), nullable=True)
    gstin = db.Column(db.String(32), nullable=True)
    state_code = db.Column(db.String(8), nullable=True)
    address_json = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Shop id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "gstin": self.gstin,
            "stateCode": self.state_code,
            "address": self.address_json,
            "createdAt": to_utc_z(self.created_at),
        }


class Sequence(db.Model):
    """
    Atomic per-shop document counters (invoice_seq, purchase_seq, payment_seq).

    WHY: Document numbers must never repeat within a shop. Rows are seeded
    when the shop is provisioned and only ever incremented in place.
    """
    __tablename__ = "sequences"

    shop_id = db.Column(db.String(36), db.ForeignKey("shops.id"), primary_key=True)
    key = db.Column(db.String(32), primary_key=True)
    value = db.Column(db.Integer, nullable=False, default=0)

    shop = db.relationship("Shop", backref=db.backref("sequences", lazy=True))


class IdempotencyKey(db.Model):
    """
    Client request token -> entity it produced.

    IMMUTABLE: Written in the same transaction as the entity, never updated.
    The (shop_id, request_id) primary key is the real duplicate guard.
    """
    __tablename__ = "idempotency_keys"

    shop_id = db.Column(db.String(36), db.ForeignKey("shops.id"), primary_key=True)
    request_id = db.Column(db.String(128), primary_key=True)
    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.String(36), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
