# Overview: Service-layer operations for customers and vendors (parties).

"""
Party Service

WHY: Customers and vendors are the counterparties of invoices and payments.
Both carry a ledger-derived balance that this module never writes: it is
owned by balance_service.

MULTI-TENANT: every query filters on shop_id; soft-deleted parties are
invisible to get/list and cannot receive new payments.
"""

from __future__ import annotations

from typing import Any, Mapping

from ..extensions import db
from ..models import PARTY_MODELS, PARTY_TYPES
from ..validation import (
    NotFoundError,
    optional_text,
    require_choice,
    require_text,
    sanitize_address,
    sanitize_text,
)
from . import audit_service
from .concurrency import run_in_transaction
from .shop_service import require_shop
from shopcore.time_utils import utcnow


class PartyNotFoundError(NotFoundError):
    """Raised when a customer or vendor is missing or soft-deleted."""
    pass


def party_model(party_type: str):
    return PARTY_MODELS[require_choice("partyType", party_type, PARTY_TYPES)]


def _apply_fields(party, data: Mapping[str, Any]) -> None:
    party.name = sanitize_text(require_text("name", data.get("name")))
    party.gstin = optional_text(data.get("gstin"))
    party.phone = optional_text(data.get("phone"))
    party.email = optional_text(data.get("email"))
    party.address_json = sanitize_address(data.get("address")) or None


def create_party(shop_id: str, party_type: str, data: Mapping[str, Any], actor_user_id: str | None = None):
    """
    Create a customer or vendor. The balance always starts at zero;
    any balance in data is ignored.
    """
    model = party_model(party_type)

    def _op():
        require_shop(shop_id)
        now = utcnow()
        party = model(shop_id=shop_id, balance_paisa=0, balance="0.00", created_at=now, updated_at=now)
        _apply_fields(party, data)
        db.session.add(party)
        db.session.flush()

        audit_service.record(
            shop_id, party_type.lower(), party.id, audit_service.ACTION_CREATE,
            {"name": party.name}, actor_user_id,
        )
        return party

    return run_in_transaction(_op)


def get_party(shop_id: str, party_type: str, party_id: str):
    """Live party for this shop, or None."""
    model = party_model(party_type)
    return db.session.query(model).filter(
        model.id == party_id,
        model.shop_id == shop_id,
        model.deleted_at.is_(None),
    ).first()


def require_party(shop_id: str, party_type: str, party_id: str):
    party = get_party(shop_id, party_type, party_id)
    if party is None:
        raise PartyNotFoundError(f"{party_type.title()} {party_id} not found")
    return party


def list_parties(shop_id: str, party_type: str) -> list:
    model = party_model(party_type)
    return db.session.query(model).filter(
        model.shop_id == shop_id,
        model.deleted_at.is_(None),
    ).order_by(model.name).all()


def update_party(
    shop_id: str,
    party_type: str,
    party_id: str,
    data: Mapping[str, Any],
    actor_user_id: str | None = None,
):
    """Replace the editable fields of a party. Balance is not editable."""
    def _op():
        party = require_party(shop_id, party_type, party_id)
        _apply_fields(party, data)
        party.updated_at = utcnow()

        audit_service.record(
            shop_id, party_type.lower(), party.id, audit_service.ACTION_UPDATE,
            None, actor_user_id,
        )
        return party

    return run_in_transaction(_op)


def delete_party(shop_id: str, party_type: str, party_id: str, actor_user_id: str | None = None) -> None:
    """Soft delete; invoices and payments that reference the party are untouched."""
    model = party_model(party_type)

    def _op():
        now = utcnow()
        changed = db.session.query(model).filter(
            model.id == party_id,
            model.shop_id == shop_id,
            model.deleted_at.is_(None),
        ).update({model.deleted_at: now, model.updated_at: now}, synchronize_session=False)

        if not changed:
            raise PartyNotFoundError(f"{party_type.title()} {party_id} not found or already deleted")

        audit_service.record(
            shop_id, party_type.lower(), party_id, audit_service.ACTION_DELETE,
            None, actor_user_id,
        )

    run_in_transaction(_op)
