# Overview: Service-layer ledger balance engine for customers and vendors.

"""
Ledger Balance Engine

INVARIANT (after every committed operation that touches a party):

    party.balance_paisa == SUM(grand_total_paisa of the shop's non-deleted
                               invoices billed to the party)
                         - SUM(amount_paisa of the shop's payments for the party)

DESIGN:
- Always a full recomputation from source rows, never += / -=, so the cache
  cannot drift even after corrective deletes
- One derivation for both party types. Vendors are never the customer on
  an invoice, so their invoiced side is zero and the balance is minus the
  payments made to them.
- Payment direction (IN/OUT) does not change the sign; the party and the
  amount do
- Runs inside the caller's transaction; never commits
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Invoice, InvoiceTotals, Payment, PARTY_MODELS, PARTY_TYPES
from shopcore.money_utils import to_rupees
from .party_service import PartyNotFoundError, party_model


def invoiced_total(shop_id: str, party_id: str) -> int:
    total = db.session.query(
        func.coalesce(func.sum(InvoiceTotals.grand_total_paisa), 0)
    ).join(
        Invoice, Invoice.id == InvoiceTotals.invoice_id
    ).filter(
        Invoice.shop_id == shop_id,
        Invoice.customer_id == party_id,
        Invoice.deleted_at.is_(None),
    ).scalar()
    return int(total or 0)


def paid_total(shop_id: str, party_id: str, party_type: str) -> int:
    total = db.session.query(
        func.coalesce(func.sum(Payment.amount_paisa), 0)
    ).filter(
        Payment.shop_id == shop_id,
        Payment.party_type == party_type,
        Payment.party_id == party_id,
    ).scalar()
    return int(total or 0)


def compute_balance(shop_id: str, party_id: str, party_type: str) -> int:
    """Ledger balance in paisa, without persisting it."""
    return invoiced_total(shop_id, party_id) - paid_total(shop_id, party_id, party_type)


def recompute_balance(shop_id: str, party_id: str, party_type: str) -> int:
    """
    Recompute a party's balance from the ledger and store it on the party row.

    Soft-deleted parties are updated too: their ledger still exists.

    Returns:
        Balance in paisa (positive: the party owes the shop)

    Raises:
        PartyNotFoundError: If the party row does not exist in this shop
    """
    model = party_model(party_type)
    balance = compute_balance(shop_id, party_id, party_type)

    changed = db.session.query(model).filter(
        model.id == party_id,
        model.shop_id == shop_id,
    ).update(
        {model.balance_paisa: balance, model.balance: to_rupees(balance)},
        synchronize_session="fetch",
    )
    if not changed:
        raise PartyNotFoundError(f"{party_type.title()} {party_id} not found")

    current_app.logger.debug("Balance of %s %s in shop %s is %s", party_type, party_id, shop_id, balance)
    return balance


def verify_party_balances(shop_id: str) -> list[dict]:
    """
    Compare every party's cached balance with a fresh recomputation.

    Returns:
        One entry per mismatch; an empty list means the ledger is consistent
    """
    mismatches = []
    for party_type in PARTY_TYPES:
        model = PARTY_MODELS[party_type]
        for party in db.session.query(model).filter_by(shop_id=shop_id).all():
            computed = compute_balance(shop_id, party.id, party_type)
            if computed != party.balance_paisa:
                mismatches.append({
                    "partyType": party_type,
                    "partyId": party.id,
                    "name": party.name,
                    "cachedPaisa": party.balance_paisa,
                    "computedPaisa": computed,
                })
    return mismatches


def recompute_shop_balances(shop_id: str) -> int:
    """Rewrite every party balance of a shop. Caller commits."""
    count = 0
    for party_type in PARTY_TYPES:
        model = PARTY_MODELS[party_type]
        for (party_id,) in db.session.query(model.id).filter_by(shop_id=shop_id).all():
            recompute_balance(shop_id, party_id, party_type)
            count += 1
    return count
