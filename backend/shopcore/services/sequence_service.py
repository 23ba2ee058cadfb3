# Overview: Service-layer operations for per-shop document sequences.

"""
Document Sequences

WHY: Invoice, purchase and payment numbers must be unique and increasing
within a shop, including under concurrent writers.

DESIGN:
- One counter row per (shop_id, key), seeded at shop provisioning
- A draw is a single UPDATE ... SET value = value + 1 ... RETURNING value,
  never read-then-write
- A missing row is a provisioning bug: SequenceNotInitialized, no auto-create
- Draws join the caller's transaction; a rolled-back write gives its number back
- The calendar year in formatted numbers is decoration only. The counter
  does NOT reset on 1 January: INV-2025-0041 is followed by INV-2026-0042.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import Sequence
from shopcore.time_utils import utcnow


SEQ_INVOICE = "invoice_seq"
SEQ_PURCHASE = "purchase_seq"
SEQ_PAYMENT = "payment_seq"

DOCUMENT_PREFIXES = {
    SEQ_INVOICE: "INV",
    SEQ_PURCHASE: "PUR",
    SEQ_PAYMENT: "PAY",
}


class SequenceNotInitialized(LookupError):
    """Raised when a shop's counter row was never seeded."""
    pass


def next_sequence(shop_id: str, key: str) -> int:
    """
    Atomically increment and return the counter for (shop_id, key).

    Runs inside the caller's transaction; does not commit.

    Raises:
        SequenceNotInitialized: If the counter row does not exist
    """
    stmt = (
        update(Sequence)
        .where(Sequence.shop_id == shop_id, Sequence.key == key)
        .values(value=Sequence.value + 1)
        .returning(Sequence.value)
        .execution_options(synchronize_session=False)
    )
    value = db.session.execute(stmt).scalar_one_or_none()
    if value is None:
        raise SequenceNotInitialized(f"Sequence not found: {key} for shop {shop_id}")

    current_app.logger.debug("Drew %s=%s for shop %s", key, value, shop_id)
    return value


def format_document_number(prefix: str, value: int, year: int, pad: int = 4) -> str:
    return f"{prefix}-{year}-{value:0{pad}d}"


def next_document_number(shop_id: str, key: str, *, today: date | None = None) -> str:
    """
    Draw the next value for key and format it, e.g. INV-2026-0001.

    Args:
        shop_id: Tenant
        key: SEQ_INVOICE, SEQ_PURCHASE or SEQ_PAYMENT
        today: Business date supplying the year (defaults to now, UTC)
    """
    prefix = DOCUMENT_PREFIXES[key]
    value = next_sequence(shop_id, key)
    year = (today or utcnow()).year
    return format_document_number(prefix, value, year, current_app.config["DOCUMENT_NUMBER_PAD"])


def initialize_shop_sequences(shop_id: str) -> int:
    """
    Seed every counter for a shop at 0 so the first draw returns 1.

    Safe to call repeatedly (idempotent): existing rows are left untouched.

    Returns:
        Number of counters created
    """
    existing = {
        key for (key,) in db.session.query(Sequence.key).filter_by(shop_id=shop_id).all()
    }
    created = 0
    for key in DOCUMENT_PREFIXES:
        if key in existing:
            continue
        db.session.add(Sequence(shop_id=shop_id, key=key, value=0))
        created += 1
    db.session.flush()
    return created
