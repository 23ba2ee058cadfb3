# Overview: Service-layer operations for request-token idempotency of create calls.

"""
Idempotency Guard

WHY: Mobile clients retry creates on flaky networks. A retried create that
carries the same request token must return the entity the first attempt
produced, never a second copy.

DESIGN:
- check_or_reserve() is a lookup only; it does not write anything
- The caller writes the mapping with remember() inside the SAME transaction
  that creates the entity
- The (shop_id, request_id) primary key is the actual concurrency guarantee;
  the lookup just avoids doing the work twice in the common case
- Mappings are write-once and never deleted in normal operation
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import IdempotencyKey
from ..validation import ConstraintViolation, ValidationError
from shopcore.time_utils import utcnow


ENTITY_INVOICE = "invoice"
ENTITY_PAYMENT = "payment"

MAX_REQUEST_ID_LENGTH = 128


class IdempotencyConflict(ConstraintViolation):
    """Raised when a request token is replayed for a different entity type."""
    pass


def normalize_request_id(request_id) -> str | None:
    """Blank tokens mean 'no token'."""
    if request_id is None:
        return None
    request_id = str(request_id).strip()
    if not request_id:
        return None
    if len(request_id) > MAX_REQUEST_ID_LENGTH:
        raise ValidationError(f"request id cannot exceed {MAX_REQUEST_ID_LENGTH} characters")
    return request_id


def check_or_reserve(shop_id: str, request_id: str, entity_type: str) -> str | None:
    """
    Look up a previously seen request token.

    Returns:
        The entity id the token produced, or None if the token is new

    Raises:
        IdempotencyConflict: If the token already produced a different entity type
    """
    existing = db.session.query(IdempotencyKey).filter_by(
        shop_id=shop_id,
        request_id=request_id,
    ).first()

    if existing is None:
        return None

    if existing.entity_type != entity_type:
        raise IdempotencyConflict(
            f"Request id already used for a {existing.entity_type}, not a {entity_type}"
        )

    current_app.logger.info(
        "Idempotent replay of %s for shop %s: returning %s %s",
        request_id, shop_id, entity_type, existing.entity_id,
    )
    return existing.entity_id


def remember(shop_id: str, request_id: str, entity_type: str, entity_id: str) -> IdempotencyKey:
    """
    Persist the token -> entity mapping in the caller's transaction.

    A concurrent duplicate fails here on flush with an IntegrityError,
    which rolls back the whole create.
    """
    key = IdempotencyKey(
        shop_id=shop_id,
        request_id=request_id,
        entity_type=entity_type,
        entity_id=entity_id,
        created_at=utcnow(),
    )
    db.session.add(key)
    db.session.flush()
    return key
