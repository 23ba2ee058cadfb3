# Overview: Service-layer operations for shop (tenant) provisioning.

"""
Shop Provisioning

WHY: A shop is the tenant boundary. Its document counters must exist before
the first invoice or payment; seeding them is part of creating the shop.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Shop
from ..validation import NotFoundError, optional_text, require_text, sanitize_address, sanitize_text
from .concurrency import run_in_transaction
from .sequence_service import initialize_shop_sequences


class ShopNotFoundError(NotFoundError):
    """Raised when a shop id does not exist."""
    pass


def create_shop(
    name: str,
    *,
    phone: str | None = None,
    gstin: str | None = None,
    state_code: str | None = None,
    address=None,
) -> Shop:
    """Create a shop and seed its sequences in one transaction."""
    def _op() -> Shop:
        shop = Shop(
            name=sanitize_text(require_text("name", name)),
            phone=optional_text(phone),
            gstin=optional_text(gstin),
            state_code=optional_text(state_code),
            address_json=sanitize_address(address) or None,
        )
        db.session.add(shop)
        db.session.flush()

        initialize_shop_sequences(shop.id)
        return shop

    shop = run_in_transaction(_op)
    current_app.logger.info("Shop created: %s (%s)", shop.name, shop.id)
    return shop


def get_shop(shop_id: str) -> Shop | None:
    return db.session.query(Shop).filter_by(id=shop_id).first()


def require_shop(shop_id: str) -> Shop:
    shop = get_shop(shop_id)
    if shop is None:
        raise ShopNotFoundError(f"Shop {shop_id} not found")
    return shop


def list_shops() -> list[Shop]:
    return db.session.query(Shop).order_by(Shop.created_at, Shop.name).all()
