# Overview: Post-commit notifications for observers outside the core (e.g. dashboard caches).

from __future__ import annotations

from blinker import Namespace
from flask import current_app

_signals = Namespace()

# Sent after a committed invoice or payment mutation that can move totals,
# statuses or balances. Never sent from inside a transaction.
#   sender: the Flask app
#   kwargs: shop_id, entity_type, entity_id, action
ledger_changed = _signals.signal("ledger-changed")


def notify_ledger_changed(shop_id: str, entity_type: str, entity_id: str, action: str) -> None:
    ledger_changed.send(
        current_app._get_current_object(),
        shop_id=shop_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
    )
