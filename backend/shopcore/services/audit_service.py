# Overview: Service-layer dispatch of audit records to pluggable sinks.

"""
Audit Sink

WHY: Every business mutation records who did what. Where the record ends up
(table, log shipper, message bus) belongs to the integration layer, so the
core only dispatches to registered sinks.

POLICY:
- Sinks are called inside the business transaction, before commit
- AUDIT_FAILURES_ARE_FATAL=False (default): a failing sink is logged and the
  business transaction carries on
- AUDIT_FAILURES_ARE_FATAL=True: the sink's exception propagates and the
  whole transaction rolls back
- With no sink registered, records go to the application log
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from flask import Flask, current_app

from shopcore.time_utils import utcnow, to_utc_z


AUDIT_SINKS_KEY = "shopcore.audit_sinks"
SYSTEM_ACTOR = "system"

ACTION_CREATE = "CREATE"
ACTION_UPDATE = "UPDATE"
ACTION_DELETE = "DELETE"


@dataclass(frozen=True)
class AuditRecord:
    shop_id: str
    entity_type: str
    entity_id: str
    action: str
    actor_user_id: str
    details: dict[str, Any] | None = None
    occurred_at: datetime = field(default_factory=utcnow)


AuditSink = Callable[[AuditRecord], None]


def log_sink(rec: AuditRecord) -> None:
    current_app.logger.info(
        "AUDIT shop=%s actor=%s %s %s/%s at=%s details=%s",
        rec.shop_id, rec.actor_user_id, rec.action, rec.entity_type,
        rec.entity_id, to_utc_z(rec.occurred_at), rec.details,
    )


def register_sink(app: Flask, sink: AuditSink) -> None:
    app.extensions.setdefault(AUDIT_SINKS_KEY, []).append(sink)


def get_sinks() -> list[AuditSink]:
    return current_app.extensions.get(AUDIT_SINKS_KEY) or [log_sink]


def record(
    shop_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    details: dict[str, Any] | None = None,
    actor_user_id: str | None = None,
) -> AuditRecord:
    """Dispatch one audit record to every registered sink."""
    rec = AuditRecord(
        shop_id=shop_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        actor_user_id=actor_user_id or SYSTEM_ACTOR,
        details=details,
    )

    for sink in get_sinks():
        try:
            sink(rec)
        except Exception:
            if current_app.config.get("AUDIT_FAILURES_ARE_FATAL"):
                raise
            current_app.logger.exception(
                "Audit sink failed for %s %s/%s", action, entity_type, entity_id
            )
    return rec
