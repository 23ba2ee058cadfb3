# Overview: Pytest coverage for audit sinks and post-commit ledger notifications.

import pytest

from conftest import invoice_payload
from shopcore.models import Invoice
from shopcore.services import audit_service
from shopcore.services.invoice_service import create_invoice, delete_invoice
from shopcore.services.payment_service import create_payment
from shopcore.signals import ledger_changed
from shopcore.validation import ValidationError


class TestAuditSinks:

    def test_records_reach_registered_sink(self, app, db_session, shop_a, customer_a):
        records = []
        audit_service.register_sink(app, records.append)

        invoice = create_invoice(shop_a.id, invoice_payload(customer_a), actor_user_id="user-7")

        invoice_records = [r for r in records if r.entity_type == "invoice"]
        assert len(invoice_records) == 1
        rec = invoice_records[0]
        assert rec.shop_id == shop_a.id
        assert rec.entity_id == invoice["id"]
        assert rec.action == audit_service.ACTION_CREATE
        assert rec.actor_user_id == "user-7"
        assert rec.details["invoiceNumber"] == invoice["invoiceNumber"]

    def test_missing_actor_is_system(self, app, db_session, shop_a):
        records = []
        audit_service.register_sink(app, records.append)

        create_invoice(shop_a.id, invoice_payload())
        assert records[-1].actor_user_id == audit_service.SYSTEM_ACTOR

    def test_failing_sink_does_not_abort_by_default(self, app, db_session, shop_a):
        def broken(rec):
            raise RuntimeError("audit store down")

        audit_service.register_sink(app, broken)

        invoice = create_invoice(shop_a.id, invoice_payload())
        assert db_session.get(Invoice, invoice["id"]) is not None

    def test_failing_sink_aborts_when_fatal(self, app, db_session, shop_a):
        def broken(rec):
            raise RuntimeError("audit store down")

        app.config["AUDIT_FAILURES_ARE_FATAL"] = True
        audit_service.register_sink(app, broken)

        with pytest.raises(RuntimeError):
            create_invoice(shop_a.id, invoice_payload())
        assert db_session.query(Invoice).count() == 0


class TestLedgerChangedSignal:

    def test_sent_after_commit_for_invoice_and_payment(self, app, db_session, shop_a, customer_a):
        received = []

        def listener(sender, **kwargs):
            assert sender is app
            received.append(kwargs)

        with ledger_changed.connected_to(listener, app):
            invoice = create_invoice(shop_a.id, invoice_payload(customer_a))
            create_payment(shop_a.id, {
                "type": "IN",
                "partyType": "CUSTOMER",
                "partyId": customer_a.id,
                "amount": 100,
                "date": "2026-10-19",
            })
            delete_invoice(shop_a.id, invoice["id"])

        assert [(r["entity_type"], r["action"]) for r in received] == [
            ("invoice", "CREATE"),
            ("payment", "CREATE"),
            ("invoice", "DELETE"),
        ]
        assert all(r["shop_id"] == shop_a.id for r in received)

    def test_not_sent_on_failure_or_replay(self, app, db_session, shop_a, customer_a):
        received = []

        with ledger_changed.connected_to(lambda sender, **kw: received.append(kw), app):
            create_invoice(shop_a.id, invoice_payload(customer_a), request_id="r-1")
            create_invoice(shop_a.id, invoice_payload(customer_a), request_id="r-1")
            with pytest.raises(ValidationError):
                create_invoice(shop_a.id, invoice_payload(customer_a, items=[]))

        assert len(received) == 1
