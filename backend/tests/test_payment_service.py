# Overview: Pytest coverage for payments, allocations, invoice status and party balances.

"""
Payment Allocation & Ledger Balance Tests

1. Status derivation: UNPAID / PARTIAL / PAID from allocations vs grand total
2. Reference scenario: 1030.00 invoice paid in full -> PAID, balance 0
3. Deleting a payment recomputes status and balance
4. Balance invariant holds after every operation in a mixed sequence
5. Allocation validation and idempotent payment creation
"""

import random

import pytest

from conftest import invoice_payload
from shopcore.models import (
    Customer,
    Invoice,
    Payment,
    PaymentAllocation,
    PARTY_CUSTOMER,
    PARTY_VENDOR,
    Vendor,
)
from shopcore.money_utils import to_paisa
from shopcore.services import balance_service, party_service
from shopcore.services.invoice_service import create_invoice, delete_invoice, update_invoice
from shopcore.services.party_service import PartyNotFoundError, delete_party
from shopcore.services.payment_service import (
    AllocationInvoiceNotFoundError,
    PaymentNotFoundError,
    create_payment,
    delete_payment,
    derive_invoice_status,
    get_payment,
    list_payments,
)
from shopcore.validation import InvalidMonetaryInput, ValidationError


def _payment(party, amount, allocations=(), party_type=PARTY_CUSTOMER, direction="IN"):
    return {
        "type": direction,
        "partyType": party_type,
        "partyId": party.id,
        "amount": amount,
        "date": "2026-10-19",
        "mode": "UPI",
        "allocations": [{"invoiceId": inv_id, "amount": amt} for inv_id, amt in allocations],
    }


def _status(session, invoice_id):
    return session.get(Invoice, invoice_id).status


def _balance(session, model, party_id):
    return session.get(model, party_id).balance_paisa


class TestDeriveStatus:

    @pytest.mark.parametrize("allocated, expected", [
        (0, "UNPAID"),
        (4000, "PARTIAL"),
        (9999, "PARTIAL"),
        (10000, "PAID"),
        (15000, "PAID"),
    ])
    def test_against_10000(self, allocated, expected):
        assert derive_invoice_status(allocated, 10000) == expected

    def test_zero_value_invoice_is_paid(self):
        assert derive_invoice_status(0, 0) == "PAID"


class TestScenario:

    def test_full_payment_marks_paid_and_clears_balance(self, db_session, shop_a, customer_a):
        invoice = create_invoice(shop_a.id, invoice_payload(customer_a))
        assert invoice["totals"]["subtotal"] == "1000.00"
        assert invoice["totals"]["taxTotal"] == "30.00"
        assert invoice["totals"]["cgst"] == invoice["totals"]["sgst"] == "15.00"
        assert invoice["totals"]["grandTotal"] == "1030.00"
        assert _balance(db_session, Customer, customer_a.id) == 103000

        payment = create_payment(shop_a.id, _payment(customer_a, 1030.00, [(invoice["id"], 1030.00)]))

        assert payment["transactionNumber"].endswith("-0001")
        assert payment["amount"] == "1030.00"
        assert payment["allocations"][0]["invoiceId"] == invoice["id"]
        assert _status(db_session, invoice["id"]) == "PAID"
        assert _balance(db_session, Customer, customer_a.id) == 0
        assert db_session.get(Customer, customer_a.id).balance == "0.00"


class TestAllocations:

    def test_partial_then_paid(self, db_session, shop_a, customer_a):
        invoice = create_invoice(shop_a.id, invoice_payload(customer_a))

        create_payment(shop_a.id, _payment(customer_a, 400, [(invoice["id"], 400)]))
        assert _status(db_session, invoice["id"]) == "PARTIAL"

        create_payment(shop_a.id, _payment(customer_a, 630, [(invoice["id"], 630)]))
        assert _status(db_session, invoice["id"]) == "PAID"

    def test_one_payment_across_two_invoices(self, db_session, shop_a, customer_a):
        first = create_invoice(shop_a.id, invoice_payload(customer_a))
        second = create_invoice(shop_a.id, invoice_payload(customer_a))

        create_payment(shop_a.id, _payment(
            customer_a, 1500, [(first["id"], 1030), (second["id"], 470)],
        ))

        assert _status(db_session, first["id"]) == "PAID"
        assert _status(db_session, second["id"]) == "PARTIAL"
        assert _balance(db_session, Customer, customer_a.id) == 206000 - 150000

    def test_unallocated_remainder_allowed(self, db_session, shop_a, customer_a):
        invoice = create_invoice(shop_a.id, invoice_payload(customer_a))
        create_payment(shop_a.id, _payment(customer_a, 2000, [(invoice["id"], 1000)]))

        assert _status(db_session, invoice["id"]) == "PARTIAL"
        assert _balance(db_session, Customer, customer_a.id) == 103000 - 200000

    def test_allocations_exceeding_amount_rejected(self, db_session, shop_a, customer_a):
        invoice = create_invoice(shop_a.id, invoice_payload(customer_a))
        with pytest.raises(ValidationError):
            create_payment(shop_a.id, _payment(customer_a, 100, [(invoice["id"], 200)]))
        assert db_session.query(Payment).count() == 0

    def test_allocation_to_deleted_invoice_rejected(self, db_session, shop_a, customer_a):
        invoice = create_invoice(shop_a.id, invoice_payload(customer_a))
        delete_invoice(shop_a.id, invoice["id"])

        with pytest.raises(AllocationInvoiceNotFoundError):
            create_payment(shop_a.id, _payment(customer_a, 100, [(invoice["id"], 100)]))

    def test_allocation_to_other_shop_invoice_rejected(self, db_session, shop_a, shop_b, customer_a, customer_b):
        foreign = create_invoice(shop_b.id, invoice_payload(customer_b))

        with pytest.raises(AllocationInvoiceNotFoundError):
            create_payment(shop_a.id, _payment(customer_a, 100, [(foreign["id"], 100)]))
        assert _status(db_session, foreign["id"]) == "UNPAID"

    def test_vendor_payment_cannot_settle_customer_invoice(self, db_session, shop_a, customer_a, vendor_a):
        invoice = create_invoice(shop_a.id, invoice_payload(customer_a))

        with pytest.raises(ValidationError):
            create_payment(shop_a.id, _payment(
                vendor_a, 1030.00, [(invoice["id"], 1030.00)], party_type=PARTY_VENDOR, direction="OUT",
            ))

        assert _status(db_session, invoice["id"]) == "UNPAID"
        assert _balance(db_session, Customer, customer_a.id) == 103000
        assert _balance(db_session, Vendor, vendor_a.id) == 0
        assert db_session.query(Payment).count() == 0

    def test_allocation_to_another_customers_invoice_rejected(self, db_session, shop_a, customer_a):
        other = party_service.create_party(shop_a.id, PARTY_CUSTOMER, {"name": "Meera"})
        invoice = create_invoice(shop_a.id, invoice_payload(other))

        with pytest.raises(ValidationError):
            create_payment(shop_a.id, _payment(customer_a, 1030, [(invoice["id"], 1030)]))

        assert _status(db_session, invoice["id"]) == "UNPAID"
        assert _balance(db_session, Customer, other.id) == 103000
        assert db_session.query(Payment).count() == 0

    def test_allocation_to_walk_in_invoice_rejected(self, db_session, shop_a, customer_a):
        invoice = create_invoice(shop_a.id, invoice_payload())

        with pytest.raises(ValidationError):
            create_payment(shop_a.id, _payment(customer_a, 100, [(invoice["id"], 100)]))

    def test_update_rederives_status_against_new_total(self, db_session, shop_a, customer_a):
        invoice = create_invoice(shop_a.id, invoice_payload(customer_a))
        create_payment(shop_a.id, _payment(customer_a, 1030, [(invoice["id"], 1030)]))

        updated = update_invoice(shop_a.id, invoice["id"], invoice_payload(
            customer_a, items=[{"quantity": 4, "rate": 500, "taxRate": 3}],
        ))

        assert updated["status"] == "PARTIAL"
        assert _balance(db_session, Customer, customer_a.id) == 206000 - 103000


class TestPaymentValidation:

    @pytest.mark.parametrize("field, value", [
        ("type", "SIDEWAYS"),
        ("partyType", "SUPPLIER"),
        ("date", None),
    ])
    def test_bad_fields(self, db_session, shop_a, customer_a, field, value):
        data = _payment(customer_a, 100)
        data[field] = value
        with pytest.raises(ValidationError):
            create_payment(shop_a.id, data)

    @pytest.mark.parametrize("amount", [-1, "abc", None, True])
    def test_bad_amount(self, db_session, shop_a, customer_a, amount):
        with pytest.raises(InvalidMonetaryInput):
            create_payment(shop_a.id, _payment(customer_a, amount))

    def test_unknown_party(self, db_session, shop_a, customer_b):
        with pytest.raises(PartyNotFoundError):
            create_payment(shop_a.id, _payment(customer_b, 100))

    def test_deleted_party_cannot_be_paid(self, db_session, shop_a, customer_a):
        delete_party(shop_a.id, PARTY_CUSTOMER, customer_a.id)
        with pytest.raises(PartyNotFoundError):
            create_payment(shop_a.id, _payment(customer_a, 100))

    def test_notes_sanitized(self, db_session, shop_a, customer_a):
        data = _payment(customer_a, 100)
        data["notes"] = "<b>cash</b> at counter"
        assert create_payment(shop_a.id, data)["notes"] == "cash at counter"


class TestIdempotentPayment:

    def test_same_token_twice_gives_one_payment(self, db_session, shop_a, customer_a):
        invoice = create_invoice(shop_a.id, invoice_payload(customer_a))
        data = _payment(customer_a, 500, [(invoice["id"], 500)])

        first = create_payment(shop_a.id, data, request_id="pay-1")
        second = create_payment(shop_a.id, data, request_id="pay-1")

        assert first == second
        assert db_session.query(Payment).count() == 1
        assert _balance(db_session, Customer, customer_a.id) == 103000 - 50000

    def test_replay_after_delete_raises_not_found(self, db_session, shop_a, customer_a):
        first = create_payment(shop_a.id, _payment(customer_a, 500), request_id="pay-2")
        delete_payment(shop_a.id, first["id"])

        with pytest.raises(PaymentNotFoundError):
            create_payment(shop_a.id, _payment(customer_a, 500), request_id="pay-2")
        assert db_session.query(Payment).count() == 0


class TestDeletePayment:

    def test_delete_restores_status_and_balance(self, db_session, shop_a, customer_a):
        invoice = create_invoice(shop_a.id, invoice_payload(customer_a))
        payment = create_payment(shop_a.id, _payment(customer_a, 1030, [(invoice["id"], 1030)]))
        assert _status(db_session, invoice["id"]) == "PAID"

        delete_payment(shop_a.id, payment["id"])

        assert _status(db_session, invoice["id"]) == "UNPAID"
        assert _balance(db_session, Customer, customer_a.id) == 103000
        assert db_session.query(PaymentAllocation).count() == 0
        assert get_payment(shop_a.id, payment["id"]) is None

    def test_delete_one_of_two_payments_gives_partial(self, db_session, shop_a, customer_a):
        invoice = create_invoice(shop_a.id, invoice_payload(customer_a))
        create_payment(shop_a.id, _payment(customer_a, 500, [(invoice["id"], 500)]))
        second = create_payment(shop_a.id, _payment(customer_a, 530, [(invoice["id"], 530)]))

        delete_payment(shop_a.id, second["id"])
        assert _status(db_session, invoice["id"]) == "PARTIAL"

    def test_missing_payment_changes_nothing(self, db_session, shop_a, shop_b, customer_a):
        invoice = create_invoice(shop_a.id, invoice_payload(customer_a))
        payment = create_payment(shop_a.id, _payment(customer_a, 1030, [(invoice["id"], 1030)]))

        with pytest.raises(PaymentNotFoundError):
            delete_payment(shop_b.id, payment["id"])
        with pytest.raises(PaymentNotFoundError):
            delete_payment(shop_a.id, "missing")

        assert _status(db_session, invoice["id"]) == "PAID"
        assert db_session.query(Payment).count() == 1


class TestVendorBalance:

    def test_vendor_balance_is_minus_payments(self, db_session, shop_a, vendor_a):
        create_payment(shop_a.id, _payment(vendor_a, 250, party_type=PARTY_VENDOR, direction="OUT"))
        assert _balance(db_session, Vendor, vendor_a.id) == -25000

    def test_direction_does_not_flip_sign(self, db_session, shop_a, customer_a):
        create_payment(shop_a.id, _payment(customer_a, 100, direction="OUT"))
        assert _balance(db_session, Customer, customer_a.id) == -10000


class TestListPayments:

    def test_filters(self, db_session, shop_a, customer_a, vendor_a):
        create_payment(shop_a.id, _payment(customer_a, 100))
        create_payment(shop_a.id, _payment(vendor_a, 50, party_type=PARTY_VENDOR, direction="OUT"))

        assert len(list_payments(shop_a.id)) == 2
        assert len(list_payments(shop_a.id, party_id=customer_a.id)) == 1
        assert len(list_payments(shop_a.id, party_type=PARTY_VENDOR)) == 1
        outgoing = list_payments(shop_a.id, direction="OUT")
        assert [p["partyId"] for p in outgoing] == [vendor_a.id]


class TestBalanceInvariant:

    def test_invariant_after_every_operation(self, db_session, shop_a, customer_a):
        """Random mix of invoice and payment creates/deletes against one customer."""
        rng = random.Random(42)
        live_invoices, live_payments = [], []

        def expected():
            invoiced = sum(to_paisa(i["totals"]["grandTotal"]) for i in live_invoices)
            paid = sum(to_paisa(p["amount"]) for p in live_payments)
            return invoiced - paid

        for _ in range(40):
            op = rng.choice(["invoice", "invoice", "payment", "payment", "del_invoice", "del_payment"])

            if op == "invoice":
                payload = invoice_payload(customer_a, items=[{
                    "quantity": rng.randint(1, 3),
                    "rate": round(rng.uniform(1, 900), 2),
                    "taxRate": rng.choice([0, 3, 18]),
                }])
                live_invoices.append(create_invoice(shop_a.id, payload))
            elif op == "payment":
                allocations = []
                if live_invoices:
                    allocations = [(rng.choice(live_invoices)["id"], 10)]
                live_payments.append(create_payment(
                    shop_a.id, _payment(customer_a, rng.randint(10, 1500), allocations),
                ))
            elif op == "del_invoice" and live_invoices:
                victim = live_invoices.pop(rng.randrange(len(live_invoices)))
                delete_invoice(shop_a.id, victim["id"])
            elif op == "del_payment" and live_payments:
                victim = live_payments.pop(rng.randrange(len(live_payments)))
                delete_payment(shop_a.id, victim["id"])

            assert _balance(db_session, Customer, customer_a.id) == expected()
            assert balance_service.verify_party_balances(shop_a.id) == []
