# Overview: Pytest coverage for invoice aggregate assembly and decomposition.

"""
Aggregate Assembler / Decomposer Tests

Pure mapping, no database: rows are plain namespaces.
"""

from datetime import date, datetime
from types import SimpleNamespace

import pytest

from shopcore.aggregates import (
    assemble_invoice_aggregate,
    assemble_invoice_header,
    decompose_invoice_aggregate,
)
from shopcore.money_utils import calculate_invoice_totals
from shopcore.validation import InvalidMonetaryInput, ValidationError


def _payload(**overrides):
    payload = {
        "type": "INVOICE",
        "date": "2026-10-19",
        "customerId": "cust-1",
        "customer": {
            "name": "<b>Ravi</b> Kumar",
            "phone": " 9876543210 ",
            "address": {"line1": "<script>x</script>12 MG Road"},
        },
        "items": [
            {
                "id": "client-id",
                "description": "Gold <i>ring</i>",
                "hsn": "7113",
                "purity": "22K",
                "quantity": 2,
                "rate": 500.00,
                "taxRate": 3,
                "lineTotal": 1,
                "weight": {"gross": "10.5"},
            },
        ],
        "totals": {"grandTotal": "1.00"},
    }
    payload.update(overrides)
    return payload


class TestDecompose:

    def test_row_shapes_and_sanitization(self):
        payload = _payload()
        rows = decompose_invoice_aggregate(payload, calculate_invoice_totals(payload["items"]))

        assert set(rows) == {"invoice", "customerSnapshot", "items", "totals"}
        assert rows["invoice"]["customer_id"] == "cust-1"
        assert rows["invoice"]["status"] == "UNPAID"
        assert rows["invoice"]["date"] == date(2026, 10, 19)

        snapshot = rows["customerSnapshot"]
        assert snapshot["name"] == "Ravi Kumar"
        assert snapshot["phone"] == "9876543210"
        assert "<" not in snapshot["address_json"]["line1"]

        item = rows["items"][0]
        assert item["description"] == "Gold ring"
        assert item["position"] == 0
        assert "id" not in item
        assert item["weight_json"] == {"gross": "10.5"}

    def test_client_totals_are_ignored(self):
        payload = _payload()
        rows = decompose_invoice_aggregate(payload, calculate_invoice_totals(payload["items"]))

        assert rows["items"][0]["line_total_paisa"] == 100000
        assert rows["totals"]["grand_total_paisa"] == 103000
        assert rows["totals"]["grand_total"] == "1030.00"
        assert rows["totals"]["cgst"] == "15.00"

    def test_pending_status_honoured(self):
        payload = _payload(status="PENDING")
        rows = decompose_invoice_aggregate(payload, calculate_invoice_totals(payload["items"]))
        assert rows["invoice"]["status"] == "PENDING"

    def test_client_status_otherwise_ignored(self):
        payload = _payload(status="PAID")
        rows = decompose_invoice_aggregate(payload, calculate_invoice_totals(payload["items"]))
        assert rows["invoice"]["status"] == "UNPAID"

    def test_zero_value_invoice_starts_paid(self):
        payload = _payload(items=[{"description": "Free polish", "quantity": 1, "rate": 0}])
        rows = decompose_invoice_aggregate(payload, calculate_invoice_totals(payload["items"]))
        assert rows["invoice"]["status"] == "PAID"

    def test_zero_value_invoice_can_still_be_pending(self):
        payload = _payload(status="PENDING", items=[{"quantity": 1, "rate": 0}])
        rows = decompose_invoice_aggregate(payload, calculate_invoice_totals(payload["items"]))
        assert rows["invoice"]["status"] == "PENDING"

    def test_snapshot_copied_from_live_customer(self):
        payload = _payload(customer=None)
        live = SimpleNamespace(name="Live Name", phone="1", gstin="29ABC", address_json={"city": "X"})
        rows = decompose_invoice_aggregate(
            payload, calculate_invoice_totals(payload["items"]), live_customer=live
        )
        assert rows["customerSnapshot"]["name"] == "Live Name"
        assert rows["customerSnapshot"]["gstin"] == "29ABC"

    @pytest.mark.parametrize("overrides", [
        {"items": []},
        {"type": "RECEIPT"},
        {"date": None},
        {"date": "19/10/2026"},
        {"customer": {"name": "<b></b>"}},
        {"customer": None},
    ])
    def test_invalid_payloads(self, overrides):
        payload = _payload(**overrides)
        items = payload["items"] or [{"quantity": 1, "rate": 1}]
        with pytest.raises(ValidationError):
            decompose_invoice_aggregate(payload, calculate_invoice_totals(items))

    def test_negative_rate_is_monetary_error(self):
        with pytest.raises(InvalidMonetaryInput):
            calculate_invoice_totals([{"quantity": 1, "rate": -5}])


class TestAssemble:

    def _rows(self):
        created = datetime(2026, 10, 19, 9, 30, 15, 123456)
        invoice = SimpleNamespace(
            id="inv-1", invoice_number="INV-2026-0001", customer_id="cust-1",
            type="INVOICE", status="UNPAID", date=date(2026, 10, 19), due_date=None,
            place_of_supply="29", created_at=created, updated_at=created,
        )
        snapshot = SimpleNamespace(name="Ravi", phone="98", gstin=None, address_json={"city": "B"})
        items = [
            SimpleNamespace(
                id=f"item-{i}", product_id=None, description=f"Item {i}", hsn=None, purity=None,
                quantity="1", rate_paisa=1000 * (i + 1), tax_rate="3",
                line_total_paisa=1000 * (i + 1), tax_paisa=30, weight_json=None, amount_json=None,
            )
            for i in range(3)
        ]
        totals = SimpleNamespace(
            subtotal_paisa=6000, tax_total_paisa=90, cgst_paisa=45, sgst_paisa=45, igst_paisa=0,
            round_off_paisa=10, grand_total_paisa=6100,
        )
        photos = [SimpleNamespace(id="photo-1", file_name="/var/data/a.jpg", created_at=created)]
        return invoice, snapshot, items, totals, photos

    def test_nested_shape(self):
        invoice, snapshot, items, totals, photos = self._rows()
        aggregate = assemble_invoice_aggregate(invoice, snapshot, items, totals, photos)

        assert aggregate["invoiceNumber"] == "INV-2026-0001"
        assert aggregate["customer"] == {
            "id": "cust-1", "name": "Ravi", "phone": "98", "gstin": None, "address": {"city": "B"},
        }
        assert [i["id"] for i in aggregate["items"]] == ["item-0", "item-1", "item-2"]
        assert aggregate["items"][1]["rate"] == "20.00"
        assert aggregate["totals"]["grandTotal"] == "61.00"
        assert aggregate["totals"]["roundOff"] == "0.10"
        assert aggregate["createdAt"] == "2026-10-19T09:30:15Z"

    def test_photos_expose_url_not_path(self):
        invoice, snapshot, items, totals, photos = self._rows()
        aggregate = assemble_invoice_aggregate(
            invoice, snapshot, items, totals, photos, photo_url_template="/files/{photo_id}"
        )
        assert aggregate["photos"] == [
            {"id": "photo-1", "url": "/files/photo-1", "createdAt": "2026-10-19T09:30:15Z"}
        ]
        assert "/var/data" not in str(aggregate)

    def test_missing_snapshot_gives_null_customer(self):
        invoice, _, items, totals, photos = self._rows()
        aggregate = assemble_invoice_aggregate(invoice, None, items, totals, photos)
        assert aggregate["customer"] is None

    def test_header_shape(self):
        invoice, _, _, totals, _ = self._rows()
        header = assemble_invoice_header(invoice, totals)
        assert header["grandTotal"] == "61.00"
        assert header["customerId"] == "cust-1"
        assert "items" not in header
