# Overview: Pure mapping between invoice table rows and the API-facing invoice aggregate.

"""
Invoice Aggregate

This is NOT an ORM model. It is the business object shape callers see,
assembled from five tables:
- invoices
- invoice_customer_snapshot
- invoice_items
- invoice_totals
- invoice_photos

READ (assemble): rows -> nested dict. Money is presented as two-decimal
strings, photos as derived download URLs (never file paths).

WRITE (decompose): client payload + server-computed totals -> one row shape
per table. Free text is stripped of markup here. Client-supplied totals,
tax fields and ids are ignored; computed values always come from
money_utils.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from .models.invoices import INVOICE_STATUS_PENDING, INVOICE_TYPES, derive_invoice_status
from .money_utils import InvoiceTotals, to_rupees
from .time_utils import parse_iso_date, to_iso_date, to_utc_z
from .validation import (
    ValidationError,
    optional_text,
    require_choice,
    require_text,
    sanitize_address,
    sanitize_text,
)


TOTAL_FIELDS = (
    ("subtotal", "subtotal_paisa"),
    ("taxTotal", "tax_total_paisa"),
    ("cgst", "cgst_paisa"),
    ("sgst", "sgst_paisa"),
    ("igst", "igst_paisa"),
    ("roundOff", "round_off_paisa"),
    ("grandTotal", "grand_total_paisa"),
)


# =============================================================================
# READ: ASSEMBLY
# =============================================================================

def assemble_invoice_aggregate(
    invoice,
    snapshot,
    items: Iterable,
    totals,
    photos: Iterable,
    *,
    photo_url_template: str = "/api/photos/{photo_id}",
) -> dict:
    """
    Build the invoice aggregate from its rows.

    Args:
        invoice: Invoice header row
        snapshot: InvoiceCustomerSnapshot row (or None)
        items: InvoiceItem rows, already in position order
        totals: InvoiceTotals row (or None)
        photos: InvoicePhoto rows

    Returns:
        Nested dict; customer/totals are None when their row is missing
    """
    return {
        "id": invoice.id,
        "invoiceNumber": invoice.invoice_number,
        "type": invoice.type,
        "status": invoice.status,
        "date": to_iso_date(invoice.date),
        "dueDate": to_iso_date(invoice.due_date),
        "placeOfSupply": invoice.place_of_supply,

        "customer": {
            "id": invoice.customer_id,
            "name": snapshot.name,
            "phone": snapshot.phone,
            "gstin": snapshot.gstin,
            "address": snapshot.address_json,
        } if snapshot is not None else None,

        "items": [
            {
                "id": item.id,
                "productId": item.product_id,
                "description": item.description,
                "hsn": item.hsn,
                "purity": item.purity,
                "quantity": item.quantity,
                "rate": to_rupees(item.rate_paisa),
                "taxRate": item.tax_rate,
                "lineTotal": to_rupees(item.line_total_paisa),
                "tax": to_rupees(item.tax_paisa),
                "weight": item.weight_json,
                "amount": item.amount_json,
            }
            for item in items
        ],

        "totals": {
            key: to_rupees(getattr(totals, column)) for key, column in TOTAL_FIELDS
        } if totals is not None else None,

        "photos": [
            {
                "id": photo.id,
                "url": photo_url_template.format(photo_id=photo.id),
                "createdAt": to_utc_z(photo.created_at),
            }
            for photo in photos
        ],

        "createdAt": to_utc_z(invoice.created_at),
        "updatedAt": to_utc_z(invoice.updated_at),
    }


def assemble_invoice_header(invoice, totals) -> dict:
    """Listing shape: header fields plus grand total, no child collections."""
    return {
        "id": invoice.id,
        "invoiceNumber": invoice.invoice_number,
        "customerId": invoice.customer_id,
        "type": invoice.type,
        "status": invoice.status,
        "date": to_iso_date(invoice.date),
        "dueDate": to_iso_date(invoice.due_date),
        "grandTotal": to_rupees(totals.grand_total_paisa) if totals is not None else None,
        "createdAt": to_utc_z(invoice.created_at),
        "updatedAt": to_utc_z(invoice.updated_at),
    }


# =============================================================================
# WRITE: DECOMPOSITION
# =============================================================================

def require_items(payload: Mapping[str, Any]) -> list:
    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")
    for index, item in enumerate(items):
        if not isinstance(item, Mapping):
            raise ValidationError(f"items[{index}] must be an object")
    return items


def decompose_invoice_aggregate(
    payload: Mapping[str, Any],
    totals: InvoiceTotals,
    *,
    live_customer=None,
) -> dict:
    """
    Split a client invoice payload into per-table row shapes.

    Args:
        payload: Client aggregate (camelCase keys)
        totals: Output of money_utils.calculate_invoice_totals for payload["items"]
        live_customer: Customer row used for the snapshot when the payload
            carries customerId but no customer object

    Returns:
        {"invoice": {...}, "customerSnapshot": {...}, "items": [...], "totals": {...}}
        Row shapes carry no ids; the coordinator assigns them.
    """
    items = require_items(payload)
    if len(items) != len(totals.lines):
        raise ValidationError("totals do not match the submitted items")

    invoice_date = _parse_date("date", payload.get("date"))
    if invoice_date is None:
        raise ValidationError("date is required")

    return {
        "invoice": {
            "customer_id": optional_text(payload.get("customerId")),
            "type": require_choice("type", payload.get("type"), INVOICE_TYPES),
            "status": (
                INVOICE_STATUS_PENDING
                if payload.get("status") == INVOICE_STATUS_PENDING
                else derive_invoice_status(0, totals.grand_total_paisa)
            ),
            "date": invoice_date,
            "due_date": _parse_date("dueDate", payload.get("dueDate")),
            "place_of_supply": optional_text(payload.get("placeOfSupply")),
        },
        "customerSnapshot": _decompose_customer(payload.get("customer"), live_customer),
        "items": [
            _decompose_item(position, item, line)
            for position, (item, line) in enumerate(zip(items, totals.lines))
        ],
        "totals": decompose_totals(totals),
    }


def decompose_totals(totals: InvoiceTotals) -> dict:
    row = totals.as_columns()
    for key, column in TOTAL_FIELDS:
        row[column.removesuffix("_paisa")] = to_rupees(row[column])
    return row


def _decompose_customer(customer: Any, live_customer) -> dict:
    if customer is None and live_customer is not None:
        return {
            "name": live_customer.name,
            "phone": live_customer.phone,
            "gstin": live_customer.gstin,
            "address_json": live_customer.address_json,
        }
    if not isinstance(customer, Mapping):
        raise ValidationError("customer is required")

    name = sanitize_text(require_text("customer.name", customer.get("name")))
    if not name:
        raise ValidationError("customer.name is required")

    return {
        "name": name,
        "phone": optional_text(customer.get("phone")),
        "gstin": optional_text(customer.get("gstin")),
        "address_json": sanitize_address(customer.get("address")) or None,
    }


def _decompose_item(position: int, item: Mapping[str, Any], line) -> dict:
    return {
        "position": position,
        "product_id": optional_text(item.get("productId")),
        "description": sanitize_text(optional_text(item.get("description"))),
        "hsn": sanitize_text(optional_text(item.get("hsn"))),
        "purity": sanitize_text(optional_text(item.get("purity"))),
        "quantity": str(line.quantity),
        "rate_paisa": line.rate_paisa,
        "tax_rate": str(line.tax_rate) if line.tax_rate is not None else None,
        "line_total_paisa": line.line_total_paisa,
        "tax_paisa": line.tax_paisa,
        "weight_json": item.get("weight") or None,
        "amount_json": item.get("amount") or None,
    }


def _parse_date(field: str, value):
    try:
        return parse_iso_date(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an ISO-8601 date")
