# Overview: Fixed-point invoice arithmetic; every amount is an integer in paisa.

"""
Invoice Totals Calculator

WHY: Server-side authority for invoice money. Client-submitted totals are
never trusted; they are recomputed here from the line items.

POLICY:
- Decimal rates are converted to paisa BEFORE multiplication
- Tax is rounded to the nearest paisa per line, then summed (round-per-line)
- CGST/SGST split each line's tax evenly (odd paisa goes to CGST)
- IGST takes the whole line tax for inter-state supply
- Grand total is rounded to the nearest whole rupee;
  round_off = rounded_grand_total - (subtotal + tax_total), may be negative
- Half-up rounding throughout (0.5 paisa -> 1 paisa)
- Quantity, every line amount and the invoice total are capped at
  MAX_AMOUNT_PAISA; anything larger is InvalidMonetaryInput, never a
  decimal or driver overflow

The intra/inter-state decision is made by the caller and passed in.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Mapping

from .validation import InvalidMonetaryInput, MAX_AMOUNT_PAISA, to_decimal

PAISA_PER_RUPEE = 100
MAX_TAX_RATE = Decimal("100")
MAX_QUANTITY = Decimal(MAX_AMOUNT_PAISA)


@dataclass(frozen=True)
class LineAmounts:
    quantity: Decimal
    rate_paisa: int
    tax_rate: Decimal | None
    line_total_paisa: int
    tax_paisa: int


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal_paisa: int
    tax_total_paisa: int
    cgst_paisa: int
    sgst_paisa: int
    igst_paisa: int
    round_off_paisa: int
    grand_total_paisa: int
    lines: tuple[LineAmounts, ...] = ()

    def as_columns(self) -> dict:
        """Integer columns only, keyed like the invoice_totals table."""
        values = asdict(self)
        values.pop("lines")
        return values


def _round_half_up(value: Decimal, field: str = "amount") -> int:
    try:
        return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation:
        raise InvalidMonetaryInput(f"{field} is too large")


def _check_limit(paisa: int, field: str) -> int:
    if paisa > MAX_AMOUNT_PAISA:
        raise InvalidMonetaryInput(f"{field} is too large")
    return paisa


def to_paisa(value: Any, field: str = "amount") -> int:
    """
    Convert a rupee amount (number or numeric string) to integer paisa.

    Raises InvalidMonetaryInput for non-numeric or negative input.
    """
    return _check_limit(_round_half_up(to_decimal(field, value) * PAISA_PER_RUPEE, field), field)


def to_rupees(paisa: int | None) -> str | None:
    """Presentation only: 103000 -> "1030.00", -5 -> "-0.05"."""
    if paisa is None:
        return None
    return str((Decimal(int(paisa)) / PAISA_PER_RUPEE).quantize(Decimal("0.01")))


def compute_line(item: Mapping[str, Any], index: int = 0) -> LineAmounts:
    quantity = to_decimal(f"items[{index}].quantity", item.get("quantity"))
    if quantity > MAX_QUANTITY:
        raise InvalidMonetaryInput(f"items[{index}].quantity is too large")
    rate_paisa = to_paisa(item.get("rate"), f"items[{index}].rate")

    raw_tax_rate = item.get("taxRate")
    tax_rate = None
    if raw_tax_rate is not None and raw_tax_rate != "":
        tax_rate = to_decimal(f"items[{index}].taxRate", raw_tax_rate)
        if tax_rate > MAX_TAX_RATE:
            raise InvalidMonetaryInput(f"items[{index}].taxRate cannot exceed 100")

    field = f"items[{index}].amount"
    line_total = _check_limit(_round_half_up(quantity * rate_paisa, field), field)
    tax = _round_half_up(line_total * tax_rate / 100, field) if tax_rate else 0

    return LineAmounts(
        quantity=quantity,
        rate_paisa=rate_paisa,
        tax_rate=tax_rate,
        line_total_paisa=line_total,
        tax_paisa=tax,
    )


def calculate_invoice_totals(items: Iterable[Mapping[str, Any]], *, intra_state: bool = True) -> InvoiceTotals:
    """
    Calculate invoice totals from line items.

    Args:
        items: Ordered line items with quantity, rate (rupees) and optional taxRate (%)
        intra_state: True splits tax into CGST/SGST, False books it all as IGST

    Returns:
        InvoiceTotals with every value in paisa, plus the per-line amounts
    """
    subtotal = tax_total = cgst = sgst = igst = 0
    lines = []

    for index, item in enumerate(items):
        line = compute_line(item, index)
        lines.append(line)

        subtotal += line.line_total_paisa
        tax_total += line.tax_paisa

        if intra_state:
            half = _round_half_up(Decimal(line.tax_paisa) / 2)
            cgst += half
            sgst += line.tax_paisa - half
        else:
            igst += line.tax_paisa

    exact = _check_limit(subtotal + tax_total, "invoice total")
    grand_total = _round_half_up(Decimal(exact) / PAISA_PER_RUPEE) * PAISA_PER_RUPEE

    return InvoiceTotals(
        subtotal_paisa=subtotal,
        tax_total_paisa=tax_total,
        cgst_paisa=cgst,
        sgst_paisa=sgst,
        igst_paisa=igst,
        round_off_paisa=grand_total - exact,
        grand_total_paisa=grand_total,
        lines=tuple(lines),
    )
