"""
Domain: Invoice document data for an invoiced sale.

Only the numbers live here (numbering, line totals, tax, rounding). Rendering
to PDF and e-mail delivery are handled by the invoice collaborator.

Rules:
- Invoice number format: INV-YYYY-MM-NNNNN (e.g. INV-2025-01-00001).
- Amounts are rounded half-up to cents.
- tax = subtotal * tax_rate / 100; total = subtotal + tax.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Tuple

from .sale import Sale
from .time import require_utc_timestamp

_CENTS = Decimal("0.01")
DEFAULT_PAYMENT_TERMS_DAYS = 30


def _to_cents(value: Decimal) -> Decimal:
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


def generate_invoice_number(issued_at: datetime, sequence: Optional[int] = None) -> str:
    """
    Build an invoice number for the month of `issued_at`.

    Without an explicit sequence, the last five digits of the millisecond
    timestamp are used.
    """

    require_utc_timestamp("issued_at", issued_at)
    if sequence is None:
        sequence = int(issued_at.timestamp() * 1000) % 100000
    if not 0 <= sequence < 100000:
        raise ValueError("sequence must be between 0 and 99999")
    return f"INV-{issued_at.year:04d}-{issued_at.month:02d}-{sequence:05d}"


@dataclass(frozen=True, slots=True)
class InvoiceLine:
    product_ref: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True, slots=True)
class Invoice:
    invoice_number: str
    sale_id: str
    customer_ref: str
    lines: Tuple[InvoiceLine, ...]
    subtotal: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal
    currency: str
    issued_at: datetime
    due_at: datetime


def build_invoice(
    sale: Sale,
    issued_at: datetime,
    *,
    tax_rate: Decimal = Decimal("0"),
    currency: str = "USD",
    payment_terms_days: int = DEFAULT_PAYMENT_TERMS_DAYS,
    sequence: Optional[int] = None,
) -> Invoice:
    """Build the invoice for a single-line product sale."""

    require_utc_timestamp("issued_at", issued_at)
    if tax_rate < 0:
        raise ValueError("tax_rate must be >= 0")

    line_total = _to_cents(sale.unit_price * sale.quantity)
    line = InvoiceLine(
        product_ref=sale.product_ref,
        quantity=sale.quantity,
        unit_price=sale.unit_price,
        line_total=line_total,
    )
    subtotal = line_total
    tax = _to_cents(subtotal * tax_rate / Decimal("100"))

    return Invoice(
        invoice_number=generate_invoice_number(issued_at, sequence),
        sale_id=sale.sale_id,
        customer_ref=sale.customer_ref,
        lines=(line,),
        subtotal=subtotal,
        tax_rate=tax_rate,
        tax=tax,
        total=_to_cents(subtotal + tax),
        currency=currency,
        issued_at=issued_at,
        due_at=issued_at + timedelta(days=payment_terms_days),
    )
