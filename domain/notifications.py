"""
Domain: Stakeholder notification content for sale status changes.

Each (role, destination status) pair has a template; pairs without one fall
back to a generic "status update" message. Display names are not part of the
Sale aggregate, so messages refer to the sale, customer and product by their
references.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Tuple

from .events import DomainNotification, TransitionEvent
from .sale import Sale
from .status import SaleStatus, StatusRegistry, default_registry


class StakeholderRole(str, Enum):
    CUSTOMER = "customer"
    MANAGER = "manager"
    WAREHOUSE = "warehouse"
    FINANCE = "finance"


# Stakeholders notified by default when a sale reaches a status.
STAKEHOLDERS_BY_STATUS: Dict[SaleStatus, Tuple[StakeholderRole, ...]] = {
    SaleStatus.PENDING: (StakeholderRole.MANAGER,),
    SaleStatus.CONFIRMED: (StakeholderRole.CUSTOMER, StakeholderRole.WAREHOUSE),
    SaleStatus.SHIPPED: (StakeholderRole.CUSTOMER, StakeholderRole.WAREHOUSE),
    SaleStatus.DELIVERED: (StakeholderRole.CUSTOMER, StakeholderRole.FINANCE),
    SaleStatus.INVOICED: (StakeholderRole.CUSTOMER, StakeholderRole.FINANCE),
    SaleStatus.PAID: (StakeholderRole.CUSTOMER, StakeholderRole.FINANCE, StakeholderRole.MANAGER),
    SaleStatus.CANCELLED: (StakeholderRole.CUSTOMER, StakeholderRole.MANAGER, StakeholderRole.WAREHOUSE),
    SaleStatus.REFUNDED: (StakeholderRole.CUSTOMER, StakeholderRole.FINANCE),
}

# (title, message) keyed by (role, status). Placeholders: sale, customer,
# product, value, reason_text.
_TEMPLATES: Dict[Tuple[StakeholderRole, SaleStatus], Tuple[str, str]] = {
    (StakeholderRole.CUSTOMER, SaleStatus.PENDING): (
        "Sale Status Update",
        "Your sale {sale} is pending approval. We will notify you once it's confirmed.",
    ),
    (StakeholderRole.CUSTOMER, SaleStatus.CONFIRMED): (
        "Sale Confirmed",
        "Your sale {sale} for {product} has been confirmed. Estimated delivery: soon.",
    ),
    (StakeholderRole.CUSTOMER, SaleStatus.SHIPPED): (
        "Shipment Ready",
        "Your order {sale} for {product} has been shipped. You can track it now.",
    ),
    (StakeholderRole.CUSTOMER, SaleStatus.DELIVERED): (
        "Delivery Confirmed",
        "Your order {sale} for {product} has been successfully delivered.",
    ),
    (StakeholderRole.CUSTOMER, SaleStatus.INVOICED): (
        "Invoice Generated",
        "Invoice for sale {sale} ({value}) is ready. Please review and process payment.",
    ),
    (StakeholderRole.CUSTOMER, SaleStatus.PAID): (
        "Payment Received",
        "Payment of {value} for sale {sale} has been received. Thank you!",
    ),
    (StakeholderRole.CUSTOMER, SaleStatus.CANCELLED): (
        "Sale Cancelled",
        "Sale {sale} has been cancelled{reason_text}. Please contact us for more information.",
    ),
    (StakeholderRole.CUSTOMER, SaleStatus.REFUNDED): (
        "Refund Processed",
        "Refund of {value} for sale {sale} has been processed{reason_text}.",
    ),
    (StakeholderRole.MANAGER, SaleStatus.PENDING): (
        "Approval Required",
        "Sale {sale} from customer {customer} ({value}) requires your approval.",
    ),
    (StakeholderRole.MANAGER, SaleStatus.CANCELLED): (
        "Sale Cancelled",
        "Sale {sale} for customer {customer} has been cancelled{reason_text}.",
    ),
    (StakeholderRole.MANAGER, SaleStatus.PAID): (
        "Payment Received",
        "Sale {sale} for customer {customer} ({value}) has been marked as paid.",
    ),
    (StakeholderRole.WAREHOUSE, SaleStatus.CONFIRMED): (
        "Order Ready to Pick",
        "Sale {sale} for {product} is confirmed. Please prepare for shipment.",
    ),
    (StakeholderRole.WAREHOUSE, SaleStatus.SHIPPED): (
        "Shipment Dispatched",
        "Sale {sale} has been marked as shipped. Update tracking as needed.",
    ),
    (StakeholderRole.WAREHOUSE, SaleStatus.CANCELLED): (
        "Sale Cancelled",
        "Sale {sale} has been cancelled{reason_text}. Please cancel any pending shipments.",
    ),
    (StakeholderRole.FINANCE, SaleStatus.DELIVERED): (
        "Ready for Invoicing",
        "Sale {sale} for customer {customer} ({value}) has been delivered. Ready to invoice.",
    ),
    (StakeholderRole.FINANCE, SaleStatus.INVOICED): (
        "Invoice Generated",
        "Invoice for sale {sale} (Customer: {customer}, Amount: {value}) has been generated.",
    ),
    (StakeholderRole.FINANCE, SaleStatus.PAID): (
        "Payment Received",
        "Payment of {value} for sale {sale} from {customer} has been received.",
    ),
    (StakeholderRole.FINANCE, SaleStatus.REFUNDED): (
        "Refund Processed",
        "Refund of {value} for sale {sale} has been processed{reason_text}.",
    ),
}


def format_currency(amount: Decimal, currency_symbol: str = "$") -> str:
    """Format an amount as en-US currency, e.g. Decimal("1234.5") -> "$1,234.50"."""

    quantized = Decimal(amount).quantize(Decimal("0.01"))
    sign = "-" if quantized < 0 else ""
    return f"{sign}{currency_symbol}{abs(quantized):,.2f}"


def build_stakeholder_notification(
    role: StakeholderRole,
    sale: Sale,
    event: TransitionEvent,
    *,
    topic: Optional[str] = None,
    registry: StatusRegistry = default_registry,
) -> DomainNotification:
    """Render the notification one stakeholder receives for a transition."""

    status = event.to_status
    label = registry.label(status)
    reason_text = f" (Reason: {event.reason})" if event.reason else ""
    values = {
        "sale": sale.sale_id,
        "customer": sale.customer_ref,
        "product": sale.product_ref,
        "value": format_currency(sale.total_value),
        "reason_text": reason_text,
    }

    template = _TEMPLATES.get((role, status))
    if template is not None:
        title, message = template[0], template[1].format(**values)
    else:
        title = f"Sale Status Update: {label}"
        message = (
            "Sale {sale} for customer {customer} ({product}, {value}) "
            "status changed to {label}{reason_text}."
        ).format(label=label, **values)

    return DomainNotification(
        type=registry.notification_type(status),
        sale_id=sale.sale_id,
        title=title,
        message=message,
        data={
            "recipient_role": role.value,
            "topic": topic or status.value,
            "from_status": event.from_status.value,
            "to_status": status.value,
            "reason": event.reason,
            "actor_ref": event.actor_ref,
        },
    )
