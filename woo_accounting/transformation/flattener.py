"""
Row Flattener

Turns a WooCommerce order and its refunds into flat transaction rows:
one payment row per order and one negative row per refund. The same rows
feed the monthly aggregation and the tabular export.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional

from woo_accounting.config.settings import PaymentAmountMode
from woo_accounting.ingestion.models import Order, Refund

NATURE_PAYMENT = "Paiement"
NATURE_REFUND = "Remboursement"

STATUS_LABELS = {
    "completed": "Terminée",
    "processing": "En cours",
    "refunded": "Remboursée",
    "cancelled": "Annulée",
    "failed": "Échouée",
    "on-hold": "En attente",
    "pending": "En attente",
}


def status_label(status: str) -> str:
    """Localized label for an order status; unknown statuses pass through"""
    return STATUS_LABELS.get(status, status)


def normalize_timestamp(value: Optional[str]) -> str:
    """
    Normalize an upstream ISO 8601 timestamp to `YYYY-MM-DD HH:MM:SS`.

    The `T` separator becomes a space and a trailing `Z` or sub-second part
    is dropped. No timezone conversion is applied.
    """
    if not value:
        return ""
    text = value.strip().replace("T", " ")
    if text.endswith("Z"):
        text = text[:-1]
    if "." in text:
        text = text.split(".", 1)[0]
    return text


@dataclass(frozen=True)
class FlatRow:
    """One normalized transaction line"""
    date: str
    reference: str
    last_name: str
    first_name: str
    nature: str
    payment_method: str
    amount: Decimal
    currency: str
    status: str
    city: str

    @property
    def is_refund(self) -> bool:
        return self.nature == NATURE_REFUND

    def to_dict(self) -> dict:
        return {
            "date": self.date,
            "reference": self.reference,
            "last_name": self.last_name,
            "first_name": self.first_name,
            "nature": self.nature,
            "payment_method": self.payment_method,
            "amount": float(self.amount),
            "currency": self.currency,
            "status": self.status,
            "city": self.city,
        }


class RowFlattener:
    """
    Flatten orders into payment and refund rows.

    The payment amount rule has no default and must be chosen by the caller:
    - `order_total`: the order total as reported upstream
    - `adjusted_total`: total + shipping total - |discount total|

    Example:
        flattener = RowFlattener(PaymentAmountMode.ORDER_TOTAL)
        rows = flattener.flatten(order, refunds)
    """

    def __init__(self, payment_amount_mode: PaymentAmountMode):
        self.payment_amount_mode = PaymentAmountMode(payment_amount_mode)

    def payment_amount(self, order: Order) -> Decimal:
        if self.payment_amount_mode is PaymentAmountMode.ADJUSTED_TOTAL:
            return order.total + order.shipping_total - abs(order.discount_total)
        return order.total

    def flatten(
        self,
        order: Order,
        refunds: Iterable[Refund] = (),
        include_refunds: bool = True,
    ) -> List[FlatRow]:
        """
        Build the rows of one order.

        Args:
            order: Upstream order
            refunds: Refunds fetched for this order
            include_refunds: Emit refund rows

        Returns:
            The payment row followed by one row per refund
        """
        last_name = order.billing.last_name or order.shipping.last_name
        first_name = order.billing.first_name or order.shipping.first_name
        city = order.billing.city or order.shipping.city
        order_date = normalize_timestamp(order.date_created)
        status = status_label(order.status)

        rows = [
            FlatRow(
                date=order_date,
                reference=order.display_number,
                last_name=last_name,
                first_name=first_name,
                nature=NATURE_PAYMENT,
                payment_method=order.payment_method_title,
                amount=self.payment_amount(order),
                currency=order.currency,
                status=status,
                city=city,
            )
        ]

        if not include_refunds:
            return rows

        for refund in refunds:
            amount = refund.absolute_amount
            rows.append(
                FlatRow(
                    date=normalize_timestamp(refund.date_created) or order_date,
                    reference=f"{order.display_number}-R{refund.id}",
                    last_name=last_name,
                    first_name=first_name,
                    nature=NATURE_REFUND,
                    payment_method=order.payment_method_title,
                    amount=-amount if amount else amount,
                    currency=order.currency,
                    status=status,
                    city=city,
                )
            )

        return rows
