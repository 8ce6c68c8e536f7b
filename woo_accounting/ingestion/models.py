"""
Upstream Payload Models

Read-only views of the WooCommerce order and refund resources. Only the
fields used by the flattener and the aggregator are declared; everything
else in the payload is ignored.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _zero_if_blank(value: Any) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        return "0"
    return value


class Contact(BaseModel):
    """Billing or shipping contact"""

    model_config = ConfigDict(extra="ignore")

    first_name: str = ""
    last_name: str = ""
    city: str = ""

    @field_validator("first_name", "last_name", "city", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)


class RefundSummary(BaseModel):
    """Refund entry embedded in an order payload"""

    model_config = ConfigDict(extra="ignore")

    id: int
    reason: Optional[str] = None
    total: Optional[str] = None


class Order(BaseModel):
    """WooCommerce order"""

    model_config = ConfigDict(extra="ignore")

    id: int
    number: str = ""
    status: str = ""
    currency: str = ""
    date_created: Optional[str] = None
    total: Decimal = Decimal("0")
    shipping_total: Decimal = Decimal("0")
    discount_total: Decimal = Decimal("0")
    payment_method_title: str = ""
    billing: Contact = Field(default_factory=Contact)
    shipping: Contact = Field(default_factory=Contact)
    # None: unknown, look refunds up. Empty list: order has no refunds.
    refunds: Optional[List[RefundSummary]] = None

    @field_validator("number", "payment_method_title", "status", "currency", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("total", "shipping_total", "discount_total", mode="before")
    @classmethod
    def blank_amounts(cls, v: Any) -> Any:
        return _zero_if_blank(v)

    @field_validator("billing", "shipping", mode="before")
    @classmethod
    def empty_contact(cls, v: Any) -> Any:
        return v or {}

    @property
    def display_number(self) -> str:
        return self.number or str(self.id)

    @property
    def has_no_refunds(self) -> bool:
        """True when the payload says outright that there are no refunds"""
        return self.refunds is not None and len(self.refunds) == 0


class Refund(BaseModel):
    """WooCommerce order refund"""

    model_config = ConfigDict(extra="ignore")

    id: int
    amount: Decimal = Decimal("0")
    date_created: Optional[str] = None
    reason: str = ""
    line_items: List[Dict[str, Any]] = Field(default_factory=list)
    shipping_lines: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("amount", mode="before")
    @classmethod
    def blank_amount(cls, v: Any) -> Any:
        return _zero_if_blank(v)

    @field_validator("reason", mode="before")
    @classmethod
    def none_reason(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @property
    def absolute_amount(self) -> Decimal:
        return abs(self.amount)


class OrderPage(BaseModel):
    """One page of an order listing"""

    orders: List[Order]
    page: int
    total_pages: Optional[int] = None
