from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel

from ..models.enums import OrderStatus
from .cart import CartLineOut


class CouponCodeIn(BaseModel):
    coupon_code: str | None = None


class PlaceOrderIn(BaseModel):
    coupon_code: str | None = None
    notes: str | None = None


class AppliedCouponOut(BaseModel):
    code: str
    description: str | None = None
    discount_applied: Decimal


class QuoteOut(BaseModel):
    items: list[CartLineOut]
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    tax_rate: Decimal
    coupon: AppliedCouponOut | None = None


class OrderItemOut(BaseModel):
    id: int
    product_id: int | None = None
    song_id: int | None = None
    title: str | None = None
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class OrderOut(BaseModel):
    id: int
    order_number: str
    status: OrderStatus
    subtotal: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    notes: str | None = None
    created_at: datetime
    completed_at: datetime | None = None

    class Config:
        from_attributes = True


class OrderDetailOut(OrderOut):
    items: list[OrderItemOut] = []
    coupons: list[AppliedCouponOut] = []
