from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import require_permission
from ..models.order import Order
from ..models.person import Person
from ..schemas.checkout import (
    AppliedCouponOut,
    CouponCodeIn,
    OrderDetailOut,
    OrderItemOut,
    OrderOut,
    PlaceOrderIn,
    QuoteOut,
)
from ..services import checkout
from .cart import line_out

router = APIRouter(prefix="/checkout", tags=["checkout"])

buyer = require_permission("orders.create")
reader = require_permission("orders.read")


def _quote(q: checkout.Quote) -> QuoteOut:
    coupon = None
    if q.coupon is not None:
        coupon = AppliedCouponOut(code=q.coupon.code, description=q.coupon.description, discount_applied=q.discount)
    return QuoteOut(
        items=[line_out(l) for l in q.lines],
        subtotal=q.subtotal,
        discount=q.discount,
        tax=q.tax,
        total=q.total,
        tax_rate=q.tax_rate,
        coupon=coupon,
    )


def order_detail(order: Order) -> OrderDetailOut:
    base = OrderOut.model_validate(order).model_dump()
    items = []
    for it in order.items:
        source = it.product or it.song
        items.append(
            OrderItemOut(
                id=it.id,
                product_id=it.product_id,
                song_id=it.song_id,
                title=source.title if source else None,
                quantity=it.quantity,
                unit_price=it.unit_price,
                line_total=it.line_total,
            )
        )
    coupons = [
        AppliedCouponOut(code=oc.coupon.code, description=oc.coupon.description, discount_applied=oc.discount_applied)
        for oc in order.coupons
    ]
    return OrderDetailOut(**base, items=items, coupons=coupons)


@router.post("/preview", response_model=QuoteOut)
def preview(payload: CouponCodeIn, person: Person = Depends(buyer), db: Session = Depends(get_db)):
    return _quote(checkout.preview(db, person.id, payload.coupon_code))


@router.post("/validate-coupon", response_model=QuoteOut)
def validate_coupon(payload: CouponCodeIn, person: Person = Depends(buyer), db: Session = Depends(get_db)):
    return _quote(checkout.validate_coupon(db, person.id, payload.coupon_code))


@router.post("/orders", response_model=OrderDetailOut, status_code=201)
def place_order(payload: PlaceOrderIn, person: Person = Depends(buyer), db: Session = Depends(get_db)):
    order = checkout.place_order(db, person.id, payload.coupon_code, payload.notes)
    return order_detail(checkout.get_order(db, person.id, order.id))


@router.get("/orders", response_model=list[OrderOut])
def list_orders(person: Person = Depends(reader), db: Session = Depends(get_db)):
    return checkout.list_orders(db, person.id)


@router.get("/orders/{order_id}", response_model=OrderDetailOut)
def get_order(order_id: int, person: Person = Depends(reader), db: Session = Depends(get_db)):
    return order_detail(checkout.get_order(db, person.id, order_id))
