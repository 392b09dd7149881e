"""
Checkout: subtotale -> sconto -> tassa -> totale, poi creazione ordine.

Ogni importo passa da `money` (2 decimali, half-up). La tassa si applica
dopo lo sconto e lo sconto non supera mai il subtotale. `place_order`
ricalcola tutto da zero: il totale del client non conta.
"""
import secrets
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..config import settings
from ..core.clock import utcnow
from ..core.errors import IntegrityFailure, NotFound, PolicyViolation, ValidationFailed
from ..core.logging import get_logger
from ..database import atomic
from ..models.cart import CartItem
from ..models.enums import ORDER_TRANSITIONS, DiscountType, OrderStatus
from ..models.order import Coupon, Order, OrderCoupon, OrderItem
from . import cart as cart_service
from .coupons import normalize_code
from .pricing import money

log = get_logger(__name__)

ZERO = Decimal("0.00")


@dataclass
class Quote:
    lines: list
    subtotal: Decimal
    discount: Decimal = ZERO
    tax: Decimal = ZERO
    total: Decimal = ZERO
    coupon: Coupon | None = None
    tax_rate: Decimal = field(default_factory=lambda: settings.TAX_RATE)


# -----------------------------------------
# Calcolo (funzioni pure)
# -----------------------------------------
def compute_discount(coupon: Coupon, subtotal: Decimal) -> Decimal:
    value = Decimal(coupon.discount_value)
    if coupon.discount_type == DiscountType.PERCENTAGE:
        raw = subtotal * value / Decimal(100)
        if coupon.max_discount_amount is not None:
            raw = min(raw, Decimal(coupon.max_discount_amount))
    else:
        raw = value
    return money(min(raw, subtotal))


def compute_totals(subtotal: Decimal, discount: Decimal, tax_rate: Decimal) -> tuple[Decimal, Decimal]:
    """(tassa, totale) dato subtotale e sconto già arrotondato."""
    taxable = subtotal - discount
    tax = money(taxable * tax_rate)
    total = money(taxable + tax)
    return tax, total


def check_coupon(coupon: Coupon | None, subtotal: Decimal, now: datetime | None = None) -> None:
    """Solleva PolicyViolation con il motivo preciso se il coupon non è utilizzabile."""
    now = now or utcnow()
    if coupon is None:
        raise PolicyViolation("Invalid coupon code")
    if not coupon.is_active:
        raise PolicyViolation("Coupon is no longer active")
    if coupon.valid_from is not None and now < coupon.valid_from:
        raise PolicyViolation("Coupon is not valid yet")
    if coupon.valid_until is not None and now > coupon.valid_until:
        raise PolicyViolation("Coupon has expired")
    minimum = coupon.min_purchase_amount
    if minimum and subtotal < Decimal(minimum):
        raise PolicyViolation(f"Minimum purchase of ${money(minimum)} required")
    if coupon.max_uses is not None and coupon.times_used >= coupon.max_uses:
        raise PolicyViolation("Coupon usage limit reached")


# -----------------------------------------
# Preview / validazione
# -----------------------------------------
def quote(db: Session, person_id: int, coupon_code: str | None = None) -> Quote:
    lines = cart_service.list_items(db, person_id)
    if not lines:
        raise PolicyViolation("Cart is empty")

    subtotal = money(sum((line.unit_price * line.quantity for line in lines), ZERO))
    result = Quote(lines=lines, subtotal=subtotal)

    code = normalize_code(coupon_code)
    if code:
        coupon = db.query(Coupon).filter(Coupon.code == code).first()
        try:
            check_coupon(coupon, subtotal)
        except PolicyViolation as exc:
            log.info("Coupon %s rejected for person %s: %s", code, person_id, exc.message)
            raise
        result.coupon = coupon
        result.discount = compute_discount(coupon, subtotal)

    result.tax, result.total = compute_totals(subtotal, result.discount, result.tax_rate)
    return result


def preview(db: Session, person_id: int, coupon_code: str | None = None) -> Quote:
    """Solo lettura: nessuna scrittura su DB."""
    return quote(db, person_id, coupon_code)


def validate_coupon(db: Session, person_id: int, coupon_code: str) -> Quote:
    if not normalize_code(coupon_code):
        raise ValidationFailed("coupon_code", "Coupon code is required")
    return quote(db, person_id, coupon_code)


# -----------------------------------------
# Creazione ordine
# -----------------------------------------
def _order_number(now: datetime) -> str:
    return f"{settings.ORDER_NUMBER_PREFIX}-{now:%Y%m%d}-{secrets.randbelow(100000):05d}"


def _unique_order_number(db: Session, now: datetime) -> str:
    for _ in range(settings.ORDER_NUMBER_ATTEMPTS):
        candidate = _order_number(now)
        if not db.query(Order.id).filter(Order.order_number == candidate).first():
            return candidate
    # la UNIQUE su order_number resta comunque l'ultima difesa
    raise IntegrityFailure("Could not generate a unique order number")


def _snapshot_line(db: Session, order: Order, line: cart_service.CartLine) -> OrderItem:
    item = OrderItem(
        order_id=order.id,
        product_id=line.item_id if line.kind == "product" else None,
        song_id=line.item_id if line.kind == "song" else None,
        quantity=line.quantity,
        unit_price=line.unit_price,
        line_total=line.line_total,
        artist_person_id=line.artist_person_id,
    )
    db.add(item)
    return item


def _consume_coupon(db: Session, coupon: Coupon) -> None:
    # UPDATE condizionato: due checkout in gara non superano max_uses
    result = db.execute(
        update(Coupon)
        .where(
            Coupon.id == coupon.id,
            or_(Coupon.max_uses.is_(None), Coupon.times_used < Coupon.max_uses),
        )
        .values(times_used=Coupon.times_used + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise PolicyViolation("Coupon usage limit reached")


def place_order(db: Session, person_id: int, coupon_code: str | None = None, notes: str | None = None) -> Order:
    """
    Crea l'ordine dal carrello: ordine pending, una riga per articolo al
    prezzo attuale, coupon applicato, carrello svuotato. Tutto o niente.
    """
    q = quote(db, person_id, coupon_code)
    now = utcnow()

    try:
        with atomic(db):
            order = Order(
                person_id=person_id,
                order_number=_unique_order_number(db, now),
                status=OrderStatus.PENDING,
                subtotal=q.subtotal,
                discount_amount=q.discount,
                tax_amount=q.tax,
                total_amount=q.total,
                notes=(notes or "").strip() or None,
                created_at=now,
                updated_at=now,
            )
            db.add(order)
            db.flush()

            for line in q.lines:
                _snapshot_line(db, order, line)
            db.flush()

            if q.coupon is not None:
                db.add(OrderCoupon(order_id=order.id, coupon_id=q.coupon.id, discount_applied=q.discount))
                _consume_coupon(db, q.coupon)

            db.query(CartItem).filter(CartItem.person_id == person_id).delete(synchronize_session=False)
    except SQLAlchemyError as exc:
        log.exception("Order creation failed for person %s; rolled back", person_id)
        raise IntegrityFailure("Order could not be created; nothing was saved") from exc

    db.expire_all()
    log.info("Order %s placed by person %s (total %s)", order.order_number, person_id, q.total)
    return order


# -----------------------------------------
# Lettura / stato
# -----------------------------------------
def get_order(db: Session, person_id: int | None, order_id: int) -> Order:
    """person_id None = accesso staff, senza filtro sul proprietario."""
    q = (
        db.query(Order)
        .options(
            joinedload(Order.items).joinedload(OrderItem.product),
            joinedload(Order.items).joinedload(OrderItem.song),
            joinedload(Order.coupons).joinedload(OrderCoupon.coupon),
        )
        .filter(Order.id == order_id)
    )
    if person_id is not None:
        q = q.filter(Order.person_id == person_id)
    order = q.first()
    if not order:
        raise NotFound("order")
    return order


def list_orders(db: Session, person_id: int) -> list[Order]:
    return (
        db.query(Order)
        .filter(Order.person_id == person_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def update_order_status(db: Session, order_id: int, new_status: OrderStatus) -> Order:
    order = db.get(Order, order_id)
    if not order:
        raise NotFound("order")
    new_status = OrderStatus(new_status)
    current = OrderStatus(order.status)
    if new_status not in ORDER_TRANSITIONS[current]:
        raise PolicyViolation(f"Cannot move order from {current.value} to {new_status.value}")

    now = utcnow()
    with atomic(db):
        order.status = new_status
        order.updated_at = now
        if new_status is OrderStatus.DELIVERED:
            order.completed_at = now
    log.info("Order %s: %s -> %s", order.order_number, current.value, new_status.value)
    return order
