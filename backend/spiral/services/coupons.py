from datetime import datetime
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.clock import to_utc_naive
from ..core.errors import Conflict, NotFound, ValidationFailed
from ..core.logging import get_logger
from ..database import atomic
from ..models.enums import CouponCreatorType, DiscountType
from ..models.order import Coupon
from .pricing import money

log = get_logger(__name__)


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def get_by_code(db: Session, code: str) -> Coupon | None:
    return db.query(Coupon).filter(Coupon.code == normalize_code(code)).first()


def create_coupon(
    db: Session,
    *,
    code: str,
    discount_type: DiscountType,
    discount_value: Decimal,
    creator_id: int,
    creator_type: CouponCreatorType = CouponCreatorType.ADMIN,
    description: str | None = None,
    min_purchase_amount: Decimal | None = None,
    max_discount_amount: Decimal | None = None,
    valid_from: datetime | None = None,
    valid_until: datetime | None = None,
    max_uses: int | None = None,
) -> Coupon:
    code = normalize_code(code)
    if not code:
        raise ValidationFailed("code", "Coupon code is required")

    discount_type = DiscountType(discount_type)
    value = money(discount_value)
    if value <= 0:
        raise ValidationFailed("discount_value", "Discount value must be positive")
    if discount_type is DiscountType.PERCENTAGE and value > 100:
        raise ValidationFailed("discount_value", "Percentage discount cannot exceed 100")
    if max_discount_amount is not None and discount_type is not DiscountType.PERCENTAGE:
        raise ValidationFailed("max_discount_amount", "A discount cap only applies to percentage coupons")
    if max_uses is not None and max_uses <= 0:
        raise ValidationFailed("max_uses", "max_uses must be positive")

    valid_from, valid_until = to_utc_naive(valid_from), to_utc_naive(valid_until)
    if valid_from and valid_until and valid_until < valid_from:
        raise ValidationFailed("valid_until", "valid_until is before valid_from")

    if get_by_code(db, code):
        raise Conflict(f"Coupon {code} already exists")

    try:
        with atomic(db):
            coupon = Coupon(
                code=code,
                description=description,
                discount_type=discount_type,
                discount_value=value,
                min_purchase_amount=money(min_purchase_amount) if min_purchase_amount is not None else Decimal("0"),
                max_discount_amount=money(max_discount_amount) if max_discount_amount is not None else None,
                creator_type=CouponCreatorType(creator_type),
                creator_id=creator_id,
                valid_from=valid_from,
                valid_until=valid_until,
                max_uses=max_uses,
            )
            db.add(coupon)
    except IntegrityError as exc:
        raise Conflict(f"Coupon {code} already exists") from exc

    log.info("Coupon %s created by person %s", code, creator_id)
    return coupon


def deactivate_coupon(db: Session, coupon_id: int) -> Coupon:
    coupon = db.get(Coupon, coupon_id)
    if not coupon:
        raise NotFound("coupon")
    with atomic(db):
        coupon.is_active = False
    return coupon


def list_coupons(db: Session, *, active_only: bool = False) -> list[Coupon]:
    q = db.query(Coupon)
    if active_only:
        q = q.filter(Coupon.is_active.is_(True))
    return q.order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()
