import re
from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import SQLAlchemyError

from spiral.core.clock import utcnow
from spiral.core.errors import IntegrityFailure, NotFound, PolicyViolation
from spiral.models.cart import CartItem
from spiral.models.enums import DiscountType, OrderStatus
from spiral.models.order import Coupon, Order, OrderCoupon, OrderItem
from spiral.services import cart, catalog, checkout, coupons


def _coupon(**kw):
    values = {"discount_type": DiscountType.PERCENTAGE, "discount_value": Decimal("20"), "max_discount_amount": None}
    values.update(kw)
    return SimpleNamespace(**values)


def test_percentage_discount_is_capped():
    save20 = _coupon(discount_value=Decimal("20"), max_discount_amount=Decimal("10"))

    discount = checkout.compute_discount(save20, Decimal("100.00"))
    tax, total = checkout.compute_totals(Decimal("100.00"), discount, Decimal("0.08"))

    assert discount == Decimal("10.00")
    assert tax == Decimal("7.20")
    assert total == Decimal("97.20")


def test_fixed_discount_is_clamped_to_subtotal():
    flat50 = _coupon(discount_type=DiscountType.FIXED_AMOUNT, discount_value=Decimal("50"))

    discount = checkout.compute_discount(flat50, Decimal("30.00"))
    tax, total = checkout.compute_totals(Decimal("30.00"), discount, Decimal("0.08"))

    assert discount == Decimal("30.00")
    assert (tax, total) == (Decimal("0.00"), Decimal("0.00"))


def test_discount_is_rounded_half_up():
    third = _coupon(discount_value=Decimal("12.5"))

    # 0.20 * 12.5% = 0.025
    assert checkout.compute_discount(third, Decimal("0.20")) == Decimal("0.03")


@pytest.fixture
def filled_cart(db, customer, make_product, make_song):
    album = make_product(price="40.00")
    song = make_song(price="1.25")
    cart.add_item(db, customer.id, product_id=album.id)
    cart.add_item(db, customer.id, product_id=album.id)
    cart.add_item(db, customer.id, song_id=song.id)
    return SimpleNamespace(album=album, song=song)


@pytest.fixture
def make_coupon(db, admin):
    def make(code="SAVE20", discount_type=DiscountType.PERCENTAGE, value="20", **kw):
        return coupons.create_coupon(
            db, code=code, discount_type=discount_type, discount_value=Decimal(value), creator_id=admin.id, **kw
        )

    return make


def test_preview_has_no_side_effects(db, customer, filled_cart, make_coupon):
    make_coupon(max_discount_amount=Decimal("10"))

    q = checkout.preview(db, customer.id, "save20")

    assert q.subtotal == Decimal("81.25")
    assert q.discount == Decimal("10.00")
    assert q.tax == Decimal("5.70")
    assert q.total == Decimal("76.95")
    assert db.query(Order).count() == 0
    assert cart.count_items(db, customer.id) == 3
    assert db.query(Coupon).one().times_used == 0


def test_empty_cart_is_rejected(db, customer):
    with pytest.raises(PolicyViolation, match="Cart is empty"):
        checkout.preview(db, customer.id)
    with pytest.raises(PolicyViolation):
        checkout.place_order(db, customer.id)


def test_place_order_snapshots_cart_and_clears_it(db, customer, filled_cart, make_coupon):
    make_coupon(max_discount_amount=Decimal("10"))
    expected = checkout.preview(db, customer.id, "SAVE20")

    order = checkout.place_order(db, customer.id, "SAVE20", notes="gift")

    assert re.fullmatch(r"ORD-\d{8}-\d{5}", order.order_number)
    assert order.status == OrderStatus.PENDING
    assert (order.subtotal, order.discount_amount, order.tax_amount, order.total_amount) == (
        expected.subtotal,
        expected.discount,
        expected.tax,
        expected.total,
    )
    items = db.query(OrderItem).filter(OrderItem.order_id == order.id).all()
    assert len(items) == 2
    assert sum(i.line_total for i in items) == order.subtotal
    assert {(i.product_id, i.song_id) for i in items} == {
        (filled_cart.album.id, None),
        (None, filled_cart.song.id),
    }
    assert db.query(CartItem).filter(CartItem.person_id == customer.id).count() == 0
    applied = db.query(OrderCoupon).one()
    assert applied.discount_applied == Decimal("10.00")
    assert db.query(Coupon).one().times_used == 1


def test_order_lines_keep_the_price_paid(db, customer, filled_cart):
    order = checkout.place_order(db, customer.id)
    catalog.update_product(db, filled_cart.album.id, {"price": Decimal("99.00")})

    detail = checkout.get_order(db, customer.id, order.id)
    album_line = [i for i in detail.items if i.product_id == filled_cart.album.id][0]
    assert album_line.unit_price == Decimal("40.00")
    assert album_line.quantity == 2


def test_failure_midway_rolls_everything_back(db, customer, filled_cart, make_coupon, monkeypatch):
    make_coupon()
    original = checkout._snapshot_line
    calls = []

    def flaky(db_, order, line):
        calls.append(line)
        if len(calls) > 1:
            raise SQLAlchemyError("disk I/O error")
        return original(db_, order, line)

    monkeypatch.setattr(checkout, "_snapshot_line", flaky)

    with pytest.raises(IntegrityFailure):
        checkout.place_order(db, customer.id, "SAVE20")

    assert db.query(Order).count() == 0
    assert db.query(OrderItem).count() == 0
    assert cart.count_items(db, customer.id) == 3
    assert db.query(Coupon).one().times_used == 0


def test_unknown_coupon(db, customer, filled_cart):
    with pytest.raises(PolicyViolation, match="Invalid coupon code"):
        checkout.preview(db, customer.id, "NOPE")


def test_inactive_coupon(db, customer, filled_cart, make_coupon):
    coupon = make_coupon()
    coupons.deactivate_coupon(db, coupon.id)

    with pytest.raises(PolicyViolation, match="no longer active"):
        checkout.place_order(db, customer.id, "SAVE20")
    assert db.query(Order).count() == 0


def test_coupon_window_is_inclusive_and_enforced(db, customer, filled_cart, make_coupon):
    now = utcnow()
    make_coupon(code="LATE", valid_until=now - timedelta(days=1))
    make_coupon(code="EARLY", valid_from=now + timedelta(days=1))
    make_coupon(code="NOW", valid_from=now - timedelta(days=1), valid_until=now + timedelta(days=1))

    with pytest.raises(PolicyViolation, match="expired"):
        checkout.preview(db, customer.id, "LATE")
    with pytest.raises(PolicyViolation, match="not valid yet"):
        checkout.preview(db, customer.id, "EARLY")
    assert checkout.preview(db, customer.id, "NOW").discount > 0


def test_minimum_purchase(db, customer, filled_cart, make_coupon):
    make_coupon(code="BIG", min_purchase_amount=Decimal("100"))

    with pytest.raises(PolicyViolation, match=r"Minimum purchase of \$100.00 required"):
        checkout.validate_coupon(db, customer.id, "BIG")


def test_usage_limit(db, register, make_product, make_coupon):
    make_coupon(code="ONCE", discount_type=DiscountType.FIXED_AMOUNT, value="5", max_uses=1)
    product = make_product()
    alice, bob = register("alice"), register("bob")
    cart.add_item(db, alice.id, product_id=product.id)
    cart.add_item(db, bob.id, product_id=product.id)

    checkout.place_order(db, alice.id, "ONCE")

    with pytest.raises(PolicyViolation, match="usage limit"):
        checkout.place_order(db, bob.id, "ONCE")
    assert cart.count_items(db, bob.id) == 1


def test_orders_are_listed_newest_first_and_private(db, register, make_product):
    product = make_product()
    alice, bob = register("alice"), register("bob")
    first = None
    for _ in range(2):
        cart.add_item(db, alice.id, product_id=product.id)
        order = checkout.place_order(db, alice.id)
        first = first or order

    listed = checkout.list_orders(db, alice.id)
    assert len(listed) == 2
    assert listed[-1].id == first.id
    assert checkout.list_orders(db, bob.id) == []
    with pytest.raises(NotFound):
        checkout.get_order(db, bob.id, first.id)


def test_status_transitions(db, customer, filled_cart):
    order = checkout.place_order(db, customer.id)

    with pytest.raises(PolicyViolation):
        checkout.update_order_status(db, order.id, OrderStatus.SHIPPED)

    for status in (OrderStatus.PROCESSING, OrderStatus.PAID, OrderStatus.SHIPPED):
        checkout.update_order_status(db, order.id, status)
    assert order.completed_at is None

    done = checkout.update_order_status(db, order.id, OrderStatus.DELIVERED)
    assert done.completed_at is not None

    refunded = checkout.update_order_status(db, order.id, OrderStatus.REFUNDED)
    with pytest.raises(PolicyViolation):
        checkout.update_order_status(db, refunded.id, OrderStatus.PROCESSING)


def test_cancelled_is_absorbing(db, customer, filled_cart):
    order = checkout.place_order(db, customer.id)
    checkout.update_order_status(db, order.id, OrderStatus.CANCELLED)

    with pytest.raises(PolicyViolation):
        checkout.update_order_status(db, order.id, OrderStatus.PROCESSING)
