from decimal import Decimal

import pytest
import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from spiral.core.errors import NotFound, ValidationFailed
from spiral.models.cart import CartItem
from spiral.services import cart


def test_adding_the_same_product_increments_quantity(db, customer, make_product):
    product = make_product()

    for _ in range(3):
        cart.add_item(db, customer.id, product_id=product.id)

    rows = db.query(CartItem).filter(CartItem.person_id == customer.id).all()
    assert len(rows) == 1
    assert rows[0].quantity == 3
    assert cart.count_items(db, customer.id) == 3


def test_product_and_song_lines_live_side_by_side(db, customer, make_product, make_song):
    product = make_product()
    song = make_song()

    cart.add_item(db, customer.id, product_id=product.id)
    cart.add_item(db, customer.id, song_id=song.id)
    cart.add_item(db, customer.id, song_id=song.id)

    lines = {line.kind: line for line in cart.list_items(db, customer.id)}
    assert lines["product"].quantity == 1
    assert lines["song"].quantity == 2
    assert lines["song"].line_total == Decimal("1.98")
    assert cart.count_items(db, customer.id) == 3


@pytest.mark.parametrize("kwargs", [{}, {"product_id": 1, "song_id": 1}])
def test_exactly_one_item_kind_is_required(db, customer, kwargs):
    with pytest.raises(ValidationFailed):
        cart.add_item(db, customer.id, **kwargs)


def test_unknown_items_are_not_found(db, customer):
    with pytest.raises(NotFound):
        cart.add_item(db, customer.id, product_id=999)
    with pytest.raises(NotFound):
        cart.add_item(db, customer.id, song_id=999)


def test_remove_checks_ownership(db, register, make_product):
    alice, bob = register("alice"), register("bob")
    item = cart.add_item(db, alice.id, product_id=make_product().id)

    with pytest.raises(NotFound):
        cart.remove_item(db, bob.id, item.id)

    cart.remove_item(db, alice.id, item.id)
    assert cart.count_items(db, alice.id) == 0


def test_empty_cart_counts_zero_and_clear_only_touches_owner(db, register, make_product):
    alice, bob = register("alice"), register("bob")
    product = make_product()
    assert cart.count_items(db, alice.id) == 0

    cart.add_item(db, alice.id, product_id=product.id)
    cart.add_item(db, bob.id, product_id=product.id)

    assert cart.clear(db, alice.id) == 1
    assert cart.count_items(db, alice.id) == 0
    assert cart.count_items(db, bob.id) == 1


def test_storage_rejects_duplicate_lines(db, customer, make_product):
    product = make_product()
    cart.add_item(db, customer.id, product_id=product.id)

    with pytest.raises(IntegrityError):
        db.execute(
            sa.insert(CartItem).values(person_id=customer.id, product_id=product.id, quantity=1)
        )
    db.rollback()


def test_storage_rejects_lines_without_an_item(db, customer):
    with pytest.raises(IntegrityError):
        db.execute(sa.insert(CartItem).values(person_id=customer.id, quantity=1))
    db.rollback()
