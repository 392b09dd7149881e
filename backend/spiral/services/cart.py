"""
Carrello: una riga per (persona, prodotto) o (persona, brano).

Riaggiungere lo stesso articolo incrementa la quantità; gli indici parziali
sul DB trasformano eventuali gare in errori di vincolo, mai in doppioni.
"""
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ..core.errors import Conflict, NotFound, ValidationFailed
from ..core.logging import get_logger
from ..database import atomic
from ..models.cart import CartItem
from ..models.catalog import Product, Song
from .pricing import money

log = get_logger(__name__)


@dataclass
class CartLine:
    id: int
    kind: str  # "product" | "song"
    item_id: int
    title: str
    artist: str | None
    unit_price: Decimal
    quantity: int
    artist_person_id: int | None = None

    @property
    def line_total(self) -> Decimal:
        return money(self.unit_price * self.quantity)


def add_item(
    db: Session,
    person_id: int,
    *,
    product_id: int | None = None,
    song_id: int | None = None,
) -> CartItem:
    if (product_id is None) == (song_id is None):
        raise ValidationFailed("item", "Provide exactly one of product_id or song_id")

    if product_id is not None and not db.get(Product, product_id):
        raise NotFound("product")
    if song_id is not None and not db.get(Song, song_id):
        raise NotFound("song")

    # == None diventa IS NULL: la colonna vuota combacia con la colonna vuota
    existing = (
        db.query(CartItem)
        .filter(
            CartItem.person_id == person_id,
            CartItem.product_id == product_id,
            CartItem.song_id == song_id,
        )
        .first()
    )

    try:
        with atomic(db):
            if existing:
                existing.quantity = CartItem.quantity + 1
                item = existing
            else:
                item = CartItem(person_id=person_id, product_id=product_id, song_id=song_id, quantity=1)
                db.add(item)
    except IntegrityError as exc:
        raise Conflict("Item is already in the cart") from exc

    db.refresh(item)
    return item


def remove_item(db: Session, person_id: int, item_id: int) -> None:
    # id + person_id insieme: una riga di un altro utente è "non trovata"
    item = db.query(CartItem).filter(CartItem.id == item_id, CartItem.person_id == person_id).first()
    if not item:
        raise NotFound("cart item")
    with atomic(db):
        db.delete(item)


def clear(db: Session, person_id: int) -> int:
    with atomic(db):
        removed = db.query(CartItem).filter(CartItem.person_id == person_id).delete(synchronize_session=False)
    return removed


def count_items(db: Session, person_id: int) -> int:
    total = db.query(func.coalesce(func.sum(CartItem.quantity), 0)).filter(CartItem.person_id == person_id).scalar()
    return int(total or 0)


def list_items(db: Session, person_id: int) -> list[CartLine]:
    rows = (
        db.query(CartItem)
        .options(joinedload(CartItem.product), joinedload(CartItem.song).joinedload(Song.artist_ref))
        .filter(CartItem.person_id == person_id)
        .order_by(CartItem.added_at, CartItem.id)
        .all()
    )
    lines = []
    for row in rows:
        if row.product_id is not None:
            p = row.product
            lines.append(
                CartLine(
                    id=row.id,
                    kind="product",
                    item_id=p.id,
                    title=p.title,
                    artist=p.artist,
                    unit_price=money(p.price),
                    quantity=row.quantity,
                    artist_person_id=p.artist_person_id,
                )
            )
        else:
            s = row.song
            lines.append(
                CartLine(
                    id=row.id,
                    kind="song",
                    item_id=s.id,
                    title=s.title,
                    artist=s.artist_ref.stage_name if s.artist_ref else None,
                    unit_price=money(s.individual_price),
                    quantity=row.quantity,
                    artist_person_id=s.artist_person_id,
                )
            )
    return lines
