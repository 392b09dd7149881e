from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import require_permission
from ..models.person import Person
from ..schemas.cart import CartAddIn, CartCountOut, CartLineOut, CartOut
from ..services import cart

router = APIRouter(prefix="/cart", tags=["cart"])

shopper = require_permission("cart.manage")


def line_out(line: cart.CartLine) -> CartLineOut:
    return CartLineOut(
        id=line.id,
        kind=line.kind,
        item_id=line.item_id,
        title=line.title,
        artist=line.artist,
        unit_price=line.unit_price,
        quantity=line.quantity,
        line_total=line.line_total,
    )


@router.get("", response_model=CartOut)
def list_cart(person: Person = Depends(shopper), db: Session = Depends(get_db)):
    lines = cart.list_items(db, person.id)
    return CartOut(items=[line_out(l) for l in lines], count=sum(l.quantity for l in lines))


@router.get("/count", response_model=CartCountOut)
def count(person: Person = Depends(shopper), db: Session = Depends(get_db)):
    return CartCountOut(count=cart.count_items(db, person.id))


@router.post("", response_model=CartCountOut, status_code=201)
def add(payload: CartAddIn, person: Person = Depends(shopper), db: Session = Depends(get_db)):
    cart.add_item(db, person.id, product_id=payload.product_id, song_id=payload.song_id)
    return CartCountOut(count=cart.count_items(db, person.id))


@router.delete("/{item_id}", status_code=204)
def remove(item_id: int, person: Person = Depends(shopper), db: Session = Depends(get_db)):
    cart.remove_item(db, person.id, item_id)


@router.delete("", status_code=204)
def clear(person: Person = Depends(shopper), db: Session = Depends(get_db)):
    cart.clear(db, person.id)
