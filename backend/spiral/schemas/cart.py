from decimal import Decimal

from pydantic import BaseModel


class CartAddIn(BaseModel):
    product_id: int | None = None
    song_id: int | None = None


class CartLineOut(BaseModel):
    id: int
    kind: str
    item_id: int
    title: str
    artist: str | None = None
    unit_price: Decimal
    quantity: int
    line_total: Decimal

    class Config:
        from_attributes = True


class CartOut(BaseModel):
    items: list[CartLineOut]
    count: int


class CartCountOut(BaseModel):
    count: int
