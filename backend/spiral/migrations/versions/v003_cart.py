"""Carrello, prima versione: solo prodotti, una riga per (persona, prodotto)."""
import sqlalchemy as sa

from ...core.clock import utcnow
from ..common import reflect

ID = "003"
NAME = "cart"


def cart_items_table(meta: sa.MetaData) -> sa.Table:
    return sa.Table(
        "cart_items",
        meta,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("person_id", sa.Integer, sa.ForeignKey("persons.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Integer, sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False, default=1),
        sa.Column("added_at", sa.DateTime, nullable=False, default=utcnow),
        sa.CheckConstraint("quantity > 0", name="ck_cart_items_quantity"),
        sa.UniqueConstraint("person_id", "product_id", name="uq_cart_items_person_product"),
        sa.Index("idx_cart_items_person", "person_id"),
    )


def up(conn) -> None:
    meta = sa.MetaData()
    reflect(conn, meta, "persons", "products")
    cart_items_table(meta).create(conn, checkfirst=True)


def down(conn) -> None:
    meta = sa.MetaData()
    reflect(conn, meta, "persons", "products")
    cart_items_table(meta).drop(conn, checkfirst=True)
