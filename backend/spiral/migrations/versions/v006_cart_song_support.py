"""
Il carrello accetta anche brani singoli.

product_id diventa nullable, arriva song_id, e ogni riga deve avere
esattamente uno dei due. La UNIQUE (person_id, product_id) diventa una
coppia di indici parziali, uno per tipo di riga.
"""
import sqlalchemy as sa

from ...core.clock import utcnow
from ..common import reflect
from ..shadow import rebuild_table
from .v003_cart import cart_items_table

ID = "006"
NAME = "cart-song-support"

ONE_ITEM = "(product_id IS NOT NULL AND song_id IS NULL) OR (product_id IS NULL AND song_id IS NOT NULL)"

LEGACY_COLUMNS = ("id", "person_id", "product_id", "quantity", "added_at")


def cart_items_with_songs(meta: sa.MetaData) -> sa.Table:
    table = sa.Table(
        "cart_items",
        meta,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("person_id", sa.Integer, sa.ForeignKey("persons.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Integer, sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=True),
        sa.Column("song_id", sa.Integer, sa.ForeignKey("songs.id", ondelete="CASCADE"), nullable=True),
        sa.Column("quantity", sa.Integer, nullable=False, default=1),
        sa.Column("added_at", sa.DateTime, nullable=False, default=utcnow),
        sa.CheckConstraint(ONE_ITEM, name="ck_cart_items_one_item"),
        sa.CheckConstraint("quantity > 0", name="ck_cart_items_quantity"),
        sa.Index("idx_cart_items_person", "person_id"),
    )
    no_song = table.c.song_id.is_(None)
    no_product = table.c.product_id.is_(None)
    sa.Index(
        "uq_cart_items_product",
        table.c.person_id,
        table.c.product_id,
        unique=True,
        sqlite_where=no_song,
        postgresql_where=no_song,
    )
    sa.Index(
        "uq_cart_items_song",
        table.c.person_id,
        table.c.song_id,
        unique=True,
        sqlite_where=no_product,
        postgresql_where=no_product,
    )
    return table


def up(conn) -> None:
    meta = sa.MetaData()
    reflect(conn, meta, "persons", "products", "songs")
    rebuild_table(conn, cart_items_with_songs(meta), LEGACY_COLUMNS)


def down(conn) -> None:
    # le righe-brano non hanno posto nella forma vecchia: si perdono
    meta = sa.MetaData()
    reflect(conn, meta, "persons", "products")
    rebuild_table(
        conn,
        cart_items_table(meta),
        LEGACY_COLUMNS,
        where=lambda old: old.c.song_id.is_(None),
    )
