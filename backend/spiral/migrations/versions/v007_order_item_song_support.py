"""
Le righe d'ordine possono riferirsi a un brano invece che a un prodotto.

Irreversibile: tornare indietro vorrebbe dire cancellare righe-brano da
ordini già pagati, cioè riscrivere lo storico.
"""
import sqlalchemy as sa

from ...core.clock import utcnow
from ...core.errors import IrreversibleMigration
from ..common import reflect
from ..shadow import rebuild_table

ID = "007"
NAME = "order-item-song-support"

ONE_ITEM = "(product_id IS NOT NULL AND song_id IS NULL) OR (product_id IS NULL AND song_id IS NOT NULL)"

COLUMNS = (
    "id",
    "order_id",
    "product_id",
    "quantity",
    "unit_price",
    "line_total",
    "artist_person_id",
    "created_at",
)


def order_items_with_songs(meta: sa.MetaData) -> sa.Table:
    return sa.Table(
        "order_items",
        meta,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("order_id", sa.Integer, sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Integer, sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=True),
        sa.Column("song_id", sa.Integer, sa.ForeignKey("songs.id", ondelete="RESTRICT"), nullable=True),
        sa.Column("quantity", sa.Integer, nullable=False, default=1),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("line_total", sa.Numeric(10, 2), nullable=False),
        sa.Column(
            "artist_person_id",
            sa.Integer,
            sa.ForeignKey("artists.person_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime, nullable=False, default=utcnow),
        sa.CheckConstraint(ONE_ITEM, name="ck_order_items_one_item"),
        sa.Index("idx_order_items_order", "order_id"),
        sa.Index("idx_order_items_product", "product_id"),
        sa.Index("idx_order_items_song", "song_id"),
        sa.Index("idx_order_items_artist", "artist_person_id"),
    )


def up(conn) -> None:
    meta = sa.MetaData()
    reflect(conn, meta, "orders", "products", "songs", "artists")
    rebuild_table(conn, order_items_with_songs(meta), COLUMNS)


def down(conn) -> None:
    raise IrreversibleMigration(
        ID,
        "Song lines in order_items would be lost. To roll back by hand: export the rows where "
        "song_id IS NOT NULL, delete them, rebuild order_items without song_id, then remove "
        f"'{ID}' from the migrations ledger.",
    )
