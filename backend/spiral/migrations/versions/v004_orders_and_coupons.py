"""Ordini (snapshot immutabili), righe d'ordine, coupon e coupon applicati."""
import sqlalchemy as sa

from ...core.clock import utcnow
from ...models.enums import CouponCreatorType, DiscountType, OrderStatus, enum_type
from ..common import reflect

ID = "004"
NAME = "orders-and-coupons"


def order_items_table(meta: sa.MetaData) -> sa.Table:
    return sa.Table(
        "order_items",
        meta,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("order_id", sa.Integer, sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Integer, sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
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
        sa.Index("idx_order_items_order", "order_id"),
        sa.Index("idx_order_items_product", "product_id"),
        sa.Index("idx_order_items_artist", "artist_person_id"),
    )


def _tables(meta: sa.MetaData) -> list[sa.Table]:
    orders = sa.Table(
        "orders",
        meta,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("person_id", sa.Integer, sa.ForeignKey("persons.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("order_number", sa.String(40), unique=True, nullable=False),
        sa.Column(
            "status", enum_type(OrderStatus, "orders_status"), nullable=False, default=OrderStatus.PENDING
        ),
        sa.Column("subtotal", sa.Numeric(10, 2), nullable=False, default=0),
        sa.Column("discount_amount", sa.Numeric(10, 2), nullable=False, default=0),
        sa.Column("tax_amount", sa.Numeric(10, 2), nullable=False, default=0),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False, default=0),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, default=utcnow),
        sa.Column("updated_at", sa.DateTime, nullable=False, default=utcnow),
        sa.Column("completed_at", sa.DateTime, nullable=True),
        sa.CheckConstraint("total_amount >= 0", name="ck_orders_total"),
        sa.CheckConstraint("discount_amount <= subtotal", name="ck_orders_discount"),
        sa.Index("idx_orders_person", "person_id"),
        sa.Index("idx_orders_status", "status"),
        sa.Index("idx_orders_created", "created_at"),
    )

    coupons = sa.Table(
        "coupons",
        meta,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("code", sa.String(40), unique=True, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("discount_type", enum_type(DiscountType, "coupons_discount_type"), nullable=False),
        sa.Column("discount_value", sa.Numeric(10, 2), nullable=False),
        sa.Column("min_purchase_amount", sa.Numeric(10, 2), nullable=True, default=0),
        sa.Column("max_discount_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("creator_type", enum_type(CouponCreatorType, "coupons_creator_type"), nullable=False),
        sa.Column("creator_id", sa.Integer, sa.ForeignKey("persons.id", ondelete="CASCADE"), nullable=False),
        sa.Column("valid_from", sa.DateTime, nullable=True),
        sa.Column("valid_until", sa.DateTime, nullable=True),
        sa.Column("max_uses", sa.Integer, nullable=True),
        sa.Column("times_used", sa.Integer, nullable=False, default=0),
        sa.Column("is_active", sa.Boolean, nullable=False, default=True),
        sa.Column("created_at", sa.DateTime, nullable=False, default=utcnow),
        sa.CheckConstraint("discount_value > 0", name="ck_coupons_value"),
        sa.Index("idx_coupons_active", "is_active", "valid_from", "valid_until"),
        sa.Index("idx_coupons_creator", "creator_type", "creator_id"),
    )

    order_coupons = sa.Table(
        "order_coupons",
        meta,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("order_id", sa.Integer, sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("coupon_id", sa.Integer, sa.ForeignKey("coupons.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("discount_applied", sa.Numeric(10, 2), nullable=False),
        sa.Column("applied_at", sa.DateTime, nullable=False, default=utcnow),
        sa.UniqueConstraint("order_id", "coupon_id", name="uq_order_coupons"),
    )

    return [orders, order_items_table(meta), coupons, order_coupons]


def up(conn) -> None:
    meta = sa.MetaData()
    reflect(conn, meta, "persons", "products", "artists")
    meta.create_all(conn, tables=_tables(meta), checkfirst=True)


def down(conn) -> None:
    meta = sa.MetaData()
    reflect(conn, meta, "persons", "products", "artists")
    meta.drop_all(conn, tables=_tables(meta), checkfirst=True)
