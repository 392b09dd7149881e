from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..core.clock import utcnow
from ..database import Base
from .cart import ONE_ITEM_CHECK
from .enums import CouponCreatorType, DiscountType, OrderStatus, enum_type


class Order(Base):
    """Snapshot immutabile creato dal carrello al checkout."""

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    person_id = Column(Integer, ForeignKey("persons.id", ondelete="RESTRICT"), nullable=False)
    order_number = Column(String(40), unique=True, nullable=False)
    status = Column(enum_type(OrderStatus, "orders_status"), nullable=False, default=OrderStatus.PENDING)
    subtotal = Column(Numeric(10, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(10, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(10, 2), nullable=False, default=0)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    completed_at = Column(DateTime, nullable=True)

    items = relationship("OrderItem", back_populates="order", order_by="OrderItem.id", passive_deletes=True)
    coupons = relationship("OrderCoupon", back_populates="order", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_orders_total"),
        CheckConstraint("discount_amount <= subtotal", name="ck_orders_discount"),
        Index("idx_orders_person", "person_id"),
        Index("idx_orders_status", "status"),
        Index("idx_orders_created", "created_at"),
    )


class OrderItem(Base):
    """Riga d'ordine: unit_price è il prezzo al momento dell'acquisto, non quello corrente."""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="RESTRICT"), nullable=True)
    song_id = Column(Integer, ForeignKey("songs.id", ondelete="RESTRICT"), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(10, 2), nullable=False)
    line_total = Column(Numeric(10, 2), nullable=False)
    artist_person_id = Column(Integer, ForeignKey("artists.person_id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")
    song = relationship("Song")

    __table_args__ = (
        CheckConstraint(ONE_ITEM_CHECK, name="ck_order_items_one_item"),
        Index("idx_order_items_order", "order_id"),
        Index("idx_order_items_product", "product_id"),
        Index("idx_order_items_song", "song_id"),
        Index("idx_order_items_artist", "artist_person_id"),
    )


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True)
    code = Column(String(40), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    discount_type = Column(enum_type(DiscountType, "coupons_discount_type"), nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False)
    min_purchase_amount = Column(Numeric(10, 2), nullable=True, default=0)
    max_discount_amount = Column(Numeric(10, 2), nullable=True)  # solo per percentage
    creator_type = Column(enum_type(CouponCreatorType, "coupons_creator_type"), nullable=False)
    creator_id = Column(Integer, ForeignKey("persons.id", ondelete="CASCADE"), nullable=False)
    valid_from = Column(DateTime, nullable=True)
    valid_until = Column(DateTime, nullable=True)
    max_uses = Column(Integer, nullable=True)
    times_used = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("discount_value > 0", name="ck_coupons_value"),
        Index("idx_coupons_active", "is_active", "valid_from", "valid_until"),
        Index("idx_coupons_creator", "creator_type", "creator_id"),
    )


class OrderCoupon(Base):
    """Sconto effettivamente applicato: non cambia se il coupon viene modificato dopo."""

    __tablename__ = "order_coupons"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    coupon_id = Column(Integer, ForeignKey("coupons.id", ondelete="RESTRICT"), nullable=False)
    discount_applied = Column(Numeric(10, 2), nullable=False)
    applied_at = Column(DateTime, nullable=False, default=utcnow)

    order = relationship("Order", back_populates="coupons")
    coupon = relationship("Coupon")

    __table_args__ = (UniqueConstraint("order_id", "coupon_id", name="uq_order_coupons"),)
