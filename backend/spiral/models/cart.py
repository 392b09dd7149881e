from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer
from sqlalchemy.orm import relationship

from ..core.clock import utcnow
from ..database import Base

# esattamente uno tra product_id e song_id
ONE_ITEM_CHECK = (
    "(product_id IS NOT NULL AND song_id IS NULL) OR (product_id IS NULL AND song_id IS NOT NULL)"
)


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    person_id = Column(Integer, ForeignKey("persons.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=True)
    song_id = Column(Integer, ForeignKey("songs.id", ondelete="CASCADE"), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    added_at = Column(DateTime, nullable=False, default=utcnow)

    product = relationship("Product")
    song = relationship("Song")

    __table_args__ = (
        CheckConstraint(ONE_ITEM_CHECK, name="ck_cart_items_one_item"),
        CheckConstraint("quantity > 0", name="ck_cart_items_quantity"),
        # NULL != NULL in una UNIQUE composta: un indice parziale per tipo di riga
        Index(
            "uq_cart_items_product",
            "person_id",
            "product_id",
            unique=True,
            sqlite_where=song_id.is_(None),
            postgresql_where=song_id.is_(None),
        ),
        Index(
            "uq_cart_items_song",
            "person_id",
            "song_id",
            unique=True,
            sqlite_where=product_id.is_(None),
            postgresql_where=product_id.is_(None),
        ),
        Index("idx_cart_items_person", "person_id"),
    )
