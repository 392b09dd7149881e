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
)
from sqlalchemy.orm import relationship

from ..core.clock import utcnow
from ..database import Base
from .enums import AudioFormat, Genre, ProductType, enum_type


class Product(Base):
    """Unità vendibile: album, singolo, EP o merch."""

    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    # cache denormalizzata dello stage name: il riferimento vero è artist_person_id
    artist = Column(String(200), nullable=False)
    artist_person_id = Column(Integer, ForeignKey("artists.person_id", ondelete="SET NULL"), nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image = Column(String(255), nullable=False)
    year = Column(Integer, nullable=True)
    genre = Column(enum_type(Genre, "products_genre"), nullable=True)
    stock = Column(Integer, nullable=False, default=0)
    type = Column(enum_type(ProductType, "products_type"), nullable=False, default=ProductType.ALBUM)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    artist_ref = relationship("Artist")
    tracks = relationship(
        "AlbumSong",
        back_populates="album",
        order_by="[AlbumSong.disc_number, AlbumSong.track_number]",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("price > 0", name="ck_products_price"),
        CheckConstraint("stock >= 0", name="ck_products_stock"),
        CheckConstraint(
            "type = 'Merch' OR (year IS NOT NULL AND genre IS NOT NULL)",
            name="ck_products_music_fields",
        ),
        Index("idx_products_type", "type"),
        Index("idx_products_genre", "genre"),
        Index("idx_products_artist", "artist_person_id"),
    )


class Song(Base):
    """Entità autonoma: può stare su zero, uno o più prodotti tramite album_songs."""

    __tablename__ = "songs"

    id = Column(Integer, primary_key=True)
    artist_person_id = Column(Integer, ForeignKey("artists.person_id", ondelete="SET NULL"), nullable=True)
    title = Column(String(200), nullable=False)
    isrc = Column(String(12), unique=True, nullable=True)
    duration_seconds = Column(Integer, nullable=True)
    bpm = Column(Integer, nullable=True)
    is_explicit = Column(Boolean, nullable=False, default=False)
    genre = Column(enum_type(Genre, "songs_genre"), nullable=True)
    file_path = Column(String(500), nullable=True)
    file_format = Column(enum_type(AudioFormat, "songs_file_format"), nullable=True)
    file_size_bytes = Column(Integer, nullable=True)
    individual_price = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    artist_ref = relationship("Artist")
    appearances = relationship(
        "AlbumSong", back_populates="song", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint("duration_seconds IS NULL OR duration_seconds > 0", name="ck_songs_duration"),
        CheckConstraint("individual_price >= 0", name="ck_songs_price"),
        Index("idx_songs_artist", "artist_person_id"),
        Index("idx_songs_genre", "genre"),
    )


class AlbumSong(Base):
    """Bridge album↔song: la coppia è la PK, track/disc sono solo ordinamento."""

    __tablename__ = "album_songs"

    album_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)
    song_id = Column(Integer, ForeignKey("songs.id", ondelete="CASCADE"), primary_key=True)
    track_number = Column(Integer, nullable=False)
    disc_number = Column(Integer, nullable=False, default=1)

    album = relationship("Product", back_populates="tracks")
    song = relationship("Song", back_populates="appearances")

    __table_args__ = (
        CheckConstraint("track_number > 0", name="ck_album_songs_track"),
        CheckConstraint("disc_number > 0", name="ck_album_songs_disc"),
        Index("idx_album_songs_song", "song_id"),
        Index("idx_album_songs_track", "album_id", "disc_number", "track_number"),
    )
