"""Catalogo: products, songs e il bridge album_songs."""
import sqlalchemy as sa

from ...core.clock import utcnow
from ...models.enums import AudioFormat, Genre, ProductType, enum_type
from ..common import reflect

ID = "002"
NAME = "catalog-schema"


def _tables(meta: sa.MetaData) -> list[sa.Table]:
    products = sa.Table(
        "products",
        meta,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("artist", sa.String(200), nullable=False),
        sa.Column(
            "artist_person_id",
            sa.Integer,
            sa.ForeignKey("artists.person_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("image", sa.String(255), nullable=False),
        sa.Column("year", sa.Integer, nullable=True),
        sa.Column("genre", enum_type(Genre, "products_genre"), nullable=True),
        sa.Column("stock", sa.Integer, nullable=False, default=0),
        sa.Column("type", enum_type(ProductType, "products_type"), nullable=False, default=ProductType.ALBUM),
        sa.Column("created_at", sa.DateTime, nullable=False, default=utcnow),
        sa.CheckConstraint("price > 0", name="ck_products_price"),
        sa.CheckConstraint("stock >= 0", name="ck_products_stock"),
        sa.CheckConstraint(
            "type = 'Merch' OR (year IS NOT NULL AND genre IS NOT NULL)",
            name="ck_products_music_fields",
        ),
        sa.Index("idx_products_type", "type"),
        sa.Index("idx_products_genre", "genre"),
        sa.Index("idx_products_artist", "artist_person_id"),
    )

    songs = sa.Table(
        "songs",
        meta,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column(
            "artist_person_id",
            sa.Integer,
            sa.ForeignKey("artists.person_id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("isrc", sa.String(12), unique=True, nullable=True),
        sa.Column("duration_seconds", sa.Integer, nullable=True),
        sa.Column("bpm", sa.Integer, nullable=True),
        sa.Column("is_explicit", sa.Boolean, nullable=False, default=False),
        sa.Column("genre", enum_type(Genre, "songs_genre"), nullable=True),
        sa.Column("file_path", sa.String(500), nullable=True),
        sa.Column("file_format", enum_type(AudioFormat, "songs_file_format"), nullable=True),
        sa.Column("file_size_bytes", sa.Integer, nullable=True),
        sa.Column("individual_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False, default=utcnow),
        sa.Column("updated_at", sa.DateTime, nullable=False, default=utcnow),
        sa.CheckConstraint("duration_seconds IS NULL OR duration_seconds > 0", name="ck_songs_duration"),
        sa.CheckConstraint("individual_price >= 0", name="ck_songs_price"),
        sa.Index("idx_songs_artist", "artist_person_id"),
        sa.Index("idx_songs_genre", "genre"),
    )

    album_songs = sa.Table(
        "album_songs",
        meta,
        sa.Column("album_id", sa.Integer, sa.ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("song_id", sa.Integer, sa.ForeignKey("songs.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("track_number", sa.Integer, nullable=False),
        sa.Column("disc_number", sa.Integer, nullable=False, default=1),
        sa.CheckConstraint("track_number > 0", name="ck_album_songs_track"),
        sa.CheckConstraint("disc_number > 0", name="ck_album_songs_disc"),
        sa.Index("idx_album_songs_song", "song_id"),
        sa.Index("idx_album_songs_track", "album_id", "disc_number", "track_number"),
    )

    return [products, songs, album_songs]


def up(conn) -> None:
    meta = sa.MetaData()
    reflect(conn, meta, "artists")
    meta.create_all(conn, tables=_tables(meta), checkfirst=True)


def down(conn) -> None:
    meta = sa.MetaData()
    reflect(conn, meta, "artists")
    meta.drop_all(conn, tables=_tables(meta), checkfirst=True)
