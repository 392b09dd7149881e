"""
Prodotti, brani e bridge album_songs.

Un brano non appartiene a nessun album: cancellare un prodotto rimuove solo
le sue righe di bridge (CASCADE), i brani restano (eventualmente orfani).
"""
import re
from datetime import date
from decimal import Decimal, InvalidOperation

from sqlalchemy import exists, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..core.clock import utcnow
from ..core.errors import Conflict, NotFound, ValidationFailed
from ..core.logging import get_logger
from ..database import atomic
from ..models.catalog import AlbumSong, Product, Song
from ..models.enums import MUSIC_TYPES, AudioFormat, Genre, ProductType
from ..models.order import OrderItem
from ..models.person import Artist
from . import artists as artist_service
from .pricing import money

log = get_logger(__name__)

ISRC_RE = re.compile(r"^[A-Z]{2}[A-Z0-9]{3}\d{7}$")

PRODUCT_FIELDS = ("title", "artist", "price", "image", "year", "genre", "stock", "type")
SONG_FIELDS = (
    "title",
    "artist_person_id",
    "isrc",
    "duration_seconds",
    "bpm",
    "is_explicit",
    "genre",
    "file_path",
    "file_format",
    "file_size_bytes",
    "individual_price",
)


# -----------------------------------------
# Validazione
# -----------------------------------------
def _text(value, field_name: str) -> str:
    value = "" if value is None else str(value).strip()
    if not value:
        raise ValidationFailed(field_name, f"{field_name.capitalize()} is required")
    return value


def _price(value, field_name: str = "price", *, allow_zero: bool = False) -> Decimal:
    try:
        amount = money(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationFailed(field_name, "Price must be a number")
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationFailed(field_name, "Price must be a positive number")
    return amount


def _enum(enum_cls, value, field_name: str):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationFailed(field_name, f"{field_name.capitalize()} must be one of: {allowed}")


def _year(value) -> int:
    try:
        year = int(value)
    except (TypeError, ValueError):
        raise ValidationFailed("year", "Invalid year")
    if year < 1900 or year > date.today().year + 1:
        raise ValidationFailed("year", "Invalid year")
    return year


def _positive_int(value, field_name: str) -> int | None:
    if value is None:
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationFailed(field_name, f"{field_name} must be an integer")
    if number <= 0:
        raise ValidationFailed(field_name, f"{field_name} must be positive")
    return number


def normalize_isrc(value: str | None) -> str | None:
    if value is None:
        return None
    isrc = value.replace("-", "").replace(" ", "").upper()
    if not isrc:
        return None
    if not ISRC_RE.match(isrc):
        raise ValidationFailed("isrc", "ISRC must be 12 characters like USRC17607839")
    return isrc


def _check_music_fields(product_type: ProductType, year, genre) -> None:
    if product_type.is_music and (year is None or genre is None):
        raise ValidationFailed("year" if year is None else "genre", "Year and genre are required for music products")


# -----------------------------------------
# Prodotti
# -----------------------------------------
def get_product(db: Session, product_id: int) -> Product:
    product = db.get(Product, product_id)
    if not product:
        raise NotFound("product")
    return product


def list_products(
    db: Session,
    *,
    genre: str | None = None,
    search: str | None = None,
    product_type: str | None = None,
) -> list[Product]:
    q = db.query(Product)
    if genre:
        q = q.filter(Product.genre == _enum(Genre, genre, "genre"))
    if product_type:
        q = q.filter(Product.type == _enum(ProductType, product_type, "type"))
    if search:
        like = f"%{search.strip().lower()}%"
        q = q.filter(or_(func.lower(Product.title).like(like), func.lower(Product.artist).like(like)))
    return q.order_by(Product.title, Product.id).all()


def genres(db: Session) -> list[str]:
    rows = db.query(Product.genre).filter(Product.genre.is_not(None)).distinct().all()
    return sorted(g.value for (g,) in rows)


def create_product(db: Session, data: dict) -> Product:
    """
    Crea un prodotto (e, per i tipi musicali, i brani annidati col bridge).

    `data["songs"]`: lista di dict con title, track_number, disc_number,
    duration_seconds, individual_price, artist_override. I brani senza
    titolo vengono saltati; senza track_number si numera in sequenza.
    """
    title = _text(data.get("title"), "title")
    artist_name = _text(data.get("artist"), "artist")
    image = _text(data.get("image"), "image")
    price = _price(data.get("price"))
    product_type = _enum(ProductType, data.get("type") or ProductType.ALBUM, "type")

    year = data.get("year")
    year = _year(year) if year not in (None, "") else None
    genre = _enum(Genre, data.get("genre") or None, "genre")
    _check_music_fields(product_type, year, genre)

    stock = data.get("stock")
    stock = settings.DEFAULT_STOCK if stock is None else stock
    try:
        stock = int(stock)
    except (TypeError, ValueError):
        raise ValidationFailed("stock", "Stock must be a non-negative number")
    if stock < 0:
        raise ValidationFailed("stock", "Stock must be a non-negative number")

    songs = data.get("songs") or []
    if songs and not product_type.is_music:
        raise ValidationFailed("songs", "Only music products can have songs")

    try:
        with atomic(db):
            artist = artist_service.resolve_artist(db, artist_name)
            product = Product(
                title=title,
                artist=artist.stage_name,
                artist_person_id=artist.person_id,
                price=price,
                image=image,
                year=year,
                genre=genre,
                stock=stock,
                type=product_type,
            )
            db.add(product)
            db.flush()
            added = _add_nested_songs(db, product, artist, songs)
    except IntegrityError as exc:
        raise Conflict("Product could not be created: duplicate data") from exc

    log.info("Product created: %s (%s, %s songs)", product.id, title, added)
    return product


def _add_nested_songs(db: Session, product: Product, artist: Artist, songs: list[dict]) -> int:
    next_track = 1
    added = 0
    for entry in songs:
        title = (entry.get("title") or "").strip()
        if not title:
            continue

        track = _positive_int(entry.get("track_number"), "track_number") or next_track
        next_track = track + 1

        override = (entry.get("artist_override") or "").strip()
        song_artist = artist_service.resolve_artist(db, override) if override else artist
        price = entry.get("individual_price")

        song = Song(
            title=title,
            artist_person_id=song_artist.person_id,
            duration_seconds=_positive_int(entry.get("duration_seconds"), "duration_seconds"),
            genre=product.genre,
            individual_price=_price(price, "individual_price", allow_zero=True)
            if price is not None
            else settings.DEFAULT_SONG_PRICE,
        )
        db.add(song)
        db.flush()
        db.add(
            AlbumSong(
                album_id=product.id,
                song_id=song.id,
                track_number=track,
                disc_number=_positive_int(entry.get("disc_number"), "disc_number") or 1,
            )
        )
        added += 1
    return added


def update_product(db: Session, product_id: int, changes: dict) -> Product:
    product = get_product(db, product_id)
    values = {}
    for key, value in changes.items():
        if key not in PRODUCT_FIELDS:
            raise ValidationFailed(key, f"Unknown field {key}")
        if key in ("title", "image"):
            value = _text(value, key)
        elif key == "price":
            value = _price(value)
        elif key == "year":
            value = _year(value) if value not in (None, "") else None
        elif key == "genre":
            value = _enum(Genre, value or None, "genre")
        elif key == "type":
            value = _enum(ProductType, value, "type")
        elif key == "stock":
            value = int(value)
            if value < 0:
                raise ValidationFailed("stock", "Stock must be a non-negative number")
        values[key] = value

    _check_music_fields(
        values.get("type", product.type),
        values.get("year", product.year),
        values.get("genre", product.genre),
    )

    with atomic(db):
        if "artist" in values:
            name = _text(values.pop("artist"), "artist")
            if name.lower() != (product.artist or "").lower():
                artist = artist_service.resolve_artist(db, name)
                product.artist_person_id = artist.person_id
                product.artist = artist.stage_name
        for key, value in values.items():
            setattr(product, key, value)
    return product


def delete_product(db: Session, product_id: int) -> None:
    product = get_product(db, product_id)
    if db.query(exists().where(OrderItem.product_id == product_id)).scalar():
        raise Conflict("Product appears in orders and cannot be deleted")
    with atomic(db):
        db.delete(product)
    log.info("Product deleted: %s", product_id)


# -----------------------------------------
# Brani
# -----------------------------------------
def get_song(db: Session, song_id: int) -> Song:
    song = db.get(Song, song_id)
    if not song:
        raise NotFound("song")
    return song


def _song_values(db: Session, data: dict) -> dict:
    values = {}
    for key, value in data.items():
        if key not in SONG_FIELDS:
            raise ValidationFailed(key, f"Unknown field {key}")
        if key == "title":
            value = _text(value, "title")
        elif key == "isrc":
            value = normalize_isrc(value)
        elif key == "individual_price":
            value = _price(value, "individual_price", allow_zero=True)
        elif key in ("duration_seconds", "bpm", "file_size_bytes"):
            value = _positive_int(value, key)
        elif key == "genre":
            value = _enum(Genre, value or None, "genre")
        elif key == "file_format":
            value = _enum(AudioFormat, value or None, "file_format")
        elif key == "artist_person_id" and value is not None:
            if not db.get(Artist, value):
                raise ValidationFailed("artist_person_id", "Invalid artist ID")
        values[key] = value
    return values


def _isrc_taken(db: Session, isrc: str | None, song_id: int | None = None) -> bool:
    if not isrc:
        return False
    q = db.query(Song.id).filter(Song.isrc == isrc)
    if song_id is not None:
        q = q.filter(Song.id != song_id)
    return q.first() is not None


def create_song(db: Session, data: dict) -> Song:
    values = _song_values(db, data)
    if "title" not in values:
        raise ValidationFailed("title", "Title is required")
    values.setdefault("individual_price", settings.DEFAULT_SONG_PRICE)
    if _isrc_taken(db, values.get("isrc")):
        raise Conflict("A song with this ISRC already exists")

    try:
        with atomic(db):
            song = Song(**values)
            db.add(song)
    except IntegrityError as exc:
        raise Conflict("A song with this ISRC already exists") from exc
    return song


def update_song(db: Session, song_id: int, changes: dict) -> Song:
    song = get_song(db, song_id)
    values = _song_values(db, changes)
    if not values:
        raise ValidationFailed("body", "No fields to update")
    if _isrc_taken(db, values.get("isrc"), song_id):
        raise Conflict("A song with this ISRC already exists")

    try:
        with atomic(db):
            for key, value in values.items():
                setattr(song, key, value)
            song.updated_at = utcnow()
    except IntegrityError as exc:
        raise Conflict("A song with this ISRC already exists") from exc
    return song


def delete_song(db: Session, song_id: int) -> None:
    song = get_song(db, song_id)
    if db.query(exists().where(OrderItem.song_id == song_id)).scalar():
        raise Conflict("Song appears in orders and cannot be deleted")
    with atomic(db):
        db.delete(song)


def list_songs(
    db: Session,
    *,
    album_id: int | None = None,
    orphaned: bool = False,
    search: str | None = None,
    genre: str | None = None,
) -> list[Song]:
    q = db.query(Song)
    if album_id is not None:
        q = q.filter(exists().where(AlbumSong.song_id == Song.id, AlbumSong.album_id == album_id))
    if orphaned:
        q = q.filter(~exists().where(AlbumSong.song_id == Song.id))
    if search:
        q = q.filter(func.lower(Song.title).like(f"%{search.strip().lower()}%"))
    if genre:
        q = q.filter(Song.genre == _enum(Genre, genre, "genre"))
    return q.order_by(Song.title, Song.id).all()


def orphan_songs(db: Session) -> list[Song]:
    """Brani senza righe nel bridge (NOT EXISTS)."""
    return list_songs(db, orphaned=True)


def multi_album_songs(db: Session) -> list[tuple[Song, int]]:
    album_count = func.count(func.distinct(AlbumSong.album_id))
    return (
        db.query(Song, album_count)
        .join(AlbumSong, AlbumSong.song_id == Song.id)
        .group_by(Song.id)
        .having(album_count > 1)
        .order_by(album_count.desc(), Song.title)
        .all()
    )


def link_song(
    db: Session,
    album_id: int,
    song_id: int,
    *,
    track_number: int | None = None,
    disc_number: int | None = None,
) -> AlbumSong:
    get_song(db, song_id)
    album = db.get(Product, album_id)
    if not album or album.type not in MUSIC_TYPES:
        raise NotFound("album")
    if db.get(AlbumSong, (album_id, song_id)):
        raise Conflict("Song is already on this album")

    disc = _positive_int(disc_number, "disc_number") or 1
    track = _positive_int(track_number, "track_number")
    if track is None:
        last = (
            db.query(func.max(AlbumSong.track_number))
            .filter(AlbumSong.album_id == album_id, AlbumSong.disc_number == disc)
            .scalar()
        )
        track = (last or 0) + 1

    try:
        with atomic(db):
            link = AlbumSong(album_id=album_id, song_id=song_id, track_number=track, disc_number=disc)
            db.add(link)
    except IntegrityError as exc:
        raise Conflict("Song is already on this album") from exc
    return link


def unlink_song(db: Session, album_id: int, song_id: int) -> None:
    link = db.get(AlbumSong, (album_id, song_id))
    if not link:
        raise NotFound("song-album link", "Song-album link not found")
    with atomic(db):
        db.delete(link)


def song_albums(db: Session, song_id: int) -> list[tuple[Product, AlbumSong]]:
    return (
        db.query(Product, AlbumSong)
        .join(AlbumSong, AlbumSong.album_id == Product.id)
        .filter(AlbumSong.song_id == song_id)
        .order_by(Product.title)
        .all()
    )
