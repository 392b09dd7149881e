"""
Anagrafica artisti.

Lo stage name è il riferimento per l'utente, ma il legame vero nel catalogo
è `artist_person_id`; `products.artist` è solo una copia per la vetrina e
va riallineata quando lo stage name cambia.
"""
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import Conflict, NotFound, ValidationFailed
from ..core.logging import get_logger
from ..database import atomic
from ..models.catalog import Product, Song
from ..models.order import OrderItem
from ..models.person import Artist, Person
from . import rbac

log = get_logger(__name__)

ARTIST_FIELDS = ("stage_name", "bio", "website", "debut_year")


def _clean_stage_name(value: str | None) -> str:
    name = " ".join((value or "").split())
    if not name:
        raise ValidationFailed("stage_name", "Stage name is required")
    return name


def find_by_stage_name(db: Session, stage_name: str) -> Artist | None:
    return db.query(Artist).filter(func.lower(Artist.stage_name) == stage_name.lower()).first()


def get_artist(db: Session, person_id: int) -> Artist:
    artist = db.get(Artist, person_id)
    if not artist:
        raise NotFound("artist")
    return artist


def list_artists(db: Session, *, include_inactive: bool = False) -> list[Artist]:
    q = db.query(Artist).join(Person, Person.id == Artist.person_id)
    if not include_inactive:
        q = q.filter(Person.is_active.is_(True))
    return q.order_by(func.lower(Artist.stage_name)).all()


def search_artists(db: Session, term: str) -> list[Artist]:
    like = f"%{(term or '').strip().lower()}%"
    return (
        db.query(Artist)
        .join(Person, Person.id == Artist.person_id)
        .filter(
            or_(
                func.lower(Artist.stage_name).like(like),
                func.lower(Person.first_name).like(like),
                func.lower(Person.last_name).like(like),
            )
        )
        .order_by(func.lower(Artist.stage_name))
        .all()
    )


def _new_artist(db: Session, stage_name: str, first_name: str, last_name: str, **extra) -> Artist:
    person = Person(first_name=first_name, last_name=last_name)
    db.add(person)
    db.flush()
    artist = Artist(person_id=person.id, stage_name=stage_name, **extra)
    db.add(artist)
    rbac.attach_role(db, person.id, "artist")
    db.flush()
    return artist


def _split_name(stage_name: str) -> tuple[str, str]:
    first, _, rest = stage_name.partition(" ")
    return first, rest


def create_artist(
    db: Session,
    stage_name: str,
    *,
    first_name: str | None = None,
    last_name: str | None = None,
    bio: str | None = None,
    website: str | None = None,
    debut_year: int | None = None,
) -> Artist:
    stage_name = _clean_stage_name(stage_name)
    if find_by_stage_name(db, stage_name):
        raise Conflict(f"Artist '{stage_name}' already exists")

    default_first, default_last = _split_name(stage_name)
    try:
        with atomic(db):
            artist = _new_artist(
                db,
                stage_name,
                (first_name or "").strip() or default_first,
                (last_name or "").strip() if first_name else default_last,
                bio=bio,
                website=website,
                debut_year=debut_year,
            )
    except IntegrityError as exc:
        raise Conflict(f"Artist '{stage_name}' already exists") from exc

    log.info("Artist created: %s (person %s)", stage_name, artist.person_id)
    return artist


def resolve_artist(db: Session, display_name: str) -> Artist:
    """
    Trova l'artista per stage name (case-insensitive, spazi normalizzati) o lo crea.

    Limite noto: è un match esatto sul testo. Diacritici, "The" iniziale o
    grafie diverse producono un artista nuovo; i doppioni si sistemano con
    merge_artists. Non fa commit: gira dentro la transazione del chiamante.
    """
    name = _clean_stage_name(display_name)
    existing = find_by_stage_name(db, name)
    if existing:
        return existing

    first, last = _split_name(name)
    artist = _new_artist(db, name, first, last)
    log.info("Artist resolved by creation: %s (person %s)", name, artist.person_id)
    return artist


def _refresh_display_name(db: Session, artist: Artist) -> None:
    db.query(Product).filter(Product.artist_person_id == artist.person_id).update(
        {Product.artist: artist.stage_name}, synchronize_session=False
    )


def update_artist(db: Session, person_id: int, changes: dict) -> Artist:
    artist = get_artist(db, person_id)
    values = {}
    for key, value in changes.items():
        if key not in ARTIST_FIELDS:
            raise ValidationFailed(key, f"Unknown field {key}")
        if key == "stage_name":
            value = _clean_stage_name(value)
            other = find_by_stage_name(db, value)
            if other and other.person_id != person_id:
                raise Conflict(f"Artist '{value}' already exists")
        values[key] = value

    try:
        with atomic(db):
            for key, value in values.items():
                setattr(artist, key, value)
            db.flush()
            _refresh_display_name(db, artist)
    except IntegrityError as exc:
        raise Conflict("Stage name already in use") from exc
    return artist


def merge_artists(db: Session, canonical_id: int, duplicate_id: int) -> Artist:
    """
    Fonde un artista doppione in quello canonico: prodotti, brani e righe
    d'ordine passano al canonico, poi artista e persona doppioni spariscono.
    Solo manuale: nessun merge automatico per somiglianza di nome.
    """
    if canonical_id == duplicate_id:
        raise ValidationFailed("duplicate_id", "Cannot merge an artist into itself")
    canonical = get_artist(db, canonical_id)
    duplicate = get_artist(db, duplicate_id)
    dup_person = duplicate.person
    if dup_person.customer is not None or dup_person.employee is not None:
        raise Conflict("The duplicate person also has a customer or employee record; merge it by hand")

    with atomic(db):
        moved_products = (
            db.query(Product)
            .filter(Product.artist_person_id == duplicate_id)
            .update({Product.artist_person_id: canonical_id}, synchronize_session=False)
        )
        moved_songs = (
            db.query(Song)
            .filter(Song.artist_person_id == duplicate_id)
            .update({Song.artist_person_id: canonical_id}, synchronize_session=False)
        )
        db.query(OrderItem).filter(OrderItem.artist_person_id == duplicate_id).update(
            {OrderItem.artist_person_id: canonical_id}, synchronize_session=False
        )
        _refresh_display_name(db, canonical)
        db.delete(duplicate)
        db.flush()
        db.delete(dup_person)

    db.expire_all()
    log.info(
        "Merged artist %s into %s (%s products, %s songs)",
        duplicate_id,
        canonical_id,
        moved_products,
        moved_songs,
    )
    return canonical
