"""
Tutte le liste chiuse del dominio, definite una volta sola.

`enum_type` produce la colonna SQLAlchemy (VARCHAR + CHECK generato dai
valori dell'enum): la usano sia i modelli ORM sia le migrazioni, quindi il
vincolo nel DB e la validazione a runtime non possono divergere.
"""
import enum

from sqlalchemy import Enum


class Gender(str, enum.Enum):
    MALE = "M"
    FEMALE = "F"
    OTHER = "Other"
    PREFER_NOT_TO_SAY = "PreferNotToSay"


class EmailChangeReason(str, enum.Enum):
    INITIAL = "initial"
    USER_UPDATED = "user_updated"
    ADMIN_UPDATED = "admin_updated"
    VERIFICATION = "verification"


class ProductType(str, enum.Enum):
    ALBUM = "Album"
    SINGLE = "Single"
    EP = "EP"
    MERCH = "Merch"

    @property
    def is_music(self) -> bool:
        return self is not ProductType.MERCH


MUSIC_TYPES = tuple(t for t in ProductType if t.is_music)


class Genre(str, enum.Enum):
    RNB = "RnB"
    SOUL = "Soul"
    FUNK = "Funk"
    JAZZ = "Jazz"
    GOSPEL = "Gospel"
    BLUES = "Blues"
    DISCO = "Disco"
    ROCK = "Rock"
    POP = "Pop"
    COUNTRY = "Country"
    HIPHOP = "HipHop"
    RAP = "Rap"
    CLASSICAL = "Classical"
    REGGAE = "Reggae"
    ELECTRONIC = "Electronic"
    DANCE = "Dance"
    WORLD = "World"


GENRES = tuple(g.value for g in Genre)


class AudioFormat(str, enum.Enum):
    MP3 = "mp3"
    WAV = "wav"
    AIFF = "aiff"
    AAC = "aac"
    FLAC = "flac"
    OGG = "ogg"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# stati terminali: da qui non si esce
ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.SHIPPED, OrderStatus.REFUNDED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.REFUNDED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}


class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


class CouponCreatorType(str, enum.Enum):
    ADMIN = "admin"
    VENDOR = "vendor"
    ARTIST = "artist"


def _values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


def enum_type(enum_cls: type[enum.Enum], name: str) -> Enum:
    """Colonna non-nativa che salva i *valori* e genera il CHECK con nome `ck_<name>`."""
    return Enum(
        enum_cls,
        name=f"ck_{name}",
        native_enum=False,
        create_constraint=True,
        values_callable=_values,
        validate_strings=True,
        length=max(len(v) for v in _values(enum_cls)),
    )
