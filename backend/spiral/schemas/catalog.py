from decimal import Decimal

from pydantic import BaseModel, Field

from ..models.enums import AudioFormat, Genre, ProductType


# -----------------------------
# PRODUCTS
# -----------------------------
class NestedSongIn(BaseModel):
    title: str | None = None
    track_number: int | None = Field(None, gt=0)
    disc_number: int | None = Field(None, gt=0)
    duration_seconds: int | None = Field(None, gt=0)
    individual_price: Decimal | None = Field(None, ge=0)
    artist_override: str | None = None


class ProductIn(BaseModel):
    title: str
    artist: str
    price: Decimal
    image: str
    year: int | None = None
    genre: Genre | None = None
    stock: int | None = None
    type: ProductType = ProductType.ALBUM
    songs: list[NestedSongIn] = []


class ProductUpdate(BaseModel):
    title: str | None = None
    artist: str | None = None
    price: Decimal | None = None
    image: str | None = None
    year: int | None = None
    genre: Genre | None = None
    stock: int | None = None
    type: ProductType | None = None


class TrackOut(BaseModel):
    song_id: int
    title: str
    track_number: int
    disc_number: int
    duration_seconds: int | None = None


class ProductOut(BaseModel):
    id: int
    title: str
    artist: str
    artist_person_id: int | None = None
    price: Decimal
    image: str
    year: int | None = None
    genre: Genre | None = None
    stock: int
    type: ProductType

    class Config:
        from_attributes = True


class ProductDetailOut(ProductOut):
    tracks: list[TrackOut] = []


# -----------------------------
# SONGS
# -----------------------------
class SongIn(BaseModel):
    title: str
    artist_person_id: int | None = None
    isrc: str | None = None
    duration_seconds: int | None = Field(None, gt=0)
    bpm: int | None = Field(None, gt=0)
    is_explicit: bool = False
    genre: Genre | None = None
    file_path: str | None = None
    file_format: AudioFormat | None = None
    file_size_bytes: int | None = Field(None, gt=0)
    individual_price: Decimal | None = Field(None, ge=0)


class SongUpdate(BaseModel):
    title: str | None = None
    artist_person_id: int | None = None
    isrc: str | None = None
    duration_seconds: int | None = Field(None, gt=0)
    bpm: int | None = Field(None, gt=0)
    is_explicit: bool | None = None
    genre: Genre | None = None
    file_path: str | None = None
    file_format: AudioFormat | None = None
    file_size_bytes: int | None = Field(None, gt=0)
    individual_price: Decimal | None = Field(None, ge=0)


class SongOut(BaseModel):
    id: int
    title: str
    artist_person_id: int | None = None
    isrc: str | None = None
    duration_seconds: int | None = None
    bpm: int | None = None
    is_explicit: bool
    genre: Genre | None = None
    file_path: str | None = None
    file_format: AudioFormat | None = None
    individual_price: Decimal

    class Config:
        from_attributes = True


class SongAlbumOut(BaseModel):
    album_id: int
    title: str
    track_number: int
    disc_number: int


class SongDetailOut(SongOut):
    albums: list[SongAlbumOut] = []


class MultiAlbumSongOut(BaseModel):
    song: SongOut
    album_count: int


class LinkIn(BaseModel):
    track_number: int | None = Field(None, gt=0)
    disc_number: int | None = Field(None, gt=0)


# -----------------------------
# ARTISTS
# -----------------------------
class ArtistIn(BaseModel):
    stage_name: str
    first_name: str | None = None
    last_name: str | None = None
    bio: str | None = None
    website: str | None = None
    debut_year: int | None = None


class ArtistUpdate(BaseModel):
    stage_name: str | None = None
    bio: str | None = None
    website: str | None = None
    debut_year: int | None = None


class ArtistOut(BaseModel):
    person_id: int
    stage_name: str
    bio: str | None = None
    website: str | None = None
    debut_year: int | None = None

    class Config:
        from_attributes = True


class MergeIn(BaseModel):
    canonical_id: int
    duplicate_id: int
