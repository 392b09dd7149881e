from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import require_permission
from ..schemas.catalog import LinkIn, MultiAlbumSongOut, SongAlbumOut, SongDetailOut, SongIn, SongOut, SongUpdate
from ..services import catalog

router = APIRouter(prefix="/songs", tags=["songs"])

manage = [Depends(require_permission("songs.manage"))]


@router.get("", response_model=list[SongOut])
def list_songs(
    album_id: int | None = None,
    orphaned: bool = False,
    search: str | None = None,
    genre: str | None = None,
    db: Session = Depends(get_db),
):
    return catalog.list_songs(db, album_id=album_id, orphaned=orphaned, search=search, genre=genre)


@router.get("/multi-album", response_model=list[MultiAlbumSongOut])
def multi_album(db: Session = Depends(get_db)):
    return [
        MultiAlbumSongOut(song=SongOut.model_validate(song), album_count=count)
        for song, count in catalog.multi_album_songs(db)
    ]


@router.get("/{song_id}", response_model=SongDetailOut)
def get_song(song_id: int, db: Session = Depends(get_db)):
    out = SongDetailOut.model_validate(catalog.get_song(db, song_id))
    out.albums = [
        SongAlbumOut(
            album_id=product.id,
            title=product.title,
            track_number=link.track_number,
            disc_number=link.disc_number,
        )
        for product, link in catalog.song_albums(db, song_id)
    ]
    return out


@router.post("", response_model=SongOut, status_code=201, dependencies=manage)
def create_song(payload: SongIn, db: Session = Depends(get_db)):
    data = payload.model_dump(exclude_unset=True)
    return catalog.create_song(db, data)


@router.patch("/{song_id}", response_model=SongOut, dependencies=manage)
def update_song(song_id: int, payload: SongUpdate, db: Session = Depends(get_db)):
    return catalog.update_song(db, song_id, payload.model_dump(exclude_unset=True))


@router.delete("/{song_id}", status_code=204, dependencies=manage)
def delete_song(song_id: int, db: Session = Depends(get_db)):
    catalog.delete_song(db, song_id)


@router.post("/{song_id}/albums/{album_id}", status_code=201, dependencies=manage)
def link_song(song_id: int, album_id: int, payload: LinkIn | None = None, db: Session = Depends(get_db)):
    payload = payload or LinkIn()
    link = catalog.link_song(
        db,
        album_id,
        song_id,
        track_number=payload.track_number,
        disc_number=payload.disc_number,
    )
    return {"album_id": link.album_id, "song_id": link.song_id, "track_number": link.track_number}


@router.delete("/{song_id}/albums/{album_id}", status_code=204, dependencies=manage)
def unlink_song(song_id: int, album_id: int, db: Session = Depends(get_db)):
    catalog.unlink_song(db, album_id, song_id)
