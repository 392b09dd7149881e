from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.errors import PermissionDenied
from ..database import get_db
from ..deps import get_current_person, require_permission
from ..models.person import Person
from ..schemas.catalog import ArtistIn, ArtistOut, ArtistUpdate
from ..services import artists, rbac

router = APIRouter(prefix="/artists", tags=["artists"])


@router.get("", response_model=list[ArtistOut])
def list_artists(db: Session = Depends(get_db)):
    return artists.list_artists(db)


@router.get("/search", response_model=list[ArtistOut])
def search_artists(q: str, db: Session = Depends(get_db)):
    return artists.search_artists(db, q)


@router.get("/{person_id}", response_model=ArtistOut)
def get_artist(person_id: int, db: Session = Depends(get_db)):
    return artists.get_artist(db, person_id)


@router.post(
    "",
    response_model=ArtistOut,
    status_code=201,
    dependencies=[Depends(require_permission("artists.create"))],
)
def create_artist(payload: ArtistIn, db: Session = Depends(get_db)):
    return artists.create_artist(db, **payload.model_dump())


@router.patch("/{person_id}", response_model=ArtistOut)
def update_artist(
    person_id: int,
    payload: ArtistUpdate,
    current: Person = Depends(require_permission("artists.update")),
    db: Session = Depends(get_db),
):
    # un artista modifica solo il proprio profilo; lo staff con users.manage tutti
    if current.id != person_id and not rbac.has_permission(db, current.id, "users.manage"):
        raise PermissionDenied("You can only edit your own artist profile")
    return artists.update_artist(db, person_id, payload.model_dump(exclude_unset=True))
