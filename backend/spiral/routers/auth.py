from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.security import create_access_token
from ..database import get_db
from ..deps import get_current_person
from ..models.person import Person
from ..schemas.auth import LoginIn, PersonOut, ProfileOut, RegisterIn, TokenOut
from ..services import identity

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=PersonOut, status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    return identity.register_customer(db, identity.Registration(**payload.model_dump()))


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_db)):
    person = identity.authenticate(db, payload.username, payload.password)
    return TokenOut(access_token=create_access_token(person.id))


@router.get("/me", response_model=ProfileOut)
def me(current: Person = Depends(get_current_person), db: Session = Depends(get_db)):
    return identity.profile(db, current.id)
