from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from .core.errors import AuthenticationFailed
from .core.security import person_id_from_token
from .database import get_db
from .models.person import Person
from .services import rbac

oauth2 = OAuth2PasswordBearer(tokenUrl="/auth/login")


def get_current_person(token: str = Depends(oauth2), db: Session = Depends(get_db)) -> Person:
    person_id = person_id_from_token(token)
    if person_id is None:
        raise AuthenticationFailed("Invalid token")
    person = db.get(Person, person_id)
    if not person or not person.is_active:
        raise AuthenticationFailed("User not found or inactive")
    return person


def require_permission(name: str):
    # controllo a ogni richiesta: ruoli scaduti o revocati valgono subito
    def dep(person: Person = Depends(get_current_person), db: Session = Depends(get_db)) -> Person:
        rbac.require_permission(db, person.id, name)
        return person

    return dep
