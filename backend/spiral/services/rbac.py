"""
Ruoli e permessi.

Il controllo dei permessi non usa cache: la scadenza dell'assegnazione si
valuta adesso, a ogni richiesta.
"""
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.clock import to_utc_naive, utcnow
from ..core.errors import Conflict, NotFound, PermissionDenied
from ..core.logging import get_logger
from ..database import atomic
from ..models.person import Person
from ..models.rbac import Permission, PersonRole, Role, role_permissions

log = get_logger(__name__)


def get_role(db: Session, name: str) -> Role:
    role = db.query(Role).filter(Role.name == name).first()
    if not role:
        raise NotFound("role", f"Role '{name}' not found")
    return role


def list_roles(db: Session) -> list[Role]:
    return db.query(Role).order_by(Role.name).all()


def attach_role(
    db: Session,
    person_id: int,
    role_name: str,
    *,
    assigned_by: int | None = None,
    expires_at: datetime | None = None,
) -> PersonRole:
    """Aggiunge l'assegnazione alla sessione senza commit (la usa chi ha già una transazione)."""
    role = get_role(db, role_name)
    assignment = PersonRole(
        person_id=person_id,
        role_id=role.id,
        assigned_by=assigned_by,
        expires_at=to_utc_naive(expires_at),
    )
    db.add(assignment)
    return assignment


def assign_role(
    db: Session,
    person_id: int,
    role_name: str,
    *,
    assigned_by: int | None = None,
    expires_at: datetime | None = None,
) -> PersonRole:
    if not db.get(Person, person_id):
        raise NotFound("person")
    role = get_role(db, role_name)
    if db.get(PersonRole, (person_id, role.id)):
        raise Conflict(f"Person already has role '{role_name}'")

    try:
        with atomic(db):
            assignment = attach_role(db, person_id, role_name, assigned_by=assigned_by, expires_at=expires_at)
    except IntegrityError as exc:
        raise Conflict(f"Person already has role '{role_name}'") from exc

    log.info("Role %s assigned to person %s by %s", role_name, person_id, assigned_by)
    return assignment


def revoke_role(db: Session, person_id: int, role_name: str) -> None:
    role = get_role(db, role_name)
    assignment = db.get(PersonRole, (person_id, role.id))
    if not assignment:
        raise NotFound("role assignment", f"Person {person_id} does not have role '{role_name}'")
    with atomic(db):
        db.delete(assignment)
    log.info("Role %s revoked from person %s", role_name, person_id)


def assignments(db: Session, person_id: int) -> list[PersonRole]:
    return (
        db.query(PersonRole)
        .filter(PersonRole.person_id == person_id)
        .order_by(PersonRole.assigned_at)
        .all()
    )


def active_role_names(db: Session, person_id: int, now: datetime | None = None) -> list[str]:
    now = now or utcnow()
    rows = (
        db.query(Role.name)
        .join(PersonRole, PersonRole.role_id == Role.id)
        .filter(
            PersonRole.person_id == person_id,
            or_(PersonRole.expires_at.is_(None), PersonRole.expires_at > now),
        )
        .order_by(Role.name)
        .all()
    )
    return [name for (name,) in rows]


def has_permission(db: Session, person_id: int, permission: str, now: datetime | None = None) -> bool:
    """assegnazione non scaduta -> ruolo -> role_permissions -> permesso. Nessun side effect."""
    now = now or utcnow()
    hit = (
        db.query(PersonRole.person_id)
        .join(role_permissions, role_permissions.c.role_id == PersonRole.role_id)
        .join(Permission, Permission.id == role_permissions.c.permission_id)
        .filter(
            PersonRole.person_id == person_id,
            Permission.name == permission,
            or_(PersonRole.expires_at.is_(None), PersonRole.expires_at > now),
        )
        .first()
    )
    return hit is not None


def require_permission(db: Session, person_id: int, permission: str) -> None:
    if not has_permission(db, person_id, permission):
        raise PermissionDenied(f"Missing permission '{permission}'")
