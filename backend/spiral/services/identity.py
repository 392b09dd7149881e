"""
Persone, capability e storico email.

Ogni scrittura multi-step (registrazione, cambio email, aggiunta employee)
gira in `atomic`: o passa tutto o non resta nulla.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.clock import to_utc_naive, utcnow
from ..core.errors import AuthenticationFailed, Conflict, NotFound, ValidationFailed
from ..core.logging import get_logger
from ..core.security import hash_password, verify_password
from ..database import atomic
from ..models.enums import EmailChangeReason, Gender
from ..models.person import Customer, EmailHistory, Employee, Person
from . import rbac

log = get_logger(__name__)


@dataclass
class Registration:
    first_name: str
    last_name: str
    email: str
    username: str
    password: str
    date_of_birth: date | None = None
    gender: Gender | None = None
    phone_number: str | None = None


@dataclass
class Profile:
    person: Person
    email: str | None
    roles: list[str] = field(default_factory=list)
    is_customer: bool = False
    is_employee: bool = False
    is_artist: bool = False


def normalize_email(value: str) -> str:
    email = (value or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationFailed("email", "A valid email address is required")
    return email


def _require(value: str | None, field_name: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationFailed(field_name, f"{field_name} is required")
    return value


def get_person(db: Session, person_id: int) -> Person:
    person = db.get(Person, person_id)
    if not person:
        raise NotFound("person")
    return person


def current_email_row(db: Session, person_id: int) -> EmailHistory | None:
    return (
        db.query(EmailHistory)
        .filter(EmailHistory.person_id == person_id, EmailHistory.effective_to.is_(None))
        .first()
    )


def current_email(db: Session, person_id: int) -> str | None:
    row = current_email_row(db, person_id)
    return row.email if row else None


def _email_owner(db: Session, email: str) -> int | None:
    row = (
        db.query(EmailHistory.person_id)
        .filter(EmailHistory.email == email, EmailHistory.effective_to.is_(None))
        .first()
    )
    return row[0] if row else None


def register_customer(db: Session, data: Registration) -> Person:
    """Persona + customer + email iniziale + ruolo customer, in un'unica transazione."""
    first_name = _require(data.first_name, "first_name")
    last_name = _require(data.last_name, "last_name")
    username = _require(data.username, "username")
    if len(username) > 20:
        raise ValidationFailed("username", "Username must be at most 20 characters")
    if not data.password:
        raise ValidationFailed("password", "password is required")
    email = normalize_email(data.email)

    if _email_owner(db, email) is not None:
        raise Conflict("Email already registered")
    if db.query(Customer).filter(Customer.username == username).first():
        raise Conflict("Username already taken")

    try:
        with atomic(db):
            person = Person(
                first_name=first_name,
                last_name=last_name,
                date_of_birth=data.date_of_birth,
                gender=data.gender,
                phone_number=data.phone_number,
            )
            db.add(person)
            db.flush()

            db.add(Customer(person_id=person.id, username=username, password_hash=hash_password(data.password)))
            db.add(EmailHistory(person_id=person.id, email=email, change_reason=EmailChangeReason.INITIAL))
            rbac.attach_role(db, person.id, "customer")
    except IntegrityError as exc:
        # una registrazione concorrente ha preso email o username
        raise Conflict("Email or username already registered") from exc

    log.info("Registered customer %s (person %s)", username, person.id)
    return person


def authenticate(db: Session, username: str, password: str) -> Person:
    customer = db.query(Customer).filter(Customer.username == (username or "").strip()).first()
    if not customer or not verify_password(password or "", customer.password_hash):
        raise AuthenticationFailed("Invalid username or password")
    if not customer.person.is_active:
        raise AuthenticationFailed("Invalid username or password")
    return customer.person


PERSON_FIELDS = ("first_name", "last_name", "date_of_birth", "gender", "phone_number", "is_active")


def update_person(db: Session, person_id: int, changes: dict) -> Person:
    person = get_person(db, person_id)
    values = {}
    for key, value in changes.items():
        if key not in PERSON_FIELDS:
            raise ValidationFailed(key, f"Unknown field {key}")
        if key in ("first_name", "last_name"):
            value = _require(value, key)
        values[key] = value

    with atomic(db):
        for key, value in values.items():
            setattr(person, key, value)
        person.updated_at = utcnow()
    return person


def update_email(
    db: Session,
    person_id: int,
    new_email: str,
    reason: EmailChangeReason = EmailChangeReason.USER_UPDATED,
) -> EmailHistory:
    """Chiude la riga attiva e ne apre una nuova; mai modificare un'email già scritta."""
    get_person(db, person_id)
    email = normalize_email(new_email)

    owner = _email_owner(db, email)
    if owner is not None and owner != person_id:
        raise Conflict("Email already in use by another account")

    current = current_email_row(db, person_id)
    if current and current.email == email:
        return current

    now = utcnow()
    try:
        with atomic(db):
            if current:
                current.effective_to = now
                # la chiusura deve arrivare al DB prima dell'insert (indice parziale)
                db.flush()
            row = EmailHistory(person_id=person_id, email=email, effective_from=now, change_reason=reason)
            db.add(row)
    except IntegrityError as exc:
        raise Conflict("Email already in use by another account") from exc

    log.info("Email changed for person %s (%s)", person_id, reason.value)
    return row


def verify_email(db: Session, person_id: int) -> EmailHistory:
    current = current_email_row(db, person_id)
    if not current:
        raise NotFound("email", "No active email for this person")
    if current.is_verified:
        return current

    now = utcnow()
    with atomic(db):
        current.effective_to = now
        db.flush()
        row = EmailHistory(
            person_id=person_id,
            email=current.email,
            is_verified=True,
            effective_from=now,
            change_reason=EmailChangeReason.VERIFICATION,
        )
        db.add(row)
    return row


def email_history(db: Session, person_id: int) -> list[EmailHistory]:
    get_person(db, person_id)
    return (
        db.query(EmailHistory)
        .filter(EmailHistory.person_id == person_id)
        .order_by(EmailHistory.effective_from, EmailHistory.id)
        .all()
    )


def add_employee(
    db: Session,
    person_id: int,
    *,
    employee_number: str | None = None,
    job_title: str | None = None,
    department: str | None = None,
    salary: Decimal | None = None,
    hire_date: datetime | None = None,
    assigned_by: int | None = None,
) -> Employee:
    person = get_person(db, person_id)
    if person.employee is not None:
        raise Conflict("Person is already an employee")

    try:
        with atomic(db):
            employee = Employee(
                person_id=person_id,
                employee_number=employee_number,
                job_title=job_title,
                department=department,
                salary=salary,
                hire_date=to_utc_naive(hire_date) or utcnow(),
            )
            db.add(employee)
            rbac.attach_role(db, person_id, "employee", assigned_by=assigned_by)
    except IntegrityError as exc:
        raise Conflict("Employee number already in use") from exc
    db.expire(person)
    return employee


def profile(db: Session, person_id: int) -> Profile:
    person = get_person(db, person_id)
    return Profile(
        person=person,
        email=current_email(db, person_id),
        roles=rbac.active_role_names(db, person_id),
        is_customer=person.customer is not None,
        is_employee=person.employee is not None,
        is_artist=person.artist is not None,
    )


def list_people(db: Session, *, active: bool | None = None, limit: int = 100, offset: int = 0) -> list[Profile]:
    q = db.query(Person)
    if active is not None:
        q = q.filter(Person.is_active == active)
    people = q.order_by(Person.last_name, Person.first_name, Person.id).offset(offset).limit(limit).all()
    return [profile(db, p.id) for p in people]
