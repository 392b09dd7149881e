from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from ..core.clock import utcnow
from ..database import Base
from .enums import EmailChangeReason, Gender, enum_type


class Person(Base):
    """Identità base: esiste indipendentemente da qualsiasi ruolo."""

    __tablename__ = "persons"

    id = Column(Integer, primary_key=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(enum_type(Gender, "persons_gender"), nullable=True)
    phone_number = Column(String(40), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # capability 1:1 (composizione, non ereditarietà)
    customer = relationship(
        "Customer", back_populates="person", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )
    employee = relationship(
        "Employee", back_populates="person", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )
    artist = relationship(
        "Artist", back_populates="person", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )

    emails = relationship(
        "EmailHistory",
        back_populates="person",
        order_by="EmailHistory.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    role_assignments = relationship(
        "PersonRole",
        foreign_keys="PersonRole.person_id",
        back_populates="person",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_persons_name", "last_name", "first_name"),
        Index("idx_persons_active", "is_active"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class EmailHistory(Base):
    """Log append-only: la riga con effective_to NULL è l'email corrente."""

    __tablename__ = "email_history"

    id = Column(Integer, primary_key=True)
    person_id = Column(Integer, ForeignKey("persons.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(254), nullable=False)
    is_verified = Column(Boolean, nullable=False, default=False)
    effective_from = Column(DateTime, nullable=False, default=utcnow)
    effective_to = Column(DateTime, nullable=True)
    change_reason = Column(enum_type(EmailChangeReason, "email_change_reason"), nullable=False)

    person = relationship("Person", back_populates="emails")

    __table_args__ = (
        Index(
            "uq_email_history_active_email",
            "email",
            unique=True,
            sqlite_where=effective_to.is_(None),
            postgresql_where=effective_to.is_(None),
        ),
        Index(
            "uq_email_history_active_person",
            "person_id",
            unique=True,
            sqlite_where=effective_to.is_(None),
            postgresql_where=effective_to.is_(None),
        ),
    )

    @property
    def is_current(self) -> bool:
        return self.effective_to is None


class Customer(Base):
    __tablename__ = "customers"

    person_id = Column(Integer, ForeignKey("persons.id", ondelete="CASCADE"), primary_key=True)
    username = Column(String(20), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    customer_since = Column(DateTime, nullable=False, default=utcnow)
    loyalty_points = Column(Integer, nullable=False, default=0)

    person = relationship("Person", back_populates="customer")


class Employee(Base):
    __tablename__ = "employees"

    person_id = Column(Integer, ForeignKey("persons.id", ondelete="CASCADE"), primary_key=True)
    employee_number = Column(String(40), unique=True, nullable=True)
    job_title = Column(String(120), nullable=True)
    department = Column(String(120), nullable=True)
    salary = Column(Numeric(12, 2), nullable=True)
    hire_date = Column(DateTime, nullable=False, default=utcnow)
    termination_date = Column(DateTime, nullable=True)

    person = relationship("Person", back_populates="employee")


class Artist(Base):
    __tablename__ = "artists"

    person_id = Column(Integer, ForeignKey("persons.id", ondelete="CASCADE"), primary_key=True)
    stage_name = Column(String(200), unique=True, nullable=False)
    bio = Column(Text, nullable=True)
    website = Column(String(255), nullable=True)
    debut_year = Column(Integer, nullable=True)

    person = relationship("Person", back_populates="artist")

    __table_args__ = (
        # unicità case-insensitive: è la stessa regola usata da resolve_artist
        Index("uq_artists_stage_name_ci", func.lower(stage_name), unique=True),
    )
