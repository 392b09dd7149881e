"""
Identità: persons + capability (customers/employees/artists), storico email,
ruoli e permessi. Semina i quattro ruoli base e i permessi iniziali.
"""
import sqlalchemy as sa

from ...core.clock import utcnow
from ...models.enums import EmailChangeReason, Gender, enum_type
from ..common import ensure_permission, ensure_role, grant

ID = "001"
NAME = "identity-schema"

ROLES = {
    "admin": "Full access",
    "customer": "Registered shop customer",
    "employee": "Store staff",
    "artist": "Recording artist",
}

PERMISSIONS = {
    "products.create": "Create products",
    "products.read": "Read products",
    "products.update": "Update products",
    "products.delete": "Delete products",
    "orders.create": "Place orders",
    "orders.read": "Read own orders",
    "users.manage": "Manage users and roles",
    "cart.manage": "Manage own cart",
}

CUSTOMER_PERMISSIONS = ("products.read", "orders.create", "orders.read", "cart.manage")


def _tables(meta: sa.MetaData) -> list[sa.Table]:
    persons = sa.Table(
        "persons",
        meta,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("date_of_birth", sa.Date, nullable=True),
        sa.Column("gender", enum_type(Gender, "persons_gender"), nullable=True),
        sa.Column("phone_number", sa.String(40), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, default=True),
        sa.Column("created_at", sa.DateTime, nullable=False, default=utcnow),
        sa.Column("updated_at", sa.DateTime, nullable=False, default=utcnow),
        sa.Index("idx_persons_name", "last_name", "first_name"),
        sa.Index("idx_persons_active", "is_active"),
    )

    email_history = sa.Table(
        "email_history",
        meta,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("person_id", sa.Integer, sa.ForeignKey("persons.id", ondelete="CASCADE"), nullable=False),
        sa.Column("email", sa.String(254), nullable=False),
        sa.Column("is_verified", sa.Boolean, nullable=False, default=False),
        sa.Column("effective_from", sa.DateTime, nullable=False, default=utcnow),
        sa.Column("effective_to", sa.DateTime, nullable=True),
        sa.Column("change_reason", enum_type(EmailChangeReason, "email_change_reason"), nullable=False),
        sa.Index("ix_email_history_person_id", "person_id"),
    )
    open_row = email_history.c.effective_to.is_(None)
    sa.Index(
        "uq_email_history_active_email",
        email_history.c.email,
        unique=True,
        sqlite_where=open_row,
        postgresql_where=open_row,
    )
    sa.Index(
        "uq_email_history_active_person",
        email_history.c.person_id,
        unique=True,
        sqlite_where=open_row,
        postgresql_where=open_row,
    )

    customers = sa.Table(
        "customers",
        meta,
        sa.Column("person_id", sa.Integer, sa.ForeignKey("persons.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("username", sa.String(20), unique=True, nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("customer_since", sa.DateTime, nullable=False, default=utcnow),
        sa.Column("loyalty_points", sa.Integer, nullable=False, default=0),
    )

    employees = sa.Table(
        "employees",
        meta,
        sa.Column("person_id", sa.Integer, sa.ForeignKey("persons.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("employee_number", sa.String(40), unique=True, nullable=True),
        sa.Column("job_title", sa.String(120), nullable=True),
        sa.Column("department", sa.String(120), nullable=True),
        sa.Column("salary", sa.Numeric(12, 2), nullable=True),
        sa.Column("hire_date", sa.DateTime, nullable=False, default=utcnow),
        sa.Column("termination_date", sa.DateTime, nullable=True),
    )

    artists = sa.Table(
        "artists",
        meta,
        sa.Column("person_id", sa.Integer, sa.ForeignKey("persons.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("stage_name", sa.String(200), unique=True, nullable=False),
        sa.Column("bio", sa.Text, nullable=True),
        sa.Column("website", sa.String(255), nullable=True),
        sa.Column("debut_year", sa.Integer, nullable=True),
    )
    sa.Index("uq_artists_stage_name_ci", sa.func.lower(artists.c.stage_name), unique=True)

    roles = sa.Table(
        "roles",
        meta,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String(50), unique=True, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, default=utcnow),
    )

    permissions = sa.Table(
        "permissions",
        meta,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String(100), unique=True, nullable=False),
        sa.Column("resource", sa.String(50), nullable=True),
        sa.Column("action", sa.String(50), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, default=utcnow),
        sa.Index("idx_permissions_resource", "resource", "action"),
    )

    person_roles = sa.Table(
        "person_roles",
        meta,
        sa.Column("person_id", sa.Integer, sa.ForeignKey("persons.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("role_id", sa.Integer, sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("assigned_at", sa.DateTime, nullable=False, default=utcnow),
        sa.Column("assigned_by", sa.Integer, sa.ForeignKey("persons.id", ondelete="SET NULL"), nullable=True),
        sa.Column("expires_at", sa.DateTime, nullable=True),
    )

    role_permissions = sa.Table(
        "role_permissions",
        meta,
        sa.Column("role_id", sa.Integer, sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
        sa.Column(
            "permission_id", sa.Integer, sa.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
        ),
    )

    return [persons, email_history, customers, employees, artists, roles, permissions, person_roles, role_permissions]


def up(conn) -> None:
    meta = sa.MetaData()
    meta.create_all(conn, tables=_tables(meta), checkfirst=True)

    for name, description in ROLES.items():
        ensure_role(conn, name, description)
    for name, description in PERMISSIONS.items():
        ensure_permission(conn, name, description)

    grant(conn, "admin", PERMISSIONS)
    grant(conn, "customer", CUSTOMER_PERMISSIONS)


def down(conn) -> None:
    meta = sa.MetaData()
    meta.drop_all(conn, tables=_tables(meta), checkfirst=True)
