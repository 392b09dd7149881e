"""Piccoli helper condivisi dalle versioni: riflessione e seed idempotenti."""
import sqlalchemy as sa

from ..core.clock import utcnow


def reflect(conn, meta: sa.MetaData, *names: str) -> list[sa.Table]:
    """Carica nel MetaData locale le tabelle già esistenti, così le FK compilano."""
    return [sa.Table(name, meta, autoload_with=conn) for name in names]


def ensure_role(conn, name: str, description: str) -> int:
    roles = sa.table("roles", sa.column("id"), sa.column("name"), sa.column("description"), sa.column("created_at"))
    found = conn.execute(sa.select(roles.c.id).where(roles.c.name == name)).scalar()
    if found is not None:
        return found
    conn.execute(roles.insert().values(name=name, description=description, created_at=utcnow()))
    # la sa.table leggera non dichiara PK: inserted_primary_key sarebbe vuota
    return conn.execute(sa.select(roles.c.id).where(roles.c.name == name)).scalar_one()


def ensure_permission(conn, name: str, description: str) -> int:
    perms = sa.table(
        "permissions",
        sa.column("id"),
        sa.column("name"),
        sa.column("resource"),
        sa.column("action"),
        sa.column("description"),
        sa.column("created_at"),
    )
    found = conn.execute(sa.select(perms.c.id).where(perms.c.name == name)).scalar()
    if found is not None:
        return found
    resource, _, action = name.partition(".")
    conn.execute(
        perms.insert().values(
            name=name, resource=resource, action=action, description=description, created_at=utcnow()
        )
    )
    return conn.execute(sa.select(perms.c.id).where(perms.c.name == name)).scalar_one()


def grant(conn, role_name: str, permission_names) -> None:
    """Collega ruolo e permessi saltando le coppie già presenti."""
    roles = sa.table("roles", sa.column("id"), sa.column("name"))
    perms = sa.table("permissions", sa.column("id"), sa.column("name"))
    links = sa.table("role_permissions", sa.column("role_id"), sa.column("permission_id"))

    role_id = conn.execute(sa.select(roles.c.id).where(roles.c.name == role_name)).scalar_one()
    for perm_name in permission_names:
        perm_id = conn.execute(sa.select(perms.c.id).where(perms.c.name == perm_name)).scalar_one()
        exists = conn.execute(
            sa.select(links.c.role_id).where(links.c.role_id == role_id, links.c.permission_id == perm_id)
        ).first()
        if exists is None:
            conn.execute(links.insert().values(role_id=role_id, permission_id=perm_id))
