"""Permessi per lo staff: artisti, brani, coupon e gestione ordini."""
import sqlalchemy as sa

from ..common import ensure_permission, grant

ID = "005"
NAME = "staff-permissions"

PERMISSIONS = {
    "artists.create": "Create artists",
    "artists.update": "Update artists",
    "songs.manage": "Create, edit and link songs",
    "coupons.manage": "Create and deactivate coupons",
    "orders.manage": "Move orders through their lifecycle",
}

EMPLOYEE_PERMISSIONS = (
    "products.create",
    "products.read",
    "products.update",
    "products.delete",
    "songs.manage",
    "orders.read",
    "orders.manage",
)


def up(conn) -> None:
    for name, description in PERMISSIONS.items():
        ensure_permission(conn, name, description)

    grant(conn, "admin", PERMISSIONS)
    grant(conn, "artist", ("artists.update",))
    grant(conn, "employee", EMPLOYEE_PERMISSIONS)


def down(conn) -> None:
    perms = sa.table("permissions", sa.column("id"), sa.column("name"))
    links = sa.table("role_permissions", sa.column("role_id"), sa.column("permission_id"))

    ids = sa.select(perms.c.id).where(perms.c.name.in_(list(PERMISSIONS)))
    conn.execute(links.delete().where(links.c.permission_id.in_(ids)))
    conn.execute(perms.delete().where(perms.c.name.in_(list(PERMISSIONS))))

    # i permessi base concessi all'employee qui vanno tolti di nuovo
    roles = sa.table("roles", sa.column("id"), sa.column("name"))
    employee_id = sa.select(roles.c.id).where(roles.c.name == "employee").scalar_subquery()
    base_ids = sa.select(perms.c.id).where(perms.c.name.in_(list(EMPLOYEE_PERMISSIONS)))
    conn.execute(
        links.delete().where(links.c.role_id == employee_id, links.c.permission_id.in_(base_ids))
    )
