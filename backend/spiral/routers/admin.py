from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import require_permission
from ..models.enums import EmailChangeReason
from ..models.person import Person
from ..schemas.admin import (
    CouponIn,
    CouponOut,
    EmailChangeIn,
    EmailHistoryOut,
    EmployeeIn,
    OrderStatusIn,
    PersonUpdate,
    RoleAssignIn,
    RoleAssignmentOut,
    RoleOut,
    UserDetailOut,
    UserSummaryOut,
)
from ..schemas.auth import PersonOut
from ..schemas.catalog import ArtistOut, MergeIn
from ..schemas.checkout import OrderOut
from ..services import artists, checkout, coupons, identity, rbac

router = APIRouter(prefix="/admin", tags=["admin"])

user_admin = require_permission("users.manage")


def _summary(profile: identity.Profile) -> UserSummaryOut:
    return UserSummaryOut(
        person=PersonOut.model_validate(profile.person),
        email=profile.email,
        roles=profile.roles,
    )


# -----------------------------
# Utenti
# -----------------------------
@router.get("/users", response_model=list[UserSummaryOut], dependencies=[Depends(user_admin)])
def list_users(active: bool | None = None, limit: int = 100, offset: int = 0, db: Session = Depends(get_db)):
    return [_summary(p) for p in identity.list_people(db, active=active, limit=limit, offset=offset)]


@router.get("/users/{person_id}", response_model=UserDetailOut, dependencies=[Depends(user_admin)])
def user_details(person_id: int, db: Session = Depends(get_db)):
    summary = _summary(identity.profile(db, person_id))
    assignments = [
        RoleAssignmentOut(
            role=a.role.name,
            assigned_at=a.assigned_at,
            assigned_by=a.assigned_by,
            expires_at=a.expires_at,
        )
        for a in rbac.assignments(db, person_id)
    ]
    emails = [EmailHistoryOut.model_validate(e) for e in identity.email_history(db, person_id)]
    return UserDetailOut(**summary.model_dump(), assignments=assignments, emails=emails)


@router.patch("/users/{person_id}", response_model=PersonOut, dependencies=[Depends(user_admin)])
def update_user(person_id: int, payload: PersonUpdate, db: Session = Depends(get_db)):
    return identity.update_person(db, person_id, payload.model_dump(exclude_unset=True))


@router.put("/users/{person_id}/email", response_model=EmailHistoryOut, dependencies=[Depends(user_admin)])
def change_email(person_id: int, payload: EmailChangeIn, db: Session = Depends(get_db)):
    return identity.update_email(db, person_id, payload.email, EmailChangeReason.ADMIN_UPDATED)


@router.post("/users/{person_id}/email/verify", response_model=EmailHistoryOut, dependencies=[Depends(user_admin)])
def verify_email(person_id: int, db: Session = Depends(get_db)):
    return identity.verify_email(db, person_id)


@router.post("/users/{person_id}/roles", response_model=RoleAssignmentOut, status_code=201)
def assign_role(
    person_id: int,
    payload: RoleAssignIn,
    admin: Person = Depends(user_admin),
    db: Session = Depends(get_db),
):
    a = rbac.assign_role(db, person_id, payload.role, assigned_by=admin.id, expires_at=payload.expires_at)
    return RoleAssignmentOut(role=payload.role, assigned_at=a.assigned_at, assigned_by=a.assigned_by, expires_at=a.expires_at)


@router.delete("/users/{person_id}/roles/{role}", status_code=204, dependencies=[Depends(user_admin)])
def revoke_role(person_id: int, role: str, db: Session = Depends(get_db)):
    rbac.revoke_role(db, person_id, role)


@router.post("/users/{person_id}/employee", status_code=201)
def add_employee(
    person_id: int,
    payload: EmployeeIn,
    admin: Person = Depends(user_admin),
    db: Session = Depends(get_db),
):
    employee = identity.add_employee(db, person_id, assigned_by=admin.id, **payload.model_dump())
    return {"person_id": employee.person_id, "employee_number": employee.employee_number}


@router.get("/roles", response_model=list[RoleOut], dependencies=[Depends(user_admin)])
def list_roles(db: Session = Depends(get_db)):
    return [
        RoleOut(id=r.id, name=r.name, description=r.description, permissions=sorted(p.name for p in r.permissions))
        for r in rbac.list_roles(db)
    ]


# -----------------------------
# Coupon
# -----------------------------
@router.get("/coupons", response_model=list[CouponOut], dependencies=[Depends(require_permission("coupons.manage"))])
def list_coupons(active_only: bool = False, db: Session = Depends(get_db)):
    return coupons.list_coupons(db, active_only=active_only)


@router.post("/coupons", response_model=CouponOut, status_code=201)
def create_coupon(
    payload: CouponIn,
    admin: Person = Depends(require_permission("coupons.manage")),
    db: Session = Depends(get_db),
):
    return coupons.create_coupon(db, creator_id=admin.id, **payload.model_dump())


@router.post(
    "/coupons/{coupon_id}/deactivate",
    response_model=CouponOut,
    dependencies=[Depends(require_permission("coupons.manage"))],
)
def deactivate_coupon(coupon_id: int, db: Session = Depends(get_db)):
    return coupons.deactivate_coupon(db, coupon_id)


# -----------------------------
# Ordini / artisti
# -----------------------------
@router.post(
    "/orders/{order_id}/status",
    response_model=OrderOut,
    dependencies=[Depends(require_permission("orders.manage"))],
)
def set_order_status(order_id: int, payload: OrderStatusIn, db: Session = Depends(get_db)):
    return checkout.update_order_status(db, order_id, payload.status)


@router.post("/artists/merge", response_model=ArtistOut, dependencies=[Depends(user_admin)])
def merge_artists(payload: MergeIn, db: Session = Depends(get_db)):
    return artists.merge_artists(db, payload.canonical_id, payload.duplicate_id)
