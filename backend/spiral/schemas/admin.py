from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, EmailStr, Field

from ..models.enums import CouponCreatorType, DiscountType, EmailChangeReason, Gender, OrderStatus
from .auth import PersonOut


class PersonUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: date | None = None
    gender: Gender | None = None
    phone_number: str | None = None
    is_active: bool | None = None


class EmailChangeIn(BaseModel):
    email: EmailStr


class EmailHistoryOut(BaseModel):
    id: int
    email: str
    is_verified: bool
    effective_from: datetime
    effective_to: datetime | None = None
    change_reason: EmailChangeReason

    class Config:
        from_attributes = True


class RoleAssignIn(BaseModel):
    role: str
    expires_at: datetime | None = None


class RoleAssignmentOut(BaseModel):
    role: str
    assigned_at: datetime
    assigned_by: int | None = None
    expires_at: datetime | None = None


class RoleOut(BaseModel):
    id: int
    name: str
    description: str | None = None
    permissions: list[str] = []


class UserSummaryOut(BaseModel):
    person: PersonOut
    email: str | None = None
    roles: list[str] = []


class UserDetailOut(UserSummaryOut):
    assignments: list[RoleAssignmentOut] = []
    emails: list[EmailHistoryOut] = []


class EmployeeIn(BaseModel):
    employee_number: str | None = None
    job_title: str | None = None
    department: str | None = None
    salary: Decimal | None = Field(None, ge=0)
    hire_date: datetime | None = None


class CouponIn(BaseModel):
    code: str
    description: str | None = None
    discount_type: DiscountType
    discount_value: Decimal = Field(gt=0)
    min_purchase_amount: Decimal | None = Field(None, ge=0)
    max_discount_amount: Decimal | None = Field(None, gt=0)
    creator_type: CouponCreatorType = CouponCreatorType.ADMIN
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    max_uses: int | None = Field(None, gt=0)


class CouponOut(BaseModel):
    id: int
    code: str
    description: str | None = None
    discount_type: DiscountType
    discount_value: Decimal
    min_purchase_amount: Decimal | None = None
    max_discount_amount: Decimal | None = None
    creator_type: CouponCreatorType
    creator_id: int
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    max_uses: int | None = None
    times_used: int
    is_active: bool

    class Config:
        from_attributes = True


class OrderStatusIn(BaseModel):
    status: OrderStatus
