from datetime import date

from pydantic import BaseModel, EmailStr, Field

from ..models.enums import Gender


class RegisterIn(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    username: str = Field(min_length=3, max_length=20)
    password: str = Field(min_length=8)
    date_of_birth: date | None = None
    gender: Gender | None = None
    phone_number: str | None = None


class LoginIn(BaseModel):
    username: str
    password: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class PersonOut(BaseModel):
    id: int
    first_name: str
    last_name: str
    date_of_birth: date | None = None
    gender: Gender | None = None
    phone_number: str | None = None
    is_active: bool

    class Config:
        from_attributes = True


class ProfileOut(BaseModel):
    person: PersonOut
    email: str | None
    roles: list[str]
    is_customer: bool
    is_employee: bool
    is_artist: bool

    class Config:
        from_attributes = True
