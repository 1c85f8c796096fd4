from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import UserRole


class CompanyBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    subscription_plan: str = Field(default="basic", max_length=40)
    is_active: bool = True
    max_users: int = Field(default=5, ge=1)
    max_channels: int = Field(default=3, ge=1)


class CompanyCreate(CompanyBase):
    pass


class CompanyUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    subscription_plan: str | None = Field(default=None, max_length=40)
    is_active: bool | None = None
    max_users: int | None = Field(default=None, ge=1)
    max_channels: int | None = Field(default=None, ge=1)


class CompanyRead(CompanyBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
    updated_at: datetime


class UserBase(BaseModel):
    email: str | None = Field(default=None, max_length=255)
    first_name: str | None = Field(default=None, max_length=120)
    last_name: str | None = Field(default=None, max_length=120)
    profile_image_url: str | None = Field(default=None, max_length=500)
    role: UserRole = UserRole.agent
    company_id: int | None = None
    is_active: bool = True


class UserCreate(UserBase):
    id: str = Field(min_length=1, max_length=255)


class UserUpdate(BaseModel):
    email: str | None = Field(default=None, max_length=255)
    first_name: str | None = Field(default=None, max_length=120)
    last_name: str | None = Field(default=None, max_length=120)
    profile_image_url: str | None = Field(default=None, max_length=500)
    role: UserRole | None = None
    company_id: int | None = None
    is_active: bool | None = None


class UserRead(UserBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
    updated_at: datetime
