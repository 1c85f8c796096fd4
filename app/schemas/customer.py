from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CustomerBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    phone: str | None = Field(default=None, max_length=40)
    email: str | None = Field(default=None, max_length=255)
    whatsapp_number: str | None = Field(default=None, max_length=40)
    instagram_handle: str | None = Field(default=None, max_length=120)
    facebook_id: str | None = Field(default=None, max_length=120)
    is_vip: bool = False


class CustomerCreate(CustomerBase):
    pass


class CustomerUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    phone: str | None = Field(default=None, max_length=40)
    email: str | None = Field(default=None, max_length=255)
    whatsapp_number: str | None = Field(default=None, max_length=40)
    instagram_handle: str | None = Field(default=None, max_length=120)
    facebook_id: str | None = Field(default=None, max_length=120)
    is_vip: bool | None = None


class CustomerRead(CustomerBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    created_at: datetime


class InternalNoteCreate(BaseModel):
    customer_id: int
    content: str = Field(min_length=1)


class InternalNoteRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_id: int
    content: str
    created_by: str | None = None
    created_by_name: str | None = None
    created_at: datetime
