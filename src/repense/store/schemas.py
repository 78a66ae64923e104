"""Pydantic input models for Store writes."""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from repense.store.models import DeliveryMode, ProgramGroup
from repense.store.normalize import clean_cpf, clean_phone, is_valid_cpf, normalize_name

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


# Student models


class StudentCreate(BaseModel):
    """Input for registering a student."""

    name: str = Field(..., min_length=1, max_length=255)
    cpf: str = Field(..., min_length=11, max_length=14)
    phone: str = Field(..., min_length=10, max_length=20)
    email: str | None = Field(default=None, max_length=255)
    gender: str | None = Field(default=None, max_length=20)
    marital_status: str | None = Field(default=None, max_length=50)
    birth_date: datetime | None = None
    preferred_city: str | None = Field(default=None, max_length=255)

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        name = normalize_name(value)
        if not name:
            raise ValueError("name must not be blank")
        return name

    @field_validator("cpf")
    @classmethod
    def _validate_cpf(cls, value: str) -> str:
        cpf = clean_cpf(value)
        if not is_valid_cpf(cpf):
            raise ValueError("invalid CPF")
        return cpf

    @field_validator("phone")
    @classmethod
    def _validate_phone(cls, value: str) -> str:
        phone = clean_phone(value)
        if len(phone) not in (10, 11):
            raise ValueError("phone must have 10 or 11 digits")
        return phone

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str | None) -> str | None:
        value = _blank_to_none(value)
        if value is None:
            return None
        if not re.match(EMAIL_PATTERN, value):
            raise ValueError("invalid email")
        return value.lower()

    @field_validator("gender", "marital_status", "preferred_city")
    @classmethod
    def _strip_optional(cls, value: str | None) -> str | None:
        return _blank_to_none(value)


class StudentUpdate(BaseModel):
    """Partial update of a student's profile. CPF is immutable."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    phone: str | None = Field(default=None, min_length=10, max_length=20)
    email: str | None = Field(default=None, max_length=255)
    gender: str | None = Field(default=None, max_length=20)
    marital_status: str | None = Field(default=None, max_length=50)
    birth_date: datetime | None = None
    preferred_city: str | None = Field(default=None, max_length=255)

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str | None) -> str | None:
        return normalize_name(value) if value is not None else None

    @field_validator("phone")
    @classmethod
    def _validate_phone(cls, value: str | None) -> str | None:
        if value is None:
            return None
        phone = clean_phone(value)
        if len(phone) not in (10, 11):
            raise ValueError("phone must have 10 or 11 digits")
        return phone


# Class models


class GrupoCreate(BaseModel):
    """Input for creating a class."""

    model_config = ConfigDict(use_enum_values=True)

    program_group: ProgramGroup
    capacity: int = Field(..., ge=1)
    delivery_mode: DeliveryMode = DeliveryMode.PRESENCIAL
    is_active: bool = True
    is_women_only: bool = False
    is_afternoon: bool = False
    whatsapp_link: str | None = None
    start_date: datetime | None = None
    time_slot: str | None = Field(default=None, max_length=50)
    city: str | None = Field(default="Indaiatuba", max_length=255)
    session_count: int = Field(default=8, ge=1)


class GrupoUpdate(BaseModel):
    """Partial update of a class. The seat ledger is not editable here."""

    model_config = ConfigDict(use_enum_values=True)

    capacity: int | None = Field(default=None, ge=1)
    delivery_mode: DeliveryMode | None = None
    is_active: bool | None = None
    is_women_only: bool | None = None
    is_afternoon: bool | None = None
    whatsapp_link: str | None = None
    start_date: datetime | None = None
    time_slot: str | None = Field(default=None, max_length=50)
    city: str | None = Field(default=None, max_length=255)
    session_count: int | None = Field(default=None, ge=1)
