from __future__ import annotations

import re
from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .models import UserRole

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _normalize_optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    trimmed = value.strip()
    return trimmed or None


def _normalize_email(value: Optional[str]) -> Optional[str]:
    trimmed = _normalize_optional_text(value)
    if trimmed is None:
        return None
    if not EMAIL_RE.match(trimmed):
        raise ValueError("email must be a valid email address")
    return trimmed.lower()


def _normalize_currency_code(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    trimmed = value.strip().upper()
    if len(trimmed) != 3 or not trimmed.isalpha():
        raise ValueError("currency_code must be a three-letter ISO code")
    return trimmed


def _normalize_required_name(value: str) -> str:
    trimmed = (value or "").strip()
    if not trimmed:
        raise ValueError("name is required")
    return trimmed


class CustomerFields(BaseModel):
    name: str
    email: Optional[str] = None
    tax_number: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    currency_code: str
    reference: Optional[str] = None
    enabled: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _normalize_required_name(value)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_email(value)

    @field_validator("currency_code")
    @classmethod
    def validate_currency_code(cls, value: str) -> str:
        return _normalize_currency_code(value)

    @field_validator("tax_number", "phone", "address", "website", "reference")
    @classmethod
    def strip_optional(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_optional_text(value)


class LinkedUserFields(BaseModel):
    create_user: bool = False
    password: Optional[str] = None
    password_confirmation: Optional[str] = None

    @model_validator(mode="after")
    def ensure_user_credentials(self):
        if not self.create_user:
            return self
        if not self.password:
            raise ValueError("password is required when create_user is set")
        if self.password != self.password_confirmation:
            raise ValueError("password confirmation does not match")
        return self


class CustomerCreate(LinkedUserFields, CustomerFields):
    @model_validator(mode="after")
    def ensure_user_email(self):
        if self.create_user and not self.email:
            raise ValueError("email is required when create_user is set")
        return self


class CustomerUpdate(LinkedUserFields):
    name: Optional[str] = None
    email: Optional[str] = None
    tax_number: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    currency_code: Optional[str] = None
    reference: Optional[str] = None
    enabled: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return _normalize_required_name(value)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_email(value)

    @field_validator("currency_code")
    @classmethod
    def validate_currency_code(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_currency_code(value)

    def customer_updates(self) -> dict:
        return self.model_dump(
            exclude_unset=True,
            exclude={"create_user", "password", "password_confirmation"},
        )


class CustomerImportRow(CustomerFields):
    currency_code: Optional[str] = None


class CustomerRead(BaseModel):
    id: int
    user_id: Optional[int] = None
    name: str
    email: str = ""
    tax_number: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    currency_code: str
    reference: Optional[str] = None
    enabled: bool
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class CustomerPage(BaseModel):
    items: List[CustomerRead]
    total: int
    per_page: int
    current_page: int
    last_page: int
    first_item: Optional[int] = None
    last_item: Optional[int] = None
    has_more_pages: bool = False
    model_config = ConfigDict(from_attributes=True)


class CustomerActionResponse(BaseModel):
    message: str
    customer: CustomerRead


class CustomerImportResponse(BaseModel):
    message: str
    imported: int
    customers: List[CustomerRead]


class MessageResponse(BaseModel):
    message: str


class CustomerFormOptions(BaseModel):
    currencies: Dict[str, str]


class CustomerEditResponse(CustomerFormOptions):
    customer: CustomerRead


class CategoryLabelRead(BaseModel):
    id: Optional[int] = None
    name: str
    model_config = ConfigDict(from_attributes=True)


class TransactionEntryRead(BaseModel):
    kind: str
    id: Optional[int] = None
    paid_at: datetime
    amount: float
    currency_code: str
    converted_amount: float
    category: CategoryLabelRead
    account_name: Optional[str] = None
    invoice_id: Optional[int] = None
    description: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)


class TransactionPage(BaseModel):
    items: List[TransactionEntryRead]
    total: int
    per_page: int
    current_page: int
    last_page: int
    first_item: Optional[int] = None
    last_item: Optional[int] = None
    has_more_pages: bool = False
    model_config = ConfigDict(from_attributes=True)


class StatementAmounts(BaseModel):
    paid: float = 0.0
    open: float = 0.0
    overdue: float = 0.0
    model_config = ConfigDict(from_attributes=True)


class StatementCounts(BaseModel):
    invoices: int = 0
    revenues: int = 0
    model_config = ConfigDict(from_attributes=True)


class CustomerStatementResponse(BaseModel):
    customer: CustomerRead
    currency_code: str
    evaluation_date: date
    amounts: StatementAmounts
    counts: StatementCounts
    transactions: TransactionPage


class FieldRequest(BaseModel):
    fields: List[str] = Field(default_factory=list)


class FieldResponse(BaseModel):
    html: str


class LoginRequest(BaseModel):
    email: str
    password: str


class UserRead(BaseModel):
    id: int
    name: str
    email: str
    role: UserRole
    is_active: bool
    locale: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)
