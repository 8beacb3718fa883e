from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, Relationship, SQLModel

from .timezone_utils import now_local


class UserRole(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"
    CUSTOMER = "customer"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    APPROVED = "approved"
    PARTIAL = "partial"
    PAID = "paid"


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(default="")
    email: str = Field(index=True, unique=True)
    password_hash: str
    role: UserRole = Field(default=UserRole.STAFF)
    locale: Optional[str] = None
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=now_local)
    updated_at: datetime = Field(default_factory=now_local)


class SessionToken(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    token_hash: str = Field(index=True, unique=True)
    user_id: int = Field(foreign_key="user.id")
    expires_at: datetime = Field(index=True)
    created_at: datetime = Field(default_factory=now_local)
    revoked: bool = Field(default=False)


class Currency(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    code: str = Field(index=True, unique=True)
    # units of this currency per one unit of the reporting currency
    rate: float = Field(default=1.0)
    precision: int = Field(default=2)
    symbol: Optional[str] = None
    enabled: bool = Field(default=True)
    created_at: datetime = Field(default_factory=now_local)


class Account(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    number: Optional[str] = None
    currency_code: str = Field(default="USD")
    opening_balance: float = Field(default=0.0)
    enabled: bool = Field(default=True)


class Category(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    type: str = Field(default="income", index=True)
    color: Optional[str] = None
    enabled: bool = Field(default=True)


class Customer(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id")
    name: str = Field(index=True)
    email: str = Field(default="", index=True)
    tax_number: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None
    currency_code: str = Field(default="USD")
    reference: Optional[str] = None
    enabled: bool = Field(default=True)
    created_at: datetime = Field(default_factory=now_local)
    updated_at: datetime = Field(default_factory=now_local)

    invoices: list["Invoice"] = Relationship(back_populates="customer")
    revenues: list["Revenue"] = Relationship(back_populates="customer")


class Invoice(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    invoice_number: str = Field(default="", index=True)
    customer_id: int = Field(foreign_key="customer.id", index=True)
    invoice_status_code: InvoiceStatus = Field(default=InvoiceStatus.DRAFT)
    invoiced_at: datetime = Field(default_factory=now_local)
    due_at: datetime
    amount: float
    currency_code: str = Field(default="USD")
    created_at: datetime = Field(default_factory=now_local)

    customer: Optional[Customer] = Relationship(back_populates="invoices")
    payments: list["InvoicePayment"] = Relationship(
        back_populates="invoice",
        sa_relationship_kwargs={"order_by": "InvoicePayment.id"},
    )


class InvoicePayment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    invoice_id: int = Field(foreign_key="invoice.id", index=True)
    account_id: Optional[int] = Field(default=None, foreign_key="account.id")
    paid_at: datetime = Field(default_factory=now_local, index=True)
    amount: float
    currency_code: str = Field(default="USD")
    description: Optional[str] = None
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    created_at: datetime = Field(default_factory=now_local)

    invoice: Optional[Invoice] = Relationship(back_populates="payments")
    account: Optional[Account] = Relationship()


class Revenue(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    customer_id: Optional[int] = Field(default=None, foreign_key="customer.id", index=True)
    account_id: Optional[int] = Field(default=None, foreign_key="account.id")
    category_id: Optional[int] = Field(default=None, foreign_key="category.id")
    paid_at: datetime = Field(default_factory=now_local, index=True)
    amount: float
    currency_code: str = Field(default="USD")
    description: Optional[str] = None
    payment_method: Optional[str] = None
    reference: Optional[str] = None
    created_at: datetime = Field(default_factory=now_local)

    customer: Optional[Customer] = Relationship(back_populates="revenues")
    account: Optional[Account] = Relationship()
    category: Optional[Category] = Relationship()


class OperationLog(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    entity_type: str = Field(index=True)
    entity_id: Optional[int] = Field(default=None, index=True)
    action: str
    description: str = Field(default="")
    metadata_json: Optional[str] = None
    created_at: datetime = Field(default_factory=now_local)
