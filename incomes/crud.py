from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from . import auth
from .config import Settings
from .currency import load_converter
from .i18n import trans, trans_choice
from .models import Customer, Invoice, InvoicePayment, OperationLog, Revenue, User, UserRole
from .pagination import Page, resolve_page_number, resolve_page_size
from .schemas import CustomerCreate, CustomerFields, CustomerImportRow, CustomerUpdate
from .statement import CustomerStatementBuilder, CustomerSummary
from .timezone_utils import ensure_local_datetime, now_local, today_local

logger = logging.getLogger(__name__)

LINKED_USER_FIELDS = {"create_user", "password", "password_confirmation"}

# relationship name -> translation key used in the deletion warning
CUSTOMER_RELATIONSHIPS: Dict[str, str] = {
    "invoices": "general.invoices",
    "revenues": "general.revenues",
}


def _stringify_log_value(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, datetime):
        normalized = ensure_local_datetime(value) or value
        return normalized.strftime("%Y-%m-%d %H:%M")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    text = str(value).strip()
    return text or "-"


def _log_operation(
    session: Session,
    *,
    entity_type: str,
    entity_id: Optional[int],
    action: str,
    description: str,
    metadata: Optional[dict] = None,
) -> OperationLog:
    log = OperationLog(
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        description=description,
        metadata_json=json.dumps(metadata, ensure_ascii=False) if metadata else None,
    )
    session.add(log)
    session.flush([log])
    return log


def _customer_type(count: int = 1) -> str:
    return trans_choice("general.customers", count)


def _field_error(field: str, message: str, errors: List[str]) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"message": message, "errors": {field: errors}},
    )


def _email_taken(user: User) -> HTTPException:
    logger.warning("Refusing to create login user: email %s already belongs to user %s", user.email, user.id)
    return _field_error(
        "email",
        trans("messages.error.customer", name=user.name or user.email),
        [trans("customers.error.email")],
    )


def _create_linked_user(
    session: Session,
    *,
    name: str,
    email: str,
    password: Optional[str],
    locale: Optional[str],
) -> User:
    existing = auth.get_user_by_email(session, email)
    if existing:
        raise _email_taken(existing)
    return auth.create_user(
        session,
        name=name,
        email=email,
        password=password or "",
        role=UserRole.CUSTOMER,
        locale=locale,
        commit=False,
    )


def _customer_data(payload: CustomerFields, settings: Optional[Settings] = None) -> dict:
    data = payload.model_dump(exclude=LINKED_USER_FIELDS)
    data["email"] = data.get("email") or ""
    if not data.get("currency_code") and settings is not None:
        data["currency_code"] = settings.default_currency
    return data


def list_customers(
    session: Session,
    *,
    search: Optional[str] = None,
    enabled: Optional[bool] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    default_limit: int = 25,
) -> Page[Customer]:
    per_page = resolve_page_size(limit, default_limit)
    current = resolve_page_number(page)
    stmt = select(Customer)
    count_stmt = select(func.count(Customer.id))

    def apply_common_filters(query):
        if enabled is not None:
            query = query.where(Customer.enabled == enabled)
        if search:
            trimmed = search.strip()
            if trimmed:
                pattern = f"%{trimmed}%"
                query = query.where(
                    or_(
                        Customer.name.ilike(pattern),
                        Customer.email.ilike(pattern),
                        Customer.phone.ilike(pattern),
                    )
                )
        return query

    stmt = apply_common_filters(stmt)
    count_stmt = apply_common_filters(count_stmt)
    stmt = stmt.order_by(Customer.name.asc(), Customer.id.asc()).offset((current - 1) * per_page).limit(per_page)
    items = session.exec(stmt).all()
    total = int(session.exec(count_stmt).one() or 0)
    return Page(items=list(items), total=total, per_page=per_page, current_page=current)


def find_customer(session: Session, customer_id: Optional[int]) -> Optional[Customer]:
    if not customer_id:
        return None
    return session.get(Customer, customer_id)


def get_customer(session: Session, customer_id: int) -> Customer:
    customer = find_customer(session, customer_id)
    if not customer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")
    return customer


def create_customer(session: Session, payload: CustomerCreate, settings: Settings) -> Customer:
    data = _customer_data(payload, settings)
    if payload.create_user:
        user = _create_linked_user(
            session,
            name=data["name"],
            email=data["email"],
            password=payload.password,
            locale=settings.default_locale,
        )
        data["user_id"] = user.id
    customer = Customer(**data)
    session.add(customer)
    session.flush()
    _log_operation(
        session,
        entity_type="customer",
        entity_id=customer.id,
        action="create",
        description=f"Created customer {customer.name}",
        metadata={"user_id": customer.user_id} if customer.user_id else None,
    )
    session.commit()
    session.refresh(customer)
    logger.info("Created customer %s (%s)", customer.id, customer.name)
    return customer


def create_inline_customer(session: Session, payload: CustomerFields, settings: Settings) -> Customer:
    customer = Customer(**_customer_data(payload, settings))
    session.add(customer)
    session.flush()
    _log_operation(
        session,
        entity_type="customer",
        entity_id=customer.id,
        action="create",
        description=f"Created customer {customer.name} inline",
    )
    session.commit()
    session.refresh(customer)
    logger.info("Created customer %s (%s) inline", customer.id, customer.name)
    return customer


def duplicate_customer(session: Session, customer_id: int) -> Customer:
    original = get_customer(session, customer_id)
    data = original.model_dump(exclude={"id", "user_id", "created_at", "updated_at"})
    clone = Customer(**data)
    session.add(clone)
    session.flush()
    _log_operation(
        session,
        entity_type="customer",
        entity_id=clone.id,
        action="duplicate",
        description=f"Duplicated customer {original.id} as {clone.id}",
        metadata={"source_id": original.id},
    )
    session.commit()
    session.refresh(clone)
    logger.info("Duplicated customer %s as %s", original.id, clone.id)
    return clone


def import_customers(session: Session, rows: Sequence[CustomerImportRow], settings: Settings) -> List[Customer]:
    customers = [Customer(**_customer_data(row, settings)) for row in rows]
    session.add_all(customers)
    session.flush()
    _log_operation(
        session,
        entity_type="customer",
        entity_id=None,
        action="import",
        description=f"Imported {len(customers)} customers",
        metadata={"customer_ids": [item.id for item in customers]},
    )
    session.commit()
    for customer in customers:
        session.refresh(customer)
    logger.info("Imported %d customers", len(customers))
    return customers


def update_customer(session: Session, customer_id: int, payload: CustomerUpdate) -> Customer:
    customer = get_customer(session, customer_id)
    updates = payload.customer_updates()
    if "email" in updates:
        updates["email"] = updates["email"] or ""
    if payload.create_user:
        email = updates.get("email") or customer.email
        if not email:
            raise _field_error("email", "email is required when create_user is set", ["The email field is required."])
        user = _create_linked_user(
            session,
            name=updates.get("name") or customer.name,
            email=email,
            password=payload.password,
            locale=None,
        )
        updates["user_id"] = user.id

    changes: List[str] = []
    for key, value in updates.items():
        if value is None and key in {"name", "currency_code", "enabled"}:
            continue
        old_value = getattr(customer, key)
        if old_value == value:
            continue
        setattr(customer, key, value)
        changes.append(f"{key} {_stringify_log_value(old_value)}→{_stringify_log_value(value)}")
    customer.updated_at = now_local()
    session.add(customer)
    if changes:
        _log_operation(
            session,
            entity_type="customer",
            entity_id=customer.id,
            action="update",
            description=f"Updated customer {customer.name}: " + ", ".join(changes),
        )
    session.commit()
    session.refresh(customer)
    logger.info("Updated customer %s (%d fields changed)", customer.id, len(changes))
    return customer


def count_relationships(session: Session, customer: Customer) -> List[str]:
    counters: List[str] = []
    for relationship, label_key in CUSTOMER_RELATIONSHIPS.items():
        model = Invoice if relationship == "invoices" else Revenue
        count = int(session.exec(select(func.count(model.id)).where(model.customer_id == customer.id)).one() or 0)
        if count:
            counters.append(f"{count} {trans_choice(label_key, count).lower()}")
    return counters


def delete_customer(session: Session, customer_id: int) -> str:
    customer = get_customer(session, customer_id)
    relationships = count_relationships(session, customer)
    if relationships:
        message = trans("messages.warning.deleted", name=customer.name, text=", ".join(relationships))
        logger.warning("Refusing to delete customer %s: %s", customer.id, ", ".join(relationships))
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=message)
    _log_operation(
        session,
        entity_type="customer",
        entity_id=customer.id,
        action="delete",
        description=f"Deleted customer {customer.name}",
    )
    session.delete(customer)
    session.commit()
    logger.info("Deleted customer %s", customer_id)
    return trans("messages.success.deleted", type=_customer_type())


def fetch_invoices_with_payments(session: Session, customer_id: int) -> List[Invoice]:
    stmt = (
        select(Invoice)
        .where(Invoice.customer_id == customer_id)
        .options(selectinload(Invoice.payments).selectinload(InvoicePayment.account))
        .order_by(Invoice.id)
    )
    return list(session.exec(stmt).all())


def fetch_revenues(session: Session, customer_id: int) -> List[Revenue]:
    stmt = (
        select(Revenue)
        .where(Revenue.customer_id == customer_id)
        .options(selectinload(Revenue.account), selectinload(Revenue.category))
        .order_by(Revenue.id)
    )
    return list(session.exec(stmt).all())


def statement_builder(session: Session, settings: Settings) -> CustomerStatementBuilder:
    converter = load_converter(session, settings.default_currency)
    return CustomerStatementBuilder(
        fetch_invoices=lambda customer_id: fetch_invoices_with_payments(session, customer_id),
        fetch_revenues=lambda customer_id: fetch_revenues(session, customer_id),
        convert=converter.convert,
        today=lambda: today_local(settings.timezone),
        tz_name=settings.timezone,
        localize=lambda key, count: trans_choice(key, count, settings.default_locale),
        default_page_size=settings.list_limit,
    )


def get_customer_statement(
    session: Session,
    customer: Customer,
    settings: Settings,
    *,
    evaluation_date: Optional[date] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> CustomerSummary:
    builder = statement_builder(session, settings)
    return builder.build(customer.id, evaluation_date=evaluation_date, page_size=limit, page_number=page)


def success_message(action: str, count: int = 1) -> str:
    return trans(f"messages.success.{action}", type=_customer_type(count))
