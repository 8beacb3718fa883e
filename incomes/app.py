from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date
from typing import Generator, Optional

from fastapi import (
    Cookie,
    Depends,
    FastAPI,
    File,
    HTTPException,
    Query,
    Request,
    Response,
    UploadFile,
    status,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import Session

from . import auth, crud
from .config import Settings, get_settings
from .currency import enabled_currency_choices, ensure_default_currency
from .database import engine, init_db
from .errors import ConversionError
from .fields import render_fields
from .importer import parse_customer_csv
from .models import User
from .pagination import MAX_PAGE_SIZE
from .schemas import (
    CustomerActionResponse,
    CustomerCreate,
    CustomerEditResponse,
    CustomerFields,
    CustomerFormOptions,
    CustomerImportResponse,
    CustomerPage,
    CustomerRead,
    CustomerStatementResponse,
    CustomerUpdate,
    FieldRequest,
    FieldResponse,
    LoginRequest,
    MessageResponse,
    StatementAmounts,
    StatementCounts,
    TransactionPage,
    UserRead,
)
from .timezone_utils import parse_date_value

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = get_settings().session_cookie_name


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    init_db()
    with Session(engine) as session:
        auth.ensure_default_admin(session, settings)
        ensure_default_currency(session, settings.default_currency)
    logger.info("Incomes service ready (reporting currency %s)", settings.default_currency)
    yield


app = FastAPI(title="Incomes Customers", version="1.0.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConversionError)
async def conversion_error_handler(request: Request, exc: ConversionError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc), "currency_code": exc.currency_code},
    )


def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@dataclass
class StaffContext:
    session: Session
    user: User


def set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        max_age=settings.session_hours * 60 * 60,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )


def require_staff_context(
    session: Session = Depends(get_session),
    session_token: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE_NAME),
) -> StaffContext:
    user = auth.get_user_by_session_token(session, session_token)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    if user.role not in auth.ALLOWED_STAFF_ROLES:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
    return StaffContext(session=session, user=user)


def _customer_read(customer) -> CustomerRead:
    return CustomerRead.model_validate(customer, from_attributes=True)


@app.post("/auth/login", response_model=UserRead)
def login(
    payload: LoginRequest,
    response: Response,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    user = auth.authenticate_user(
        session,
        email=payload.email,
        password=payload.password,
        allowed_roles=auth.ALLOWED_STAFF_ROLES,
    )
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    token = auth.create_session_token(session, user)
    set_session_cookie(response, token, settings)
    return user


@app.post("/auth/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    session: Session = Depends(get_session),
    session_token: Optional[str] = Cookie(default=None, alias=SESSION_COOKIE_NAME),
):
    if session_token:
        auth.revoke_session_token(session, session_token)
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(SESSION_COOKIE_NAME)
    return response


@app.get("/api/customers", response_model=CustomerPage)
def list_customers_api(
    search: Optional[str] = None,
    enabled: Optional[bool] = None,
    page: Optional[int] = Query(default=None, ge=1),
    limit: Optional[int] = Query(default=None, ge=1, le=MAX_PAGE_SIZE),
    ctx: StaffContext = Depends(require_staff_context),
    settings: Settings = Depends(get_settings),
):
    result = crud.list_customers(
        ctx.session,
        search=search,
        enabled=enabled,
        page=page,
        limit=limit,
        default_limit=settings.list_limit,
    )
    return CustomerPage.model_validate(result, from_attributes=True)


@app.post("/api/customers", response_model=CustomerActionResponse, status_code=201)
def create_customer_api(
    payload: CustomerCreate,
    ctx: StaffContext = Depends(require_staff_context),
    settings: Settings = Depends(get_settings),
):
    customer = crud.create_customer(ctx.session, payload, settings)
    return CustomerActionResponse(message=crud.success_message("added"), customer=_customer_read(customer))


@app.get("/api/customers/form", response_model=CustomerFormOptions)
def customer_form_api(ctx: StaffContext = Depends(require_staff_context)):
    return CustomerFormOptions(currencies=enabled_currency_choices(ctx.session))


@app.get("/api/customers/currency", response_model=Optional[CustomerRead])
def customer_currency_api(
    customer_id: Optional[int] = None,
    ctx: StaffContext = Depends(require_staff_context),
):
    customer = crud.find_customer(ctx.session, customer_id)
    if customer is None:
        return None
    return _customer_read(customer)


@app.post("/api/customers/inline", response_model=CustomerRead, status_code=201)
def create_inline_customer_api(
    payload: CustomerFields,
    ctx: StaffContext = Depends(require_staff_context),
    settings: Settings = Depends(get_settings),
):
    return crud.create_inline_customer(ctx.session, payload, settings)


@app.post("/api/customers/field", response_model=FieldResponse)
def customer_field_api(
    payload: FieldRequest,
    ctx: StaffContext = Depends(require_staff_context),
    settings: Settings = Depends(get_settings),
):
    return FieldResponse(html=render_fields(payload.fields, ctx.user.locale or settings.default_locale))


@app.post("/api/customers/import", response_model=CustomerImportResponse, status_code=201)
async def import_customers_api(
    file: UploadFile = File(...),
    ctx: StaffContext = Depends(require_staff_context),
    settings: Settings = Depends(get_settings),
):
    content = await file.read()
    try:
        rows, errors = parse_customer_csv(content)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if errors:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": "Import aborted; fix the listed rows and upload again.",
                "errors": [{"row": item.row_number, "message": item.message} for item in errors],
            },
        )
    if not rows:
        raise HTTPException(status_code=400, detail="CSV contains no customer rows")
    customers = crud.import_customers(ctx.session, rows, settings)
    return CustomerImportResponse(
        message=crud.success_message("imported", 2),
        imported=len(customers),
        customers=[_customer_read(item) for item in customers],
    )


@app.get("/api/customers/{customer_id}", response_model=CustomerStatementResponse)
def show_customer_api(
    customer_id: int,
    page: Optional[int] = Query(default=None, ge=1),
    limit: Optional[int] = Query(default=None, ge=1, le=MAX_PAGE_SIZE),
    as_of: Optional[str] = None,
    ctx: StaffContext = Depends(require_staff_context),
    settings: Settings = Depends(get_settings),
):
    evaluation_date: Optional[date] = None
    if as_of:
        try:
            evaluation_date = parse_date_value(as_of, settings.timezone)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid as_of date") from exc
    customer = crud.get_customer(ctx.session, customer_id)
    summary = crud.get_customer_statement(
        ctx.session,
        customer,
        settings,
        evaluation_date=evaluation_date,
        page=page,
        limit=limit,
    )
    return CustomerStatementResponse(
        customer=_customer_read(customer),
        currency_code=settings.default_currency,
        evaluation_date=summary.evaluation_date,
        amounts=StatementAmounts.model_validate(summary.amounts, from_attributes=True),
        counts=StatementCounts.model_validate(summary.counts, from_attributes=True),
        transactions=TransactionPage.model_validate(summary.transactions, from_attributes=True),
    )


@app.get("/api/customers/{customer_id}/edit", response_model=CustomerEditResponse)
def edit_customer_api(customer_id: int, ctx: StaffContext = Depends(require_staff_context)):
    customer = crud.get_customer(ctx.session, customer_id)
    return CustomerEditResponse(
        customer=_customer_read(customer),
        currencies=enabled_currency_choices(ctx.session),
    )


@app.post("/api/customers/{customer_id}/duplicate", response_model=CustomerActionResponse, status_code=201)
def duplicate_customer_api(customer_id: int, ctx: StaffContext = Depends(require_staff_context)):
    clone = crud.duplicate_customer(ctx.session, customer_id)
    return CustomerActionResponse(message=crud.success_message("duplicated"), customer=_customer_read(clone))


@app.put("/api/customers/{customer_id}", response_model=CustomerActionResponse)
def update_customer_api(
    customer_id: int,
    payload: CustomerUpdate,
    ctx: StaffContext = Depends(require_staff_context),
):
    customer = crud.update_customer(ctx.session, customer_id, payload)
    return CustomerActionResponse(message=crud.success_message("updated"), customer=_customer_read(customer))


@app.delete("/api/customers/{customer_id}", response_model=MessageResponse)
def delete_customer_api(customer_id: int, ctx: StaffContext = Depends(require_staff_context)):
    return MessageResponse(message=crud.delete_customer(ctx.session, customer_id))
