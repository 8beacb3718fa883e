"""Customer financial summary.

Totals every payment applied to the customer's invoices plus every revenue
booked against the customer, splits the unpaid part of each unsettled invoice
into open and overdue buckets, and pages through a merged transaction list.
All collaborators are injected so the computation never touches the session
directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, List, Literal, Optional, Sequence

from .errors import ConversionError, NotFoundError
from .pagination import Page, paginate, resolve_page_size
from .timezone_utils import ensure_local_datetime, local_date

logger = logging.getLogger(__name__)

PAID_STATUS = "paid"
PAYMENT_CATEGORY_ID = 0
DEFAULT_PAGE_SIZE = 25

Fetcher = Callable[[int], Sequence[Any]]
Converter = Callable[[float, str], float]
Clock = Callable[[], date]
Localizer = Callable[[str, int], str]


@dataclass(frozen=True)
class CategoryLabel:
    id: Optional[int]
    name: str


@dataclass(frozen=True)
class TransactionEntry:
    kind: Literal["payment", "revenue"]
    id: Optional[int]
    paid_at: datetime
    amount: float
    currency_code: str
    converted_amount: float
    category: CategoryLabel
    account_name: Optional[str] = None
    invoice_id: Optional[int] = None
    description: Optional[str] = None

    @classmethod
    def from_payment(
        cls,
        payment: Any,
        converted: float,
        category: CategoryLabel,
        tz_name: Optional[str] = None,
    ) -> "TransactionEntry":
        account = getattr(payment, "account", None)
        return cls(
            kind="payment",
            id=payment.id,
            paid_at=ensure_local_datetime(payment.paid_at, tz_name),
            amount=payment.amount,
            currency_code=payment.currency_code,
            converted_amount=converted,
            category=category,
            account_name=getattr(account, "name", None),
            invoice_id=getattr(payment, "invoice_id", None),
            description=getattr(payment, "description", None),
        )

    @classmethod
    def from_revenue(cls, revenue: Any, converted: float, tz_name: Optional[str] = None) -> "TransactionEntry":
        account = getattr(revenue, "account", None)
        category = getattr(revenue, "category", None)
        return cls(
            kind="revenue",
            id=revenue.id,
            paid_at=ensure_local_datetime(revenue.paid_at, tz_name),
            amount=revenue.amount,
            currency_code=revenue.currency_code,
            converted_amount=converted,
            category=CategoryLabel(
                id=getattr(category, "id", None),
                name=getattr(category, "name", "") or "",
            ),
            account_name=getattr(account, "name", None),
            description=getattr(revenue, "description", None),
        )


@dataclass
class StatementAmounts:
    paid: float = 0.0
    open: float = 0.0
    overdue: float = 0.0


@dataclass
class StatementCounts:
    invoices: int = 0
    revenues: int = 0


@dataclass
class CustomerSummary:
    customer_id: int
    evaluation_date: date
    amounts: StatementAmounts = field(default_factory=StatementAmounts)
    counts: StatementCounts = field(default_factory=StatementCounts)
    transactions: Page[TransactionEntry] = field(default_factory=Page)


def _status_code(invoice: Any) -> str:
    status = getattr(invoice, "invoice_status_code", None)
    return str(getattr(status, "value", status) or "")


class CustomerStatementBuilder:
    def __init__(
        self,
        *,
        fetch_invoices: Fetcher,
        fetch_revenues: Fetcher,
        convert: Converter,
        today: Clock,
        localize: Localizer,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        tz_name: Optional[str] = None,
    ) -> None:
        self.fetch_invoices = fetch_invoices
        self.fetch_revenues = fetch_revenues
        self.convert = convert
        self.today = today
        self.localize = localize
        self.default_page_size = default_page_size
        self.tz_name = tz_name

    def _fetch(self, fetcher: Fetcher, customer_id: int) -> List[Any]:
        try:
            return list(fetcher(customer_id))
        except NotFoundError:
            return []

    def _convert(self, amount: float, currency_code: str) -> float:
        try:
            return self.convert(amount, currency_code)
        except ConversionError:
            logger.warning("Statement aborted: cannot convert currency %r", currency_code)
            raise

    def build(
        self,
        customer_id: int,
        evaluation_date: Optional[date] = None,
        page_size: Optional[int] = None,
        page_number: Optional[int] = None,
    ) -> CustomerSummary:
        evaluation_date = evaluation_date or self.today()
        amounts = StatementAmounts()
        counts = StatementCounts()

        invoices = self._fetch(self.fetch_invoices, customer_id)
        counts.invoices = len(invoices)

        payment_category = CategoryLabel(
            id=PAYMENT_CATEGORY_ID,
            name=self.localize("general.invoices", 2),
        )
        payment_entries: List[TransactionEntry] = []

        for invoice in invoices:
            invoice_payments = 0.0
            for payment in invoice.payments:
                converted = self._convert(payment.amount, payment.currency_code)
                amounts.paid += converted
                invoice_payments += converted
                payment_entries.append(
                    TransactionEntry.from_payment(payment, converted, payment_category, self.tz_name)
                )

            if _status_code(invoice) == PAID_STATUS:
                continue

            # overpaid invoices contribute nothing rather than a negative balance
            remainder = max(self._convert(invoice.amount, invoice.currency_code) - invoice_payments, 0.0)
            if local_date(invoice.due_at, self.tz_name) >= evaluation_date:
                amounts.open += remainder
            else:
                amounts.overdue += remainder

        revenues = self._fetch(self.fetch_revenues, customer_id)
        counts.revenues = len(revenues)

        revenue_entries: List[TransactionEntry] = []
        for revenue in revenues:
            converted = self._convert(revenue.amount, revenue.currency_code)
            amounts.paid += converted
            revenue_entries.append(TransactionEntry.from_revenue(revenue, converted, self.tz_name))

        # sorted() is stable, so equal timestamps keep revenue-then-payment order
        merged = sorted(revenue_entries + payment_entries, key=lambda entry: entry.paid_at, reverse=True)
        per_page = resolve_page_size(page_size, self.default_page_size)

        return CustomerSummary(
            customer_id=customer_id,
            evaluation_date=evaluation_date,
            amounts=amounts,
            counts=counts,
            transactions=paginate(merged, per_page, page_number),
        )
