from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from incomes.currency import CurrencyConverter
from incomes.errors import ConversionError, NotFoundError
from incomes.statement import PAYMENT_CATEGORY_ID, CustomerStatementBuilder

TODAY = date(2024, 5, 10)
CUSTOMER_ID = 7


def make_payment(payment_id, amount, paid_at, currency="USD", invoice_id=1):
    return SimpleNamespace(
        id=payment_id,
        invoice_id=invoice_id,
        amount=amount,
        currency_code=currency,
        paid_at=paid_at,
        account=SimpleNamespace(name="Cash"),
        description=None,
    )


def make_invoice(invoice_id, amount, due_at, status="sent", payments=(), currency="USD"):
    return SimpleNamespace(
        id=invoice_id,
        amount=amount,
        currency_code=currency,
        due_at=due_at,
        invoice_status_code=status,
        payments=list(payments),
    )


def make_revenue(revenue_id, amount, paid_at, currency="USD", category=None):
    return SimpleNamespace(
        id=revenue_id,
        amount=amount,
        currency_code=currency,
        paid_at=paid_at,
        account=SimpleNamespace(name="Bank"),
        category=category or SimpleNamespace(id=3, name="Sales"),
        description="walk-in sale",
    )


def make_builder(invoices=(), revenues=(), rates=None, default_page_size=25):
    converter = CurrencyConverter("USD", rates or {"USD": 1.0, "EUR": 0.5})
    return CustomerStatementBuilder(
        fetch_invoices=lambda customer_id: list(invoices),
        fetch_revenues=lambda customer_id: list(revenues),
        convert=converter.convert,
        today=lambda: TODAY,
        localize=lambda key, count: "Invoices" if count != 1 else "Invoice",
        default_page_size=default_page_size,
    )


def at(day_offset, hour=12):
    return datetime.combine(TODAY + timedelta(days=day_offset), datetime.min.time()).replace(hour=hour)


def test_paid_and_overdue_invoices_scenario():
    paid = make_invoice(1, 100, at(-30), status="paid", payments=[make_payment(1, 100, at(-20))])
    overdue = make_invoice(2, 50, at(-1))
    summary = make_builder(invoices=[paid, overdue]).build(CUSTOMER_ID, evaluation_date=TODAY)

    assert summary.amounts.paid == pytest.approx(100)
    assert summary.amounts.overdue == pytest.approx(50)
    assert summary.amounts.open == pytest.approx(0)
    assert summary.counts.invoices == 2
    assert summary.counts.revenues == 0
    assert summary.transactions.total == 1


def test_paid_invoice_never_contributes_remainder():
    # status wins even if the recorded payments do not cover the amount
    invoice = make_invoice(1, 500, at(-5), status="paid", payments=[make_payment(1, 200, at(-6))])
    summary = make_builder(invoices=[invoice]).build(CUSTOMER_ID)

    assert summary.amounts.open == 0
    assert summary.amounts.overdue == 0
    assert summary.amounts.paid == pytest.approx(200)


def test_due_today_is_open_and_due_yesterday_is_overdue():
    due_today = make_invoice(1, 40, at(0, hour=0))
    due_yesterday = make_invoice(2, 60, at(-1, hour=23))
    due_later = make_invoice(3, 15, at(3))
    summary = make_builder(invoices=[due_today, due_yesterday, due_later]).build(CUSTOMER_ID)

    assert summary.amounts.open == pytest.approx(55)
    assert summary.amounts.overdue == pytest.approx(60)


def test_partial_invoice_remainder_subtracts_converted_payments():
    invoice = make_invoice(
        1,
        100,
        at(5),
        status="partial",
        currency="EUR",
        payments=[make_payment(1, 30, at(-2), currency="EUR"), make_payment(2, 10, at(-1))],
    )
    summary = make_builder(invoices=[invoice]).build(CUSTOMER_ID)

    # 100 EUR = 200 USD, payments 30 EUR = 60 USD plus 10 USD
    assert summary.amounts.paid == pytest.approx(70)
    assert summary.amounts.open == pytest.approx(130)
    assert summary.amounts.overdue == 0


def test_overpaid_invoice_remainder_is_floored_at_zero():
    invoice = make_invoice(1, 50, at(-3), status="partial", payments=[make_payment(1, 80, at(-4))])
    summary = make_builder(invoices=[invoice]).build(CUSTOMER_ID)

    assert summary.amounts.paid == pytest.approx(80)
    assert summary.amounts.overdue == 0
    assert summary.amounts.open == 0


def test_paid_total_includes_payments_and_revenues_in_reporting_currency():
    invoices = [
        make_invoice(1, 100, at(-10), status="paid", payments=[make_payment(1, 100, at(-9))]),
        make_invoice(2, 20, at(10), currency="EUR", payments=[make_payment(2, 5, at(-1), currency="EUR")]),
    ]
    revenues = [make_revenue(1, 25, at(-2)), make_revenue(2, 10, at(-3), currency="EUR")]
    summary = make_builder(invoices=invoices, revenues=revenues).build(CUSTOMER_ID)

    assert summary.amounts.paid == pytest.approx(100 + 10 + 25 + 20)
    assert summary.counts.invoices == 2
    assert summary.counts.revenues == 2
    assert summary.transactions.total == 4


def test_transactions_sorted_descending_and_pages_reconstruct_sequence():
    payments = [make_payment(i, 10, at(-i)) for i in range(1, 6)]
    invoice = make_invoice(1, 50, at(-1), status="paid", payments=payments)
    revenues = [make_revenue(i, 5, at(-i, hour=6)) for i in range(1, 5)]
    builder = make_builder(invoices=[invoice], revenues=revenues)

    full = builder.build(CUSTOMER_ID, page_size=100).transactions.items
    dates = [entry.paid_at for entry in full]
    assert dates == sorted(dates, reverse=True)
    assert len(full) == 9

    collected = []
    for page_number in range(1, 4):
        page = builder.build(CUSTOMER_ID, page_size=4, page_number=page_number).transactions
        assert len(page.items) == min(4, 9 - (page_number - 1) * 4)
        assert page.total == 9
        assert page.last_page == 3
        collected.extend(page.items)
    assert collected == full


def test_equal_timestamps_keep_revenues_before_payments():
    moment = at(-1)
    invoice = make_invoice(1, 10, at(-5), status="paid", payments=[make_payment(11, 10, moment)])
    revenue = make_revenue(22, 3, moment)
    items = make_builder(invoices=[invoice], revenues=[revenue]).build(CUSTOMER_ID).transactions.items

    assert [(entry.kind, entry.id) for entry in items] == [("revenue", 22), ("payment", 11)]


def test_entries_carry_their_category_labels():
    invoice = make_invoice(1, 10, at(-5), status="paid", payments=[make_payment(1, 10, at(-2))])
    revenue = make_revenue(2, 4, at(-1), category=SimpleNamespace(id=9, name="Consulting"))
    items = make_builder(invoices=[invoice], revenues=[revenue]).build(CUSTOMER_ID).transactions.items

    revenue_entry, payment_entry = items
    assert payment_entry.kind == "payment"
    assert payment_entry.category.id == PAYMENT_CATEGORY_ID
    assert payment_entry.category.name == "Invoices"
    assert payment_entry.invoice_id == 1
    assert payment_entry.account_name == "Cash"
    assert revenue_entry.kind == "revenue"
    assert revenue_entry.category.id == 9
    assert revenue_entry.category.name == "Consulting"


def test_customer_without_records_gets_empty_summary():
    summary = make_builder().build(CUSTOMER_ID)

    assert summary.amounts.paid == 0
    assert summary.amounts.open == 0
    assert summary.amounts.overdue == 0
    assert summary.counts.invoices == 0
    assert summary.counts.revenues == 0
    assert summary.transactions.items == []
    assert summary.transactions.total == 0
    assert summary.evaluation_date == TODAY


def test_missing_source_is_treated_as_empty():
    def missing(customer_id):
        raise NotFoundError("customer", customer_id)

    builder = CustomerStatementBuilder(
        fetch_invoices=missing,
        fetch_revenues=lambda customer_id: [make_revenue(1, 12, at(-1))],
        convert=CurrencyConverter("USD", {}).convert,
        today=lambda: TODAY,
        localize=lambda key, count: "Invoices",
    )
    summary = builder.build(CUSTOMER_ID)

    assert summary.counts.invoices == 0
    assert summary.counts.revenues == 1
    assert summary.amounts.paid == pytest.approx(12)


def test_conversion_failure_aborts_build():
    invoice = make_invoice(1, 10, at(-5), payments=[make_payment(1, 4, at(-2), currency="GBP")])
    builder = make_builder(invoices=[invoice], revenues=[make_revenue(1, 5, at(-1))])

    with pytest.raises(ConversionError) as excinfo:
        builder.build(CUSTOMER_ID)
    assert excinfo.value.currency_code == "GBP"


def test_conversion_failure_on_revenue_aborts_build():
    builder = make_builder(revenues=[make_revenue(1, 5, at(-1), currency="XYZ")])

    with pytest.raises(ConversionError):
        builder.build(CUSTOMER_ID)


def test_default_page_size_and_page_number():
    revenues = [make_revenue(i, 1, at(-i)) for i in range(1, 8)]
    builder = make_builder(revenues=revenues, default_page_size=3)

    first = builder.build(CUSTOMER_ID).transactions
    assert first.per_page == 3
    assert first.current_page == 1
    assert [entry.id for entry in first.items] == [1, 2, 3]

    beyond = builder.build(CUSTOMER_ID, page_number=10).transactions
    assert beyond.items == []
    assert beyond.total == 7


def test_large_page_size_is_honoured():
    revenues = [make_revenue(i, 1, at(-1, hour=0) - timedelta(minutes=i)) for i in range(1, 251)]
    builder = make_builder(revenues=revenues)

    first = builder.build(CUSTOMER_ID, page_size=300).transactions
    assert first.per_page == 300
    assert len(first.items) == 250
    assert first.last_page == 1

    second = builder.build(CUSTOMER_ID, page_size=240, page_number=2).transactions
    assert len(second.items) == 10
    assert second.last_page == 2


def test_paid_total_matches_unrounded_converted_entries():
    builder = make_builder(revenues=[make_revenue(1, 1, at(-1), currency="EUR")], rates={"EUR": 3.0})
    summary = builder.build(CUSTOMER_ID)

    entry = summary.transactions.items[0]
    assert entry.converted_amount == pytest.approx(1 / 3)
    assert summary.amounts.paid == entry.converted_amount

    invoice = make_invoice(
        1,
        10,
        at(2),
        currency="EUR",
        payments=[make_payment(i, 1, at(-i), currency="EUR") for i in range(1, 4)],
    )
    revenues = [make_revenue(i, 2, at(-i, hour=8), currency="EUR") for i in range(1, 3)]
    builder = make_builder(invoices=[invoice], revenues=revenues, rates={"EUR": 3.0})

    entries = []
    for page_number in range(1, 4):
        entries.extend(builder.build(CUSTOMER_ID, page_size=2, page_number=page_number).transactions.items)
    summary = builder.build(CUSTOMER_ID)
    assert len(entries) == 5
    assert summary.amounts.paid == pytest.approx(sum(item.converted_amount for item in entries), rel=1e-12)
    assert summary.amounts.paid != round(summary.amounts.paid, 2)
    assert summary.amounts.open == pytest.approx(10 / 3 - 1, rel=1e-12)


def test_due_dates_are_read_in_the_builder_zone():
    # 23:30 UTC on the 9th is already the 10th in Kuala Lumpur
    due_at = datetime(2024, 5, 9, 23, 30, tzinfo=timezone.utc)
    invoice = make_invoice(1, 40, due_at)
    revenue = make_revenue(1, 5, due_at)
    converter = CurrencyConverter("USD", {})
    builder = CustomerStatementBuilder(
        fetch_invoices=lambda customer_id: [invoice],
        fetch_revenues=lambda customer_id: [revenue],
        convert=converter.convert,
        today=lambda: TODAY,
        localize=lambda key, count: "Invoices",
        tz_name="Asia/Kuala_Lumpur",
    )
    summary = builder.build(CUSTOMER_ID)

    assert summary.amounts.open == pytest.approx(40)
    assert summary.amounts.overdue == 0
    assert summary.transactions.items[0].paid_at.tzinfo.key == "Asia/Kuala_Lumpur"
