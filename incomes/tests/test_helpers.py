import pytest

from incomes.currency import CurrencyConverter
from incomes.errors import ConversionError
from incomes.fields import render_fields
from incomes.i18n import trans, trans_choice
from incomes.importer import parse_customer_csv
from incomes.pagination import paginate, resolve_page_size


def test_paginate_slices_and_reports_metadata():
    page = paginate(list(range(1, 11)), per_page=4, page=3)

    assert page.items == [9, 10]
    assert page.total == 10
    assert page.current_page == 3
    assert page.last_page == 3
    assert page.first_item == 9
    assert page.last_item == 10
    assert page.has_more_pages is False


def test_paginate_defaults_to_first_page_and_handles_empty_input():
    page = paginate([], per_page=25)

    assert page.items == []
    assert page.current_page == 1
    assert page.last_page == 1
    assert page.first_item is None


def test_resolve_page_size_uses_default_and_floors_at_one():
    assert resolve_page_size(None, 25) == 25
    assert resolve_page_size(0, 25) == 1
    assert resolve_page_size(-3, 25) == 1
    assert resolve_page_size(10_000, 25) == 10_000


def test_converter_divides_by_source_rate():
    converter = CurrencyConverter("usd", {"EUR": 0.8, "GBP": 0.5})

    assert converter.convert(80, "eur") == pytest.approx(100)
    assert converter.convert(10, "GBP") == pytest.approx(20)
    assert converter.convert(12.5, "USD") == pytest.approx(12.5)


def test_converter_rejects_unknown_and_invalid_currencies():
    converter = CurrencyConverter("USD", {"EUR": 0.0})

    with pytest.raises(ConversionError) as unknown:
        converter.convert(1, "JPY")
    assert unknown.value.currency_code == "JPY"

    with pytest.raises(ConversionError) as invalid:
        converter.convert(1, "EUR")
    assert "invalid rate" in str(invalid.value)

    with pytest.raises(ConversionError):
        converter.convert(1, "")


def test_translations_pick_plural_form_and_format_params():
    assert trans_choice("general.invoices", 2, "en-GB") == "Invoices"
    assert trans_choice("general.invoices", 1, "en-GB") == "Invoice"
    assert trans_choice("general.invoices", 2, "de-DE") == "Rechnungen"
    assert trans("messages.success.added", "en-GB", type="Customer") == "Customer added!"
    # unknown locales fall back to English, unknown keys echo the key
    assert trans("customers.error.email", "xx-XX") == "The email has already been taken."
    assert trans("missing.key") == "missing.key"


def test_render_fields_only_renders_password_inputs():
    html = render_fields(["password", "website", "password_confirmation"], "en-GB")

    assert 'name="password"' in html
    assert 'name="password_confirmation"' in html
    assert 'name="website"' not in html
    assert "Password Confirmation" in html
    assert render_fields([]) == ""
    assert render_fields(None) == ""


def test_parse_customer_csv_accepts_aliases_and_skips_blank_rows():
    content = (
        "Name,Email,Currency,Phone,Enabled\n"
        "Acme Ltd,billing@acme.test,eur,555-0100,yes\n"
        ",,,,\n"
        "Globex,,,,0\n"
    ).encode("utf-8-sig")

    rows, errors = parse_customer_csv(content)

    assert errors == []
    assert [row.name for row in rows] == ["Acme Ltd", "Globex"]
    assert rows[0].email == "billing@acme.test"
    assert rows[0].currency_code == "EUR"
    assert rows[0].enabled is True
    assert rows[1].email is None
    assert rows[1].currency_code is None
    assert rows[1].enabled is False


def test_parse_customer_csv_reports_row_numbers():
    content = b"name,email\nGood,good@example.test\nBad,not-an-email\n"

    rows, errors = parse_customer_csv(content)

    assert len(rows) == 1
    assert len(errors) == 1
    assert errors[0].row_number == 3
    assert "email" in errors[0].message


def test_parse_customer_csv_requires_name_column():
    with pytest.raises(ValueError):
        parse_customer_csv(b"email\nsomeone@example.test\n")
    with pytest.raises(ValueError):
        parse_customer_csv(b"")
