from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from typing import Dict, List, Tuple

from pydantic import ValidationError

from .schemas import CustomerImportRow

HEADER_ALIASES: Dict[str, str] = {
    "name": "name",
    "customer": "name",
    "email": "email",
    "tax_number": "tax_number",
    "tax number": "tax_number",
    "phone": "phone",
    "address": "address",
    "website": "website",
    "currency_code": "currency_code",
    "currency": "currency_code",
    "reference": "reference",
    "enabled": "enabled",
}

FALSE_VALUES = {"0", "false", "no", "n", "off"}


@dataclass(frozen=True)
class CsvRowError:
    row_number: int
    message: str


def _normalize_row(row: Dict[str, str]) -> Dict[str, object]:
    data: Dict[str, object] = {}
    for header, value in row.items():
        if header is None:
            continue
        key = HEADER_ALIASES.get(header.strip().lower())
        if not key:
            continue
        text = (value or "").strip()
        if key == "enabled":
            data[key] = text.lower() not in FALSE_VALUES if text else True
        elif text:
            data[key] = text
    return data


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "__root__")
        message = error.get("msg", "invalid value")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


def parse_customer_csv(file_bytes: bytes) -> Tuple[List[CustomerImportRow], List[CsvRowError]]:
    """Read a customer export into validated rows.

    Row numbers in errors count the header as row 1, matching what a
    spreadsheet shows.
    """
    text = file_bytes.decode("utf-8-sig", errors="replace")
    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames:
        raise ValueError("CSV has no header row.")
    if "name" not in {HEADER_ALIASES.get(h.strip().lower()) for h in reader.fieldnames if h}:
        raise ValueError("CSV must contain a 'name' column.")

    rows: List[CustomerImportRow] = []
    errors: List[CsvRowError] = []
    for index, raw in enumerate(reader, start=2):
        data = _normalize_row(raw)
        if not data or all(value in ("", True) for value in data.values()):
            continue
        try:
            rows.append(CustomerImportRow.model_validate(data))
        except ValidationError as exc:
            errors.append(CsvRowError(row_number=index, message=_format_validation_error(exc)))
    return rows, errors
