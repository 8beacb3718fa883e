from __future__ import annotations


class IncomesError(Exception):
    """Base class for errors raised outside the HTTP layer."""


class NotFoundError(IncomesError):
    def __init__(self, entity: str, entity_id: object = None) -> None:
        self.entity = entity
        self.entity_id = entity_id
        suffix = f" {entity_id}" if entity_id is not None else ""
        super().__init__(f"{entity}{suffix} not found")


class ConversionError(IncomesError):
    def __init__(self, currency_code: str, reason: str = "unknown currency") -> None:
        self.currency_code = currency_code
        self.reason = reason
        super().__init__(f"Cannot convert from {currency_code or '<empty>'}: {reason}")
