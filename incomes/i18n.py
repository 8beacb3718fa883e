from __future__ import annotations

from typing import Dict, Optional

from .config import get_settings

FALLBACK_LOCALE = "en-GB"

TRANSLATIONS: Dict[str, Dict[str, str]] = {
    "en-GB": {
        "general.invoices": "Invoice|Invoices",
        "general.revenues": "Revenue|Revenues",
        "general.customers": "Customer|Customers",
        "auth.password.current": "Password",
        "auth.password.current_confirm": "Password Confirmation",
        "messages.success.added": "{type} added!",
        "messages.success.updated": "{type} updated!",
        "messages.success.deleted": "{type} deleted!",
        "messages.success.duplicated": "{type} duplicated!",
        "messages.success.imported": "{type} imported!",
        "messages.error.customer": "Error: User not created! {name} already uses this email address.",
        "messages.warning.deleted": "Warning: You are not allowed to delete <b>{name}</b> because it has {text} related.",
        "customers.error.email": "The email has already been taken.",
    },
    "de-DE": {
        "general.invoices": "Rechnung|Rechnungen",
        "general.revenues": "Einnahme|Einnahmen",
        "general.customers": "Kunde|Kunden",
        "auth.password.current": "Passwort",
        "auth.password.current_confirm": "Passwortbestätigung",
        "messages.success.added": "{type} hinzugefügt!",
        "messages.success.updated": "{type} aktualisiert!",
        "messages.success.deleted": "{type} gelöscht!",
        "messages.success.duplicated": "{type} dupliziert!",
        "messages.success.imported": "{type} importiert!",
        "messages.error.customer": "Fehler: Benutzer nicht angelegt! {name} verwendet diese E-Mail-Adresse bereits.",
        "messages.warning.deleted": "Warnung: <b>{name}</b> kann nicht gelöscht werden, da {text} damit verknüpft sind.",
        "customers.error.email": "Diese E-Mail-Adresse ist bereits vergeben.",
    },
}


def _catalogue(locale: Optional[str]) -> Dict[str, str]:
    name = locale or get_settings().default_locale
    return TRANSLATIONS.get(name) or TRANSLATIONS[FALLBACK_LOCALE]


def _lookup(key: str, locale: Optional[str]) -> str:
    value = _catalogue(locale).get(key)
    if value is None:
        value = TRANSLATIONS[FALLBACK_LOCALE].get(key, key)
    return value


def trans(key: str, locale: Optional[str] = None, **params: object) -> str:
    text = _lookup(key, locale)
    return text.format(**params) if params else text


def trans_choice(key: str, count: int, locale: Optional[str] = None, **params: object) -> str:
    """Pick the singular or plural form of a ``"one|many"`` message."""
    forms = _lookup(key, locale).split("|")
    text = forms[0] if count == 1 or len(forms) == 1 else forms[1]
    return text.format(**params) if params else text
