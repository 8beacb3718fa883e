from __future__ import annotations

from typing import Dict, Iterable, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .config import BASE_DIR
from .i18n import trans

TEMPLATES_DIR = BASE_DIR / "templates"

env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)

# field name -> translation key of its label
PASSWORD_FIELDS: Dict[str, str] = {
    "password": "auth.password.current",
    "password_confirmation": "auth.password.current_confirm",
}


def render_password_group(name: str, label: str, *, icon: str = "key", col: str = "col-md-6 password") -> str:
    template = env.get_template("partials/password_group.html")
    return template.render(name=name, label=label, icon=icon, col=col, required=False)


def render_fields(fields: Optional[Iterable[str]], locale: Optional[str] = None) -> str:
    """Render the requested form fields; names without a renderer are skipped."""
    html = ""
    for field in fields or []:
        label_key = PASSWORD_FIELDS.get(field)
        if label_key is None:
            continue
        html += render_password_group(field, trans(label_key, locale))
    return html
