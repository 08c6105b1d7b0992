"""
Email Templates

Each notification kind maps to a Jinja2 template under
tablehub/templates/email and a subject line formatted from the payload.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from jinja2 import Environment, PackageLoader, select_autoescape


@dataclass(frozen=True)
class EmailTemplate:
    filename: str
    subject: str


EMAIL_TEMPLATES: dict[str, EmailTemplate] = {
    "order_confirmation": EmailTemplate(
        "order_confirmation.html", "Order Confirmation - Table {table_number}"
    ),
    "new_order_alert": EmailTemplate(
        "new_order_alert.html", "New Order - Table {table_number}"
    ),
    "order_ready": EmailTemplate(
        "order_ready.html", "Your order for table {table_number} is ready"
    ),
    "welcome": EmailTemplate("welcome.html", "Welcome to TableHub, {name}"),
    "access_invitation": EmailTemplate(
        "access_invitation.html", "You've been invited to manage {vendor_name}"
    ),
    "password_reset": EmailTemplate("password_reset.html", "Password Reset Request"),
}


@lru_cache()
def get_environment() -> Environment:
    return Environment(
        loader=PackageLoader("tablehub", "templates/email"),
        autoescape=select_autoescape(["html"]),
    )


def render_email(kind: str, payload: dict[str, Any]) -> tuple[str, str]:
    """
    Render a notification.

    Returns:
        (subject, html body)

    Raises:
        KeyError: unknown notification kind
    """
    template = EMAIL_TEMPLATES[kind]
    subject = template.subject.format_map(_Defaulting(payload))
    html = get_environment().get_template(template.filename).render(**payload)
    return subject, html


class _Defaulting(dict):
    """format_map helper: missing keys render as empty strings."""

    def __missing__(self, key: str) -> str:
        return ""
