"""Default subject and body text for supplier order emails."""

from typing import Optional

from restock.config import Config
from restock.database.models import SenderProfile, SessionItem
from restock.utils.constants import (
    FALLBACK_SENDER_NAME,
    FALLBACK_STORE_PHRASE,
    FALLBACK_SUPPLIER_GREETING,
)


def _format_quantity(quantity) -> str:
    if isinstance(quantity, float) and quantity.is_integer():
        return str(int(quantity))
    return str(quantity)


def build_subject(profile: Optional[SenderProfile]) -> str:
    store_name = (profile.store_name if profile else None) or FALLBACK_STORE_PHRASE
    return f"Restock Order from {store_name}"


def format_product_list(items: list[SessionItem]) -> str:
    """Numbered list, with ``(xN)`` only when more than one is ordered."""
    lines = []
    for index, item in enumerate(items, start=1):
        line = f"{index}. {item.product_name}"
        if item.quantity > 1:
            line += f" (x{_format_quantity(item.quantity)})"
        lines.append(line)
    return "\n".join(lines)


def build_body(supplier_name: str, items: list[SessionItem],
               profile: Optional[SenderProfile]) -> str:
    sender_name = (profile.name if profile else "") or FALLBACK_SENDER_NAME
    return (
        f"Hi {supplier_name or FALLBACK_SUPPLIER_GREETING},\n"
        f"\n"
        f"I'd like to place an order for the following items:\n"
        f"\n"
        f"{format_product_list(items)}\n"
        f"\n"
        f"Please let me know if you have any questions or if any items "
        f"are unavailable.\n"
        f"\n"
        f"Thank you,\n"
        f"{sender_name}"
    )


def relay_store_name(profile: Optional[SenderProfile]) -> str:
    """Store label the relay prints in the email footer."""
    if profile and profile.store_name:
        return profile.store_name
    if profile and profile.name:
        return profile.name
    return Config.DEFAULT_STORE_NAME
