"""
Abandoned cart reminder emails
Subject, HTML and plain text for each of the three reminders
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional

from utils.emailing import render_email

_COPY = {
    1: {
        "subject": "You left something lovely behind",
        "intro": [
            "You left a few things in your cart. No rush, they're still here whenever you're ready to come back.",
        ],
        "button_label": "Return to My Cart",
    },
    2: {
        "subject": "Your cart is still waiting for you",
        "intro": [
            "Your cart is still saved, but we can't hold items forever.",
            "Pick up where you left off before they sell out.",
        ],
        "button_label": "Complete My Order",
    },
    3: {
        "subject": "Last chance: your cart is about to be cleared",
        "intro": [
            "This is our final reminder. Your cart is still saved for now, but this is the last email we'll send about it.",
        ],
        "button_label": "Check Out Now",
    },
}


@dataclass(frozen=True)
class ReminderEmail:
    subject: str
    html: str
    text: str


def _money(value) -> Decimal:
    try:
        return Decimal(str(value if value is not None else 0)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return Decimal("0.00")


def _line(item: dict) -> dict:
    quantity = item.get("quantity") or 1
    try:
        quantity = max(int(quantity), 1)
    except (TypeError, ValueError):
        quantity = 1
    return {
        "name": str(item.get("name") or "Item"),
        "quantity": quantity,
        "line_total": f"{_money(item.get('price')) * quantity:.2f}",
    }


def render_reminder(
    reminder_number: int,
    first_name: Optional[str],
    items: Iterable[dict],
    base_url: str,
) -> ReminderEmail:
    copy = _COPY.get(reminder_number)
    if copy is None:
        raise ValueError(f"unknown reminder number: {reminder_number}")

    base_url = (base_url or "").rstrip("/")
    name = (first_name or "").strip() or "there"
    lines = [_line(item) for item in items]
    cart_url = f"{base_url}/Cart.html"

    html = render_email(
        "abandoned_cart.html",
        first_name=name,
        intro=copy["intro"],
        items=lines,
        button_label=copy["button_label"],
        cart_url=cart_url,
        account_url=f"{base_url}/Account.html",
    )

    text_lines = [f"Hi {name},", ""] + copy["intro"] + [""]
    text_lines += [f"- {line['name']} x{line['quantity']}: ${line['line_total']}" for line in lines]
    text_lines += ["", f"{copy['button_label']}: {cart_url}"]

    return ReminderEmail(subject=copy["subject"], html=html, text="\n".join(text_lines))
