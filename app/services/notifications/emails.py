"""
Confirmation Email Rendering

Builds the customer confirmation and the restaurant copy for orders and
catering requests. Bodies are Jinja2 templates under app/templates/emails;
HTML templates are autoescaped, plain-text ones are not.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Optional
from urllib.parse import urlencode

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.core.config import get_settings
from app.schemas import CartItem, CateringRequestCreate, OrderCreate

TEMPLATE_DIR = Path(__file__).resolve().parents[2] / "templates" / "emails"

# Per-unit prices of the Pad Thai upgrades and sauce add-ons
UPGRADE_48_PRICE = Decimal("18")
UPGRADE_24_PRICE = Decimal("9")
ADD_ON_HALF_PRICE = Decimal("15")
ADD_ON_FULL_PRICE = Decimal("25")

# Delivery window shown to customers and used for the calendar link
DELIVERY_WINDOW = (time(17, 0), time(19, 0))


def money(value) -> str:
    return f"${Decimal(value if value is not None else 0):.2f}"


_env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(enabled_extensions=("html",)),
    trim_blocks=True,
    lstrip_blocks=True,
)
_env.filters["money"] = money


@dataclass
class EmailContent:
    subject: str
    html: str
    text: str


@dataclass
class EmailLine:
    """One printed row of the order summary table."""
    label: str
    quantity: int
    unit_price: Decimal

    @property
    def total(self) -> Decimal:
        return self.unit_price * self.quantity


def expand_items(items: Iterable[CartItem]) -> list[EmailLine]:
    """
    Flatten cart items into summary rows.

    Each item becomes its own row followed by one row per upgrade or add-on
    it carries.
    """
    lines = []
    for item in items:
        label = item.item_name
        if item.selected_serves:
            label += f" (Serves {item.selected_serves})"
        if item.selected_size:
            label += f" ({item.selected_size} Tray)"
        lines.append(EmailLine(label, item.quantity, item.price))

        if item.upgrade_phad_thai_48_qty > 0:
            lines.append(EmailLine(
                "Upgrade: Pad Thai (48 oz)", item.upgrade_phad_thai_48_qty, UPGRADE_48_PRICE
            ))
        if item.upgrade_phad_thai_24_qty > 0:
            lines.append(EmailLine(
                "Upgrade: Pad Thai (24 oz)", item.upgrade_phad_thai_24_qty, UPGRADE_24_PRICE
            ))
        if item.add_on_qty > 0:
            half = item.selected_size == "Half"
            sauce = "Prik Noom Sauce" if item.item_name == "Sai Ua Sausage" else "Jao Sauce"
            size = "16oz" if half else "32oz"
            lines.append(EmailLine(
                f"Add-on: {sauce} ({size})",
                item.add_on_qty,
                ADD_ON_HALF_PRICE if half else ADD_ON_FULL_PRICE,
            ))
    return lines


def delivery_window_label() -> str:
    start, end = (f"{t:%I:%M %p}".lstrip("0") for t in DELIVERY_WINDOW)
    return f"{start} - {end}"


def calendar_link(delivery_date: Optional[date], order_number: str, address: str) -> Optional[str]:
    """Google Calendar 'add event' URL covering the delivery window."""
    if delivery_date is None:
        return None
    start = datetime.combine(delivery_date, DELIVERY_WINDOW[0])
    end = datetime.combine(delivery_date, DELIVERY_WINDOW[1])
    settings = get_settings()
    query = urlencode({
        "action": "TEMPLATE",
        "text": f"{settings.restaurant_name} Delivery",
        "dates": f"{start:%Y%m%dT%H%M%S}/{end:%Y%m%dT%H%M%S}",
        "details": f"Order #: {order_number} | Address: {address}",
        "location": address,
    })
    return f"https://www.google.com/calendar/render?{query}"


def _render(name: str, **context) -> tuple[str, str]:
    context.setdefault("restaurant", get_settings())
    html = _env.get_template(f"{name}.html").render(**context)
    text = _env.get_template(f"{name}.txt").render(**context)
    return html, text


# =============================================================================
# ORDERS
# =============================================================================

def render_order_confirmation(
    order: OrderCreate,
    order_number: str,
    total: Decimal,
    discount: Decimal = Decimal("0"),
    delivery_date: Optional[date] = None,
) -> EmailContent:
    html, text = _render(
        "order_confirmation",
        order=order,
        order_number=order_number,
        lines=expand_items(order.items),
        total=total,
        discount=discount,
        calendar_url=calendar_link(delivery_date, order_number, order.delivery_address),
        window=delivery_window_label(),
    )
    settings = get_settings()
    return EmailContent(f"{settings.restaurant_name} Order Confirmation", html, text)


# =============================================================================
# CATERING
# =============================================================================

def render_catering_confirmation(
    request: CateringRequestCreate,
    requested_date: Optional[date] = None,
) -> EmailContent:
    html, text = _render(
        "catering_request",
        request=request,
        requested_date=requested_date,
        lines=expand_items(request.cart_items),
    )
    settings = get_settings()
    return EmailContent(f"{settings.restaurant_name} Catering Request Confirmation", html, text)


# =============================================================================
# RESTAURANT COPY
# =============================================================================

def render_business_copy(content: EmailContent, kind: str, customer_name: str,
                         reference: Optional[str] = None) -> EmailContent:
    """
    Wrap a customer email for the restaurant inbox.

    ``kind`` is the human label of the submission, e.g. "Order".
    """
    subject = f"New {kind} from {customer_name}"
    if reference:
        subject += f" - {reference}"
    html, text = _render(
        "business_copy",
        kind=kind,
        customer_name=customer_name,
        body_html=content.html,
        body_text=content.text,
    )
    return EmailContent(subject, html, text)
