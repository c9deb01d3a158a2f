"""Tickets de la venta: uno por unidad pagada y uno por unidad gratis (10+1).

Se derivan de la venta guardada, no se persisten.
"""
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import List, Optional

from app.core.config import settings
from app.services.business_day import to_local
from app.services.sale_builder import CASH, ZERO, free_ticket_lines

PAYMENT_LABELS = {CASH: "Efectivo", "transfer": "Transferencia"}
PROMO_LABEL = "PROMOCIÓN 10+1"


@dataclass(frozen=True)
class Ticket:
    number: str
    product_name: str
    price: Decimal
    payment_label: str
    seller: str
    is_free: bool
    kind: str  # PAGADO | GRATIS
    sale_date: str

    def to_dict(self):
        d = asdict(self)
        d["price"] = float(self.price)
        return d


def build_tickets(sale, seller: Optional[str] = None, tz: Optional[str] = None) -> List[Ticket]:
    """`sale` es un Sale guardado (o un SaleDraft con las mismas líneas)."""
    seller = seller or getattr(sale, "seller_name", None) or "Vendedor"
    created = getattr(sale, "created_at", None)
    sale_date = to_local(created, tz).strftime("%d/%m/%Y %H:%M:%S") if created else ""
    lines = list(sale.lines)

    tickets: List[Ticket] = []
    for line in lines:
        for _ in range(int(line.quantity)):
            tickets.append(Ticket(
                number=f"{len(tickets) + 1:03d}",
                product_name=line.name,
                price=Decimal(line.unit_price),
                payment_label=PAYMENT_LABELS.get(line.payment_method, line.payment_method),
                seller=seller,
                is_free=False,
                kind="PAGADO",
                sale_date=sale_date,
            ))

    free = getattr(sale, "free_items", None)
    if free is None:
        free = sale.promotion.free_items
    for line in free_ticket_lines(lines, int(free)):
        tickets.append(Ticket(
            number=f"{len(tickets) + 1:03d}",
            product_name=line.name,
            price=ZERO,
            payment_label=PROMO_LABEL,
            seller=seller,
            is_free=True,
            kind="GRATIS",
            sale_date=sale_date,
        ))
    return tickets


def _row(label: str, value: str, width: int) -> str:
    gap = max(1, width - len(label) - len(value))
    return f"{label}{' ' * gap}{value}"


def render_ticket_text(ticket: Ticket, width: Optional[int] = None, store_name: Optional[str] = None,
                       currency: Optional[str] = None) -> str:
    """Ticket en texto plano para impresora térmica de ancho fijo."""
    width = width or settings.ticket_width
    store_name = store_name or settings.store_name
    currency = currency or settings.currency_symbol
    sep = "-" * width
    out = []
    if ticket.is_free:
        out.append(f"*** {PROMO_LABEL} ***".center(width))
    out += [
        store_name.center(width),
        f"TICKET #{ticket.number}".center(width),
        sep,
        _row("Producto:", ticket.product_name[: width - 10], width),
        _row("Fecha:", ticket.sale_date, width),
        _row("Pago:", ticket.payment_label, width),
        _row("Vendedor:", ticket.seller[: width - 10], width),
        sep,
    ]
    if ticket.is_free:
        out.append("TICKET GRATIS".center(width))
        out.append("¡Felicidades! Promoción 10+1".center(width))
    else:
        out.append(f"TOTAL: {currency} {ticket.price:.2f}".center(width))
    return "\n".join(out) + "\n"


def render_tickets_text(tickets: List[Ticket], width: Optional[int] = None, store_name: Optional[str] = None,
                        currency: Optional[str] = None) -> str:
    # salto de página entre tickets (form feed)
    return "\f".join(render_ticket_text(t, width, store_name, currency) for t in tickets)
