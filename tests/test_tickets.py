from datetime import datetime, timezone
from decimal import Decimal

from app.services.sale_builder import CartLine, draft_sale
from app.services.tickets import PROMO_LABEL, build_tickets, render_ticket_text, render_tickets_text

NOW = datetime(2025, 3, 10, 15, 0, tzinfo=timezone.utc)


def _draft(*lines):
    draft, _ = draft_sale(list(lines), "op-1", NOW, seller_name="Ana")
    return draft


def test_paid_then_free_numbering():
    draft = _draft(
        CartLine(1, "Entrada General", Decimal("5.00"), 7, "cash"),
        CartLine(2, "Entrada VIP", Decimal("12.00"), 4, "transfer"),
    )
    tickets = build_tickets(draft)
    assert len(tickets) == 12
    assert [t.number for t in tickets[:3]] == ["001", "002", "003"]
    assert tickets[-1].number == "012"

    paid = [t for t in tickets if not t.is_free]
    free = [t for t in tickets if t.is_free]
    assert len(paid) == 11 and len(free) == 1
    assert paid[0].payment_label == "Efectivo"
    assert paid[-1].payment_label == "Transferencia"
    assert free[0].product_name == "Entrada General"
    assert free[0].price == Decimal("0.00")
    assert free[0].payment_label == PROMO_LABEL
    assert free[0].kind == "GRATIS"
    assert all(t.seller == "Ana" for t in tickets)
    # 10:00 en Lima
    assert tickets[0].sale_date == "10/03/2025 10:00:00"


def test_no_free_tickets_below_threshold():
    tickets = build_tickets(_draft(CartLine(1, "Entrada", Decimal("5.00"), 9)))
    assert len(tickets) == 9
    assert not any(t.is_free for t in tickets)


def test_render_text():
    tickets = build_tickets(_draft(CartLine(1, "Entrada General", Decimal("5.00"), 10)))
    text = render_ticket_text(tickets[0], width=32, store_name="Tienda")
    lines = text.splitlines()
    assert "TICKET #001" in text
    assert "S/. 5.00" in text
    assert all(len(line) <= 32 for line in lines)

    free = render_ticket_text(tickets[-1], width=32, store_name="Tienda")
    assert PROMO_LABEL in free and "TICKET GRATIS" in free

    joined = render_tickets_text(tickets, width=32)
    assert joined.count("\f") == len(tickets) - 1
