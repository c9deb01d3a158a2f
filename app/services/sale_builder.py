"""Construcción de la venta: totales por método de pago, promoción 10+1 y
delta de caja. Todo es cálculo puro; la escritura la hace RegisterManager.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Dict, List, Optional, Sequence, Tuple

from app.core.config import settings
from app.core.errors import RegisterClosedError, ValidationError
from app.services.business_day import resolve_business_day

CASH = "cash"
TRANSFER = "transfer"
PAYMENT_METHODS = (CASH, TRANSFER)

ZERO = Decimal("0.00")


def money(v) -> Decimal:
    if not isinstance(v, Decimal):
        v = Decimal(str(v))
    return v.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CartLine:
    product_id: Optional[int]
    name: str
    unit_price: Decimal
    quantity: int
    payment_method: str = CASH

    @property
    def line_total(self) -> Decimal:
        return money(self.unit_price * self.quantity)


@dataclass(frozen=True)
class Totals:
    total: Decimal
    by_method: Dict[str, Decimal]


@dataclass(frozen=True)
class Promotion:
    paid_items: int
    free_items: int
    total_tickets: int

    @property
    def has_promotion(self) -> bool:
        return self.free_items > 0


@dataclass(frozen=True)
class LedgerDelta:
    total_delta: Decimal
    cash_delta: Decimal
    transfer_delta: Decimal


@dataclass(frozen=True)
class SaleDraft:
    lines: Tuple[CartLine, ...]
    totals: Totals
    promotion: Promotion
    operator_id: str
    business_day: str
    created_at: datetime
    seller_name: str = ""
    client_ref: Optional[str] = None
    free_lines: Tuple[CartLine, ...] = field(default_factory=tuple)


def _check_line(idx: int, line: CartLine) -> None:
    qty = line.quantity
    if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
        raise ValidationError(f"Línea {idx}: cantidad inválida ({qty!r})")
    try:
        price = Decimal(str(line.unit_price))
    except InvalidOperation as exc:
        raise ValidationError(f"Línea {idx}: precio inválido ({line.unit_price!r})") from exc
    if not price.is_finite() or price < 0:
        raise ValidationError(f"Línea {idx}: precio negativo o inválido ({line.unit_price!r})")
    if line.payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"Línea {idx}: método de pago no soportado ({line.payment_method!r})")


def validate_cart(cart: Sequence[CartLine]) -> None:
    if not cart:
        raise ValidationError("El carrito está vacío")
    for idx, line in enumerate(cart):
        _check_line(idx, line)


def compute_totals(cart: Sequence[CartLine]) -> Totals:
    validate_cart(cart)
    by_method = {m: ZERO for m in PAYMENT_METHODS}
    for line in cart:
        by_method[line.payment_method] += line.line_total
    total = money(sum(by_method.values(), ZERO))
    return Totals(total=total, by_method={m: money(v) for m, v in by_method.items()})


def compute_promotion(cart: Sequence[CartLine], threshold: Optional[int] = None) -> Promotion:
    threshold = threshold or settings.promo_threshold
    if threshold <= 0:
        raise ValidationError(f"Umbral de promoción inválido ({threshold!r})")
    paid = sum(line.quantity for line in cart)
    free = paid // threshold
    return Promotion(paid_items=paid, free_items=free, total_tickets=paid + free)


def free_ticket_lines(cart: Sequence[CartLine], free_items: int) -> Tuple[CartLine, ...]:
    """Reparte los tickets gratis en ronda sobre las líneas del carrito."""
    if not cart:
        return ()
    return tuple(cart[i % len(cart)] for i in range(free_items))


def ledger_delta(totals: Totals) -> LedgerDelta:
    return LedgerDelta(
        total_delta=totals.total,
        cash_delta=totals.by_method.get(CASH, ZERO),
        transfer_delta=totals.by_method.get(TRANSFER, ZERO),
    )


def draft_sale(
    cart: Sequence[CartLine],
    operator_id: str,
    now: datetime,
    seller_name: str = "",
    client_ref: Optional[str] = None,
    threshold: Optional[int] = None,
    tz: Optional[str] = None,
) -> Tuple[SaleDraft, LedgerDelta]:
    """Venta sin chequear la caja (modo offline: la validación se repite al sincronizar)."""
    totals = compute_totals(cart)
    promotion = compute_promotion(cart, threshold)
    day = resolve_business_day(now, tz)
    draft = SaleDraft(
        lines=tuple(cart),
        totals=totals,
        promotion=promotion,
        operator_id=operator_id,
        business_day=day,
        created_at=now,
        seller_name=seller_name,
        client_ref=client_ref,
        free_lines=free_ticket_lines(cart, promotion.free_items),
    )
    return draft, ledger_delta(totals)


def build_sale_record(
    cart: Sequence[CartLine],
    operator_id: str,
    now: datetime,
    session,
    seller_name: str = "",
    client_ref: Optional[str] = None,
    threshold: Optional[int] = None,
    tz: Optional[str] = None,
) -> Tuple[SaleDraft, LedgerDelta]:
    draft, delta = draft_sale(cart, operator_id, now, seller_name, client_ref, threshold, tz)
    if (
        session is None
        or not session.is_open
        or session.operator_id != operator_id
        or session.business_day != draft.business_day
    ):
        raise RegisterClosedError(operator_id=operator_id, business_day=draft.business_day)
    return draft, delta


# --- Carrito (estado del cliente) ---

def add_to_cart(cart: Sequence[CartLine], product_id, name: str, price, payment_method: str = CASH) -> List[CartLine]:
    out = list(cart)
    for i, line in enumerate(out):
        if line.product_id == product_id and line.payment_method == payment_method:
            out[i] = replace(line, quantity=line.quantity + 1)
            return out
    out.append(CartLine(product_id, name, money(price), 1, payment_method))
    return out


def update_quantity(cart: Sequence[CartLine], product_id, change: int) -> List[CartLine]:
    out = []
    for line in cart:
        if line.product_id == product_id:
            qty = line.quantity + change
            if qty <= 0:
                continue
            line = replace(line, quantity=qty)
        out.append(line)
    return out
