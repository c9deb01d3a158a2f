from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from ..context import AppContext, get_ctx, get_db, get_operator_id
from ..core.errors import NotFoundError, RateLimitedError, ValidationError
from ..core.schemas import SaleIn, sale_to_dict
from ..services.catalog import ProductCatalog
from ..services.register import RegisterManager
from ..services.sale_builder import CartLine, money
from ..services.store import SqlStore
from ..services.tickets import build_tickets, render_tickets_text

router = APIRouter(prefix="/sales", tags=["sales"])


def _check_rate(operator_id: str = Depends(get_operator_id), ctx: AppContext = Depends(get_ctx)) -> str:
    # sólo consulta; el cupo se consume cuando la venta se registra o se encola
    limiter = ctx.sale_limiter
    if limiter.remaining(operator_id) <= 0:
        raise RateLimitedError(retry_after=round(limiter.retry_after(operator_id), 1))
    return operator_id


def _to_cart(payload: SaleIn, catalog: ProductCatalog):
    cart = []
    for i, it in enumerate(payload.lines):
        name, price = it.name, it.unit_price
        if name is None or price is None:
            if it.product_id is None:
                raise ValidationError(f"Línea {i}: falta product_id o snapshot de nombre/precio")
            p = catalog.get_product(it.product_id)
            name = name if name is not None else p["name"]
            price = price if price is not None else p["price"]
        cart.append(CartLine(
            product_id=it.product_id,
            name=name,
            unit_price=money(price),
            quantity=it.quantity,
            payment_method=it.payment_method,
        ))
    return cart


@router.post("")
def process_sale(payload: SaleIn, operator_id: str = Depends(_check_rate), ctx: AppContext = Depends(get_ctx)):
    cart = _to_cart(payload, ProductCatalog(ctx))
    outcome = RegisterManager(ctx).process_sale(cart, operator_id, client_ref=payload.client_ref)
    if not outcome.replay:
        ctx.sale_limiter.hit(operator_id)
    out = {
        "sale": sale_to_dict(outcome.sale),
        "tickets": [t.to_dict() for t in outcome.tickets],
        "queued": outcome.queued,
    }
    if outcome.replay:
        out["replay"] = True
    return out


def _load_sale(db: Session, sale_id: int):
    sale = SqlStore(db).get_sale(sale_id)
    if sale is None:
        raise NotFoundError(f"Venta {sale_id} no existe", sale_id=sale_id)
    return sale


@router.get("/{sale_id}")
def get_sale(sale_id: int, db: Session = Depends(get_db)):
    return sale_to_dict(_load_sale(db, sale_id))


@router.get("/{sale_id}/tickets")
def get_tickets(
    sale_id: int,
    format: str = Query(default="json", pattern="^(json|text)$"),
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_ctx),
):
    s = ctx.settings
    tickets = build_tickets(_load_sale(db, sale_id), tz=s.timezone)
    if format == "text":
        return PlainTextResponse(render_tickets_text(tickets, s.ticket_width, s.store_name, s.currency_symbol))
    return {"sale_id": sale_id, "count": len(tickets), "tickets": [t.to_dict() for t in tickets]}
