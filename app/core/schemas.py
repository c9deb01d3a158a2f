from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from app.services.business_day import as_aware
from app.services.sale_builder import CASH, SaleDraft, money


class SaleLineIn(BaseModel):
    product_id: Optional[int] = None
    # snapshot tomado al agregar al carrito; si falta se lee del catálogo
    name: Optional[str] = None
    unit_price: Optional[Decimal] = None
    quantity: int
    payment_method: str = CASH

    @field_validator("unit_price", mode="before")
    @classmethod
    def _money_to_decimal(cls, v):
        if v is None:
            return v
        return Decimal(str(v))


class SaleIn(BaseModel):
    lines: List[SaleLineIn] = Field(default_factory=list)
    client_ref: Optional[str] = Field(default=None, max_length=80)


class ProductIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    price: Decimal
    image: Optional[str] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=120)
    price: Optional[Decimal] = None
    image: Optional[str] = None


class Shortcut(BaseModel):
    key: str = Field(..., min_length=1, max_length=1)
    product_id: int = Field(..., alias="productId")

    model_config = {"populate_by_name": True}


class UserIn(BaseModel):
    id: Optional[str] = Field(default=None, max_length=64)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    display_name: Optional[str] = None
    role: Literal["admin", "employee"] = "employee"
    shortcuts: List[Shortcut] = Field(default_factory=list)


class UserUpdate(BaseModel):
    display_name: Optional[str] = None
    role: Optional[Literal["admin", "employee"]] = None
    shortcuts: Optional[List[Shortcut]] = None


def _iso(dt):
    return as_aware(dt).isoformat() if dt is not None else None


def session_to_dict(s) -> Dict[str, Any]:
    return {
        "id": s.id,
        "key": s.key,
        "operator_id": s.operator_id,
        "business_day": s.business_day,
        "is_open": s.is_open,
        "opened_at": _iso(s.opened_at),
        "closed_at": _iso(s.closed_at),
        "initial_amount": float(money(s.initial_amount)),
        "current_amount": float(money(s.current_amount)),
        "total_sales": float(money(s.total_sales)),
        "cash_sales": float(money(s.cash_sales)),
        "transfer_sales": float(money(s.transfer_sales)),
    }


def sale_to_dict(sale) -> Dict[str, Any]:
    """Serializa una venta guardada (Sale) o una en cola offline (SaleDraft)."""
    if isinstance(sale, SaleDraft):
        return {
            "sale_id": None,
            "client_ref": sale.client_ref,
            "operator_id": sale.operator_id,
            "seller": sale.seller_name or None,
            "business_day": sale.business_day,
            "created_at": _iso(sale.created_at),
            "total": float(sale.totals.total),
            "by_method": {m: float(v) for m, v in sale.totals.by_method.items()},
            "promotion": {
                "paid_items": sale.promotion.paid_items,
                "free_items": sale.promotion.free_items,
                "total_tickets": sale.promotion.total_tickets,
            },
            "lines": [
                {"product_id": l.product_id, "name": l.name, "unit_price": float(money(l.unit_price)),
                 "quantity": l.quantity, "payment_method": l.payment_method,
                 "line_total": float(l.line_total)}
                for l in sale.lines
            ],
        }
    return {
        "sale_id": sale.id,
        "client_ref": sale.client_ref,
        "operator_id": sale.operator_id,
        "seller": sale.seller_name,
        "business_day": sale.business_day,
        "created_at": _iso(sale.created_at),
        "total": float(money(sale.total)),
        "by_method": {"cash": float(money(sale.cash_total)), "transfer": float(money(sale.transfer_total))},
        "promotion": {
            "paid_items": sale.paid_items,
            "free_items": sale.free_items,
            "total_tickets": sale.total_tickets,
        },
        "lines": [
            {"product_id": l.product_id, "name": l.name, "unit_price": float(money(l.unit_price)),
             "quantity": l.quantity, "payment_method": l.payment_method,
             "line_total": float(money(l.line_total))}
            for l in sale.lines
        ],
    }
