import csv
import io
from collections import OrderedDict
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import ValidationError
from app.models.operator import Operator
from app.models.register import RegisterSession
from app.services.business_day import parse_day_key, to_local
from app.services.sale_builder import ZERO, money
from app.services.store import SqlStore


def _f(v) -> float:
    return float(money(v or ZERO))


def _check_range(start: str, end: str) -> None:
    if parse_day_key(start) > parse_day_key(end):
        raise ValidationError("start debe ser <= end")


def _names(db: Session) -> Dict[str, str]:
    return {o.id: o.seller_name for o in db.execute(select(Operator)).scalars()}


def daily_summary(db: Session, day: str) -> Dict:
    parse_day_key(day)
    sales = SqlStore(db).list_sales(day, day)
    registers = db.execute(
        select(RegisterSession).where(RegisterSession.business_day == day).order_by(RegisterSession.operator_id)
    ).scalars().all()
    total = sum((Decimal(s.total) for s in sales), ZERO)
    cash = sum((Decimal(s.cash_total) for s in sales), ZERO)
    transfer = sum((Decimal(s.transfer_total) for s in sales), ZERO)
    return {
        "business_day": day,
        "sales_count": len(sales),
        "total": _f(total),
        "cash": _f(cash),
        "transfer": _f(transfer),
        "avg_ticket": _f(total / len(sales)) if sales else 0.0,
        "paid_items": sum(s.paid_items for s in sales),
        "free_items": sum(s.free_items for s in sales),
        "registers": [
            {
                "operator_id": r.operator_id,
                "is_open": r.is_open,
                "current_amount": _f(r.current_amount),
                "total_sales": _f(r.total_sales),
                "cash_sales": _f(r.cash_sales),
                "transfer_sales": _f(r.transfer_sales),
            }
            for r in registers
        ],
    }


def range_report(db: Session, start: str, end: str, seller: Optional[str] = None) -> Dict:
    """Resumen por vendedor, por método de pago y por día en [start, end]."""
    _check_range(start, end)
    sales = SqlStore(db).list_sales(start, end, seller)
    names = _names(db)

    by_seller: Dict[str, Dict] = OrderedDict()
    daily: Dict[str, Decimal] = OrderedDict()
    cash = transfer = ZERO
    for s in sales:
        st = by_seller.setdefault(s.operator_id, {
            "operator_id": s.operator_id,
            "name": names.get(s.operator_id) or s.seller_name or s.operator_id,
            "sales_count": 0, "total": ZERO, "cash": ZERO, "transfer": ZERO,
        })
        st["sales_count"] += 1
        st["total"] += Decimal(s.total)
        st["cash"] += Decimal(s.cash_total)
        st["transfer"] += Decimal(s.transfer_total)
        cash += Decimal(s.cash_total)
        transfer += Decimal(s.transfer_total)
        daily[s.business_day] = daily.get(s.business_day, ZERO) + Decimal(s.total)

    sellers = [
        dict(st, total=_f(st["total"]), cash=_f(st["cash"]), transfer=_f(st["transfer"]))
        for st in by_seller.values()
    ]
    return {
        "range": {"start": start, "end": end, "seller": seller},
        "sales_count": len(sales),
        "total": _f(cash + transfer),
        "by_method": {"cash": _f(cash), "transfer": _f(transfer)},
        "by_seller": sellers,
        "daily": [{"business_day": d, "total": _f(v)} for d, v in sorted(daily.items())],
    }


CSV_HEADER = ["sale_id", "business_day", "created_at", "operator_id", "seller",
              "total", "cash", "transfer", "paid_items", "free_items", "total_tickets"]


def export_csv(db: Session, start: str, end: str, seller: Optional[str] = None, tz: Optional[str] = None) -> str:
    _check_range(start, end)
    buf = io.StringIO()
    w = csv.writer(buf)
    w.writerow(CSV_HEADER)
    for s in SqlStore(db).list_sales(start, end, seller):
        w.writerow([
            s.id,
            s.business_day,
            to_local(s.created_at, tz).isoformat(timespec="seconds"),
            s.operator_id,
            s.seller_name or "",
            f"{money(s.total):.2f}",
            f"{money(s.cash_total):.2f}",
            f"{money(s.transfer_total):.2f}",
            s.paid_items,
            s.free_items,
            s.total_tickets,
        ])
    return buf.getvalue()
