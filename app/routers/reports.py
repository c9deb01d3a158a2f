from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ..context import AppContext, get_ctx, get_db
from ..services import reports
from ..services.business_day import resolve_business_day

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/daily")
def daily(
    day: Optional[str] = Query(default=None, description="YYYY-MM-DD; por defecto hoy (hora de Perú)"),
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_ctx),
):
    return reports.daily_summary(db, day or resolve_business_day(ctx.clock(), ctx.settings.timezone))


@router.get("/range")
def by_range(
    start: str = Query(..., description="YYYY-MM-DD"),
    end: str = Query(..., description="YYYY-MM-DD"),
    seller: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
):
    """
    Ventas en [start, end] (inclusive, por día de negocio) agrupadas por vendedor y método.
    """
    return reports.range_report(db, start, end, seller)


@router.get("/export.csv")
def export_csv(
    start: str = Query(..., description="YYYY-MM-DD"),
    end: str = Query(..., description="YYYY-MM-DD"),
    seller: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    ctx: AppContext = Depends(get_ctx),
):
    return Response(
        content=reports.export_csv(db, start, end, seller, ctx.settings.timezone),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="ventas_{start}_{end}.csv"'},
    )
