from fastapi import APIRouter, Depends

from ..context import AppContext, get_ctx, get_operator_id
from ..core.errors import NotFoundError
from ..core.schemas import session_to_dict
from ..services.business_day import parse_day_key
from ..services.register import RegisterManager

router = APIRouter(prefix="/register", tags=["register"])


# ---------- OPEN (idempotente por día) ----------
@router.post("/open")
def open_register(operator_id: str = Depends(get_operator_id), ctx: AppContext = Depends(get_ctx)):
    return session_to_dict(RegisterManager(ctx).open_register(operator_id))


# ---------- CLOSE (idempotente) ----------
@router.post("/close")
def close_register(operator_id: str = Depends(get_operator_id), ctx: AppContext = Depends(get_ctx)):
    return session_to_dict(RegisterManager(ctx).close_register(operator_id))


@router.get("/current")
def current_register(operator_id: str = Depends(get_operator_id), ctx: AppContext = Depends(get_ctx)):
    session = RegisterManager(ctx).get_current_session(operator_id)
    if session is None:
        raise NotFoundError("No hay caja para hoy")
    return session_to_dict(session)


@router.get("/{day}/reconcile")
def reconcile_register(day: str, operator_id: str = Depends(get_operator_id), ctx: AppContext = Depends(get_ctx)):
    parse_day_key(day)
    rep = RegisterManager(ctx).reconcile(operator_id, day)
    rep["expected"] = {k: float(v) for k, v in rep["expected"].items()}
    if rep["recorded"] is not None:
        rep["recorded"] = {k: float(v) for k, v in rep["recorded"].items()}
    rep["diff"] = {k: float(v) for k, v in rep["diff"].items()}
    return rep
