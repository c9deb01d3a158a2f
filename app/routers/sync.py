from fastapi import APIRouter, Depends

from ..context import AppContext, get_ctx
from ..core.errors import PersistenceError
from ..services.register import RegisterManager

router = APIRouter(prefix="/sync", tags=["sync"])


def _queue(ctx: AppContext):
    if ctx.offline_queue is None:
        raise PersistenceError("Cola offline no configurada")
    return ctx.offline_queue


@router.get("/status", summary="Estado y límites de la cola offline")
def sync_status(ctx: AppContext = Depends(get_ctx)):
    return _queue(ctx).status()


@router.get("/rejected")
def sync_rejected(ctx: AppContext = Depends(get_ctx)):
    items = _queue(ctx).rejected()
    return {"count": len(items), "items": items}


@router.post("/flush", summary="Aplica las ventas pendientes")
def sync_flush(ctx: AppContext = Depends(get_ctx)):
    _queue(ctx)
    res = RegisterManager(ctx).flush_offline()
    return {
        "applied": res.applied,
        "rejected": res.rejected,
        "remaining": res.remaining,
        "error": res.error,
    }
