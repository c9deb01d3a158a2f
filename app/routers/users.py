import uuid

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..context import AppContext, get_ctx, get_db
from ..core.errors import NotFoundError, ValidationError
from ..core.schemas import UserIn, UserUpdate
from ..models.operator import Operator
from ..services.business_day import as_aware
from ..services.store import SqlStore

router = APIRouter(prefix="/users", tags=["users"])


def _user_to_dict(u: Operator):
    return {
        "id": u.id,
        "email": u.email,
        "display_name": u.display_name,
        "role": u.role,
        "shortcuts": list(u.shortcuts or []),
        "created_at": as_aware(u.created_at).isoformat() if u.created_at else None,
    }


def _get(db: Session, user_id: str) -> Operator:
    u = db.get(Operator, user_id)
    if u is None:
        raise NotFoundError(f"Usuario {user_id} no existe", user_id=user_id)
    return u


@router.get("")
def list_users(db: Session = Depends(get_db)):
    users = db.execute(select(Operator).order_by(Operator.email)).scalars().all()
    return {"count": len(users), "items": [_user_to_dict(u) for u in users]}


@router.get("/{user_id}")
def get_user(user_id: str, db: Session = Depends(get_db)):
    return _user_to_dict(_get(db, user_id))


@router.post("", status_code=201)
def create_user(payload: UserIn, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    if db.execute(select(Operator).where(Operator.email == email)).scalar_one_or_none():
        raise ValidationError("El email ya está en uso", email=email)
    if payload.id and db.get(Operator, payload.id) is not None:
        raise ValidationError("El id ya existe", user_id=payload.id)
    u = Operator(
        id=payload.id or uuid.uuid4().hex,
        email=email,
        display_name=payload.display_name or "",
        role=payload.role,
        shortcuts=[s.model_dump(by_alias=True) for s in payload.shortcuts],
    )
    db.add(u)
    SqlStore(db).commit()
    return _user_to_dict(u)


@router.put("/{user_id}")
def update_user(user_id: str, payload: UserUpdate, db: Session = Depends(get_db),
                ctx: AppContext = Depends(get_ctx)):
    u = _get(db, user_id)
    if payload.display_name is not None:
        u.display_name = payload.display_name
    if payload.role is not None:
        u.role = payload.role
    if payload.shortcuts is not None:
        u.shortcuts = [s.model_dump(by_alias=True) for s in payload.shortcuts]
    SqlStore(db).commit()
    ctx.sellers_cache.invalidate(user_id)
    return _user_to_dict(u)


@router.delete("/{user_id}")
def delete_user(user_id: str, db: Session = Depends(get_db), ctx: AppContext = Depends(get_ctx)):
    db.delete(_get(db, user_id))
    SqlStore(db).commit()
    ctx.sellers_cache.invalidate(user_id)
    return {"deleted": True, "id": user_id}
