"""Colaborador de persistencia: lecturas y escrituras de caja, ventas y productos.

Un `SqlStore` envuelve una sesión SQLAlchemy; las escrituras se acumulan
hasta `commit()`, así la venta y la actualización de caja se confirman
juntas o no se confirma ninguna.
"""
import logging
from contextlib import contextmanager
from datetime import timezone
from typing import Iterator, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.errors import ConsistencyError, PersistenceError
from app.models.operator import Operator
from app.models.product import Product
from app.models.register import CashMovement, RegisterSession
from app.models.sale import Sale, SaleLine
from app.services.sale_builder import CASH, TRANSFER, SaleDraft

logger = logging.getLogger(__name__)


class SqlStore:
    def __init__(self, db: Session):
        self.db = db

    # ---------- caja ----------
    def get_session(self, operator_id: str, business_day: str) -> Optional[RegisterSession]:
        try:
            return self.db.execute(
                select(RegisterSession).where(
                    RegisterSession.operator_id == operator_id,
                    RegisterSession.business_day == business_day,
                )
            ).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError("No se pudo leer la caja") from exc

    def put_session(self, session: RegisterSession) -> RegisterSession:
        self.db.add(session)
        return session

    def add_movement(self, session: RegisterSession, kind: str, amount, description: str = "") -> CashMovement:
        mv = CashMovement(
            session_id=session.id,
            kind=kind,
            amount=amount,
            description=description,
            operator_id=session.operator_id,
        )
        self.db.add(mv)
        return mv

    def list_movements(self, session_id: int) -> List[CashMovement]:
        return list(self.db.execute(
            select(CashMovement).where(CashMovement.session_id == session_id).order_by(CashMovement.id)
        ).scalars())

    # ---------- ventas ----------
    def put_sale_record(self, draft: SaleDraft) -> Sale:
        sale = Sale(
            operator_id=draft.operator_id,
            seller_name=draft.seller_name or None,
            business_day=draft.business_day,
            created_at=draft.created_at.astimezone(timezone.utc),
            total=draft.totals.total,
            cash_total=draft.totals.by_method.get(CASH),
            transfer_total=draft.totals.by_method.get(TRANSFER),
            paid_items=draft.promotion.paid_items,
            free_items=draft.promotion.free_items,
            total_tickets=draft.promotion.total_tickets,
            client_ref=draft.client_ref,
        )
        for pos, line in enumerate(draft.lines):
            sale.lines.append(SaleLine(
                position=pos,
                product_id=line.product_id,
                name=line.name,
                unit_price=line.unit_price,
                quantity=line.quantity,
                payment_method=line.payment_method,
                line_total=line.line_total,
            ))
        self.db.add(sale)
        return sale

    def get_sale(self, sale_id: int) -> Optional[Sale]:
        return self.db.get(Sale, sale_id)

    def get_sale_by_ref(self, client_ref: Optional[str]) -> Optional[Sale]:
        if not client_ref:
            return None
        return self.db.execute(select(Sale).where(Sale.client_ref == client_ref)).scalar_one_or_none()

    def list_sales(
        self,
        start_day: Optional[str] = None,
        end_day: Optional[str] = None,
        operator_id: Optional[str] = None,
    ) -> List[Sale]:
        q = select(Sale)
        if start_day:
            q = q.where(Sale.business_day >= start_day)
        if end_day:
            q = q.where(Sale.business_day <= end_day)
        if operator_id:
            q = q.where(Sale.operator_id == operator_id)
        return list(self.db.execute(q.order_by(Sale.created_at, Sale.id)).scalars())

    # ---------- productos (sólo lectura para la caja) ----------
    def get_products(self) -> List[Product]:
        return list(self.db.execute(select(Product).order_by(Product.name, Product.id)).scalars())

    def get_product(self, product_id: int) -> Optional[Product]:
        return self.db.get(Product, product_id)

    def get_operator(self, operator_id: str) -> Optional[Operator]:
        return self.db.get(Operator, operator_id)

    # ---------- transacción ----------
    @contextmanager
    def _guard(self):
        try:
            yield
        except StaleDataError as exc:
            self.db.rollback()
            raise ConsistencyError("La caja cambió durante la escritura") from exc
        except IntegrityError as exc:
            self.db.rollback()
            raise ConsistencyError("Conflicto de unicidad al escribir") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("write failed: %s", exc)
            raise PersistenceError("No se pudo guardar") from exc

    def flush(self) -> None:
        with self._guard():
            self.db.flush()

    def commit(self) -> None:
        with self._guard():
            self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()


@contextmanager
def store_scope(session_factory) -> Iterator[SqlStore]:
    db = session_factory()
    try:
        yield SqlStore(db)
    finally:
        db.close()


def with_consistency_retry(fn, attempts: int = 3):
    """Ejecuta `fn()` reintentando ante ConsistencyError (lectura fresca en cada intento)."""
    last = None
    for attempt in range(1, max(1, attempts) + 1):
        try:
            return fn()
        except ConsistencyError as exc:
            last = exc
            logger.warning("consistency conflict attempt=%s/%s: %s", attempt, attempts, exc.message)
    raise PersistenceError("Conflicto de escritura persistente en la caja") from last
