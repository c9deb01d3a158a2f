"""Caja por operador y día de negocio: apertura, ventas y cierre.

Estados por (operator_id, business_day): sin caja -> abierta -> cerrada.
Abrir dos veces el mismo día devuelve la caja existente; cerrar una caja
cerrada también. Una venta sólo se aplica a una caja abierta y se escribe
en la misma transacción que la actualización de totales.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Optional, Sequence, Tuple, Union

from sqlalchemy.exc import SQLAlchemyError

from app.core.errors import PersistenceError, RegisterClosedError, ValidationError
from app.models.register import RegisterSession
from app.models.sale import Sale
from app.services.business_day import resolve_business_day
from app.services.sale_builder import (
    ZERO,
    CartLine,
    LedgerDelta,
    SaleDraft,
    build_sale_record,
    compute_totals,
    draft_sale,
    money,
)
from app.services.store import SqlStore, store_scope, with_consistency_retry
from app.services.tickets import Ticket, build_tickets

logger = logging.getLogger(__name__)


@dataclass
class SaleOutcome:
    sale: Union[Sale, SaleDraft]
    tickets: List[Ticket]
    queued: bool = False
    replay: bool = False


def apply_sale(session: RegisterSession, delta: LedgerDelta) -> RegisterSession:
    """Suma el delta a la caja (en memoria). Sólo el efectivo mueve `current_amount`."""
    if session is None or not session.is_open:
        raise RegisterClosedError()
    if min(delta.total_delta, delta.cash_delta, delta.transfer_delta) < 0:
        raise ValidationError("Delta de caja negativo")
    session.total_sales = money(Decimal(session.total_sales or 0) + delta.total_delta)
    session.cash_sales = money(Decimal(session.cash_sales or 0) + delta.cash_delta)
    session.transfer_sales = money(Decimal(session.transfer_sales or 0) + delta.transfer_delta)
    session.current_amount = money(Decimal(session.current_amount or 0) + delta.cash_delta)
    return session


class RegisterManager:
    def __init__(self, ctx):
        self.ctx = ctx

    def _now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self.ctx.clock()

    def _day(self, now: datetime) -> str:
        return resolve_business_day(now, self.ctx.settings.timezone)

    def _seller(self, operator_id: str) -> str:
        return self.ctx.sellers_cache.get_stale(operator_id) or ""

    def _tx(self, op: Callable[[SqlStore], object]):
        """Corre `op` en una sesión nueva; reintenta conflictos y traduce errores SQL."""

        def attempt():
            with store_scope(self.ctx.session_factory) as store:
                try:
                    return op(store)
                except SQLAlchemyError as exc:
                    store.rollback()
                    raise PersistenceError("Base de datos no disponible") from exc

        return with_consistency_retry(attempt, self.ctx.settings.consistency_retries)

    # ---------- OPEN ----------
    def open_register(self, operator_id: str, now: Optional[datetime] = None) -> RegisterSession:
        now = self._now(now)
        day = self._day(now)

        def op(store: SqlStore) -> Tuple[RegisterSession, bool]:
            existing = store.get_session(operator_id, day)
            if existing is not None:
                return existing, False
            session = RegisterSession(
                operator_id=operator_id,
                business_day=day,
                is_open=True,
                opened_at=now.astimezone(timezone.utc),
                closed_at=None,
                initial_amount=ZERO,
                current_amount=ZERO,
                total_sales=ZERO,
                cash_sales=ZERO,
                transfer_sales=ZERO,
            )
            store.put_session(session)
            store.flush()
            store.add_movement(session, "opening", ZERO, "Apertura de caja")
            store.commit()
            return session, True

        session, created = self._tx(op)
        if created:
            logger.info("register opened operator=%s day=%s", operator_id, day)
            self.ctx.feed.publish("register", "opened", key=session.key, operator_id=operator_id, business_day=day)
        else:
            logger.info("register open ignored operator=%s day=%s is_open=%s", operator_id, day, session.is_open)
        return session

    # ---------- CLOSE (idempotente) ----------
    def close_register(self, operator_id: str, now: Optional[datetime] = None) -> RegisterSession:
        now = self._now(now)
        day = self._day(now)

        def op(store: SqlStore) -> Tuple[RegisterSession, bool]:
            session = store.get_session(operator_id, day)
            if session is None:
                raise RegisterClosedError("No hay caja abierta hoy", business_day=day)
            if not session.is_open:
                return session, False
            session.is_open = False
            session.closed_at = now.astimezone(timezone.utc)
            store.put_session(session)
            store.add_movement(session, "closing", session.current_amount, "Cierre de caja")
            store.commit()
            return session, True

        session, closed = self._tx(op)
        if closed:
            logger.info("register closed operator=%s day=%s current=%s total=%s",
                        operator_id, day, session.current_amount, session.total_sales)
            self.ctx.feed.publish("register", "closed", key=session.key, operator_id=operator_id, business_day=day)
        return session

    def get_current_session(self, operator_id: str, now: Optional[datetime] = None) -> Optional[RegisterSession]:
        day = self._day(self._now(now))
        return self._tx(lambda store: store.get_session(operator_id, day))

    def get_session(self, operator_id: str, day: str) -> Optional[RegisterSession]:
        return self._tx(lambda store: store.get_session(operator_id, day))

    # ---------- VENTA ----------
    def _commit_sale(self, store: SqlStore, cart: Sequence[CartLine], operator_id: str,
                     now: datetime, client_ref: Optional[str]) -> Tuple[Sale, bool]:
        settings = self.ctx.settings
        dup = store.get_sale_by_ref(client_ref)
        if dup is not None:
            # un replay tiene que ser la misma venta, no sólo la misma referencia
            if dup.operator_id != operator_id or money(dup.total) != compute_totals(cart).total:
                raise ValidationError("client_ref ya usado por otra venta", client_ref=client_ref)
            return dup, True
        operator = store.get_operator(operator_id)
        seller = operator.seller_name if operator is not None else ""
        if seller:
            self.ctx.sellers_cache.set(operator_id, seller)
        session = store.get_session(operator_id, self._day(now))
        draft, delta = build_sale_record(cart, operator_id, now, session, seller, client_ref,
                                         settings.promo_threshold, settings.timezone)
        apply_sale(session, delta)
        sale = store.put_sale_record(draft)
        store.put_session(session)
        store.commit()
        return sale, False

    def commit_sale(self, cart: Sequence[CartLine], operator_id: str, now: datetime,
                    client_ref: Optional[str] = None) -> Tuple[Sale, bool]:
        sale, replay = self._tx(lambda store: self._commit_sale(store, cart, operator_id, now, client_ref))
        if not replay:
            logger.info("sale committed id=%s operator=%s day=%s total=%s tickets=%s",
                        sale.id, operator_id, sale.business_day, sale.total, sale.total_tickets)
            self.ctx.feed.publish("sales", "created", key=sale.id, operator_id=operator_id,
                                  business_day=sale.business_day, total=str(sale.total))
        return sale, replay

    def process_sale(self, cart: Sequence[CartLine], operator_id: str, now: Optional[datetime] = None,
                     client_ref: Optional[str] = None) -> SaleOutcome:
        settings = self.ctx.settings
        now = self._now(now)
        cart = list(cart)
        # validación pura antes de tocar la base
        draft, _ = draft_sale(cart, operator_id, now, self._seller(operator_id), client_ref,
                              settings.promo_threshold, settings.timezone)
        try:
            sale, replay = self.commit_sale(cart, operator_id, now, client_ref)
        except PersistenceError:
            queue = self.ctx.offline_queue
            if queue is None:
                raise
            draft = queue.enqueue(draft)
            return SaleOutcome(sale=draft, tickets=build_tickets(draft, tz=settings.timezone), queued=True)
        return SaleOutcome(sale=sale, tickets=build_tickets(sale, tz=settings.timezone), replay=replay)

    def flush_offline(self):
        queue = self.ctx.offline_queue
        if queue is None:
            raise PersistenceError("Cola offline no configurada")
        return queue.flush(lambda cart, operator_id, now, ref: self.commit_sale(cart, operator_id, now, ref))

    # ---------- CUADRE ----------
    def reconcile(self, operator_id: str, day: str) -> dict:
        """Recalcula la caja desde sus ventas y compara con lo registrado."""

        def op(store: SqlStore):
            session = store.get_session(operator_id, day)
            sales = store.list_sales(day, day, operator_id)
            return session, sales

        session, sales = self._tx(op)
        expected = {
            "total_sales": money(sum((Decimal(s.total) for s in sales), ZERO)),
            "cash_sales": money(sum((Decimal(s.cash_total) for s in sales), ZERO)),
            "transfer_sales": money(sum((Decimal(s.transfer_total) for s in sales), ZERO)),
        }
        if session is None:
            return {
                "operator_id": operator_id, "business_day": day, "session": False,
                "sales_count": len(sales), "expected": expected, "recorded": None,
                "ok": not sales, "diff": {},
            }
        expected["current_amount"] = money(Decimal(session.initial_amount) + expected["cash_sales"])
        recorded = {k: money(Decimal(getattr(session, k))) for k in expected}
        diff = {k: recorded[k] - expected[k] for k in expected if recorded[k] != expected[k]}
        if diff:
            logger.error("register mismatch operator=%s day=%s diff=%s", operator_id, day, diff)
        return {
            "operator_id": operator_id, "business_day": day, "session": True,
            "sales_count": len(sales), "expected": expected, "recorded": recorded,
            "ok": not diff, "diff": diff,
        }
