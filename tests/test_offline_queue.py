from datetime import timedelta
from decimal import Decimal

import pytest

from app.core.errors import PersistenceError
from app.models.operator import Operator
from app.services.catalog import ProductCatalog
from app.services.offline_queue import OfflineQueue
from app.services.register import RegisterManager
from app.services.sale_builder import CartLine, draft_sale
from app.services.store import store_scope

from conftest import DAY, FIXED_NOW, broken_session_factory


def _cart(qty=2):
    return [CartLine(1, "Entrada General", Decimal("5.00"), qty, "cash")]


def _db_down(*_a, **_k):
    raise PersistenceError("Base de datos no disponible")


def test_sale_is_queued_when_db_down(ctx, monkeypatch):
    mgr = RegisterManager(ctx)
    mgr.open_register("op-1")
    monkeypatch.setattr(mgr, "commit_sale", _db_down)

    out = mgr.process_sale(_cart(10), "op-1")
    assert out.queued
    assert out.sale.client_ref.startswith("offline-")
    assert len(out.tickets) == 11
    assert ctx.offline_queue.status()["pending"] == 1
    # la caja no se tocó
    assert mgr.get_current_session("op-1").total_sales == Decimal("0.00")


def test_flush_applies_queued_sales(ctx, monkeypatch):
    mgr = RegisterManager(ctx)
    mgr.open_register("op-1")
    monkeypatch.setattr(mgr, "commit_sale", _db_down)
    mgr.process_sale(_cart(2), "op-1", client_ref="r-1")
    mgr.process_sale(_cart(1), "op-1", client_ref="r-2")
    monkeypatch.undo()

    res = mgr.flush_offline()
    assert res.applied == ["r-1", "r-2"]
    assert res.remaining == 0 and not res.rejected
    assert mgr.get_current_session("op-1").total_sales == Decimal("15.00")

    # un segundo flush no duplica
    assert mgr.flush_offline().applied == []


def test_flush_rejects_when_register_closed_meanwhile(ctx, monkeypatch):
    mgr = RegisterManager(ctx)
    mgr.open_register("op-1")
    monkeypatch.setattr(mgr, "commit_sale", _db_down)
    mgr.process_sale(_cart(2), "op-1", client_ref="r-1")
    monkeypatch.undo()
    mgr.close_register("op-1")

    res = mgr.flush_offline()
    assert res.applied == []
    assert [r["client_ref"] for r in res.rejected] == ["r-1"]
    assert res.rejected[0]["reason"] == "REGISTER_CLOSED"
    s = mgr.get_current_session("op-1")
    assert not s.is_open and s.total_sales == Decimal("0.00")
    assert ctx.offline_queue.status()["rejected"] == 1
    assert ctx.offline_queue.clear_rejected() == 1


def test_flush_stops_while_db_still_down(ctx, monkeypatch):
    mgr = RegisterManager(ctx)
    mgr.open_register("op-1")
    monkeypatch.setattr(mgr, "commit_sale", _db_down)
    mgr.process_sale(_cart(1), "op-1", client_ref="r-1")
    mgr.process_sale(_cart(1), "op-1", client_ref="r-2")

    res = mgr.flush_offline()
    assert res.applied == [] and res.remaining == 2
    assert res.error


def test_queue_limits(tmp_path):
    now = [FIXED_NOW]
    q = OfflineQueue(str(tmp_path / "q.json"), max_ops=2, soft_ops=1, soft_hours=1, max_hours=2,
                     clock=lambda: now[0])
    draft, _ = draft_sale(_cart(), "op-1", FIXED_NOW)
    q.enqueue(draft)
    st = q.status()
    assert st["pending"] == 1 and st["soft_exceeded"] and not st["hard_exceeded"]

    q.enqueue(draft)
    with pytest.raises(PersistenceError):
        q.enqueue(draft)

    now[0] = FIXED_NOW + timedelta(hours=3)
    st = q.status()
    assert st["oldest_age_hours"] == 3.0 and st["hard_exceeded"]


def test_queue_survives_restart(tmp_path):
    path = str(tmp_path / "q.json")
    draft, _ = draft_sale(_cart(3), "op-1", FIXED_NOW, client_ref="keep-me")
    OfflineQueue(path).enqueue(draft)

    item = OfflineQueue(path).pending()[0]
    assert item["client_ref"] == "keep-me"
    assert item["business_day"] == DAY
    assert item["lines"][0]["unit_price"] == "5.00"


def test_sale_is_queued_when_engine_fails(ctx, tmp_path):
    with store_scope(ctx.session_factory) as store:
        store.db.add(Operator(id="op-1", email="ana@tienda.pe", display_name="Ana"))
        store.commit()
    mgr = RegisterManager(ctx)
    mgr.open_register("op-1")
    mgr.process_sale(_cart(1), "op-1")

    healthy = ctx.session_factory
    ctx.session_factory = broken_session_factory(tmp_path)
    out = mgr.process_sale(_cart(10), "op-1", client_ref="down-1")
    assert out.queued and out.sale.client_ref == "down-1"
    assert len(out.tickets) == 11
    # el nombre sale del último acceso con base
    assert {t.seller for t in out.tickets} == {"Ana"}

    res = mgr.flush_offline()
    assert res.applied == [] and res.remaining == 1

    ctx.session_factory = healthy
    res = mgr.flush_offline()
    assert res.applied == ["down-1"]
    assert mgr.get_current_session("op-1").total_sales == Decimal("55.00")


def test_catalog_serves_last_copy_when_engine_fails(ctx, tmp_path):
    catalog = ProductCatalog(ctx)
    p = catalog.create("Entrada General", "5.00")
    # copia vencida, no borrada
    ctx.products_cache.ttl = 0
    catalog.refresh()

    ctx.session_factory = broken_session_factory(tmp_path)
    assert catalog.get_product(p["id"])["price"] == 5.0
    # una recarga fallida no pierde la copia
    catalog.refresh()
    assert [x["id"] for x in catalog.list_products()] == [p["id"]]


def test_catalog_without_any_copy_fails(ctx, tmp_path):
    ctx.products_cache.invalidate()
    ctx.session_factory = broken_session_factory(tmp_path)
    with pytest.raises(PersistenceError):
        ProductCatalog(ctx).list_products()
