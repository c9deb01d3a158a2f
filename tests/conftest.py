import os

# base en memoria también para el `app` de módulo
os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from app.context import build_context
from app.core.config import Settings
from app.db import make_engine, make_session_factory
from app.main import create_app
from app.services.catalog import ProductCatalog

# 10:00 en Lima (UTC-5)
FIXED_NOW = datetime(2025, 3, 10, 15, 0, tzinfo=timezone.utc)
DAY = "2025-03-10"


def make_settings(tmp_path, **over):
    base = dict(
        database_url="sqlite://",
        offline_queue_path=str(tmp_path / "offline_sales.json"),
        sale_rate_max=1000,
        log_level="WARNING",
    )
    base.update(over)
    return Settings(**base)


def broken_session_factory(tmp_path):
    # el directorio no existe: cada conexión falla con OperationalError
    return make_session_factory(make_engine(f"sqlite:///{tmp_path / 'no-such-dir' / 'pos.db'}"))


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def ctx(settings):
    c = build_context(settings)
    ProductCatalog.install(c)
    c.clock = lambda: FIXED_NOW
    yield c
    c.dispose()


@pytest.fixture
def client(settings):
    app = create_app(settings)
    app.state.ctx.clock = lambda: FIXED_NOW
    with TestClient(app) as c:
        yield c


def headers(operator_id="op-1"):
    return {"X-Operator-Id": operator_id}
