from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Base para modelos (lo importa app.main)
Base = declarative_base()


def make_engine(url: str):
    """Engine con timeout alto (contención ligera) y PRAGMAs de SQLite."""
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    kwargs = {"connect_args": {"check_same_thread": False, "timeout": 60}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        # una sola conexión compartida: la base en memoria vive mientras viva el engine
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)

    # PRAGMAs por conexión
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _):
        cur = dbapi_conn.cursor()
        try:
            cur.execute("PRAGMA journal_mode=WAL;")
            cur.execute("PRAGMA busy_timeout=60000;")
            cur.execute("PRAGMA foreign_keys=ON;")
            cur.execute("PRAGMA synchronous=NORMAL;")
        finally:
            cur.close()

    return engine


def make_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def create_tables(engine):
    # IMPORTA MODELOS antes de create_all
    from .models import operator as _operator_models  # noqa: F401
    from .models import product as _product_models  # noqa: F401
    from .models import register as _register_models  # noqa: F401
    from .models import sale as _sale_models  # noqa: F401

    Base.metadata.create_all(bind=engine)
