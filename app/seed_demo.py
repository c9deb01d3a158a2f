from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from .core.config import settings
from .db import create_tables, make_engine, make_session_factory
from .models.operator import Operator
from .models.product import Product

DEMO_PRODUCTS = [
    ("Entrada General", Decimal("5.00")),
    ("Entrada Niños", Decimal("3.00")),
    ("Juego Mecánico", Decimal("4.00")),
    ("Algodón de Azúcar", Decimal("2.50")),
    ("Gaseosa", Decimal("2.00")),
]

DEMO_USERS = [
    ("admin-1", "admin@pos.local", "Administrador", "admin"),
    ("vend-1", "vendedor@pos.local", "Vendedor 1", "employee"),
]


def get_or_create(session: Session, model, defaults=None, **kwargs):
    inst = session.execute(select(model).filter_by(**kwargs)).scalars().first()
    if inst:
        return inst, False
    params = dict(kwargs)
    if defaults:
        params.update(defaults)
    inst = model(**params)
    session.add(inst)
    session.commit()
    return inst, True


def main():
    engine = make_engine(settings.database_url)
    create_tables(engine)
    db: Session = make_session_factory(engine)()
    try:
        for name, price in DEMO_PRODUCTS:
            get_or_create(db, Product, defaults={"price": price}, name=name)
        for uid, email, display_name, role in DEMO_USERS:
            get_or_create(db, Operator, defaults={"id": uid, "display_name": display_name, "role": role,
                                                  "shortcuts": []}, email=email)
        print(f"Seed OK | products={len(DEMO_PRODUCTS)} users={len(DEMO_USERS)} db={settings.database_url}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
