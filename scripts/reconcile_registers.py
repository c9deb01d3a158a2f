"""
Cuadra las cajas de un día: recalcula totales desde las ventas y los compara
con lo registrado en register_session.
Uso: python scripts/reconcile_registers.py <YYYY-MM-DD> [OPERATOR_ID ...]
"""
import sys

from sqlalchemy import select

from app.context import build_context
from app.core.config import settings
from app.models.register import RegisterSession
from app.services.business_day import parse_day_key
from app.services.register import RegisterManager


def main():
    if len(sys.argv) < 2:
        raise SystemExit("Usage: reconcile_registers.py <YYYY-MM-DD> [OPERATOR_ID ...]")
    day = sys.argv[1]
    parse_day_key(day)
    ctx = build_context(settings)
    try:
        operators = sys.argv[2:]
        if not operators:
            with ctx.session_factory() as s:
                operators = list(s.execute(
                    select(RegisterSession.operator_id).where(RegisterSession.business_day == day)
                ).scalars())
        manager = RegisterManager(ctx)
        bad = 0
        for op in operators:
            rep = manager.reconcile(op, day)
            status = "OK" if rep["ok"] else "DESCUADRE"
            if not rep["ok"]:
                bad += 1
            print(f"{status} -> operator={op} day={day} sales={rep['sales_count']} "
                  f"expected={ {k: str(v) for k, v in rep['expected'].items()} } diff={ {k: str(v) for k, v in rep['diff'].items()} }")
        if bad:
            raise SystemExit(1)
    finally:
        ctx.dispose()


if __name__ == "__main__":
    main()
