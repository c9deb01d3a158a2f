from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint

from ..db import Base


def _utcnow():
    return datetime.now(timezone.utc)


class RegisterSession(Base):
    """Caja de un operador para un día de negocio (una fila por día)."""

    __tablename__ = "register_session"
    id = Column(Integer, primary_key=True)
    operator_id = Column(String(64), nullable=False, index=True)
    business_day = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD (America/Lima)
    is_open = Column(Boolean, nullable=False, default=True)
    opened_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    initial_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    current_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total_sales = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    cash_sales = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    transfer_sales = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    # Bloqueo optimista: el UPDATE falla si otra escritura avanzó la versión
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (UniqueConstraint("operator_id", "business_day", name="uq_operator_day"),)
    __mapper_args__ = {"version_id_col": version}

    @property
    def key(self) -> str:
        return f"{self.operator_id}-{self.business_day}"


class CashMovement(Base):
    __tablename__ = "cash_movement"
    id = Column(Integer, primary_key=True)
    session_id = Column(Integer, ForeignKey("register_session.id"), nullable=False, index=True)
    kind = Column(String(10), nullable=False)  # opening | closing
    amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    description = Column(String(120), nullable=True)
    operator_id = Column(String(64), nullable=False)
    at = Column(DateTime(timezone=True), default=_utcnow)
