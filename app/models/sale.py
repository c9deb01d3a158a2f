from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from ..db import Base


def _utcnow():
    return datetime.now(timezone.utc)


class Sale(Base):
    """Venta cerrada. No se modifica después de escrita."""

    __tablename__ = "sale"
    id = Column(Integer, primary_key=True)
    operator_id = Column(String(64), nullable=False, index=True)
    seller_name = Column(String(120), nullable=True)
    business_day = Column(String(10), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    total = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    cash_total = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    transfer_total = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    # Promoción 10+1
    paid_items = Column(Integer, nullable=False, default=0)
    free_items = Column(Integer, nullable=False, default=0)
    total_tickets = Column(Integer, nullable=False, default=0)

    client_ref = Column(String(80), unique=True, nullable=True, index=True)

    lines = relationship(
        "SaleLine",
        back_populates="sale",
        order_by="SaleLine.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class SaleLine(Base):
    __tablename__ = "sale_line"
    id = Column(Integer, primary_key=True)
    sale_id = Column(Integer, ForeignKey("sale.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    product_id = Column(Integer, nullable=True)
    name = Column(String(120), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    payment_method = Column(String(10), nullable=False)  # cash | transfer
    line_total = Column(Numeric(12, 2), nullable=False)

    sale = relationship("Sale", back_populates="lines")
