from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, String

from ..db import Base


def _utcnow():
    return datetime.now(timezone.utc)


class Operator(Base):
    """Usuario del POS (vendedor o administrador)."""

    __tablename__ = "operator"
    id = Column(String(64), primary_key=True)  # uid externo
    email = Column(String(120), unique=True, nullable=False, index=True)
    display_name = Column(String(120), nullable=True)
    role = Column(String(20), nullable=False, default="employee")  # admin | employee
    shortcuts = Column(JSON, nullable=False, default=list)  # [{"key": "a", "productId": 1}]
    created_at = Column(DateTime(timezone=True), default=_utcnow)

    @property
    def seller_name(self) -> str:
        return self.display_name or self.email or "Vendedor"
