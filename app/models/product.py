from sqlalchemy import Column, Integer, Numeric, String

from ..db import Base


class Product(Base):
    __tablename__ = "product"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    image = Column(String(255), nullable=True)  # url o placeholder
