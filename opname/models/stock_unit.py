"""Stock unit model (read side of the inventory unit store)."""

from sqlalchemy import Column, Integer, Numeric, String

from opname.database import Base
from opname.models.mixins import TimestampMixin


class StockUnit(Base, TimestampMixin):
    """A single serialized unit in inventory, identified by its IMEI."""

    __tablename__ = "stock_units"

    id = Column(Integer, primary_key=True, index=True)
    imei = Column(String(32), unique=True, nullable=False, index=True)
    product_label = Column(String(255), nullable=True)  # "iPhone 13 128GB - Midnight (resmi)"
    selling_price = Column(Numeric(14, 2), nullable=True)
    cost_price = Column(Numeric(14, 2), nullable=True)
    stock_status = Column(String(20), nullable=False, default="available", index=True)
