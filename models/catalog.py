from core.database import Base
from sqlalchemy import (Column, Integer, String, Numeric, DateTime)
from .mixins import CreatedAtMixin, UpdatedAtMixin


class Service(Base, CreatedAtMixin, UpdatedAtMixin):
    """Catalog entry, synced from the provider out of band."""
    __tablename__ = "services"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    name = Column(String, unique=True, nullable=False, index=True)
    price = Column(Numeric(10, 2), nullable=False)
    available = Column(String)
    ltr_available = Column(String)
    ltr_price = Column(Numeric(10, 2))
    ltr_short_price = Column(Numeric(10, 2))
    recommended_markup = Column(Numeric(5, 2))
    last_updated = Column(DateTime(timezone=True))

    def to_dict(self):
        return {
            "name": self.name,
            "price": float(self.price),
            "ltr_short_price": float(self.ltr_short_price) if self.ltr_short_price is not None else None,
            "ltr_price": float(self.ltr_price) if self.ltr_price is not None else None,
            "available": self.available,
        }
