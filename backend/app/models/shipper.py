"""
Shipper database model.
"""

from sqlalchemy import Column, String, DateTime
from backend.app.db.session import Base


class Shipper(Base):
    """Shipper model. The dashboard only counts these."""
    __tablename__ = "shippers"

    id = Column(String(64), primary_key=True)
    name = Column(String(120), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Shipper(id={self.id}, name='{self.name}')>"
