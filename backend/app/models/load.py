"""
Load database model.

A shipment as stored upstream. The dashboard only reads this table.
"""

from sqlalchemy import Column, String, Float, DateTime
from backend.app.db.session import Base


class Load(Base):
    """
    Load model.

    Status is stored as free text: unrecognised values must survive so they
    can still be counted in totals.
    """
    __tablename__ = "loads"

    id = Column(String(64), primary_key=True)
    shipper_id = Column(String(64), index=True, nullable=True)
    assigned_driver_id = Column(String(64), index=True, nullable=True)

    origin_city = Column(String(120), nullable=True)
    destination_city = Column(String(120), nullable=True)
    status = Column(String(32), index=True, nullable=True)

    # Pricing
    rate = Column(Float, nullable=True)  # Flat rate
    rate_per_mile = Column(Float, nullable=True)
    distance = Column(Float, nullable=True)  # Miles
    mpg = Column(Float, nullable=True)  # Fuel-efficiency hint

    created_at = Column(DateTime(timezone=True), index=True, nullable=True)

    def __repr__(self):
        return f"<Load(id={self.id}, status={self.status}, {self.origin_city}->{self.destination_city})>"
