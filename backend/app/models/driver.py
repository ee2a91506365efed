"""
Driver database model.

Current driver state as stored upstream (position, assignment, ETA).
"""

from sqlalchemy import Column, String, Float, DateTime
from backend.app.db.session import Base


class Driver(Base):
    """
    Driver model.

    Updated externally at arbitrary cadence; the dashboard observes it.
    The demo simulation may write positions back when write-through is on.
    """
    __tablename__ = "drivers"

    id = Column(String(64), primary_key=True)
    name = Column(String(120), nullable=True)
    status = Column(String(32), index=True, nullable=True)

    # Current GPS position
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Assignment
    current_load_id = Column(String(64), nullable=True)
    pickup_lat = Column(Float, nullable=True)
    pickup_lng = Column(Float, nullable=True)
    dropoff_lat = Column(Float, nullable=True)
    dropoff_lng = Column(Float, nullable=True)
    eta = Column(String(64), nullable=True)
    distance_remaining = Column(Float, nullable=True)  # Miles

    last_update = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Driver(id={self.id}, name='{self.name}', lat={self.latitude}, lng={self.longitude})>"
