"""
Driver Location database model.

Stores the GPS breadcrumb trail used to build playback paths.
"""

from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime
from sqlalchemy.sql import func
from backend.app.db.session import Base


class DriverLocation(Base):
    """
    Driver Location model.

    Records GPS coordinates reported by a driver.
    Ordered by recorded_at, a driver's rows form a replayable path.
    """
    __tablename__ = "driver_locations"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    driver_id = Column(String(64), ForeignKey('drivers.id'), nullable=False, index=True)

    # GPS coordinates
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    # Timing
    recorded_at = Column(DateTime(timezone=True), nullable=False)  # When GPS was recorded
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)  # When inserted to DB

    def __repr__(self):
        return f"<DriverLocation(driver_id={self.driver_id}, lat={self.latitude}, lng={self.longitude})>"
