# wakeme/Models/trip.py
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Float, Integer, DateTime, ForeignKey, CheckConstraint, Index
)
from sqlalchemy.orm import declared_attr, relationship
from wakeme.DB.base_class import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Trip(Base):
    """
    SQLAlchemy model for a trip alarm record.

    Responsibilities:
    - Stores the destination geofence (coordinate + wake radius)
    - Tracks lifecycle timestamps (created, started, ended)
    - Owns the ordered location history through TripPoint rows

    Lifecycle:
    - created_at: set on creation
    - started_at: set by the first appended location point
    - ended_at: set once by the end-trip operation
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "trips"

    # ========================================
    # PRIMARY KEY
    # ========================================
    id = Column(
        String(100),
        primary_key=True,
        doc="Unique trip identifier (hex UUID)"
    )

    title = Column(String(200), nullable=False)

    # ========================================
    # START LOCATION (optional)
    # ========================================
    start_lat = Column(Float, nullable=True)
    start_lng = Column(Float, nullable=True)

    # ========================================
    # DESTINATION GEOFENCE
    # ========================================
    dest_lat = Column(Float, nullable=False)
    dest_lng = Column(Float, nullable=False)
    dest_place_name = Column(String(300), nullable=True)

    radius_meters = Column(
        Float,
        nullable=False,
        doc="Wake radius around the destination in meters"
    )

    eta_offset_minutes = Column(
        Integer,
        nullable=False,
        default=0,
        doc="Stored label only; never evaluated by the monitor"
    )

    # ========================================
    # LIFECYCLE TIMESTAMPS
    # ========================================
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    started_at = Column(DateTime(timezone=True), nullable=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    location_points = relationship(
        "TripPoint",
        back_populates="trip",
        order_by="TripPoint.id",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index('idx_trips_created_at', 'created_at'),
        CheckConstraint("radius_meters > 0", name='check_radius_positive'),
        CheckConstraint(
            "dest_lat >= -90 AND dest_lat <= 90",
            name='check_dest_lat_range'
        ),
        CheckConstraint(
            "dest_lng >= -180 AND dest_lng <= 180",
            name='check_dest_lng_range'
        ),
    )

    # Nested views consumed by the pydantic response schemas
    @property
    def start(self):
        if self.start_lat is None or self.start_lng is None:
            return None
        return {"lat": self.start_lat, "lng": self.start_lng}

    @property
    def destination(self):
        return {
            "lat": self.dest_lat,
            "lng": self.dest_lng,
            "place_name": self.dest_place_name,
        }

    def __repr__(self) -> str:
        return (
            f"<Trip(id={self.id!r}, title={self.title!r}, "
            f"radius={self.radius_meters!r}, ended={self.ended_at is not None})>"
        )


class TripPoint(Base):
    """
    A location point appended to a trip's history.

    The monitor only ever appends; points are read back by the history API.
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return "trip_points"

    id = Column(Integer, primary_key=True, autoincrement=True)

    trip_id = Column(
        String(100),
        ForeignKey('trips.id', ondelete='CASCADE'),
        nullable=False,
        index=True
    )

    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    ts = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    trip = relationship("Trip", back_populates="location_points")

    __table_args__ = (
        CheckConstraint("lat >= -90 AND lat <= 90", name='check_point_lat_range'),
        CheckConstraint("lng >= -180 AND lng <= 180", name='check_point_lng_range'),
    )

    def __repr__(self) -> str:
        return f"<TripPoint(trip_id={self.trip_id!r}, lat={self.lat!r}, lng={self.lng!r})>"
