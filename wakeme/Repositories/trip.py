# wakeme/Repositories/trip.py
"""
Trip Repository - Database operations for trip records.

Responsibilities:
- CRUD operations for the trips table
- Append location points (marks the trip as started on the first point)
- End trips idempotently

Usage:
    from wakeme.Repositories.trip import create_trip, get_trip_by_id

    trip = create_trip(db, trip_data)
    same = get_trip_by_id(db, trip.id)
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from wakeme.Models.trip import Trip, TripPoint
from wakeme.Schemas.trip import Trip_create, Trip_update, LocationPoint_create


# ==========================================================
# CREATE OPERATIONS
# ==========================================================

def create_trip(DB: Session, trip_data: Trip_create) -> Trip:
    """
    Create a new trip record.

    Args:
        DB: SQLAlchemy session
        trip_data: Validated Trip_create payload

    Returns:
        Trip: Created ORM object with generated id and created_at
    """
    new_trip = Trip(
        id=uuid.uuid4().hex,
        title=trip_data.title,
        dest_lat=trip_data.destination.lat,
        dest_lng=trip_data.destination.lng,
        dest_place_name=trip_data.destination.place_name,
        radius_meters=trip_data.radius_meters,
        eta_offset_minutes=trip_data.eta_offset_minutes,
    )
    if trip_data.start is not None:
        new_trip.start_lat = trip_data.start.lat
        new_trip.start_lng = trip_data.start.lng

    DB.add(new_trip)
    DB.commit()
    DB.refresh(new_trip)

    print(f"[REPO] Trip created: {new_trip.id} ({new_trip.title!r}, radius {new_trip.radius_meters} m)")

    return new_trip


# ==========================================================
# READ OPERATIONS
# ==========================================================

def get_trip_by_id(DB: Session, trip_id: str) -> Optional[Trip]:
    """Return the trip with this id, or None."""
    return DB.query(Trip).filter(Trip.id == trip_id).first()


def get_all_trips(DB: Session, newest_first: bool = True) -> list[Trip]:
    """
    List every trip ordered by creation time.

    Args:
        DB: SQLAlchemy session
        newest_first: Most recent first (default) or oldest first
    """
    order = Trip.created_at.desc() if newest_first else Trip.created_at.asc()
    return DB.query(Trip).order_by(order).all()


# ==========================================================
# UPDATE OPERATIONS
# ==========================================================

def update_trip(DB: Session, trip_id: str, trip_data: Trip_update) -> Optional[Trip]:
    """
    Apply a partial update.

    Only fields present in the payload are changed. Lifecycle fields are not
    part of Trip_update and can never be modified here.

    Returns:
        Trip or None: Updated trip, None if it does not exist
    """
    trip = get_trip_by_id(DB, trip_id)
    if trip is None:
        return None

    updates = trip_data.model_dump(exclude_unset=True)

    if "title" in updates:
        trip.title = updates["title"]

    if "start" in updates:
        start = trip_data.start
        trip.start_lat = start.lat if start else None
        trip.start_lng = start.lng if start else None

    if "destination" in updates:
        trip.dest_lat = trip_data.destination.lat
        trip.dest_lng = trip_data.destination.lng
        trip.dest_place_name = trip_data.destination.place_name

    if "radius_meters" in updates:
        trip.radius_meters = updates["radius_meters"]

    if "eta_offset_minutes" in updates:
        trip.eta_offset_minutes = updates["eta_offset_minutes"]

    DB.commit()
    DB.refresh(trip)
    return trip


def add_location_point(
    DB: Session,
    trip_id: str,
    point: LocationPoint_create
) -> Optional[Trip]:
    """
    Append a location point to a trip.

    The first appended point marks the trip as started.

    Returns:
        Trip or None: Updated trip, None if it does not exist
    """
    trip = get_trip_by_id(DB, trip_id)
    if trip is None:
        return None

    now = datetime.now(timezone.utc)
    if trip.started_at is None:
        trip.started_at = now

    trip.location_points.append(
        TripPoint(lat=point.lat, lng=point.lng, ts=point.ts or now)
    )

    DB.commit()
    DB.refresh(trip)
    return trip


def end_trip(DB: Session, trip_id: str) -> Optional[Trip]:
    """
    Mark a trip as ended.

    Idempotent: the first call sets ended_at, later calls leave it unchanged.

    Returns:
        Trip or None: The trip, None if it does not exist
    """
    trip = get_trip_by_id(DB, trip_id)
    if trip is None:
        return None

    if trip.ended_at is None:
        trip.ended_at = datetime.now(timezone.utc)
        DB.commit()
        DB.refresh(trip)
        print(f"[REPO] Trip ended: {trip.id}")

    return trip


# ==========================================================
# DELETE OPERATIONS
# ==========================================================

def delete_trip(DB: Session, trip_id: str) -> bool:
    """
    Delete a trip and its location points.

    Returns:
        bool: True if the trip existed and was deleted
    """
    trip = get_trip_by_id(DB, trip_id)
    if trip is None:
        return False

    DB.delete(trip)
    DB.commit()
    print(f"[REPO] Trip deleted: {trip_id}")
    return True
