# wakeme/Controller/Routes/trips.py

"""
Trip Persistence REST API

Stores trip records and their location history for the trip alarm client.

Endpoints:
- POST   /trips                  Create trip
- GET    /trips                  List trips (newest first by default)
- GET    /trips/{trip_id}        Get one trip
- PUT    /trips/{trip_id}        Partial update (lifecycle fields ignored)
- DELETE /trips/{trip_id}        Delete trip and its points
- POST   /trips/{trip_id}/point  Append a location point
- POST   /trips/{trip_id}/end    End trip (idempotent)

JSON Format:
- camelCase keys: radiusMeters, placeName, etaOffsetMinutes, createdAt,
  startedAt, endedAt, locationPoints
- Points accept lat/lng or latitude/longitude

Usage:
    # In main.py
    from wakeme.Controller.Routes import trips
    app.include_router(trips.router, prefix="/trips", tags=["trips"])
"""

from typing import List, Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from wakeme.Controller.deps import get_DB
from wakeme.Repositories import trip as trip_repo
from wakeme.Schemas import trip as trip_schema

router = APIRouter()

TRIP_NOT_FOUND = "Trip not found"


def _get_or_404(db: Session, trip_id: str):
    trip = trip_repo.get_trip_by_id(db, trip_id)
    if trip is None:
        raise HTTPException(status_code=404, detail=TRIP_NOT_FOUND)
    return trip


# ==========================================================
# 📌 Create Trip
# ==========================================================

@router.post("", response_model=trip_schema.Trip_get, status_code=201)
def create_trip(trip: trip_schema.Trip_create, db: Session = Depends(get_DB)):
    """
    Create a new trip.

    Request Body:
        {
            "title": "Commute home",
            "start": {"lat": 40.7128, "lng": -74.0060},
            "destination": {"lat": 40.7306, "lng": -73.9352, "placeName": "Home"},
            "radiusMeters": 500,
            "etaOffsetMinutes": 0
        }

    Returns:
        201 with the created trip (id and createdAt generated)

    Raises:
        422: Missing title/destination, coordinates out of range,
             radius below 50 m
    """
    return trip_repo.create_trip(db, trip)


# ==========================================================
# 📌 List Trips
# ==========================================================

@router.get("", response_model=List[trip_schema.Trip_get])
def list_trips(
    order: Literal["newest", "oldest"] = Query("newest", description="Sort by creation time"),
    db: Session = Depends(get_DB)
):
    """List every trip, newest first unless ``order=oldest``."""
    return trip_repo.get_all_trips(db, newest_first=(order == "newest"))


# ==========================================================
# 📌 Get / Update / Delete Trip
# ==========================================================

@router.get("/{trip_id}", response_model=trip_schema.Trip_get)
def get_trip(trip_id: str, db: Session = Depends(get_DB)):
    """
    Get a trip with its full location history.

    Raises:
        404: Trip not found
    """
    return _get_or_404(db, trip_id)


@router.put("/{trip_id}", response_model=trip_schema.Trip_get)
def update_trip(
    trip_id: str,
    trip: trip_schema.Trip_update,
    db: Session = Depends(get_DB)
):
    """
    Partially update a trip.

    startedAt, endedAt, createdAt and locationPoints are silently ignored;
    they change only through the point and end endpoints.

    Raises:
        404: Trip not found
    """
    updated = trip_repo.update_trip(db, trip_id, trip)
    if updated is None:
        raise HTTPException(status_code=404, detail=TRIP_NOT_FOUND)
    return updated


@router.delete("/{trip_id}", response_model=trip_schema.Message_response)
def delete_trip(trip_id: str, db: Session = Depends(get_DB)):
    """
    Delete a trip and its location points.

    Raises:
        404: Trip not found
    """
    if not trip_repo.delete_trip(db, trip_id):
        raise HTTPException(status_code=404, detail=TRIP_NOT_FOUND)
    return {"message": "Trip deleted successfully"}


# ==========================================================
# 📌 Trip Lifecycle
# ==========================================================

@router.post("/{trip_id}/point", response_model=trip_schema.Trip_get)
def add_location_point(
    trip_id: str,
    point: trip_schema.LocationPoint_create,
    db: Session = Depends(get_DB)
):
    """
    Append a location point.

    The first point marks the trip as started (startedAt).

    Request Body:
        {"lat": 40.7306, "lng": -73.9352}
        {"latitude": 40.7306, "longitude": -73.9352, "timestamp": "..."}

    Raises:
        404: Trip not found
    """
    trip = trip_repo.add_location_point(db, trip_id, point)
    if trip is None:
        raise HTTPException(status_code=404, detail=TRIP_NOT_FOUND)
    return trip


@router.post("/{trip_id}/end", response_model=trip_schema.Trip_get)
def end_trip(trip_id: str, db: Session = Depends(get_DB)):
    """
    End a trip.

    Idempotent: endedAt is set by the first call and kept afterwards.

    Raises:
        404: Trip not found
    """
    trip = trip_repo.end_trip(db, trip_id)
    if trip is None:
        raise HTTPException(status_code=404, detail=TRIP_NOT_FOUND)
    return trip
