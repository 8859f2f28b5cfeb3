"""
wakeme/DB/base.py
==========================
SQLAlchemy Model Registry
==========================

Imports every model so ``Base.metadata`` is complete before Alembic
autogeneration or ``create_all()`` runs.

Models Registered:
-----------------
- Trip: Trip record with destination, wake radius and lifecycle timestamps
- TripPoint: Location point appended to a trip's history

Any new model class MUST be imported here.
"""

from wakeme.DB.base_class import Base

# ============================================================
# MODEL IMPORTS - DO NOT REMOVE
# ============================================================
from wakeme.Models.trip import Trip, TripPoint

__all__ = ["Base", "Trip", "TripPoint"]
