"""create_trips_and_trip_points

Revision ID: 3c9d1e7a52b4
Revises:
Create Date: 2026-10-18 12:00:00

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3c9d1e7a52b4'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create the trip tables.

    - trips: destination geofence, wake radius and lifecycle timestamps
    - trip_points: append-only location history, deleted with its trip
    """
    print("[MIGRATION] Creating trips and trip_points tables...")

    op.create_table(
        'trips',
        sa.Column('id', sa.String(length=100), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('start_lat', sa.Float(), nullable=True),
        sa.Column('start_lng', sa.Float(), nullable=True),
        sa.Column('dest_lat', sa.Float(), nullable=False),
        sa.Column('dest_lng', sa.Float(), nullable=False),
        sa.Column('dest_place_name', sa.String(length=300), nullable=True),
        sa.Column('radius_meters', sa.Float(), nullable=False),
        sa.Column('eta_offset_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('radius_meters > 0', name='check_radius_positive'),
        sa.CheckConstraint('dest_lat >= -90 AND dest_lat <= 90', name='check_dest_lat_range'),
        sa.CheckConstraint('dest_lng >= -180 AND dest_lng <= 180', name='check_dest_lng_range'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_trips_created_at', 'trips', ['created_at'], unique=False)

    op.create_table(
        'trip_points',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('trip_id', sa.String(length=100), nullable=False),
        sa.Column('lat', sa.Float(), nullable=False),
        sa.Column('lng', sa.Float(), nullable=False),
        sa.Column('ts', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('lat >= -90 AND lat <= 90', name='check_point_lat_range'),
        sa.CheckConstraint('lng >= -180 AND lng <= 180', name='check_point_lng_range'),
        sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_trip_points_trip_id'), 'trip_points', ['trip_id'], unique=False)

    print("[MIGRATION] ✅ Trip tables created")


def downgrade() -> None:
    op.drop_index(op.f('ix_trip_points_trip_id'), table_name='trip_points')
    op.drop_table('trip_points')
    op.drop_index('idx_trips_created_at', table_name='trips')
    op.drop_table('trips')
