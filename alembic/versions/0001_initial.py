"""initial

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('buses',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('bus_number', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('bus_type', sa.String(length=32), nullable=False, server_default='AC'),
        sa.Column('source', sa.String(length=128), nullable=False),
        sa.Column('destination', sa.String(length=128), nullable=False),
        sa.Column('departure_time', sa.String(length=16), nullable=False),
        sa.Column('arrival_time', sa.String(length=16), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('rating', sa.Numeric(2, 1), nullable=True),
        sa.Column('operator', sa.String(length=255), nullable=True),
        sa.Column('amenities', sa.JSON(), nullable=True),
        sa.Column('rows', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('seats_per_row', sa.Integer(), nullable=False, server_default='4'),
        sa.Column('aisle_after', sa.Integer(), nullable=False, server_default='2'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('bus_number', name='buses_bus_number_key'),
    )
    op.create_index('ix_buses_bus_number', 'buses', ['bus_number'], unique=False)
    op.create_index('ix_buses_source', 'buses', ['source'], unique=False)
    op.create_index('ix_buses_destination', 'buses', ['destination'], unique=False)

    op.create_table('bookings',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('booking_ref', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('bus_id', sa.String(length=64), nullable=True),
        sa.Column('journey_date', sa.Date(), nullable=False),
        sa.Column('passengers', sa.JSON(), nullable=False),
        sa.Column('selected_seats', sa.JSON(), nullable=False),
        sa.Column('holder_token', sa.String(length=64), nullable=False),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('payment_status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('payment_method', sa.String(length=32), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['bus_id'], ['buses.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('booking_ref', name='bookings_booking_ref_key'),
    )
    op.create_index('ix_bookings_booking_ref', 'bookings', ['booking_ref'], unique=False)
    op.create_index('ix_bookings_user_id', 'bookings', ['user_id'], unique=False)
    op.create_index('ix_bookings_bus_id', 'bookings', ['bus_id'], unique=False)
    op.create_index('ix_bookings_status', 'bookings', ['status'], unique=False)
    op.create_index('ix_booking_bus_date', 'bookings', ['bus_id', 'journey_date'], unique=False)

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_id', sa.String(length=128), nullable=True),
        sa.Column('action', sa.String(length=255), nullable=False),
        sa.Column('object_type', sa.String(length=128), nullable=True),
        sa.Column('object_id', sa.String(length=128), nullable=True),
        sa.Column('detail', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    )
    op.create_index('ix_audit_logs_actor_id', 'audit_logs', ['actor_id'], unique=False)


def downgrade():
    op.drop_index('ix_audit_logs_actor_id', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('ix_booking_bus_date', table_name='bookings')
    op.drop_index('ix_bookings_status', table_name='bookings')
    op.drop_index('ix_bookings_bus_id', table_name='bookings')
    op.drop_index('ix_bookings_user_id', table_name='bookings')
    op.drop_index('ix_bookings_booking_ref', table_name='bookings')
    op.drop_table('bookings')
    op.drop_index('ix_buses_destination', table_name='buses')
    op.drop_index('ix_buses_source', table_name='buses')
    op.drop_index('ix_buses_bus_number', table_name='buses')
    op.drop_table('buses')
