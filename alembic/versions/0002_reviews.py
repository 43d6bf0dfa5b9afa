"""reviews

Revision ID: 0002_reviews
Revises: 0001_initial
Create Date: 2026-10-20 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0002_reviews'
down_revision = '0001_initial'
branch_labels = None
depends_on = None


def upgrade():
    op.add_column('buses', sa.Column('review_count', sa.Integer(), nullable=False, server_default='0'))

    op.create_table('reviews',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('bus_id', sa.String(length=64), nullable=False),
        sa.Column('booking_id', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('user_name', sa.String(length=255), nullable=True),
        sa.Column('rating', sa.SmallInteger(), nullable=False),
        sa.Column('review', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['bus_id'], ['buses.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('booking_id', name='reviews_booking_id_key'),
        sa.CheckConstraint('rating BETWEEN 1 AND 5', name='reviews_rating_range'),
    )
    op.create_index('ix_reviews_bus_id', 'reviews', ['bus_id'], unique=False)
    op.create_index('ix_reviews_user_id', 'reviews', ['user_id'], unique=False)


def downgrade():
    op.drop_index('ix_reviews_user_id', table_name='reviews')
    op.drop_index('ix_reviews_bus_id', table_name='reviews')
    op.drop_table('reviews')
    op.drop_column('buses', 'review_count')
