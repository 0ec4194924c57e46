"""users, events and bookings

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None

ACTIVE_BOOKING = sa.text("status IN ('confirmed', 'pending')")


def upgrade() -> None:
    user_role = sa.Enum('user', 'admin', name='user_role')
    booking_status = sa.Enum('pending', 'confirmed', 'cancelled', name='booking_status')

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('first_name', sa.String(length=50), nullable=False),
        sa.Column('last_name', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('role', user_role, nullable=False, server_default='user'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.Column('password_changed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('idx_user_active_role', 'users', ['is_active', 'role'])

    op.create_table(
        'events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('date_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('location', sa.String(length=200), nullable=False),
        sa.Column('total_seats', sa.Integer(), nullable=False),
        sa.Column('available_seats', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('total_seats > 0', name='ck_events_total_seats_positive'),
        sa.CheckConstraint('available_seats >= 0', name='ck_events_available_non_negative'),
        sa.CheckConstraint('available_seats <= total_seats', name='ck_events_available_within_total'),
        sa.CheckConstraint('price >= 0', name='ck_events_price_non_negative'),
    )
    op.create_index('ix_events_title', 'events', ['title'])
    op.create_index('ix_events_date_time', 'events', ['date_time'])
    op.create_index('ix_events_location', 'events', ['location'])
    op.create_index('idx_event_active_date', 'events', ['is_active', 'date_time'])
    op.create_index('idx_event_price_date', 'events', ['price', 'date_time'])

    op.create_table(
        'bookings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('event_id', sa.Uuid(), nullable=False),
        sa.Column('number_of_seats', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('status', booking_status, nullable=False, server_default='confirmed'),
        sa.Column('booking_date', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], onupdate='CASCADE', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['event_id'], ['events.id'], onupdate='CASCADE', ondelete='CASCADE'),
        sa.CheckConstraint(
            'number_of_seats >= 1 AND number_of_seats <= 10', name='ck_bookings_seat_range'
        ),
    )
    op.create_index('ix_bookings_user_id', 'bookings', ['user_id'])
    op.create_index('ix_bookings_event_id', 'bookings', ['event_id'])
    op.create_index('idx_booking_event_status', 'bookings', ['event_id', 'status'])
    op.create_index('idx_booking_user_date', 'bookings', ['user_id', 'booking_date'])
    op.create_index(
        'uq_bookings_active_user_event',
        'bookings',
        ['user_id', 'event_id'],
        unique=True,
        postgresql_where=ACTIVE_BOOKING,
        sqlite_where=ACTIVE_BOOKING,
    )


def downgrade() -> None:
    op.drop_index('uq_bookings_active_user_event', table_name='bookings')
    op.drop_index('idx_booking_user_date', table_name='bookings')
    op.drop_index('idx_booking_event_status', table_name='bookings')
    op.drop_index('ix_bookings_event_id', table_name='bookings')
    op.drop_index('ix_bookings_user_id', table_name='bookings')
    op.drop_table('bookings')

    op.drop_index('idx_event_price_date', table_name='events')
    op.drop_index('idx_event_active_date', table_name='events')
    op.drop_index('ix_events_location', table_name='events')
    op.drop_index('ix_events_date_time', table_name='events')
    op.drop_index('ix_events_title', table_name='events')
    op.drop_table('events')

    op.drop_index('idx_user_active_role', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')

    sa.Enum(name='booking_status').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='user_role').drop(op.get_bind(), checkfirst=True)
