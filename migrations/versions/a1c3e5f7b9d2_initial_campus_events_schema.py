'''Initial campus events schema'''
from alembic import op
import sqlalchemy as sa
from sqlalchemy.sql import func

# revision identifiers, used by Alembic.
revision = 'a1c3e5f7b9d2'
down_revision = None
branch_labels = None
depends_on = None

USER_ROLES = ('STUDENT', 'ORGANIZER', 'ADMIN')
EVENT_CATEGORIES = ('ACADEMIC', 'CAREER', 'CLUBS', 'SPORTS', 'SOCIAL', 'CULTURAL', 'OTHER')
EVENT_STATUSES = ('DRAFT', 'PUBLISHED', 'IN_PROGRESS', 'CANCELLED', 'COMPLETED')
REGISTRATION_STATUSES = ('REGISTERED', 'WAITLISTED', 'CANCELLED', 'ATTENDED', 'NO_SHOW')
NOTIFICATION_TYPES = (
    'EVENT_REMINDER', 'EVENT_CANCELLED', 'EVENT_UPDATED', 'EVENT_PUBLISHED',
    'REGISTRATION_CONFIRMED', 'REGISTRATION_WAITLISTED', 'REGISTRATION_APPROVED',
    'REGISTRATION_CANCELLED', 'SYSTEM_ANNOUNCEMENT',
)
NOTIFICATION_STATUSES = ('UNREAD', 'READ', 'ARCHIVED')


def upgrade():
    op.create_table('users',
                    sa.Column('id', sa.Integer(), nullable=False),
                    sa.Column('email', sa.String(length=255), nullable=False),
                    sa.Column('first_name', sa.String(length=50), nullable=False),
                    sa.Column('last_name', sa.String(length=50), nullable=False),
                    sa.Column('role', sa.Enum(*USER_ROLES, name='userrole'), nullable=False),
                    sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=func.now(), nullable=False),
                    sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=func.now(), nullable=False),
                    sa.PrimaryKeyConstraint('id'),
                    sa.UniqueConstraint('email')
                    )

    op.create_table('events',
                    sa.Column('id', sa.Integer(), nullable=False),
                    sa.Column('title', sa.String(length=200), nullable=False),
                    sa.Column('description', sa.Text(), nullable=True),
                    sa.Column('category', sa.Enum(*EVENT_CATEGORIES, name='eventcategory'), nullable=True),
                    sa.Column('organizer_id', sa.Integer(), nullable=False),
                    sa.Column('start_date', sa.TIMESTAMP(timezone=True), nullable=False),
                    sa.Column('end_date', sa.TIMESTAMP(timezone=True), nullable=False),
                    sa.Column('location_name', sa.String(length=200), nullable=True),
                    sa.Column('location_address', sa.String(length=500), nullable=True),
                    sa.Column('location_is_virtual', sa.Boolean(), nullable=False),
                    sa.Column('location_virtual_link', sa.String(length=500), nullable=True),
                    sa.Column('max_registrations', sa.Integer(), nullable=True),
                    sa.Column('current_registrations', sa.Integer(), nullable=False),
                    sa.Column('status', sa.Enum(*EVENT_STATUSES, name='eventstatus'), nullable=False),
                    sa.Column('is_public', sa.Boolean(), nullable=False),
                    sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=func.now(), nullable=False),
                    sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=func.now(), nullable=False),
                    sa.ForeignKeyConstraint(['organizer_id'], ['users.id']),
                    sa.PrimaryKeyConstraint('id'),
                    sa.CheckConstraint('current_registrations >= 0', name='ck_events_current_non_negative'),
                    sa.CheckConstraint('max_registrations IS NULL OR max_registrations >= 0',
                                       name='ck_events_max_non_negative'),
                    sa.CheckConstraint('max_registrations IS NULL OR current_registrations <= max_registrations',
                                       name='ck_events_current_within_capacity')
                    )
    op.create_index('ix_events_organizer_id', 'events', ['organizer_id'])
    op.create_index('ix_events_status', 'events', ['status'])
    op.create_index('ix_events_status_start_date', 'events', ['status', 'start_date'])

    op.create_table('event_registrations',
                    sa.Column('id', sa.Integer(), nullable=False),
                    sa.Column('event_id', sa.Integer(), nullable=False),
                    sa.Column('user_id', sa.Integer(), nullable=False),
                    sa.Column('status', sa.Enum(*REGISTRATION_STATUSES, name='registrationstatus'), nullable=False),
                    sa.Column('registered_at', sa.TIMESTAMP(timezone=True), nullable=False),
                    sa.Column('cancelled_at', sa.TIMESTAMP(timezone=True), nullable=True),
                    sa.Column('attended_at', sa.TIMESTAMP(timezone=True), nullable=True),
                    sa.Column('waitlist_position', sa.Integer(), nullable=True),
                    sa.Column('notes', sa.String(length=500), nullable=True),
                    sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=func.now(), nullable=False),
                    sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=func.now(), nullable=False),
                    sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='CASCADE'),
                    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
                    sa.PrimaryKeyConstraint('id'),
                    sa.UniqueConstraint('user_id', 'event_id', name='uq_event_registration_user_event'),
                    sa.CheckConstraint('waitlist_position IS NULL OR waitlist_position >= 1',
                                       name='ck_event_registrations_position_positive')
                    )
    op.create_index('ix_event_registrations_status', 'event_registrations', ['status'])
    op.create_index('ix_event_registrations_event_status', 'event_registrations', ['event_id', 'status'])

    op.create_table('notifications',
                    sa.Column('id', sa.Integer(), nullable=False),
                    sa.Column('user_id', sa.Integer(), nullable=False),
                    sa.Column('type', sa.Enum(*NOTIFICATION_TYPES, name='notificationtype'), nullable=False),
                    sa.Column('status', sa.Enum(*NOTIFICATION_STATUSES, name='notificationstatus'), nullable=False),
                    sa.Column('title', sa.String(length=200), nullable=False),
                    sa.Column('message', sa.String(length=1000), nullable=False),
                    sa.Column('event_id', sa.Integer(), nullable=True),
                    sa.Column('registration_id', sa.Integer(), nullable=True),
                    sa.Column('action_url', sa.String(length=500), nullable=True),
                    sa.Column('read_at', sa.TIMESTAMP(timezone=True), nullable=True),
                    sa.Column('archived_at', sa.TIMESTAMP(timezone=True), nullable=True),
                    sa.Column('data', sa.JSON(), nullable=False),
                    sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=func.now(), nullable=False),
                    sa.ForeignKeyConstraint(['user_id'], ['users.id']),
                    sa.ForeignKeyConstraint(['event_id'], ['events.id'], ondelete='SET NULL'),
                    sa.ForeignKeyConstraint(['registration_id'], ['event_registrations.id'], ondelete='SET NULL'),
                    sa.PrimaryKeyConstraint('id')
                    )
    op.create_index('ix_notifications_type', 'notifications', ['type'])
    op.create_index('ix_notifications_status', 'notifications', ['status'])
    op.create_index('ix_notifications_event_id', 'notifications', ['event_id'])
    op.create_index('ix_notifications_user_status', 'notifications', ['user_id', 'status'])


def downgrade():
    op.drop_table('notifications')
    op.drop_table('event_registrations')
    op.drop_table('events')
    op.drop_table('users')
    sa.Enum(name='notificationstatus').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='notificationtype').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='registrationstatus').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='eventstatus').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='eventcategory').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='userrole').drop(op.get_bind(), checkfirst=True)
