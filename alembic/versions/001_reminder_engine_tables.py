"""Reminder engine tables

Revision ID: 001
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None  # This is the first migration
branch_labels = None
depends_on = None

REMINDER_KINDS = ('DUE_IN_48H', 'DUE_IN_24H', 'OVERDUE')
CHANNELS = ('EMAIL', 'SMS', 'PUSH', 'IN_APP')
STATUSES = ('PENDING', 'SENT', 'FAILED')
PRIORITIES = ('LOW', 'MEDIUM', 'HIGH', 'URGENT')
CATEGORIES = ('ASSIGNMENT_DEADLINES', 'ASSIGNMENT_UPDATES', 'SUBMISSION_UPDATES', 'GRADES', 'EXTENSIONS')
NOTIFICATION_TYPES = (
    'ASSIGNMENT_PUBLISHED',
    'ASSIGNMENT_DUE_REMINDER_48H',
    'ASSIGNMENT_DUE_REMINDER_24H',
    'ASSIGNMENT_OVERDUE',
    'SUBMISSION_RECEIVED',
    'SUBMISSION_GRADED',
    'EXTENSION_GRANTED',
    'EXTENSION_REQUESTED',
)


def upgrade():
    # Course-side tables the engine reads
    op.create_table(
        'course',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('title', sa.String(200), nullable=False),
    )

    op.create_table(
        'assignment',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('course_id', sa.String(64), sa.ForeignKey('course.id'), nullable=False),
        sa.Column('instructor_id', sa.String(64), nullable=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('due_date', sa.DateTime(), nullable=False),
        sa.Column('is_published', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('late_policy', sa.String(30), nullable=False, server_default='not_accepted'),
        sa.Column('total_points', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_assignment_course_id', 'assignment', ['course_id'])

    op.create_table(
        'extension',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('assignment_id', sa.String(64), sa.ForeignKey('assignment.id'), nullable=False),
        sa.Column('recipient_id', sa.String(64), nullable=False),
        sa.Column('new_due_date', sa.DateTime(), nullable=False),
        sa.Column('reason', sa.String(500), nullable=True),
        sa.Column('granted_at', sa.DateTime(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint('assignment_id', 'recipient_id', name='uq_extension_assignment_recipient'),
    )
    op.create_index('ix_extension_assignment_id', 'extension', ['assignment_id'])
    op.create_index('ix_extension_recipient_id', 'extension', ['recipient_id'])

    op.create_table(
        'enrollment',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('course_id', sa.String(64), sa.ForeignKey('course.id'), nullable=False),
        sa.Column('recipient_id', sa.String(64), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=True),
        sa.UniqueConstraint('course_id', 'recipient_id', name='uq_enrollment_course_recipient'),
    )
    op.create_index('ix_enrollment_course_id', 'enrollment', ['course_id'])
    op.create_index('ix_enrollment_recipient_id', 'enrollment', ['recipient_id'])

    op.create_table(
        'submission',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('assignment_id', sa.String(64), sa.ForeignKey('assignment.id'), nullable=False),
        sa.Column('recipient_id', sa.String(64), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='submitted'),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('is_late', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('grade', sa.Float(), nullable=True),
        sa.Column('feedback', sa.String(2000), nullable=True),
        sa.Column('graded_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_submission_assignment_id', 'submission', ['assignment_id'])
    op.create_index('ix_submission_recipient_id', 'submission', ['recipient_id'])

    # Reminder engine tables
    op.create_table(
        'assignment_reminder',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('assignment_id', sa.String(64), nullable=False),
        sa.Column('kind', sa.Enum(*REMINDER_KINDS, name='reminderkind'), nullable=False),
        sa.Column('scheduled_for', sa.DateTime(), nullable=False),
        sa.Column('processed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('assignment_id', 'kind', name='uq_reminder_assignment_kind'),
    )
    op.create_index('ix_assignment_reminder_assignment_id', 'assignment_reminder', ['assignment_id'])
    op.create_index('ix_assignment_reminder_scheduled_for', 'assignment_reminder', ['scheduled_for'])
    op.create_index('ix_assignment_reminder_processed', 'assignment_reminder', ['processed'])

    op.create_table(
        'notification_record',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('recipient_id', sa.String(64), nullable=False),
        sa.Column('channel', sa.Enum(*CHANNELS, name='channel'), nullable=False),
        sa.Column('category', sa.Enum(*CATEGORIES, name='notificationcategory'), nullable=False),
        sa.Column('notification_type', sa.Enum(*NOTIFICATION_TYPES, name='notificationtype'), nullable=False),
        sa.Column('priority', sa.Enum(*PRIORITIES, name='notificationpriority'), nullable=False),
        sa.Column('assignment_id', sa.String(64), nullable=True),
        sa.Column('reminder_id', sa.Integer(), nullable=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('action_url', sa.String(500), nullable=True),
        sa.Column('status', sa.Enum(*STATUSES, name='notificationstatus'), nullable=False),
        sa.Column('error', sa.String(1000), nullable=True),
        sa.Column('attempted_at', sa.DateTime(), nullable=False),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_notification_record_recipient_id', 'notification_record', ['recipient_id'])
    op.create_index('ix_notification_record_assignment_id', 'notification_record', ['assignment_id'])
    op.create_index('ix_notification_record_reminder_id', 'notification_record', ['reminder_id'])
    op.create_index('ix_notification_record_status', 'notification_record', ['status'])

    op.create_table(
        'notification_preference',
        sa.Column('recipient_id', sa.String(64), primary_key=True),
        sa.Column('email_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('sms_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('push_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('in_app_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('assignment_deadlines', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('assignment_updates', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('submission_updates', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('grade_notifications', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('extension_updates', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(30), nullable=True),
        sa.Column('device_token', sa.String(500), nullable=True),
    )


def downgrade():
    op.drop_table('notification_preference')
    op.drop_table('notification_record')
    op.drop_table('assignment_reminder')
    op.drop_table('submission')
    op.drop_table('enrollment')
    op.drop_table('extension')
    op.drop_table('assignment')
    op.drop_table('course')
    # Postgres keeps named enum types after their tables are gone
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        for name in ('reminderkind', 'channel', 'notificationcategory', 'notificationtype',
                     'notificationpriority', 'notificationstatus'):
            sa.Enum(name=name).drop(bind, checkfirst=True)
