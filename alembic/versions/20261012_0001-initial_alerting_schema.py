"""initial_alerting_schema

Revision ID: 3f9c1e7a2b10
Revises:
Create Date: 2026-10-12 00:01:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c1e7a2b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Tenants
    op.create_table(
        'tenants',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('subscription_status', sa.String(), nullable=True),
        sa.Column('subscription_plan', sa.String(), nullable=True),
        sa.Column('trial_ends_at', sa.DateTime(), nullable=True),
        sa.Column('subscription_ends_at', sa.DateTime(), nullable=True),
        sa.Column('owner_email', sa.String(), nullable=True),
        sa.Column('features_enabled', sa.JSON(), nullable=False),
        sa.Column('created_date', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    # Users
    op.create_table(
        'users',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('custom_role', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('working_hours_per_day', sa.Float(), nullable=False),
        sa.Column('working_days', sa.JSON(), nullable=True),
        sa.Column('is_overdue_blocked', sa.Boolean(), nullable=False),
        sa.Column('is_overloaded', sa.Boolean(), nullable=False),
        sa.Column('is_timesheet_locked', sa.Boolean(), nullable=False),
        sa.Column('created_date', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'email', name='uq_users_tenant_email')
    )
    op.create_index('ix_users_tenant_id', 'users', ['tenant_id'])
    op.create_index('ix_users_email', 'users', ['email'])

    # Projects
    op.create_table(
        'projects',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('deadline', sa.DateTime(), nullable=True),
        sa.Column('owner_email', sa.String(), nullable=True),
        sa.Column('team_members', sa.JSON(), nullable=False),
        sa.Column('scope_locked', sa.Boolean(), nullable=False),
        sa.Column('risk_level', sa.String(), nullable=True),
        sa.Column('created_date', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_projects_tenant_id', 'projects', ['tenant_id'])

    op.create_table(
        'project_user_roles',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('project_id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('custom_role', sa.String(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_project_user_roles_tenant_id', 'project_user_roles', ['tenant_id'])
    op.create_index('ix_project_user_roles_project_id', 'project_user_roles', ['project_id'])
    op.create_index('ix_project_user_roles_user_id', 'project_user_roles', ['user_id'])

    # Sprints and velocity
    op.create_table(
        'sprints',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('project_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=True),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('goal', sa.Text(), nullable=True),
        sa.Column('created_date', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_sprints_tenant_id', 'sprints', ['tenant_id'])
    op.create_index('ix_sprints_project_id', 'sprints', ['project_id'])

    op.create_table(
        'sprint_velocities',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('project_id', sa.String(), nullable=False),
        sa.Column('sprint_id', sa.String(), nullable=True),
        sa.Column('sprint_name', sa.String(), nullable=True),
        sa.Column('measurement_date', sa.DateTime(), nullable=False),
        sa.Column('committed_points', sa.Float(), nullable=False),
        sa.Column('completed_points', sa.Float(), nullable=False),
        sa.Column('accuracy', sa.Float(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id']),
        sa.ForeignKeyConstraint(['sprint_id'], ['sprints.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_sprint_velocities_tenant_id', 'sprint_velocities', ['tenant_id'])
    op.create_index('ix_sprint_velocities_project_id', 'sprint_velocities', ['project_id'])
    op.create_index('ix_sprint_velocities_sprint_id', 'sprint_velocities', ['sprint_id'])

    # Tasks
    op.create_table(
        'tasks',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('project_id', sa.String(), nullable=False),
        sa.Column('sprint_id', sa.String(), nullable=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('assigned_to', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('priority', sa.String(), nullable=True),
        sa.Column('due_date', sa.DateTime(), nullable=True),
        sa.Column('estimated_hours', sa.Float(), nullable=True),
        sa.Column('story_points', sa.Float(), nullable=True),
        sa.Column('created_date', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id']),
        sa.ForeignKeyConstraint(['sprint_id'], ['sprints.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_tasks_tenant_id', 'tasks', ['tenant_id'])
    op.create_index('ix_tasks_project_id', 'tasks', ['project_id'])
    op.create_index('ix_tasks_sprint_id', 'tasks', ['sprint_id'])
    op.create_index('ix_tasks_assigned_to', 'tasks', ['assigned_to'])

    # Timesheets
    op.create_table(
        'timesheets',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('project_id', sa.String(), nullable=True),
        sa.Column('user_email', sa.String(), nullable=False),
        sa.Column('timesheet_date', sa.Date(), nullable=False),
        sa.Column('total_minutes', sa.Integer(), nullable=False),
        sa.Column('rework_minutes', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('created_date', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_timesheets_tenant_id', 'timesheets', ['tenant_id'])
    op.create_index('ix_timesheets_project_id', 'timesheets', ['project_id'])
    op.create_index('ix_timesheets_user_email', 'timesheets', ['user_email'])
    op.create_index('ix_timesheets_timesheet_date', 'timesheets', ['timesheet_date'])

    # Notifications
    op.create_table(
        'notifications',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('tenant_id', sa.String(), nullable=False),
        sa.Column('recipient_email', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=True),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('category', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('entity_type', sa.String(), nullable=True),
        sa.Column('entity_id', sa.String(), nullable=True),
        sa.Column('project_id', sa.String(), nullable=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('link', sa.String(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('read', sa.Boolean(), nullable=False),
        sa.Column('created_date', sa.DateTime(), nullable=False),
        sa.Column('acknowledged', sa.Boolean(), nullable=False),
        sa.Column('acknowledged_at', sa.DateTime(), nullable=True),
        sa.Column('acknowledged_by', sa.String(), nullable=True),
        sa.Column('reminder_sent', sa.Boolean(), nullable=False),
        sa.Column('escalated_to_admin', sa.Boolean(), nullable=False),
        sa.Column('last_email_sent', sa.DateTime(), nullable=True),
        sa.Column('dedup_key', sa.String(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_notifications_tenant_id', 'notifications', ['tenant_id'])
    op.create_index('ix_notifications_recipient_email', 'notifications', ['recipient_email'])
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_project_id', 'notifications', ['project_id'])
    op.create_index('ix_notifications_created_date', 'notifications', ['created_date'])
    op.create_index('ix_notifications_type_entity', 'notifications', ['type', 'entity_id'])
    op.create_index('ix_notifications_sweep', 'notifications', ['type', 'status', 'acknowledged'])
    # Idempotency keys only bind while the alert is open
    op.create_index(
        'uq_notifications_open_dedup_key',
        'notifications',
        ['dedup_key'],
        unique=True,
        postgresql_where=sa.text("status IN ('OPEN', 'APPEALED')"),
        sqlite_where=sa.text("status IN ('OPEN', 'APPEALED')"),
    )

    # Job run log
    op.create_table(
        'job_runs',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('job_name', sa.String(), nullable=False),
        sa.Column('forced', sa.Boolean(), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('summary', sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_job_runs_job_name', 'job_runs', ['job_name'])


def downgrade() -> None:
    op.drop_table('job_runs')
    op.drop_table('notifications')
    op.drop_table('timesheets')
    op.drop_table('tasks')
    op.drop_table('sprint_velocities')
    op.drop_table('sprints')
    op.drop_table('project_user_roles')
    op.drop_table('projects')
    op.drop_table('users')
    op.drop_table('tenants')
