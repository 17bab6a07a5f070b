"""Create demo_sessions and demo_signups tables

Revision ID: ds001_create_demo_sessions
Revises:
Create Date: 2026-10-19

Adds capacity-limited demo sessions and the signup ledger. A student may
hold at most one live (non-withdrawn) signup per session; withdrawn rows are
kept as history, so the uniqueness is a partial index.
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'ds001_create_demo_sessions'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'demo_sessions',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('session_date', sa.Date(), nullable=False),
        sa.Column('session_time', sa.Time(), nullable=True),
        sa.Column('meeting_link', sa.String(), nullable=True),
        sa.Column('max_scheduled', sa.Integer(), nullable=False),
        sa.Column('signup_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('is_cancelled', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.CheckConstraint('max_scheduled > 0', name='check_demo_session_capacity_positive'),
        sa.CheckConstraint('signup_count >= 0', name='check_demo_session_count_non_negative'),
        sa.CheckConstraint('signup_count <= max_scheduled', name='check_demo_session_count_lte_capacity'),
    )
    op.create_index('ix_demo_sessions_session_date', 'demo_sessions', ['session_date'])

    op.create_table(
        'demo_signups',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('session_id', sa.String(), sa.ForeignKey('demo_sessions.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('student_id', sa.String(), nullable=False),
        sa.Column('demo_ref', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='signed_up'),
        sa.Column('did_present', sa.Boolean(), nullable=True),
        sa.Column('attendance_notes', sa.Text(), nullable=True),
        sa.Column('rating', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('withdrawn_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('signed_up', 'presented', 'no_show', 'withdrawn')",
            name='check_demo_signup_status',
        ),
        sa.CheckConstraint(
            'rating IS NULL OR (rating >= 1 AND rating <= 5)',
            name='check_demo_signup_rating_range',
        ),
    )

    # One live signup per student per session
    op.create_index(
        'uq_demo_signups_live_student',
        'demo_signups',
        ['session_id', 'student_id'],
        unique=True,
        postgresql_where=sa.text("status <> 'withdrawn'"),
        sqlite_where=sa.text("status <> 'withdrawn'"),
    )

    # Indexes for common query patterns
    op.create_index('ix_demo_signups_session_id', 'demo_signups', ['session_id'])
    op.create_index('ix_demo_signups_student_id', 'demo_signups', ['student_id'])
    op.create_index(
        'idx_demo_signups_session_status',
        'demo_signups',
        ['session_id', 'status'],
    )


def downgrade() -> None:
    op.drop_index('idx_demo_signups_session_status', table_name='demo_signups')
    op.drop_index('ix_demo_signups_student_id', table_name='demo_signups')
    op.drop_index('ix_demo_signups_session_id', table_name='demo_signups')
    op.drop_index('uq_demo_signups_live_student', table_name='demo_signups')
    op.drop_table('demo_signups')
    op.drop_index('ix_demo_sessions_session_date', table_name='demo_sessions')
    op.drop_table('demo_sessions')
