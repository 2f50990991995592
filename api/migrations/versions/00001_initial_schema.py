"""Initial schema - assessment tables and job queue.

Revision ID: 00001
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '00001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # =====================
    # Independent tables (no foreign keys)
    # =====================

    # chapters
    op.create_table(
        'chapters',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )

    # rate_limits
    op.create_table(
        'rate_limits',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('key', sa.String(255), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reset_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key'),
    )

    # =====================
    # Dependent tables
    # =====================

    # verticals (chapter_id NULL = shared by every chapter)
    op.create_table(
        'verticals',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('chapter_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('display_order', sa.Integer(), default=0),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['chapter_id'], ['chapters.id']),
    )
    op.create_index('idx_verticals_chapter', 'verticals', ['chapter_id', 'display_order'])

    # assessments (depends on chapters)
    op.create_table(
        'assessments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('chapter_id', sa.Integer(), nullable=False),
        sa.Column('token', sa.String(64), nullable=False),
        sa.Column('candidate_name', sa.String(255), nullable=False),
        sa.Column('candidate_email', sa.String(255), nullable=False),
        sa.Column('status', sa.String(50), nullable=False, server_default='in_progress'),
        sa.Column('current_question', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('active_question', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('question_started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('review_status', sa.String(50), default='new'),
        sa.Column('is_shortlisted', sa.Boolean(), default=False),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token'),
        sa.ForeignKeyConstraint(['chapter_id'], ['chapters.id']),
        sa.CheckConstraint('current_question BETWEEN 1 AND 5', name='ck_assessment_current'),
        sa.CheckConstraint('active_question BETWEEN 1 AND 5', name='ck_assessment_active'),
    )
    op.create_index('idx_assessments_chapter', 'assessments', ['chapter_id', 'status'])

    # assessment_responses (depends on assessments)
    op.create_table(
        'assessment_responses',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('assessment_id', sa.Integer(), nullable=False),
        sa.Column('question_number', sa.Integer(), nullable=False),
        sa.Column('question_text', sa.Text(), nullable=True),
        sa.Column('response_data', sa.Text(), nullable=True),
        sa.Column('adapted_question_text', sa.Text(), nullable=True),
        sa.Column('adaptation_context', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['assessment_id'], ['assessments.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('assessment_id', 'question_number', name='uq_response_question'),
    )

    # adaptation_analytics (depends on assessments)
    op.create_table(
        'adaptation_analytics',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('assessment_id', sa.Integer(), nullable=False),
        sa.Column('question_number', sa.Integer(), nullable=False),
        sa.Column('was_adapted', sa.Boolean(), nullable=True),
        sa.Column('adaptation_success', sa.Boolean(), nullable=True),
        sa.Column('fallback_used', sa.Boolean(), nullable=True),
        sa.Column('fallback_reason', sa.String(100), nullable=True),
        sa.Column('adaptation_time_ms', sa.Integer(), nullable=True),
        sa.Column('ai_help_used', sa.Boolean(), nullable=True),
        sa.Column('ai_help_accepted', sa.Boolean(), nullable=True),
        sa.Column('response_completed', sa.Boolean(), nullable=True),
        sa.Column('response_length', sa.Integer(), nullable=True),
        sa.Column('time_to_complete_seconds', sa.Integer(), nullable=True),
        sa.Column('adaptation_context', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['assessment_id'], ['assessments.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('assessment_id', 'question_number', name='uq_analytics_question'),
    )

    # assessment_results (depends on assessments)
    op.create_table(
        'assessment_results',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('assessment_id', sa.Integer(), nullable=False),
        sa.Column('personal_ownership_score', sa.Integer(), nullable=False),
        sa.Column('impact_readiness_score', sa.Integer(), nullable=False),
        sa.Column('will_score', sa.Integer(), nullable=False),
        sa.Column('skill_score', sa.Integer(), nullable=False),
        sa.Column('quadrant', sa.String(10), nullable=False),
        sa.Column('recommended_role', sa.String(100), nullable=False),
        sa.Column('role_explanation', sa.Text(), nullable=True),
        sa.Column('vertical_matches', sa.Text(), nullable=True),
        sa.Column('leadership_style', sa.String(50), nullable=True),
        sa.Column('scoring_breakdown', sa.Text(), nullable=True),
        sa.Column('model_version', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['assessment_id'], ['assessments.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('assessment_id'),
        sa.CheckConstraint('personal_ownership_score BETWEEN 0 AND 100', name='ck_result_po'),
        sa.CheckConstraint('impact_readiness_score BETWEEN 0 AND 100', name='ck_result_ir'),
        sa.CheckConstraint('will_score BETWEEN 0 AND 100', name='ck_result_will'),
        sa.CheckConstraint('skill_score BETWEEN 0 AND 100', name='ck_result_skill'),
    )

    # jobs (depends on assessments)
    op.create_table(
        'jobs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('assessment_id', sa.Integer(), nullable=True),
        sa.Column('job_type', sa.String(50), nullable=False),
        sa.Column('status', sa.String(50), default='pending'),
        sa.Column('priority', sa.Integer(), default=0),
        sa.Column('attempts', sa.Integer(), default=0),
        sa.Column('max_attempts', sa.Integer(), default=3),
        sa.Column('payload', sa.Text(), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('scheduled_for', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['assessment_id'], ['assessments.id'], ondelete='CASCADE'),
    )
    op.create_index('idx_jobs_pending', 'jobs', ['scheduled_for', 'priority'])
    op.create_index('idx_jobs_assessment', 'jobs', ['assessment_id'])


def downgrade() -> None:
    # Drop in reverse order of dependencies
    op.drop_index('idx_jobs_assessment', 'jobs')
    op.drop_index('idx_jobs_pending', 'jobs')
    op.drop_table('jobs')
    op.drop_table('assessment_results')
    op.drop_table('adaptation_analytics')
    op.drop_table('assessment_responses')
    op.drop_index('idx_assessments_chapter', 'assessments')
    op.drop_table('assessments')
    op.drop_index('idx_verticals_chapter', 'verticals')
    op.drop_table('verticals')
    op.drop_table('rate_limits')
    op.drop_table('chapters')
