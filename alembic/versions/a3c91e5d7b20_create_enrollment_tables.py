"""create enrollment tables

Revision ID: a3c91e5d7b20
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a3c91e5d7b20'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Catalog mirror
    op.create_table('users',
    sa.Column('id', sa.String(length=100), nullable=False),
    sa.Column('full_name', sa.String(length=200), nullable=True),
    sa.Column('email', sa.String(length=320), nullable=True),
    sa.Column('role', sa.String(length=20), nullable=False, server_default='student'),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )

    op.create_table('courses',
    sa.Column('id', sa.String(length=100), nullable=False),
    sa.Column('title', sa.String(length=300), nullable=False),
    sa.Column('video_content_urls', sa.JSON(), nullable=False),
    sa.Column('min_batch_size', sa.Integer(), nullable=False, server_default='2'),
    sa.Column('is_self_paced', sa.Boolean(), nullable=False, server_default='false'),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.CheckConstraint('min_batch_size >= 1', name='ck_courses_min_batch_size'),
    sa.PrimaryKeyConstraint('id')
    )

    # Enrollments: one row per (student, course)
    op.create_table('enrollments',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('student_id', sa.String(length=100), nullable=False),
    sa.Column('course_id', sa.String(length=100), nullable=False),
    sa.Column('enrollment_type', sa.String(length=20), nullable=False, server_default='individual'),
    sa.Column('batch_size', sa.Integer(), nullable=False, server_default='1'),
    sa.Column('payment_status', sa.String(length=20), nullable=False, server_default='pending'),
    sa.Column('payment_type', sa.String(length=20), nullable=False, server_default='full'),
    sa.Column('payment_details', sa.JSON(), nullable=True),
    sa.Column('emi_details', sa.JSON(), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
    sa.Column('enrollment_date', sa.DateTime(timezone=True), nullable=False),
    sa.Column('is_self_paced', sa.Boolean(), nullable=False, server_default='false'),
    sa.Column('expiry_date', sa.DateTime(timezone=True), nullable=True),
    sa.Column('is_completed', sa.Boolean(), nullable=False, server_default='false'),
    sa.Column('completed_on', sa.DateTime(timezone=True), nullable=True),
    sa.Column('progress', sa.Float(), nullable=False, server_default='0'),
    sa.Column('learning_path', sa.String(length=20), nullable=False, server_default='sequential'),
    sa.Column('completion_criteria', sa.JSON(), nullable=False),
    sa.Column('source_info', sa.JSON(), nullable=True),
    sa.Column('last_accessed', sa.DateTime(timezone=True), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.CheckConstraint('batch_size >= 1', name='ck_enrollments_batch_size'),
    sa.CheckConstraint('progress >= 0 AND progress <= 100', name='ck_enrollments_progress'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('student_id', 'course_id', name='uq_enrollments_student_course')
    )

    op.create_index('idx_enrollments_student', 'enrollments', ['student_id'], unique=False)
    op.create_index('idx_enrollments_course', 'enrollments', ['course_id'], unique=False)
    op.create_index('idx_enrollments_status', 'enrollments', ['status'], unique=False)

    op.create_table('enrolled_modules',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('student_id', sa.String(length=100), nullable=False),
    sa.Column('course_id', sa.String(length=100), nullable=False),
    sa.Column('enrollment_id', sa.UUID(), nullable=False),
    sa.Column('video_url', sa.String(length=1000), nullable=True),
    sa.Column('is_watched', sa.Boolean(), nullable=False, server_default='false'),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['enrollment_id'], ['enrollments.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id')
    )

    op.create_index('idx_modules_enrollment', 'enrolled_modules', ['enrollment_id'], unique=False)
    op.create_index('idx_modules_student_course', 'enrolled_modules', ['student_id', 'course_id'], unique=False)

    op.create_table('progress',
    sa.Column('id', sa.UUID(), nullable=False),
    sa.Column('student_id', sa.String(length=100), nullable=False),
    sa.Column('course_id', sa.String(length=100), nullable=False),
    sa.Column('enrollment_id', sa.UUID(), nullable=False),
    sa.Column('lesson_progress', sa.JSON(), nullable=False),
    sa.Column('quiz_progress', sa.JSON(), nullable=False),
    sa.Column('assignment_progress', sa.JSON(), nullable=False),
    sa.Column('overall_progress', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('meta', sa.JSON(), nullable=False),
    sa.Column('last_accessed', sa.DateTime(timezone=True), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.CheckConstraint('overall_progress >= 0 AND overall_progress <= 100', name='ck_progress_overall'),
    sa.ForeignKeyConstraint(['enrollment_id'], ['enrollments.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('student_id', 'course_id', name='uq_progress_student_course')
    )


def downgrade() -> None:
    op.drop_table('progress')
    op.drop_index('idx_modules_student_course', table_name='enrolled_modules')
    op.drop_index('idx_modules_enrollment', table_name='enrolled_modules')
    op.drop_table('enrolled_modules')
    op.drop_index('idx_enrollments_status', table_name='enrollments')
    op.drop_index('idx_enrollments_course', table_name='enrollments')
    op.drop_index('idx_enrollments_student', table_name='enrollments')
    op.drop_table('enrollments')
    op.drop_table('courses')
    op.drop_table('users')
