"""Create grading tables.

Revision ID: create_grading_tables
Revises:
Create Date: 2026-10-19

Creates the reference tables read by the engine (subjects, students, tests)
and the grade_records table with its one-record-per-(test, student) constraint.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'create_grading_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


test_type = sa.Enum('midterm', 'final', 'supplementary', 'practical', name='test_type')


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'subjects',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('code', sa.String(20), nullable=False, unique=True),
        sa.Column('department', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_subjects_is_active', 'subjects', ['is_active'])

    op.create_table(
        'students',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('roll_number', sa.String(50), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('department', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_students_roll_number', 'students', ['roll_number'])
    op.create_index('ix_students_is_active', 'students', ['is_active'])

    op.create_table(
        'tests',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('title', sa.String(150), nullable=False),
        sa.Column('subject_id', sa.BigInteger(), sa.ForeignKey('subjects.id', ondelete='SET NULL'), nullable=True),
        sa.Column('subject_label', sa.String(100), nullable=True),
        sa.Column('test_type', test_type, nullable=False),
        sa.Column('test_date', sa.Date(), nullable=False),
        sa.Column('max_marks', sa.DECIMAL(10, 2), nullable=False),
        sa.Column('passing_marks', sa.DECIMAL(10, 2), nullable=False),
        sa.Column('result_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_marks_update', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_tests_subject_id', 'tests', ['subject_id'])
    op.create_index('ix_tests_test_date', 'tests', ['test_date'])
    op.create_index('ix_tests_is_active', 'tests', ['is_active'])

    op.create_table(
        'grade_records',
        sa.Column('id', sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column('test_id', sa.BigInteger(), sa.ForeignKey('tests.id'), nullable=False),
        sa.Column('student_id', sa.BigInteger(), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('marks_obtained', sa.DECIMAL(10, 2), nullable=False),
        sa.Column('max_marks', sa.DECIMAL(10, 2), nullable=False),
        sa.Column('passing_marks', sa.DECIMAL(10, 2), nullable=False),
        sa.Column('percentage', sa.DECIMAL(5, 2), nullable=False),
        sa.Column('grade', sa.String(2), nullable=False),
        sa.Column('is_passed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', sa.String(10), nullable=False),
        sa.Column('remarks', sa.Text(), nullable=False, server_default=''),
        sa.Column('graded_by', sa.BigInteger(), nullable=True),
        sa.Column('graded_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('academic_year', sa.String(9), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint('test_id', 'student_id', name='uq_grade_record_test_student'),
        sa.CheckConstraint('marks_obtained >= 0', name='ck_grade_record_marks_non_negative'),
        sa.CheckConstraint('max_marks > 0', name='ck_grade_record_max_marks_positive'),
    )
    op.create_index('ix_grade_records_test_id', 'grade_records', ['test_id'])
    op.create_index('ix_grade_records_student_id', 'grade_records', ['student_id'])
    op.create_index('ix_grade_records_graded_by', 'grade_records', ['graded_by'])
    op.create_index('ix_grade_records_submitted_at', 'grade_records', ['submitted_at'])
    op.create_index('ix_grade_records_is_active', 'grade_records', ['is_active'])
    op.create_index('ix_grade_records_test_marks', 'grade_records', ['test_id', 'marks_obtained'])
    op.create_index('ix_grade_records_student_submitted', 'grade_records', ['student_id', 'submitted_at'])


def downgrade() -> None:
    op.drop_table('grade_records')
    op.drop_table('tests')
    op.drop_table('students')
    op.drop_table('subjects')
    test_type.drop(op.get_bind(), checkfirst=True)
