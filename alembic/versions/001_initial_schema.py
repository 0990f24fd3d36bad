"""initial_schema_scans_issues_credits

Revision ID: 001
Revises: 
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


scan_status = sa.Enum('pending', 'running', 'completed', 'failed', name='scanstatus')
compliance_level = sa.Enum('minimal', 'standard', 'strict', name='compliancelevel')
issue_severity = sa.Enum('info', 'warning', 'critical', name='issueseverity')
credit_plan = sa.Enum('free', 'pro', 'enterprise', name='creditplan')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'user_credits',
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('balance', sa.Integer(), nullable=False),
        sa.Column('plan', credit_plan, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('user_id'),
        sa.CheckConstraint('balance >= 0', name='check_user_credits_non_negative'),
    )

    op.create_table(
        'scans',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('url', sa.String(2048), nullable=False),
        sa.Column('level', compliance_level, nullable=False),
        sa.Column('status', scan_status, nullable=False),
        sa.Column('progress', sa.Integer(), nullable=False),
        sa.Column('status_message', sa.String(255), nullable=True),
        sa.Column('score', sa.Integer(), nullable=True),
        sa.Column('insights', sa.Text(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('progress >= 0 AND progress <= 100', name='check_scan_progress_range'),
        sa.CheckConstraint('score IS NULL OR (score >= 0 AND score <= 100)', name='check_scan_score_range'),
    )
    op.create_index(op.f('ix_scans_id'), 'scans', ['id'], unique=False)
    op.create_index(op.f('ix_scans_user_id'), 'scans', ['user_id'], unique=False)
    op.create_index(op.f('ix_scans_status'), 'scans', ['status'], unique=False)
    op.create_index('idx_scans_user_created', 'scans', ['user_id', 'created_at'], unique=False)

    op.create_table(
        'scan_issues',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('scan_id', sa.String(), nullable=False),
        sa.Column('type', sa.String(255), nullable=False),
        sa.Column('severity', issue_severity, nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('element', sa.Text(), nullable=True),
        sa.Column('recommendation', sa.Text(), nullable=True),
        sa.Column('compliance_reference', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['scan_id'], ['scans.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_scan_issues_id'), 'scan_issues', ['id'], unique=False)
    op.create_index(op.f('ix_scan_issues_scan_id'), 'scan_issues', ['scan_id'], unique=False)
    op.create_index(op.f('ix_scan_issues_severity'), 'scan_issues', ['severity'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_scan_issues_severity'), table_name='scan_issues')
    op.drop_index(op.f('ix_scan_issues_scan_id'), table_name='scan_issues')
    op.drop_index(op.f('ix_scan_issues_id'), table_name='scan_issues')
    op.drop_table('scan_issues')

    op.drop_index('idx_scans_user_created', table_name='scans')
    op.drop_index(op.f('ix_scans_status'), table_name='scans')
    op.drop_index(op.f('ix_scans_user_id'), table_name='scans')
    op.drop_index(op.f('ix_scans_id'), table_name='scans')
    op.drop_table('scans')

    op.drop_table('user_credits')

    issue_severity.drop(op.get_bind(), checkfirst=True)
    scan_status.drop(op.get_bind(), checkfirst=True)
    compliance_level.drop(op.get_bind(), checkfirst=True)
    credit_plan.drop(op.get_bind(), checkfirst=True)
