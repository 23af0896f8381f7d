"""create line tracking tables

Revision ID: 3c1f9a7d2b60
Revises:
Create Date: 2026-10-18 09:12:44.518203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '3c1f9a7d2b60'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql')


def upgrade() -> None:
    op.create_table('tracked_repositories',
        sa.Column('repository_id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('owner', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('clone_url', sa.String(length=2048), nullable=False),
        sa.Column('local_path', sa.String(length=2048), nullable=True),
        sa.Column('watermark', sa.TIMESTAMP(), nullable=True),
        sa.Column('analysis_status', sa.String(length=20), nullable=False),
        sa.Column('last_analyzed_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(), nullable=False),
        sa.PrimaryKeyConstraint('repository_id'),
        sa.UniqueConstraint('user_id', 'owner', 'name', name='uq_user_owner_name')
    )
    op.create_index('idx_tracked_repositories_user', 'tracked_repositories', ['user_id', 'created_at'], unique=False)

    op.create_table('commit_line_snapshots',
        sa.Column('snapshot_id', sa.UUID(), nullable=False),
        sa.Column('repository_id', sa.UUID(), nullable=False),
        sa.Column('commit_sha', sa.String(length=64), nullable=False),
        sa.Column('committed_at', sa.TIMESTAMP(), nullable=False),
        sa.Column('total_lines', sa.Integer(), nullable=False),
        sa.Column('lines_added', sa.Integer(), nullable=False),
        sa.Column('lines_removed', sa.Integer(), nullable=False),
        sa.Column('lines_by_extension', JSON_TYPE, nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(), nullable=False),
        sa.ForeignKeyConstraint(['repository_id'], ['tracked_repositories.repository_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('snapshot_id'),
        sa.UniqueConstraint('repository_id', 'commit_sha', name='uq_repository_commit_sha')
    )
    op.create_index('idx_snapshots_repository_date', 'commit_line_snapshots', ['repository_id', 'committed_at'], unique=False)

    op.create_table('failed_operations',
        sa.Column('failure_id', sa.UUID(), nullable=False),
        sa.Column('repository_id', sa.UUID(), nullable=False),
        sa.Column('operation_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.String(length=255), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=False),
        sa.Column('stack_trace', sa.Text(), nullable=False),
        sa.Column('failed_at', sa.TIMESTAMP(), nullable=False),
        sa.Column('retry_count', sa.Integer(), nullable=False),
        sa.Column('last_retry_at', sa.TIMESTAMP(), nullable=True),
        sa.Column('context', JSON_TYPE, nullable=True),
        sa.ForeignKeyConstraint(['repository_id'], ['tracked_repositories.repository_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('failure_id'),
        sa.UniqueConstraint('repository_id', 'operation_type', 'entity_id', name='uq_failed_operation_unit')
    )
    op.create_index('idx_failed_operations_retry', 'failed_operations', ['retry_count', 'last_retry_at'], unique=False)

    op.create_table('top_files',
        sa.Column('repository_id', sa.UUID(), nullable=False),
        sa.Column('rank', sa.Integer(), nullable=False),
        sa.Column('file_path', sa.String(length=2048), nullable=False),
        sa.Column('line_count', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['repository_id'], ['tracked_repositories.repository_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('repository_id', 'rank', name='pk_top_files')
    )

    op.create_table('user_preferences',
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('file_extensions', JSON_TYPE, nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(), nullable=False),
        sa.PrimaryKeyConstraint('user_id')
    )


def downgrade() -> None:
    op.drop_table('user_preferences')
    op.drop_table('top_files')
    op.drop_index('idx_failed_operations_retry', table_name='failed_operations')
    op.drop_table('failed_operations')
    op.drop_index('idx_snapshots_repository_date', table_name='commit_line_snapshots')
    op.drop_table('commit_line_snapshots')
    op.drop_index('idx_tracked_repositories_user', table_name='tracked_repositories')
    op.drop_table('tracked_repositories')
