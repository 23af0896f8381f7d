"""
SQLAlchemy ORM Models for linetrack

Line-count history models:
- TrackedRepository: A remote repository followed by a user (holds the watermark)
- CommitLineSnapshot: Immutable per-commit line counts
- FailedOperation: Dead-letter entries for per-commit work that errored
- TopFile: Largest files of the newest analyzed tree
- UserPreference: Per-user tracked file extensions
"""

from sqlalchemy import (
    Column, String, Integer, Text, TIMESTAMP, ForeignKey, JSON,
    Index, UniqueConstraint, PrimaryKeyConstraint, Uuid,
)
from sqlalchemy.orm import relationship, declarative_base
from sqlalchemy.dialects.postgresql import JSONB
import uuid
from datetime import datetime

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON everywhere else
JSONType = JSON().with_variant(JSONB(), "postgresql")


# =============================================================================
# Tracked repositories
# =============================================================================

class TrackedRepository(Base):
    """A repository whose line-count history is being tracked."""
    __tablename__ = "tracked_repositories"
    __table_args__ = (
        UniqueConstraint('user_id', 'owner', 'name', name='uq_user_owner_name'),
        Index('idx_tracked_repositories_user', 'user_id', 'created_at'),
    )

    repository_id = Column(Uuid(), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(), nullable=False)
    owner = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    clone_url = Column(String(2048), nullable=False)
    local_path = Column(String(2048), nullable=True)                  # working copy, set after first clone
    watermark = Column(TIMESTAMP, nullable=True)                      # NULL = never analyzed
    analysis_status = Column(String(20), default='idle', nullable=False)  # idle|syncing|enumerating|processing|advancing|aborted
    last_analyzed_at = Column(TIMESTAMP, nullable=True)
    created_at = Column(TIMESTAMP, default=datetime.utcnow, nullable=False)
    updated_at = Column(TIMESTAMP, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    snapshots = relationship("CommitLineSnapshot", back_populates="repository", cascade="all, delete-orphan", passive_deletes=True)
    failed_operations = relationship("FailedOperation", back_populates="repository", cascade="all, delete-orphan", passive_deletes=True)
    top_files = relationship("TopFile", back_populates="repository", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self):
        return f"<TrackedRepository(repository_id={self.repository_id}, name='{self.owner}/{self.name}', watermark={self.watermark})>"


class CommitLineSnapshot(Base):
    """Line counts for one commit. Written once, never updated."""
    __tablename__ = "commit_line_snapshots"
    __table_args__ = (
        UniqueConstraint('repository_id', 'commit_sha', name='uq_repository_commit_sha'),
        Index('idx_snapshots_repository_date', 'repository_id', 'committed_at'),
    )

    snapshot_id = Column(Uuid(), primary_key=True, default=uuid.uuid4)
    repository_id = Column(Uuid(), ForeignKey("tracked_repositories.repository_id", ondelete="CASCADE"), nullable=False)
    commit_sha = Column(String(64), nullable=False)
    committed_at = Column(TIMESTAMP, nullable=False)
    total_lines = Column(Integer, default=0, nullable=False)
    lines_added = Column(Integer, default=0, nullable=False)
    lines_removed = Column(Integer, default=0, nullable=False)
    lines_by_extension = Column(JSONType, default=dict)                # {".cs": 1200, ".ts": 300}
    created_at = Column(TIMESTAMP, default=datetime.utcnow, nullable=False)

    # Relationships
    repository = relationship("TrackedRepository", back_populates="snapshots")

    def __repr__(self):
        return f"<CommitLineSnapshot(sha='{self.commit_sha[:10]}', total={self.total_lines})>"


# =============================================================================
# Failure ledger
# =============================================================================

class FailedOperation(Base):
    """Dead-letter entry for a unit of work that raised."""
    __tablename__ = "failed_operations"
    __table_args__ = (
        UniqueConstraint('repository_id', 'operation_type', 'entity_id', name='uq_failed_operation_unit'),
        Index('idx_failed_operations_retry', 'retry_count', 'last_retry_at'),
    )

    failure_id = Column(Uuid(), primary_key=True, default=uuid.uuid4)
    repository_id = Column(Uuid(), ForeignKey("tracked_repositories.repository_id", ondelete="CASCADE"), nullable=False)
    operation_type = Column(String(50), nullable=False)               # commit-analysis
    entity_id = Column(String(255), nullable=False)                    # commit SHA
    error_message = Column(Text, default="", nullable=False)
    stack_trace = Column(Text, default="", nullable=False)
    failed_at = Column(TIMESTAMP, default=datetime.utcnow, nullable=False)
    retry_count = Column(Integer, default=0, nullable=False)
    last_retry_at = Column(TIMESTAMP, nullable=True)
    context = Column(JSONType, default=dict)                           # replay data: local_path, commit_sha, ...

    # Relationships
    repository = relationship("TrackedRepository", back_populates="failed_operations")

    def __repr__(self):
        return f"<FailedOperation(type='{self.operation_type}', entity='{self.entity_id}', retries={self.retry_count})>"


# =============================================================================
# Derived views
# =============================================================================

class TopFile(Base):
    """Top-N files by line count for a repository's newest analyzed tree."""
    __tablename__ = "top_files"
    __table_args__ = (
        PrimaryKeyConstraint('repository_id', 'rank', name='pk_top_files'),
    )

    repository_id = Column(Uuid(), ForeignKey("tracked_repositories.repository_id", ondelete="CASCADE"), nullable=False)
    rank = Column(Integer, nullable=False)                             # 1 = largest
    file_path = Column(String(2048), nullable=False)
    line_count = Column(Integer, nullable=False)

    # Relationships
    repository = relationship("TrackedRepository", back_populates="top_files")

    def __repr__(self):
        return f"<TopFile(rank={self.rank}, path='{self.file_path}', lines={self.line_count})>"


class UserPreference(Base):
    """File extensions a user wants counted."""
    __tablename__ = "user_preferences"

    user_id = Column(Uuid(), primary_key=True)
    file_extensions = Column(JSONType, default=list, nullable=False)
    updated_at = Column(TIMESTAMP, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<UserPreference(user_id={self.user_id}, extensions={self.file_extensions})>"
