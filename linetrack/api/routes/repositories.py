"""Tracked repository API routes (FastAPI).

CRUD for tracked repositories, analysis triggers and the read-only
history, extension, top-file and failure views.
"""

import logging
from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from pydantic import BaseModel

from ...core.constants import DEFAULT_HISTORY_DAYS, DEFAULT_TOP_FILES_COUNT
from ...core.exceptions import RepositoryNotFoundError, SyncError
from ..deps import get_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/repositories", tags=["repositories"])


# ── Request/Response models ──────────────────────────────────────────────

class RepositoryCreate(BaseModel):
    user_id: UUID
    owner: str
    name: str
    clone_url: str


class RepositoryResponse(BaseModel):
    repository_id: str
    user_id: str
    owner: str
    name: str
    clone_url: str
    local_path: str | None = None
    watermark: datetime | None = None
    analysis_status: str = "idle"
    last_analyzed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class DailyLineCount(BaseModel):
    date: str
    total_lines: int
    lines_added: int
    lines_removed: int
    net_lines: int
    commit_count: int
    lines_by_extension: dict[str, int] = {}


class RepositoryHistory(BaseModel):
    repository_id: str
    owner: str
    name: str
    daily: list[DailyLineCount]


class ExtensionShare(BaseModel):
    extension: str
    line_count: int
    percentage: float


class TopFileResponse(BaseModel):
    rank: int
    file_path: str
    line_count: int


class FailedOperationResponse(BaseModel):
    failure_id: str
    repository_id: str
    operation_type: str
    entity_id: str
    error_message: str
    failed_at: datetime
    retry_count: int
    last_retry_at: datetime | None = None
    stack_trace: str = ""
    context: dict[str, Any] = {}


# ── Background analysis ──────────────────────────────────────────────────

def _run_analysis(engine, repository_id: str):
    """Background task: one analysis pass.

    Sync failures leave the repository marked 'aborted'; per-commit
    failures are already in the failure ledger.
    """
    try:
        result = engine.start_analysis(repository_id)
        logger.info(f"Background analysis for {repository_id} completed: {result}")
    except SyncError as e:
        logger.error(f"Background analysis for {repository_id} aborted: {e}")
    except Exception as e:
        logger.error(f"Background analysis for {repository_id} failed: {e}")


def _get_or_404(engine, repository_id: UUID) -> dict:
    try:
        return engine.get_repository(str(repository_id))
    except RepositoryNotFoundError:
        raise HTTPException(status_code=404, detail="Repository not found")


# ── Routes ───────────────────────────────────────────────────────────────

@router.post("", response_model=RepositoryResponse, status_code=201)
async def add_repository(data: RepositoryCreate, engine=Depends(get_engine)):
    """Start tracking a repository."""
    try:
        repository = engine.add_repository(
            user_id=str(data.user_id),
            owner=data.owner,
            name=data.name,
            clone_url=data.clone_url,
        )
        return RepositoryResponse(**repository)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("", response_model=list[RepositoryResponse])
async def list_repositories(user_id: UUID, engine=Depends(get_engine)):
    """List the repositories a user tracks."""
    return [RepositoryResponse(**r) for r in engine.list_repositories(str(user_id))]


@router.get("/history", response_model=list[RepositoryHistory])
async def get_all_line_history(
    user_id: UUID,
    days: int = Query(DEFAULT_HISTORY_DAYS, ge=1),
    engine=Depends(get_engine),
):
    """Daily line counts for every repository a user tracks."""
    return engine.get_all_line_history(str(user_id), days)


@router.get("/{repository_id}", response_model=RepositoryResponse)
async def get_repository(repository_id: UUID, engine=Depends(get_engine)):
    """Get repository details by ID."""
    return RepositoryResponse(**_get_or_404(engine, repository_id))


@router.delete("/{repository_id}")
def delete_repository(repository_id: UUID, engine=Depends(get_engine)):
    """Stop tracking a repository and drop its history and working copy.

    Plain def: the delete waits for the checkout lease, so it runs in the
    threadpool and leaves the event loop free for reads.
    """
    try:
        engine.delete_repository(str(repository_id))
    except RepositoryNotFoundError:
        raise HTTPException(status_code=404, detail="Repository not found")
    return {"status": "deleted", "repository_id": str(repository_id)}


@router.post("/{repository_id}/analyze", status_code=202)
async def analyze_repository(
    repository_id: UUID,
    background_tasks: BackgroundTasks,
    engine=Depends(get_engine),
):
    """Queue an analysis pass for a repository."""
    repository = _get_or_404(engine, repository_id)
    background_tasks.add_task(_run_analysis, engine, repository["repository_id"])
    return {"status": "accepted", "repository_id": repository["repository_id"]}


@router.get("/{repository_id}/history", response_model=list[DailyLineCount])
async def get_line_history(
    repository_id: UUID,
    days: int = Query(DEFAULT_HISTORY_DAYS, ge=1),
    engine=Depends(get_engine),
):
    """Daily line counts for the last `days` days."""
    _get_or_404(engine, repository_id)
    return engine.get_line_history(str(repository_id), days)


@router.get("/{repository_id}/extensions", response_model=list[ExtensionShare])
async def get_extension_breakdown(repository_id: UUID, engine=Depends(get_engine)):
    """Per-extension share of the newest snapshot."""
    _get_or_404(engine, repository_id)
    return engine.get_extension_breakdown(str(repository_id))


@router.get("/{repository_id}/top-files", response_model=list[TopFileResponse])
async def get_top_files(
    repository_id: UUID,
    count: int = Query(DEFAULT_TOP_FILES_COUNT, ge=1),
    engine=Depends(get_engine),
):
    """Largest files of the newest analyzed tree."""
    _get_or_404(engine, repository_id)
    return engine.get_top_files(str(repository_id), count)


@router.get("/{repository_id}/failures", response_model=list[FailedOperationResponse])
async def get_failed_operations(repository_id: UUID, engine=Depends(get_engine)):
    """Failure ledger entries for a repository."""
    _get_or_404(engine, repository_id)
    return engine.get_failed_operations(str(repository_id))
