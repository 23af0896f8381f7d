"""Failure ledger API routes (FastAPI)."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from ..deps import get_engine

router = APIRouter(prefix="/failures", tags=["failures"])


@router.delete("/{failure_id}")
async def delete_failed_operation(failure_id: UUID, engine=Depends(get_engine)):
    """Discard a failure ledger entry (e.g. an exhausted one)."""
    if not engine.delete_failed_operation(str(failure_id)):
        raise HTTPException(status_code=404, detail="Failed operation not found")
    return {"status": "deleted", "failure_id": str(failure_id)}
