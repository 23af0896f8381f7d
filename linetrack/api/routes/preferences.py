"""User preference API routes (FastAPI).

Users pick which file extensions are counted; anyone without a stored
preference gets the configured defaults.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..deps import get_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/preferences", tags=["preferences"])


class ExtensionPreferences(BaseModel):
    file_extensions: list[str]


@router.get("/{user_id}/extensions", response_model=ExtensionPreferences)
async def get_file_extensions(user_id: UUID, engine=Depends(get_engine)):
    """Extensions counted for a user."""
    return ExtensionPreferences(file_extensions=engine.get_file_extensions(str(user_id)))


@router.put("/{user_id}/extensions", response_model=ExtensionPreferences)
async def set_file_extensions(
    user_id: UUID,
    data: ExtensionPreferences,
    engine=Depends(get_engine),
):
    """Replace the extensions counted for a user."""
    if not any(ext.strip() for ext in data.file_extensions):
        raise HTTPException(status_code=400, detail="At least one file extension is required")
    extensions = engine.set_file_extensions(str(user_id), data.file_extensions)
    logger.info(f"User {user_id} now tracks {len(extensions)} extensions")
    return ExtensionPreferences(file_extensions=extensions)
