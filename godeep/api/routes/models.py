from __future__ import annotations

from fastapi import APIRouter

from godeep.api.deps import get_chat_modes
from godeep.models.schemas import ModelInfo, ModelsResponse

router = APIRouter(prefix="/api/models", tags=["models"])


@router.get("", response_model=ModelsResponse)
async def list_models():
    """List the available chat modes."""
    return ModelsResponse(models=[ModelInfo(**m) for m in get_chat_modes()])
