from fastapi import APIRouter, Depends

from playlist_sorter.sorting import SessionRegistry

from .deps import get_registry

router = APIRouter()


@router.get("/health")
async def health(registry: SessionRegistry = Depends(get_registry)) -> dict:
    return {"status": "ok", "sessions": len(registry)}
