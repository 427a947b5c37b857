# store statistics + health

from dataclasses import asdict

from fastapi import APIRouter, Depends

from chatstore.config.config import AppSettings
from chatstore.services.chat_actions import get_missing_keys
from chatstore.services.records import get_stats
from chatstore.storage.kv.store import KeyValueStore

from .deps import get_settings_dep, get_store
from .schemas import HealthResponse, MissingKeysResponse, StatusResponse

router = APIRouter(tags=["status"])


@router.get("/status", response_model=StatusResponse)
async def get_status(
    store: KeyValueStore = Depends(get_store),  # noqa: B008
) -> StatusResponse:
    """
    Usage snapshot: on-disk size of both documents, live items per group,
    and when the snapshot was taken.
    """
    stats = await get_stats(store)
    return StatusResponse(**stats.to_dict())


@router.get("/health", response_model=HealthResponse)
async def get_health(
    store: KeyValueStore = Depends(get_store),  # noqa: B008
) -> HealthResponse:
    return HealthResponse(**asdict(store.health()))


@router.get("/keys/missing", response_model=MissingKeysResponse)
async def missing_keys(
    settings: AppSettings = Depends(get_settings_dep),  # noqa: B008
) -> MissingKeysResponse:
    return MissingKeysResponse(missing=get_missing_keys(settings.required_keys))
